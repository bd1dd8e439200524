"""
DOSE CALCULATOR
Convert a pH delta into a physical chemical dose and pump run time

RESPONSIBILITIES:
- Look up the chemical's slope in the dosing table
- Scale by pH delta and pool volume
- Apply alkalinity (acids only) and safety corrections
- Clamp to the chemical's per-event ceiling and the configured maximum
- Convert the dose to whole seconds of pump time

RULES:
- No state, no I/O
- Alkalinity correction applies to the lowering path only
- Duration is always rounded up, never below 1 second
- A computed dose of zero becomes the minimum dose, with a warning
"""

import math
from typing import List, Optional

from pooldose.domain.chemistry.dosing_table import (
    ACID_AGENTS,
    PH_RAISING_AGENT,
    REFERENCE_PH_STEP,
    REFERENCE_POOL_GALLONS,
    ChemicalAgent,
    ChemicalConstants,
    alkalinity_factor,
    disinfectant_side_effect_note,
    get_constants,
    liters_to_gallons,
)
from pooldose.domain.models import (
    AcidType,
    ChemicalDose,
    DisinfectantType,
    DoseDetails,
    DoseDirection,
    DoseSpec,
    PoolProfile,
    SafetyConfig,
)

DEFAULT_ALKALINITY_PPM = 100.0


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class DoseCalculator:
    """
    Dose Calculator
    Pure chemistry: (pH delta, pool, chemical) -> amount and seconds
    """

    def __init__(
        self,
        correction_factor: float = 0.8,
        pump_flow_rate: float = 60.0,
        max_dose_volume: float = 500.0,
        min_dose_volume: float = 1.0,
    ):
        """
        Initialize dose calculator

        Args:
            correction_factor: Conservative multiplier against overshoot (0 < f <= 1)
            pump_flow_rate: Dosing pump flow in L/h
            max_dose_volume: Configured ceiling per dose (mL or g)
            min_dose_volume: Smallest dose the pump can deliver (mL or g)
        """
        if not 0.0 < correction_factor <= 1.0:
            raise ValueError("Correction factor must be in (0, 1]")
        if pump_flow_rate <= 0:
            raise ValueError("Pump flow rate must be positive")
        if min_dose_volume <= 0 or max_dose_volume < min_dose_volume:
            raise ValueError("Require 0 < min_dose_volume <= max_dose_volume")

        self.correction_factor = correction_factor
        self.pump_flow_rate = pump_flow_rate
        self.max_dose_volume = max_dose_volume
        self.min_dose_volume = min_dose_volume

    @classmethod
    def from_safety_config(cls, safety: SafetyConfig) -> "DoseCalculator":
        return cls(
            correction_factor=safety.correction_factor,
            pump_flow_rate=safety.pump_flow_rate,
            max_dose_volume=safety.max_dose_volume,
            min_dose_volume=safety.min_dose_volume,
        )

    # ------------------------------------------------------------------
    # CHEMICAL AMOUNTS
    # ------------------------------------------------------------------

    def calculate_acid_for_ph_decrease(
        self,
        pool_volume_liters: float,
        current_ph: float,
        target_ph: float,
        alkalinity: Optional[float] = DEFAULT_ALKALINITY_PPM,
        acid_type: AcidType = AcidType.MURIATIC,
    ) -> ChemicalDose:
        """
        Calculate acid needed to LOWER pH

        Args:
            pool_volume_liters: Pool volume in liters
            current_ph: Measured pH
            target_ph: Desired pH
            alkalinity: Total alkalinity in ppm (100 if unknown)
            acid_type: Muriatic (liquid) or bisulfate (dry)

        Returns:
            ChemicalDose in mL (muriatic) or g (bisulfate)
        """
        constants = get_constants(ACID_AGENTS[AcidType(acid_type)])

        if current_ph <= target_ph:
            return self._zero_dose(
                constants,
                "Current pH is at or below the target. No acid needed.",
            )

        if alkalinity is None:
            alkalinity = DEFAULT_ALKALINITY_PPM

        pool_volume_gallons = liters_to_gallons(pool_volume_liters)
        ph_difference = current_ph - target_ph
        factor = alkalinity_factor(alkalinity)

        scaled = self._scaled_dose(constants, ph_difference, pool_volume_gallons)
        final = scaled * factor * self.correction_factor
        safe = min(final, constants.max_dose_per_event)

        return ChemicalDose(
            chemical=constants.agent.value,
            amount=_round_half_up(safe),
            unit=constants.unit,
            is_liquid=constants.is_liquid,
            details=DoseDetails(
                ph_difference=round(ph_difference, 2),
                pool_volume_gallons=_round_half_up(pool_volume_gallons),
                raw_calculation=_round_half_up(scaled),
                chemical=constants.agent.value,
                alkalinity_factor=factor,
            ),
        )

    def calculate_base_for_ph_increase(
        self,
        pool_volume_liters: float,
        current_ph: float,
        target_ph: float,
        disinfectant_type: DisinfectantType = DisinfectantType.SODIUM_HYPOCHLORITE,
    ) -> ChemicalDose:
        """
        Calculate soda ash needed to RAISE pH

        Soda ash is always the raising agent. The configured chlorine
        only contributes an advisory note about its own pH side effect.
        No alkalinity correction is applied on this path.

        Args:
            pool_volume_liters: Pool volume in liters
            current_ph: Measured pH
            target_ph: Desired pH
            disinfectant_type: Chlorine product in use

        Returns:
            ChemicalDose in g
        """
        constants = get_constants(PH_RAISING_AGENT)

        if current_ph >= target_ph:
            return self._zero_dose(
                constants,
                "Current pH is at or above the target. No chemical needed.",
            )

        pool_volume_gallons = liters_to_gallons(pool_volume_liters)
        ph_difference = target_ph - current_ph

        scaled = self._scaled_dose(constants, ph_difference, pool_volume_gallons)
        safe = min(scaled * self.correction_factor, constants.max_dose_per_event)

        return ChemicalDose(
            chemical=constants.agent.value,
            amount=_round_half_up(safe),
            unit=constants.unit,
            is_liquid=constants.is_liquid,
            notes=[disinfectant_side_effect_note(DisinfectantType(disinfectant_type))],
            details=DoseDetails(
                ph_difference=round(ph_difference, 2),
                pool_volume_gallons=_round_half_up(pool_volume_gallons),
                raw_calculation=_round_half_up(scaled),
                chemical=constants.agent.value,
            ),
        )

    # ------------------------------------------------------------------
    # PUMP TIME
    # ------------------------------------------------------------------

    def calculate_dosing_duration(
        self,
        volume: float,
        pump_flow_rate: Optional[float] = None,
    ) -> int:
        """
        Pump run time for a volume, in whole seconds (rounded up, min 1)

        Args:
            volume: Dose in mL (or g for dissolved dry product)
            pump_flow_rate: Flow in L/h, defaults to the calculator's rate
        """
        flow = pump_flow_rate if pump_flow_rate is not None else self.pump_flow_rate
        if flow <= 0:
            raise ValueError("Pump flow rate must be positive")

        # volume / (flow * 1000 / 3600), arranged to stay exact for whole numbers
        duration = math.ceil(volume * 3600 / (flow * 1000))
        return max(1, duration)

    # ------------------------------------------------------------------
    # FULL CALCULATION
    # ------------------------------------------------------------------

    def calculate(
        self,
        profile: PoolProfile,
        current_ph: float,
        target_ph: float,
    ) -> DoseSpec:
        """
        Produce the dosing instruction for moving ``current_ph`` to ``target_ph``

        Args:
            profile: Pool volume, alkalinity and configured chemicals
            current_ph: Measured pH
            target_ph: Desired pH

        Returns:
            DoseSpec (should_dose False only when pH is exactly on target)
        """
        if current_ph > target_ph:
            product = DoseDirection.LOWER
            dose = self.calculate_acid_for_ph_decrease(
                profile.volume_liters,
                current_ph,
                target_ph,
                alkalinity=profile.alkalinity_ppm,
                acid_type=profile.acid_type,
            )
        elif current_ph < target_ph:
            product = DoseDirection.RAISE
            dose = self.calculate_base_for_ph_increase(
                profile.volume_liters,
                current_ph,
                target_ph,
                disinfectant_type=profile.disinfectant_type,
            )
        else:
            return DoseSpec(
                should_dose=False,
                message="pH on target, no dosing needed",
            )

        warnings: List[str] = list(dose.notes)
        volume = float(dose.amount)
        duration: Optional[int] = None

        if volume < self.min_dose_volume:
            reason = (
                "Computed dose too small to measure"
                if dose.amount == 0
                else f"Computed dose {dose.amount}{dose.unit} below pump minimum"
            )
            volume = self.min_dose_volume
            # Smallest pump pulse regardless of flow rate
            duration = 1
            warnings.append(
                f"{reason}, using minimum dose of {volume:g}{dose.unit}."
            )
        elif volume > self.max_dose_volume:
            volume = self.max_dose_volume
            warnings.append(
                f"Dose limited to {volume:g}{dose.unit} for safety. "
                f"Multiple dosing cycles will be required."
            )

        if duration is None:
            duration = self.calculate_dosing_duration(volume)
        chemical_name = get_constants(ChemicalAgent(dose.chemical)).name

        return DoseSpec(
            should_dose=True,
            product=product,
            chemical=dose.chemical,
            volume=volume,
            unit=dose.unit,
            duration_seconds=duration,
            warnings=warnings,
            message=f"{chemical_name}: {volume:g}{dose.unit} over {duration}s",
            details=dose.details,
        )

    # ------------------------------------------------------------------
    # HELPERS
    # ------------------------------------------------------------------

    @staticmethod
    def _scaled_dose(
        constants: ChemicalConstants,
        ph_difference: float,
        pool_volume_gallons: float,
    ) -> float:
        base = (ph_difference / REFERENCE_PH_STEP) * constants.dose_per_01_ph_per_10k_gallons
        return base * (pool_volume_gallons / REFERENCE_POOL_GALLONS)

    @staticmethod
    def _zero_dose(constants: ChemicalConstants, note: str) -> ChemicalDose:
        return ChemicalDose(
            chemical=constants.agent.value,
            amount=0,
            unit=constants.unit,
            is_liquid=constants.is_liquid,
            notes=[note],
        )
