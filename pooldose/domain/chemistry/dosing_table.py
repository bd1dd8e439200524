"""
CHEMICAL DOSING TABLE

Industry dosing constants for pool pH adjustment.

Sources:
- Knorr Systems chemical dosing charts
- Pool & Spa Operators Handbook

Every slope is expressed per 0.1 pH unit for a reference pool of
10,000 US gallons (37,854 L). The values are empirical and must not be
derived or "corrected".
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from pooldose.domain.models import AcidType, DisinfectantType

# -------------------------------------------------------------------
# Units & reference pool
# -------------------------------------------------------------------

LITERS_PER_GALLON = 3.78541
REFERENCE_POOL_GALLONS = 10_000
REFERENCE_PH_STEP = 0.1

# Inner safety net for acids, independent of configuration
ACID_MAX_DOSE_PER_EVENT = 500

# Alkalinity buffering (lowering path only)
HIGH_ALKALINITY_PPM = 120
LOW_ALKALINITY_PPM = 80
HIGH_ALKALINITY_FACTOR = 1.2
LOW_ALKALINITY_FACTOR = 0.9


class ChemicalAgent(str, Enum):
    """Chemicals with dosing data"""
    MURIATIC_ACID = "muriatic-acid"
    SODIUM_BISULFATE = "sodium-bisulfate"
    SODA_ASH = "soda-ash"
    SODIUM_HYPOCHLORITE = "sodium-hypochlorite"
    CALCIUM_HYPOCHLORITE = "calcium-hypochlorite"
    CHLORINE_GAS = "chlorine-gas"


@dataclass(frozen=True)
class ChemicalConstants:
    """Dosing data for one chemical - Immutable"""
    agent: ChemicalAgent
    name: str
    unit: str
    is_liquid: bool
    concentration: float
    # mL or g per 0.1 pH per 10,000 gal
    dose_per_01_ph_per_10k_gallons: Optional[float] = None
    max_dose_per_event: Optional[float] = None
    density_g_per_ml: Optional[float] = None
    # mL or g raising free chlorine by 1 ppm in 10,000 gal
    dose_per_1ppm_chlorine_per_10k_gallons: Optional[float] = None
    ph_effect_per_ppm: Optional[float] = None
    product_ph: Optional[float] = None


# -------------------------------------------------------------------
# Dosing table
# -------------------------------------------------------------------

DOSING_TABLE: Dict[ChemicalAgent, ChemicalConstants] = {
    # HCl 31.45%. Chart to 7.6: 8.4 -> 946 mL, 8.2 -> 828 mL,
    # 8.0 -> 592 mL, 7.8 -> 315 mL; ~473 mL per 0.2 pH.
    ChemicalAgent.MURIATIC_ACID: ChemicalConstants(
        agent=ChemicalAgent.MURIATIC_ACID,
        name="Muriatic acid",
        unit="mL",
        is_liquid=True,
        concentration=0.3145,
        density_g_per_ml=1.16,
        dose_per_01_ph_per_10k_gallons=236,
        max_dose_per_event=ACID_MAX_DOSE_PER_EVENT,
    ),
    # Dry acid, roughly 75% as effective as muriatic; ~8 oz per 0.1 pH
    ChemicalAgent.SODIUM_BISULFATE: ChemicalConstants(
        agent=ChemicalAgent.SODIUM_BISULFATE,
        name="Sodium bisulfate",
        unit="g",
        is_liquid=False,
        concentration=1.0,
        dose_per_01_ph_per_10k_gallons=227,
        max_dose_per_event=ACID_MAX_DOSE_PER_EVENT,
    ),
    # Chart to 7.4: 6.6 -> 680 g, 6.8 -> 567 g, 7.0 -> 454 g, 7.2 -> 340 g.
    # 1 lb per event to avoid turbidity.
    ChemicalAgent.SODA_ASH: ChemicalConstants(
        agent=ChemicalAgent.SODA_ASH,
        name="Soda ash (sodium carbonate)",
        unit="g",
        is_liquid=False,
        concentration=1.0,
        dose_per_01_ph_per_10k_gallons=115,
        max_dose_per_event=454,
    ),
    # 12% liquid chlorine; 5 ppm chlorine ~ +0.1 pH
    ChemicalAgent.SODIUM_HYPOCHLORITE: ChemicalConstants(
        agent=ChemicalAgent.SODIUM_HYPOCHLORITE,
        name="Sodium hypochlorite",
        unit="mL",
        is_liquid=True,
        concentration=0.12,
        dose_per_01_ph_per_10k_gallons=1480,
        dose_per_1ppm_chlorine_per_10k_gallons=296,
        ph_effect_per_ppm=0.02,
    ),
    # 67% granular chlorine; 3.3 ppm chlorine ~ +0.1 pH
    ChemicalAgent.CALCIUM_HYPOCHLORITE: ChemicalConstants(
        agent=ChemicalAgent.CALCIUM_HYPOCHLORITE,
        name="Calcium hypochlorite",
        unit="g",
        is_liquid=False,
        concentration=0.67,
        dose_per_01_ph_per_10k_gallons=190,
        dose_per_1ppm_chlorine_per_10k_gallons=57,
        ph_effect_per_ppm=0.03,
        product_ph=10.8,
    ),
    # Lowers pH slightly; never a pH-raising product
    ChemicalAgent.CHLORINE_GAS: ChemicalConstants(
        agent=ChemicalAgent.CHLORINE_GAS,
        name="Chlorine gas",
        unit="g",
        is_liquid=False,
        concentration=1.0,
        dose_per_1ppm_chlorine_per_10k_gallons=37,
        ph_effect_per_ppm=-0.01,
    ),
}

ACID_AGENTS: Dict[AcidType, ChemicalAgent] = {
    AcidType.MURIATIC: ChemicalAgent.MURIATIC_ACID,
    AcidType.BISULFATE: ChemicalAgent.SODIUM_BISULFATE,
}

DISINFECTANT_AGENTS: Dict[DisinfectantType, ChemicalAgent] = {
    DisinfectantType.SODIUM_HYPOCHLORITE: ChemicalAgent.SODIUM_HYPOCHLORITE,
    DisinfectantType.CALCIUM_HYPOCHLORITE: ChemicalAgent.CALCIUM_HYPOCHLORITE,
    DisinfectantType.CHLORINE_GAS: ChemicalAgent.CHLORINE_GAS,
}

PH_RAISING_AGENT = ChemicalAgent.SODA_ASH


# -------------------------------------------------------------------
# Helper Functions
# -------------------------------------------------------------------

def get_constants(agent: ChemicalAgent) -> ChemicalConstants:
    """Look up dosing data for a chemical"""
    try:
        return DOSING_TABLE[agent]
    except KeyError as exc:
        raise ValueError(f"No dosing data for chemical '{agent}'") from exc


def liters_to_gallons(liters: float) -> float:
    return liters / LITERS_PER_GALLON


def alkalinity_factor(alkalinity_ppm: float) -> float:
    """
    Buffering correction for acid doses.

    High alkalinity resists the pH move and needs more acid, low
    alkalinity needs less.
    """
    if alkalinity_ppm > HIGH_ALKALINITY_PPM:
        return HIGH_ALKALINITY_FACTOR
    if alkalinity_ppm < LOW_ALKALINITY_PPM:
        return LOW_ALKALINITY_FACTOR
    return 1.0


def disinfectant_side_effect_note(disinfectant: DisinfectantType) -> str:
    """
    Advisory text about the pH side effect of the configured chlorine.

    Informational only: the engine never doses chlorine to move pH.
    """
    constants = get_constants(DISINFECTANT_AGENTS[disinfectant])
    if constants.ph_effect_per_ppm is not None and constants.ph_effect_per_ppm < 0:
        return (
            f"WARNING: {constants.name} LOWERS pH, it does not raise it. "
            f"Use soda ash to raise pH."
        )
    return (
        f"Note: your {constants.name.lower()} also raises pH slightly "
        f"(~{constants.ph_effect_per_ppm} per 1 ppm of chlorine)."
    )
