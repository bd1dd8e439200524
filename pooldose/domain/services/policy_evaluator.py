"""
DOSING POLICY EVALUATOR
Safety and rate-limit gate in front of the dose calculator

DECISION ORDER (fixed):
1. No config        -> NO_CONFIG (silent)
2. No usable reading -> NO_READING
3. In tolerance     -> IN_RANGE
4. Absolute bounds  -> PhOutOfBoundsError (short-circuits 5)
5. Max change       -> PhChangeTooLargeError
6. Min wait         -> BLOCKED_RATE_LIMIT (silent)
7. Daily cap        -> BLOCKED_DAILY_CAP
8. Calculator       -> PROCEED

RULES:
- No I/O, no state mutation
- Safety gates use the raw reading, never a simulated post-dose pH
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Optional

from pooldose.core.exceptions import PhChangeTooLargeError, PhOutOfBoundsError
from pooldose.domain.models import (
    DoseSpec,
    DosingState,
    PoolConfig,
    SafetyConfig,
    SensorReading,
)
from pooldose.domain.services.dose_calculator import DoseCalculator
from pooldose.utils.time import local_date

DEFAULT_MAX_READING_AGE = timedelta(minutes=5)


class PolicyVerdict(str, Enum):
    NO_CONFIG = "no_config"
    NO_READING = "no_reading"
    IN_RANGE = "in_range"
    BLOCKED_RATE_LIMIT = "blocked_rate_limit"
    BLOCKED_DAILY_CAP = "blocked_daily_cap"
    NOT_REQUIRED = "not_required"
    PROCEED = "proceed"


@dataclass(frozen=True)
class PolicyDecision:
    """Evaluator output for one cycle - Immutable"""
    verdict: PolicyVerdict
    message: str
    current_ph: Optional[float] = None
    deviation: Optional[float] = None
    dosing_count_today: int = 0
    dose: Optional[DoseSpec] = None
    wait_remaining: Optional[timedelta] = None

    @property
    def should_dose(self) -> bool:
        return self.verdict == PolicyVerdict.PROCEED


class DosingPolicyEvaluator:
    """
    Policy Evaluator
    Deterministic decision tree deciding whether this cycle may dose
    """

    def __init__(
        self,
        max_reading_age: timedelta = DEFAULT_MAX_READING_AGE,
        timezone: str = "UTC",
        calculator_factory: Callable[[SafetyConfig], DoseCalculator] = DoseCalculator.from_safety_config,
    ):
        """
        Initialize policy evaluator

        Args:
            max_reading_age: Readings older than this are treated as absent
            timezone: Timezone defining the calendar day for the daily cap
            calculator_factory: Builds the dose calculator from a pool's safety config
        """
        self.max_reading_age = max_reading_age
        self.timezone = timezone
        self.calculator_factory = calculator_factory

    def evaluate(
        self,
        config: Optional[PoolConfig],
        reading: Optional[SensorReading],
        state: DosingState,
        now: datetime,
    ) -> PolicyDecision:
        """
        Run the decision tree for one pool

        Args:
            config: Pool configuration (None if not configured yet)
            reading: Latest sensor reading (None if absent)
            state: Persisted dosing state (empty if never dosed)
            now: Evaluation time (timezone-aware)

        Returns:
            PolicyDecision

        Raises:
            PhOutOfBoundsError: Reading outside [min_ph, max_ph]
            PhChangeTooLargeError: Deviation larger than max_ph_change
        """
        if config is None:
            return PolicyDecision(
                verdict=PolicyVerdict.NO_CONFIG,
                message="Pool not configured",
            )

        usable, reason = self._check_reading(reading, now)
        if not usable:
            return PolicyDecision(
                verdict=PolicyVerdict.NO_READING,
                message=reason,
                current_ph=reading.ph if reading is not None else None,
            )

        safety = config.safety
        current_ph = reading.ph
        deviation = current_ph - config.target_ph

        if abs(deviation) <= config.tolerance:
            low = config.target_ph - config.tolerance
            high = config.target_ph + config.tolerance
            return PolicyDecision(
                verdict=PolicyVerdict.IN_RANGE,
                message=f"pH in range: {current_ph:.2f} ({low:.1f} - {high:.1f})",
                current_ph=current_ph,
                deviation=deviation,
            )

        # Bounds first; max change is not evaluated once bounds fire
        if current_ph < safety.min_ph or current_ph > safety.max_ph:
            raise PhOutOfBoundsError(current_ph, deviation, safety.min_ph, safety.max_ph)

        if abs(deviation) > safety.max_ph_change:
            raise PhChangeTooLargeError(current_ph, deviation, safety.max_ph_change)

        wait_remaining = self._wait_remaining(state, safety, now)
        if wait_remaining is not None:
            minutes = math.ceil(wait_remaining.total_seconds() / 60)
            return PolicyDecision(
                verdict=PolicyVerdict.BLOCKED_RATE_LIMIT,
                message=f"Waiting {minutes} minutes before dosing again",
                current_ph=current_ph,
                deviation=deviation,
                wait_remaining=wait_remaining,
            )

        today = local_date(now, self.timezone)
        dosing_count_today = state.count_for(today)
        if dosing_count_today >= safety.max_daily_doses:
            return PolicyDecision(
                verdict=PolicyVerdict.BLOCKED_DAILY_CAP,
                message=f"Daily limit reached: {dosing_count_today}/{safety.max_daily_doses}",
                current_ph=current_ph,
                deviation=deviation,
                dosing_count_today=dosing_count_today,
            )

        calculator = self.calculator_factory(safety)
        dose = calculator.calculate(config.profile, current_ph, config.target_ph)

        if not dose.should_dose:
            return PolicyDecision(
                verdict=PolicyVerdict.NOT_REQUIRED,
                message=dose.message or "No dosing required",
                current_ph=current_ph,
                deviation=deviation,
                dosing_count_today=dosing_count_today,
                dose=dose,
            )

        return PolicyDecision(
            verdict=PolicyVerdict.PROCEED,
            message=dose.message or "Dose required",
            current_ph=current_ph,
            deviation=deviation,
            dosing_count_today=dosing_count_today,
            dose=dose,
        )

    def _check_reading(self, reading: Optional[SensorReading], now: datetime) -> tuple[bool, str]:
        if reading is None:
            return False, "No sensor data"
        if not reading.is_valid:
            return False, f"Sensor pH {reading.ph} outside [0, 14]"
        if not reading.is_recent(now, self.max_reading_age):
            age = int(reading.age(now).total_seconds())
            return False, f"Sensor data stale ({age}s old)"
        return True, ""

    @staticmethod
    def _wait_remaining(
        state: DosingState,
        safety: SafetyConfig,
        now: datetime,
    ) -> Optional[timedelta]:
        if safety.min_wait_hours <= 0 or state.last_dosing_time is None:
            return None
        elapsed = now - state.last_dosing_time
        if elapsed >= safety.min_wait:
            return None
        return safety.min_wait - elapsed
