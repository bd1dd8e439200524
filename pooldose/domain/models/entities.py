"""
Domain Models - Entities
Pure domain objects with no infrastructure dependencies
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from enum import Enum
from typing import List, Optional


class AcidType(str, Enum):
    """pH-lowering agent configured for a pool"""
    MURIATIC = "muriatic"
    BISULFATE = "bisulfate"


class DisinfectantType(str, Enum):
    """Chlorine product in use (advisory only for pH raising)"""
    SODIUM_HYPOCHLORITE = "sodium-hypochlorite"
    CALCIUM_HYPOCHLORITE = "calcium-hypochlorite"
    CHLORINE_GAS = "chlorine-gas"


class DoseDirection(str, Enum):
    """Abstract product handed to the actuator"""
    RAISE = "ph_plus"
    LOWER = "ph_minus"


class DosingMode(str, Enum):
    """Whether the scheduler may dose a pool on its own"""
    AUTOMATIC = "automatic"
    MANUAL = "manual"


class CycleOutcome(str, Enum):
    """Result of one evaluation cycle for one pool"""
    NO_CONFIG = "no_config"
    INVALID_CONFIG = "invalid_config"
    NO_READING = "no_reading"
    IN_RANGE = "in_range"
    NOT_REQUIRED = "not_required"
    BLOCKED_SAFETY_BOUNDS = "blocked_safety_bounds"
    BLOCKED_MAX_CHANGE = "blocked_max_change"
    BLOCKED_RATE_LIMIT = "blocked_rate_limit"
    BLOCKED_DAILY_CAP = "blocked_daily_cap"
    BLOCKED_CONCURRENT = "blocked_concurrent"
    DOSED = "dosed"
    DISPATCH_FAILED = "dispatch_failed"
    ERROR = "error"


class LogLevel(str, Enum):
    """Severity attached to a cycle log entry"""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    SUCCESS = "success"


@dataclass(frozen=True)
class PoolProfile:
    """Physical and chemical description of a pool - Immutable"""
    volume_liters: float
    alkalinity_ppm: float = 100.0
    acid_type: AcidType = AcidType.MURIATIC
    disinfectant_type: DisinfectantType = DisinfectantType.SODIUM_HYPOCHLORITE

    def __post_init__(self):
        if self.volume_liters <= 0:
            raise ValueError("Pool volume must be positive")
        if self.alkalinity_ppm < 0:
            raise ValueError("Alkalinity cannot be negative")


@dataclass(frozen=True)
class SafetyConfig:
    """Safety and rate-limit settings - Immutable within a cycle"""
    min_ph: float = 6.0
    max_ph: float = 8.5
    max_ph_change: float = 1.0
    min_wait_hours: float = 0.5
    max_daily_doses: int = 10
    pump_flow_rate: float = 60.0  # L/h
    max_dose_volume: float = 500.0  # mL or g
    min_dose_volume: float = 1.0  # mL or g
    correction_factor: float = 0.8

    def __post_init__(self):
        if not 0.0 <= self.min_ph < self.max_ph <= 14.0:
            raise ValueError("Require 0 <= min_ph < max_ph <= 14")
        if self.max_ph_change <= 0:
            raise ValueError("Max pH change must be positive")
        if self.min_wait_hours < 0:
            raise ValueError("Min wait time cannot be negative")
        if self.max_daily_doses < 0:
            raise ValueError("Max daily doses cannot be negative")
        if self.pump_flow_rate <= 0:
            raise ValueError("Pump flow rate must be positive")
        if self.min_dose_volume <= 0 or self.max_dose_volume < self.min_dose_volume:
            raise ValueError("Require 0 < min_dose_volume <= max_dose_volume")
        if not 0.0 < self.correction_factor <= 1.0:
            raise ValueError("Correction factor must be in (0, 1]")

    @property
    def min_wait(self) -> timedelta:
        return timedelta(hours=self.min_wait_hours)


@dataclass(frozen=True)
class PoolConfig:
    """Everything the engine needs to know about one pool - Immutable"""
    pool_id: str
    target_ph: float
    tolerance: float
    profile: PoolProfile
    safety: SafetyConfig = field(default_factory=SafetyConfig)
    dosing_mode: DosingMode = DosingMode.AUTOMATIC

    def __post_init__(self):
        if not self.pool_id:
            raise ValueError("Pool id cannot be empty")
        if not 0.0 <= self.target_ph <= 14.0:
            raise ValueError("Target pH must be within [0, 14]")
        if self.tolerance < 0:
            raise ValueError("Tolerance cannot be negative")

    @property
    def is_automatic(self) -> bool:
        return self.dosing_mode == DosingMode.AUTOMATIC


@dataclass(frozen=True)
class SensorReading:
    """Single pH sample from the pool probe - Immutable"""
    ph: float
    captured_at: datetime

    @property
    def is_valid(self) -> bool:
        """pH must be physically plausible"""
        return 0.0 <= self.ph <= 14.0

    def age(self, now: datetime) -> timedelta:
        return now - self.captured_at

    def is_recent(self, now: datetime, max_age: timedelta) -> bool:
        """Recent enough to trust for a dosing decision"""
        return self.age(now) <= max_age


@dataclass(frozen=True)
class DosingState:
    """
    Per-pool dosing bookkeeping persisted across cycles - Immutable snapshot

    ``version`` is the optimistic-concurrency counter; 0 means the state
    was never persisted.
    """
    last_dosing_time: Optional[datetime] = None
    last_dosing_date: Optional[date] = None
    dosing_count_today: int = 0
    last_product: Optional[DoseDirection] = None
    last_duration_seconds: Optional[int] = None
    last_ph: Optional[float] = None
    last_deviation: Optional[float] = None
    version: int = 0

    def count_for(self, day: date) -> int:
        """Doses completed on ``day``; resets implicitly on a new day"""
        if self.last_dosing_date != day:
            return 0
        return self.dosing_count_today

    def record_dose(
        self,
        dosed_at: datetime,
        day: date,
        product: DoseDirection,
        duration_seconds: int,
        ph: float,
        deviation: float,
    ) -> "DosingState":
        """Next state after a completed dose"""
        return DosingState(
            last_dosing_time=dosed_at,
            last_dosing_date=day,
            dosing_count_today=self.count_for(day) + 1,
            last_product=product,
            last_duration_seconds=duration_seconds,
            last_ph=ph,
            last_deviation=deviation,
            version=self.version + 1,
        )

    def with_version(self, version: int) -> "DosingState":
        return replace(self, version=version)


@dataclass(frozen=True)
class DoseDetails:
    """Observability fields attached to a dose calculation"""
    ph_difference: float
    pool_volume_gallons: int
    raw_calculation: int
    chemical: str
    alkalinity_factor: Optional[float] = None


@dataclass(frozen=True)
class ChemicalDose:
    """Amount of one chemical for one pH move, before actuation planning"""
    chemical: str
    amount: int
    unit: str
    is_liquid: bool
    notes: List[str] = field(default_factory=list)
    details: Optional[DoseDetails] = None


@dataclass(frozen=True)
class DoseSpec:
    """Dosing instruction produced for one cycle - never persisted"""
    should_dose: bool
    product: Optional[DoseDirection] = None
    chemical: Optional[str] = None
    volume: float = 0.0
    unit: str = "mL"
    duration_seconds: int = 0
    warnings: List[str] = field(default_factory=list)
    message: Optional[str] = None
    details: Optional[DoseDetails] = None

    def __post_init__(self):
        if self.should_dose:
            if self.product is None:
                raise ValueError("A dose needs a product")
            if self.duration_seconds < 1:
                raise ValueError("Dose duration must be at least 1 second")
            if self.volume <= 0:
                raise ValueError("Dose volume must be positive")


@dataclass(frozen=True)
class CycleResult:
    """Structured outcome of one evaluation cycle - Immutable"""
    pool_id: str
    outcome: CycleOutcome
    level: LogLevel
    message: str
    evaluated_at: datetime
    current_ph: Optional[float] = None
    target_ph: Optional[float] = None
    deviation: Optional[float] = None
    dose: Optional[DoseSpec] = None
    dosing_count_today: Optional[int] = None

    @property
    def dosed(self) -> bool:
        return self.outcome == CycleOutcome.DOSED

    @property
    def is_fault(self) -> bool:
        return self.level == LogLevel.ERROR
