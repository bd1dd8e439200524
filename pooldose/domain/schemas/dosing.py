"""
API Schemas
Request/response models shared by the pool and calculator routes
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from pooldose.domain.models import (
    AcidType,
    CycleResult,
    DisinfectantType,
    DoseDirection,
    DoseSpec,
    DosingMode,
    PoolConfig,
)


class DoseDetailsResponse(BaseModel):
    ph_difference: float
    pool_volume_gallons: int
    raw_calculation: int
    chemical: str
    alkalinity_factor: Optional[float] = None


class DoseResponse(BaseModel):
    should_dose: bool
    product: Optional[DoseDirection] = None
    chemical: Optional[str] = None
    volume: float
    unit: str
    duration_seconds: int
    warnings: List[str]
    message: Optional[str] = None
    details: Optional[DoseDetailsResponse] = None

    @classmethod
    def from_domain(cls, dose: DoseSpec) -> "DoseResponse":
        details = None
        if dose.details is not None:
            details = DoseDetailsResponse(
                ph_difference=dose.details.ph_difference,
                pool_volume_gallons=dose.details.pool_volume_gallons,
                raw_calculation=dose.details.raw_calculation,
                chemical=dose.details.chemical,
                alkalinity_factor=dose.details.alkalinity_factor,
            )
        return cls(
            should_dose=dose.should_dose,
            product=dose.product,
            chemical=dose.chemical,
            volume=dose.volume,
            unit=dose.unit,
            duration_seconds=dose.duration_seconds,
            warnings=list(dose.warnings),
            message=dose.message,
            details=details,
        )


class CycleResultResponse(BaseModel):
    pool_id: str
    outcome: str
    level: str
    message: str
    evaluated_at: datetime
    current_ph: Optional[float] = None
    target_ph: Optional[float] = None
    deviation: Optional[float] = None
    dosing_count_today: Optional[int] = None
    dose: Optional[DoseResponse] = None

    @classmethod
    def from_domain(cls, result: CycleResult) -> "CycleResultResponse":
        return cls(
            pool_id=result.pool_id,
            outcome=result.outcome.value,
            level=result.level.value,
            message=result.message,
            evaluated_at=result.evaluated_at,
            current_ph=result.current_ph,
            target_ph=result.target_ph,
            deviation=result.deviation,
            dosing_count_today=result.dosing_count_today,
            dose=DoseResponse.from_domain(result.dose) if result.dose else None,
        )


class PoolConfigRequest(BaseModel):
    """Partial update: only the fields sent are changed. null resets a safety override."""
    target_ph: Optional[float] = Field(None, ge=0, le=14)
    tolerance: Optional[float] = Field(None, ge=0)
    volume_liters: Optional[float] = Field(None, gt=0)
    alkalinity_ppm: Optional[float] = Field(None, ge=0)
    acid_type: Optional[AcidType] = None
    disinfectant_type: Optional[DisinfectantType] = None
    dosing_mode: Optional[DosingMode] = None

    min_ph: Optional[float] = Field(None, ge=0, le=14)
    max_ph: Optional[float] = Field(None, ge=0, le=14)
    max_ph_change: Optional[float] = Field(None, gt=0)
    min_wait_hours: Optional[float] = Field(None, ge=0)
    max_daily_doses: Optional[int] = Field(None, ge=0)
    pump_flow_rate: Optional[float] = Field(None, gt=0)
    max_dose_volume: Optional[float] = Field(None, gt=0)
    min_dose_volume: Optional[float] = Field(None, gt=0)
    correction_factor: Optional[float] = Field(None, gt=0, le=1)


class SafetyConfigResponse(BaseModel):
    min_ph: float
    max_ph: float
    max_ph_change: float
    min_wait_hours: float
    max_daily_doses: int
    pump_flow_rate: float
    max_dose_volume: float
    min_dose_volume: float
    correction_factor: float


class PoolConfigResponse(BaseModel):
    pool_id: str
    target_ph: float
    tolerance: float
    volume_liters: float
    alkalinity_ppm: float
    acid_type: AcidType
    disinfectant_type: DisinfectantType
    dosing_mode: DosingMode
    safety: SafetyConfigResponse

    @classmethod
    def from_domain(cls, config: PoolConfig) -> "PoolConfigResponse":
        safety = config.safety
        return cls(
            pool_id=config.pool_id,
            target_ph=config.target_ph,
            tolerance=config.tolerance,
            volume_liters=config.profile.volume_liters,
            alkalinity_ppm=config.profile.alkalinity_ppm,
            acid_type=config.profile.acid_type,
            disinfectant_type=config.profile.disinfectant_type,
            dosing_mode=config.dosing_mode,
            safety=SafetyConfigResponse(
                min_ph=safety.min_ph,
                max_ph=safety.max_ph,
                max_ph_change=safety.max_ph_change,
                min_wait_hours=safety.min_wait_hours,
                max_daily_doses=safety.max_daily_doses,
                pump_flow_rate=safety.pump_flow_rate,
                max_dose_volume=safety.max_dose_volume,
                min_dose_volume=safety.min_dose_volume,
                correction_factor=safety.correction_factor,
            ),
        )


class SensorReadingRequest(BaseModel):
    ph: float = Field(..., ge=0, le=14, description="Measured pH")
    captured_at: Optional[datetime] = Field(None, description="Sample time (default: now)")


class SensorReadingResponse(BaseModel):
    pool_id: str
    ph: float
    captured_at: datetime


class PoolStatusResponse(BaseModel):
    pool_id: str
    current_ph: Optional[float] = None
    reading_time: Optional[datetime] = None
    data_age_seconds: Optional[int] = None
    sensor_connected: bool
    dosing_count_today: int
    last_dosing_time: Optional[datetime] = None
    last_product: Optional[DoseDirection] = None
    last_check: Optional[datetime] = None
    last_outcome: Optional[str] = None
    last_level: Optional[str] = None
    last_message: Optional[str] = None


class ManualDoseRequest(BaseModel):
    product: DoseDirection
    duration: int = Field(..., ge=1, le=3600, description="Pump run time in seconds")


class ManualDoseResponse(BaseModel):
    command_id: int
    pool_id: str
    product: DoseDirection
    duration_seconds: int
    status: str
    created_at: datetime


class DosingCommandResponse(BaseModel):
    id: int
    pool_id: str
    product: DoseDirection
    duration_seconds: int
    source: DosingMode
    status: str
    created_at: datetime
    processed_at: Optional[datetime] = None
    executed_at: Optional[datetime] = None


class NextCommandResponse(BaseModel):
    command: Optional[DosingCommandResponse] = None


class CommandConfirmRequest(BaseModel):
    status: Literal["executed", "failed"]


class CycleLogResponse(BaseModel):
    id: int
    log_type: str
    outcome: str
    message: str
    ph: Optional[float] = None
    target_ph: Optional[float] = None
    deviation: Optional[float] = None
    payload: Optional[dict] = None
    created_at: datetime


class DoseCalculationRequest(BaseModel):
    volume_liters: float = Field(..., gt=0)
    current_ph: float = Field(..., ge=0, le=14)
    target_ph: float = Field(..., ge=0, le=14)
    alkalinity_ppm: float = Field(100.0, ge=0)
    acid_type: AcidType = AcidType.MURIATIC
    disinfectant_type: DisinfectantType = DisinfectantType.SODIUM_HYPOCHLORITE
    correction_factor: Optional[float] = Field(None, gt=0, le=1)
    pump_flow_rate: Optional[float] = Field(None, gt=0)
    max_dose_volume: Optional[float] = Field(None, gt=0)
