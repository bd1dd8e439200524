"""
Calculator API Routes
Stateless dose preview; nothing is stored or dispatched
"""

from fastapi import APIRouter, HTTPException

from pooldose.domain.models import PoolProfile
from pooldose.domain.schemas.dosing import DoseCalculationRequest, DoseResponse
from pooldose.domain.services.dose_calculator import DoseCalculator
from pooldose.infrastructure.db.repositories import default_safety_config

router = APIRouter()


@router.post("/dose", response_model=DoseResponse)
async def calculate_dose(request: DoseCalculationRequest):
    defaults = default_safety_config()
    try:
        calculator = DoseCalculator(
            correction_factor=request.correction_factor or defaults.correction_factor,
            pump_flow_rate=request.pump_flow_rate or defaults.pump_flow_rate,
            max_dose_volume=request.max_dose_volume or defaults.max_dose_volume,
            min_dose_volume=defaults.min_dose_volume,
        )
        profile = PoolProfile(
            volume_liters=request.volume_liters,
            alkalinity_ppm=request.alkalinity_ppm,
            acid_type=request.acid_type,
            disinfectant_type=request.disinfectant_type,
        )
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    dose = calculator.calculate(profile, request.current_ph, request.target_ph)
    return DoseResponse.from_domain(dose)
