"""
Pool API Routes
Configuration, sensor ingest, status, dosing and the device command queue
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from pooldose.config import settings
from pooldose.core.exceptions import CommandStateError, ConfigurationError
from pooldose.domain.schemas.dosing import (
    CommandConfirmRequest,
    CycleLogResponse,
    CycleResultResponse,
    DosingCommandResponse,
    ManualDoseRequest,
    ManualDoseResponse,
    NextCommandResponse,
    PoolConfigRequest,
    PoolConfigResponse,
    PoolStatusResponse,
    SensorReadingRequest,
    SensorReadingResponse,
)
from pooldose.infrastructure.db.database import get_db
from pooldose.infrastructure.db.models import DosingCommandModel
from pooldose.infrastructure.db.repositories import (
    CycleLogRepository,
    DosingCommandRepository,
    DosingStateRepository,
    PoolConfigRepository,
    SensorReadingRepository,
)
from pooldose.services.dosing_service import DosingService
from pooldose.utils.time import ensure_utc, local_date, now_utc

router = APIRouter()


# -------------------------------------------------------------------
# Configuration
# -------------------------------------------------------------------

@router.put("/{pool_id}/config", response_model=PoolConfigResponse)
async def put_pool_config(
    pool_id: str,
    request: PoolConfigRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Create or update a pool configuration.

    Only the fields present in the body are changed. A first call must
    include target_ph, tolerance and volume_liters.
    """
    repo = PoolConfigRepository(db)
    try:
        config = await repo.upsert(pool_id, request.model_dump(exclude_unset=True))
    except ConfigurationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return PoolConfigResponse.from_domain(config)


@router.get("/{pool_id}/config", response_model=PoolConfigResponse)
async def get_pool_config(pool_id: str, db: AsyncSession = Depends(get_db)):
    try:
        config = await PoolConfigRepository(db).load_pool_config(pool_id)
    except ConfigurationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    if config is None:
        raise HTTPException(status_code=404, detail=f"Pool {pool_id} is not configured")
    return PoolConfigResponse.from_domain(config)


# -------------------------------------------------------------------
# Sensor data & status
# -------------------------------------------------------------------

@router.post(
    "/{pool_id}/readings",
    response_model=SensorReadingResponse,
    status_code=status.HTTP_201_CREATED,
)
async def post_reading(
    pool_id: str,
    request: SensorReadingRequest,
    db: AsyncSession = Depends(get_db),
):
    reading = await SensorReadingRepository(db).add(pool_id, request.ph, request.captured_at)
    return SensorReadingResponse(pool_id=pool_id, ph=reading.ph, captured_at=reading.captured_at)


@router.get("/{pool_id}/status", response_model=PoolStatusResponse)
async def get_pool_status(pool_id: str, db: AsyncSession = Depends(get_db)):
    """
    Latest reading, sensor freshness, today's dose count and the last cycle summary.
    """
    now = now_utc()
    reading = await SensorReadingRepository(db).fetch_sensor_reading(pool_id)
    state = await DosingStateRepository(db).load_dosing_state(pool_id)
    last_cycle = await CycleLogRepository(db).get_status(pool_id)

    data_age_seconds = None
    sensor_connected = False
    if reading is not None:
        data_age_seconds = int(reading.age(now).total_seconds())
        sensor_connected = data_age_seconds <= settings.SENSOR_MAX_AGE_SECONDS

    return PoolStatusResponse(
        pool_id=pool_id,
        current_ph=reading.ph if reading else None,
        reading_time=reading.captured_at if reading else None,
        data_age_seconds=data_age_seconds,
        sensor_connected=sensor_connected,
        dosing_count_today=state.count_for(local_date(now, settings.TIMEZONE)),
        last_dosing_time=state.last_dosing_time,
        last_product=state.last_product,
        last_check=ensure_utc(last_cycle.last_check) if last_cycle else None,
        last_outcome=last_cycle.last_outcome if last_cycle else None,
        last_level=last_cycle.last_level if last_cycle else None,
        last_message=last_cycle.last_message if last_cycle else None,
    )


# -------------------------------------------------------------------
# Dosing
# -------------------------------------------------------------------

@router.post("/{pool_id}/check", response_model=CycleResultResponse)
async def force_check(pool_id: str, db: AsyncSession = Depends(get_db)):
    """
    Run one evaluation cycle now (same rules as the scheduler).
    """
    result = await DosingService().force_check(pool_id, session=db)
    return CycleResultResponse.from_domain(result)


@router.post(
    "/{pool_id}/manual-dose",
    response_model=ManualDoseResponse,
    status_code=status.HTTP_201_CREATED,
)
async def manual_dose(
    pool_id: str,
    request: ManualDoseRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Queue a manual dose. Bypasses the automatic policy.
    """
    command = await DosingService().manual_dose(
        db, pool_id, request.product, request.duration
    )
    return ManualDoseResponse(
        command_id=command.id,
        pool_id=pool_id,
        product=command.product,
        duration_seconds=command.duration_seconds,
        status=command.status,
        created_at=ensure_utc(command.created_at),
    )


# -------------------------------------------------------------------
# Device command queue
# -------------------------------------------------------------------

def _command_response(command: DosingCommandModel) -> DosingCommandResponse:
    return DosingCommandResponse(
        id=command.id,
        pool_id=command.pool_id,
        product=command.product,
        duration_seconds=command.duration_seconds,
        source=command.source,
        status=command.status,
        created_at=ensure_utc(command.created_at),
        processed_at=ensure_utc(command.processed_at) if command.processed_at else None,
        executed_at=ensure_utc(command.executed_at) if command.executed_at else None,
    )


@router.get("/{pool_id}/commands/next", response_model=NextCommandResponse)
async def next_command(
    pool_id: str,
    dosing_in_progress: bool = Query(False),
    db: AsyncSession = Depends(get_db),
):
    """
    Device poll: claim the oldest pending command.

    The command moves to processing and is not handed out again. A device
    that is still running a dose gets nothing.
    """
    if dosing_in_progress:
        return NextCommandResponse(command=None)

    command = await DosingCommandRepository(db).claim_next(pool_id)
    if command is None:
        return NextCommandResponse(command=None)
    return NextCommandResponse(command=_command_response(command))


@router.post("/{pool_id}/commands/{command_id}/confirm", response_model=DosingCommandResponse)
async def confirm_command(
    pool_id: str,
    command_id: int,
    request: CommandConfirmRequest,
    db: AsyncSession = Depends(get_db),
):
    try:
        command = await DosingService().confirm_command(db, pool_id, command_id, request.status)
    except CommandStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    if command is None:
        raise HTTPException(status_code=404, detail=f"Command {command_id} not found for pool {pool_id}")
    return _command_response(command)


@router.get("/{pool_id}/commands", response_model=List[DosingCommandResponse])
async def list_commands(
    pool_id: str,
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: int = Query(20, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    commands = await DosingCommandRepository(db).list_for_pool(pool_id, status=status_filter, limit=limit)
    return [_command_response(command) for command in commands]


@router.get("/{pool_id}/logs", response_model=List[CycleLogResponse])
async def get_logs(
    pool_id: str,
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    logs = await CycleLogRepository(db).recent(pool_id, limit=limit)
    return [
        CycleLogResponse(
            id=log.id,
            log_type=log.log_type,
            outcome=log.outcome,
            message=log.message,
            ph=log.ph,
            target_ph=log.target_ph,
            deviation=log.deviation,
            payload=log.payload,
            created_at=ensure_utc(log.created_at),
        )
        for log in logs
    ]
