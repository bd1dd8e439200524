"""
Health Routes
Liveness, plus readiness of the dosing store and the evaluation loop
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pooldose.config import settings
from pooldose.domain.models import DosingMode
from pooldose.infrastructure.db.database import get_db
from pooldose.infrastructure.db.models import DosingCommandModel, DosingStateModel, PoolConfigModel
from pooldose.infrastructure.db.repositories.dosing_command_repository import STATUS_PENDING

router = APIRouter()


@router.get("/health")
async def health():
    return {"status": "ok"}


@router.get("/ready")
async def ready(request: Request, db: AsyncSession = Depends(get_db)):
    """
    Ready when the dosing tables answer and, if enabled, the scheduler runs.
    """
    automatic_pools = None
    pending_commands = None
    try:
        await db.execute(select(func.count()).select_from(DosingStateModel))
        automatic_pools = await db.scalar(
            select(func.count())
            .select_from(PoolConfigModel)
            .where(PoolConfigModel.dosing_mode == DosingMode.AUTOMATIC.value)
        )
        pending_commands = await db.scalar(
            select(func.count())
            .select_from(DosingCommandModel)
            .where(DosingCommandModel.status == STATUS_PENDING)
        )
        db_connected = True
    except SQLAlchemyError:
        db_connected = False

    scheduler = getattr(request.app.state, "scheduler", None)
    scheduler_running = bool(scheduler is not None and scheduler.running)
    is_ready = db_connected and (scheduler_running or not settings.SCHEDULER_ENABLED)

    return {
        "status": "ready" if is_ready else "not_ready",
        "db_connected": db_connected,
        "scheduler_running": scheduler_running,
        "dispatch_mode": settings.DISPATCH_MODE,
        "automatic_pools": automatic_pools,
        "pending_commands": pending_commands,
    }
