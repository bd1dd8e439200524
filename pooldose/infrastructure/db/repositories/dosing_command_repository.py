"""
Dosing Command Repository
Actuator command queue (pending -> processing -> executed | failed)
"""

from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from pooldose.core.exceptions import CommandStateError
from pooldose.domain.models import DoseDirection, DosingMode
from pooldose.infrastructure.db.models import DosingCommandModel
from pooldose.utils.time import now_utc

STATUS_PENDING = "pending"
STATUS_PROCESSING = "processing"
STATUS_EXECUTED = "executed"
STATUS_FAILED = "failed"

FINAL_STATUSES = (STATUS_EXECUTED, STATUS_FAILED)
OPEN_STATUSES = (STATUS_PENDING, STATUS_PROCESSING)


class DosingCommandRepository:
    """Repository for actuator commands"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        pool_id: str,
        product: DoseDirection,
        duration_seconds: int,
        source: DosingMode = DosingMode.AUTOMATIC,
    ) -> DosingCommandModel:
        """Queue a pending command for the pool's device"""
        model = DosingCommandModel(
            pool_id=pool_id,
            product=DoseDirection(product).value,
            duration_seconds=duration_seconds,
            source=DosingMode(source).value,
            status=STATUS_PENDING,
        )
        self.session.add(model)
        await self.session.flush()
        return model

    async def get(self, pool_id: str, command_id: int) -> Optional[DosingCommandModel]:
        model = await self.session.get(DosingCommandModel, command_id, populate_existing=True)
        if model is None or model.pool_id != pool_id:
            return None
        return model

    async def claim_next(self, pool_id: str) -> Optional[DosingCommandModel]:
        """
        Hand the oldest pending command to the device

        The row moves to ``processing`` with a conditional UPDATE, so a
        command is handed out at most once even if two polls overlap.

        Returns:
            The claimed command, or None if nothing is pending
        """
        while True:
            result = await self.session.execute(
                select(DosingCommandModel.id)
                .where(
                    DosingCommandModel.pool_id == pool_id,
                    DosingCommandModel.status == STATUS_PENDING,
                )
                .order_by(DosingCommandModel.created_at, DosingCommandModel.id)
                .limit(1)
            )
            command_id = result.scalar_one_or_none()
            if command_id is None:
                return None

            claimed = await self.session.execute(
                update(DosingCommandModel)
                .where(
                    DosingCommandModel.id == command_id,
                    DosingCommandModel.status == STATUS_PENDING,
                )
                .values(status=STATUS_PROCESSING, processed_at=now_utc())
                .execution_options(synchronize_session=False)
            )
            if claimed.rowcount == 1:
                return await self.get(pool_id, command_id)

    async def confirm(
        self,
        pool_id: str,
        command_id: int,
        status: str,
    ) -> Optional[DosingCommandModel]:
        """
        Record the device's outcome for a command

        Returns:
            The updated command, or None if the pool has no such command

        Raises:
            CommandStateError: Unknown status or command already finalised
        """
        if status not in FINAL_STATUSES:
            raise CommandStateError(
                f"Status must be one of {', '.join(FINAL_STATUSES)}, got {status!r}"
            )

        model = await self.get(pool_id, command_id)
        if model is None:
            return None
        if model.status not in OPEN_STATUSES:
            raise CommandStateError(f"Command {command_id} already {model.status}")

        model.status = status
        model.executed_at = now_utc()
        await self.session.flush()
        return model

    async def list_for_pool(
        self,
        pool_id: str,
        status: Optional[str] = None,
        limit: int = 20,
    ) -> List[DosingCommandModel]:
        query = select(DosingCommandModel).where(DosingCommandModel.pool_id == pool_id)
        if status is not None:
            query = query.where(DosingCommandModel.status == status)
        query = query.order_by(DosingCommandModel.id.desc()).limit(limit)

        result = await self.session.execute(query)
        return list(result.scalars().all())
