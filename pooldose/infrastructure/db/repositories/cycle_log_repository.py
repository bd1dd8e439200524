"""
Cycle Log Repository
Audit log entries and the per-pool status summary
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pooldose.domain.models import CycleOutcome, CycleResult, LogLevel
from pooldose.infrastructure.db.models import CycleLogModel, PoolStatusModel
from pooldose.utils.time import now_utc

# Outcomes that update the status row but never add a log entry
SILENT_OUTCOMES = frozenset({CycleOutcome.NO_CONFIG, CycleOutcome.BLOCKED_RATE_LIMIT})


class CycleLogRepository:
    """Repository for cycle logs and pool status"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def record(self, result: CycleResult) -> None:
        """
        Persist a cycle result

        Runs in a savepoint so a failed write never poisons the
        surrounding transaction.
        """
        async with self.session.begin_nested():
            if result.outcome not in SILENT_OUTCOMES:
                self.session.add(self._to_log(result))
                if result.dosed:
                    for warning in result.dose.warnings:
                        self.session.add(
                            CycleLogModel(
                                pool_id=result.pool_id,
                                log_type=LogLevel.WARNING.value,
                                outcome=result.outcome.value,
                                message=warning,
                                created_at=result.evaluated_at,
                            )
                        )
            await self._upsert_status(result)

    async def append(
        self,
        pool_id: str,
        level: LogLevel,
        outcome: CycleOutcome,
        message: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> CycleLogModel:
        model = CycleLogModel(
            pool_id=pool_id,
            log_type=LogLevel(level).value,
            outcome=CycleOutcome(outcome).value,
            message=message,
            payload=payload,
            created_at=now_utc(),
        )
        self.session.add(model)
        await self.session.flush()
        return model

    async def recent(self, pool_id: str, limit: int = 50) -> List[CycleLogModel]:
        result = await self.session.execute(
            select(CycleLogModel)
            .where(CycleLogModel.pool_id == pool_id)
            .order_by(CycleLogModel.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_status(self, pool_id: str) -> Optional[PoolStatusModel]:
        return await self.session.get(PoolStatusModel, pool_id)

    async def _upsert_status(self, result: CycleResult) -> None:
        status = await self.session.get(PoolStatusModel, result.pool_id)
        if status is None:
            status = PoolStatusModel(pool_id=result.pool_id)
            self.session.add(status)

        status.last_check = result.evaluated_at
        status.last_outcome = result.outcome.value
        status.last_level = result.level.value
        status.last_message = result.message
        status.current_ph = result.current_ph

    @staticmethod
    def _to_log(result: CycleResult) -> CycleLogModel:
        payload: Dict[str, Any] = {}
        if result.dosing_count_today is not None:
            payload["dosing_count_today"] = result.dosing_count_today
        if result.dose is not None:
            dose = result.dose
            payload["dose"] = {
                "product": dose.product.value if dose.product else None,
                "chemical": dose.chemical,
                "volume": dose.volume,
                "unit": dose.unit,
                "duration_seconds": dose.duration_seconds,
            }
            if dose.details is not None:
                payload["details"] = {
                    "ph_difference": dose.details.ph_difference,
                    "pool_volume_gallons": dose.details.pool_volume_gallons,
                    "raw_calculation": dose.details.raw_calculation,
                    "chemical": dose.details.chemical,
                    "alkalinity_factor": dose.details.alkalinity_factor,
                }

        return CycleLogModel(
            pool_id=result.pool_id,
            log_type=result.level.value,
            outcome=result.outcome.value,
            message=result.message,
            ph=result.current_ph,
            target_ph=result.target_ph,
            deviation=result.deviation,
            payload=payload or None,
            created_at=result.evaluated_at,
        )
