"""
Dosing State Repository
Per-pool dosing state guarded by an optimistic version counter

Every write is a conditional UPDATE ... WHERE version = :expected.
The first write for a pool is an INSERT inside a savepoint; the primary
key makes a concurrent first insert fail instead of duplicating state.
"""

from typing import Any, Dict

from sqlalchemy import insert, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pooldose.domain.models import DoseDirection, DosingState
from pooldose.infrastructure.db.models import DosingStateModel
from pooldose.utils.time import ensure_utc


class DosingStateRepository:
    """Repository for dosing state"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def load_dosing_state(self, pool_id: str) -> DosingState:
        """Stored state, or an empty version-0 state if the pool never dosed"""
        model = await self.session.get(DosingStateModel, pool_id, populate_existing=True)
        if model is None:
            return DosingState()
        return self._to_domain(model)

    async def compare_and_set(
        self,
        pool_id: str,
        expected_version: int,
        new_state: DosingState,
    ) -> bool:
        """
        Write ``new_state`` if the stored version equals ``expected_version``

        Returns:
            True if this call's write won, False if another writer got there first
        """
        values = self._to_row(new_state)

        result = await self.session.execute(
            update(DosingStateModel)
            .where(
                DosingStateModel.pool_id == pool_id,
                DosingStateModel.version == expected_version,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return True

        if expected_version != 0:
            return False

        try:
            async with self.session.begin_nested():
                await self.session.execute(
                    insert(DosingStateModel).values(pool_id=pool_id, **values)
                )
        except IntegrityError:
            return False
        return True

    @staticmethod
    def _to_row(state: DosingState) -> Dict[str, Any]:
        return {
            "last_dosing_time": state.last_dosing_time,
            "last_dosing_date": state.last_dosing_date,
            "dosing_count_today": state.dosing_count_today,
            "last_product": state.last_product.value if state.last_product else None,
            "last_duration_seconds": state.last_duration_seconds,
            "last_ph": state.last_ph,
            "last_deviation": state.last_deviation,
            "version": state.version,
        }

    @staticmethod
    def _to_domain(model: DosingStateModel) -> DosingState:
        return DosingState(
            last_dosing_time=(
                ensure_utc(model.last_dosing_time) if model.last_dosing_time else None
            ),
            last_dosing_date=model.last_dosing_date,
            dosing_count_today=model.dosing_count_today,
            last_product=DoseDirection(model.last_product) if model.last_product else None,
            last_duration_seconds=model.last_duration_seconds,
            last_ph=model.last_ph,
            last_deviation=model.last_deviation,
            version=model.version,
        )
