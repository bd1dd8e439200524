"""
Sensor Reading Repository
Insert-only pH samples; the newest sample per pool feeds each cycle
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pooldose.domain.models import SensorReading
from pooldose.infrastructure.db.models import SensorReadingModel
from pooldose.utils.time import ensure_utc, now_utc


class SensorReadingRepository:
    """Repository for sensor samples"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(
        self,
        pool_id: str,
        ph: float,
        captured_at: Optional[datetime] = None,
    ) -> SensorReading:
        model = SensorReadingModel(
            pool_id=pool_id,
            ph=ph,
            captured_at=ensure_utc(captured_at) if captured_at else now_utc(),
        )
        self.session.add(model)
        await self.session.flush()
        return self._to_domain(model)

    async def fetch_sensor_reading(self, pool_id: str) -> Optional[SensorReading]:
        """Latest sample for a pool, or None if the probe never reported"""
        result = await self.session.execute(
            select(SensorReadingModel)
            .where(SensorReadingModel.pool_id == pool_id)
            .order_by(SensorReadingModel.captured_at.desc(), SensorReadingModel.id.desc())
            .limit(1)
        )
        model = result.scalar_one_or_none()
        return self._to_domain(model) if model else None

    @staticmethod
    def _to_domain(model: SensorReadingModel) -> SensorReading:
        return SensorReading(ph=model.ph, captured_at=ensure_utc(model.captured_at))
