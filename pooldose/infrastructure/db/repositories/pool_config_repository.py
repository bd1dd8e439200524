"""
Pool Config Repository
Pool configuration storage with service-wide safety defaults
"""

from dataclasses import fields
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pooldose.config import settings
from pooldose.core.exceptions import ConfigurationError
from pooldose.domain.models import (
    AcidType,
    DisinfectantType,
    DosingMode,
    PoolConfig,
    PoolProfile,
    SafetyConfig,
)
from pooldose.infrastructure.db.models import PoolConfigModel

SAFETY_FIELDS = tuple(f.name for f in fields(SafetyConfig))
POOL_FIELDS = (
    "target_ph",
    "tolerance",
    "volume_liters",
    "alkalinity_ppm",
    "acid_type",
    "disinfectant_type",
    "dosing_mode",
) + SAFETY_FIELDS


def default_safety_config() -> SafetyConfig:
    """Safety limits from settings, used wherever a pool has no override"""
    return SafetyConfig(
        min_ph=settings.DEFAULT_MIN_PH,
        max_ph=settings.DEFAULT_MAX_PH,
        max_ph_change=settings.DEFAULT_MAX_PH_CHANGE,
        min_wait_hours=settings.DEFAULT_MIN_WAIT_HOURS,
        max_daily_doses=settings.DEFAULT_MAX_DAILY_DOSES,
        pump_flow_rate=settings.DEFAULT_PUMP_FLOW_RATE,
        max_dose_volume=settings.DEFAULT_MAX_DOSE_VOLUME,
        min_dose_volume=settings.DEFAULT_MIN_DOSE_VOLUME,
        correction_factor=settings.DEFAULT_CORRECTION_FACTOR,
    )


class PoolConfigRepository:
    """Repository for pool configuration"""

    def __init__(self, session: AsyncSession, defaults: Optional[SafetyConfig] = None):
        self.session = session
        self.defaults = defaults or default_safety_config()

    async def load_pool_config(self, pool_id: str) -> Optional[PoolConfig]:
        """
        Load a pool's configuration

        Returns:
            PoolConfig, or None if the pool was never configured

        Raises:
            ConfigurationError: Stored values do not form a valid config
        """
        model = await self.session.get(PoolConfigModel, pool_id)
        if model is None:
            return None
        return self._to_domain(model)

    async def upsert(self, pool_id: str, values: Dict[str, Any]) -> PoolConfig:
        """
        Create or update a pool configuration

        Safety values set to None fall back to the service defaults.
        The merged result is validated before anything is written.

        Raises:
            ConfigurationError: Merged values are invalid
        """
        unknown = set(values) - set(POOL_FIELDS)
        if unknown:
            raise ConfigurationError(f"Unknown config fields: {', '.join(sorted(unknown))}")

        model = await self.session.get(PoolConfigModel, pool_id)
        merged = {name: getattr(model, name) for name in POOL_FIELDS} if model else {}
        for name, value in values.items():
            merged[name] = value.value if hasattr(value, "value") else value

        # Validate on a detached copy so a rejected update leaves the row untouched
        config = self._to_domain(PoolConfigModel(pool_id=pool_id, **merged))

        if model is None:
            model = PoolConfigModel(pool_id=pool_id)
            self.session.add(model)
        for name, value in merged.items():
            setattr(model, name, value)

        await self.session.flush()
        return config

    async def list_automatic_pool_ids(self) -> List[str]:
        """Pools the scheduler may dose on its own"""
        result = await self.session.execute(
            select(PoolConfigModel.pool_id)
            .where(PoolConfigModel.dosing_mode == DosingMode.AUTOMATIC.value)
            .order_by(PoolConfigModel.pool_id)
        )
        return list(result.scalars().all())

    def _to_domain(self, model: PoolConfigModel) -> PoolConfig:
        overrides = {
            name: getattr(model, name)
            for name in SAFETY_FIELDS
            if getattr(model, name) is not None
        }
        try:
            safety = SafetyConfig(
                **{name: getattr(self.defaults, name) for name in SAFETY_FIELDS} | overrides
            )
            profile = PoolProfile(
                volume_liters=model.volume_liters,
                alkalinity_ppm=(
                    model.alkalinity_ppm if model.alkalinity_ppm is not None else 100.0
                ),
                acid_type=AcidType(model.acid_type or AcidType.MURIATIC.value),
                disinfectant_type=DisinfectantType(
                    model.disinfectant_type or DisinfectantType.SODIUM_HYPOCHLORITE.value
                ),
            )
            return PoolConfig(
                pool_id=model.pool_id,
                target_ph=model.target_ph,
                tolerance=model.tolerance,
                profile=profile,
                safety=safety,
                dosing_mode=DosingMode(model.dosing_mode or DosingMode.AUTOMATIC.value),
            )
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Pool {model.pool_id}: {exc}") from exc
