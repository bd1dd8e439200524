"""
Repositories Package
SQLAlchemy-backed implementations of the engine's data-access protocols
"""

from .cycle_log_repository import CycleLogRepository
from .dosing_command_repository import DosingCommandRepository
from .dosing_state_repository import DosingStateRepository
from .pool_config_repository import PoolConfigRepository, default_safety_config
from .sensor_reading_repository import SensorReadingRepository

__all__ = [
    "CycleLogRepository",
    "DosingCommandRepository",
    "DosingStateRepository",
    "PoolConfigRepository",
    "SensorReadingRepository",
    "default_safety_config",
]
