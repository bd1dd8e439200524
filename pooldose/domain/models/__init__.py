"""
Domain Models Package
Export all domain entities
"""

from .entities import (
    # Enums
    AcidType,
    CycleOutcome,
    DisinfectantType,
    DoseDirection,
    DosingMode,
    LogLevel,

    # Entities
    ChemicalDose,
    CycleResult,
    DoseDetails,
    DoseSpec,
    DosingState,
    PoolConfig,
    PoolProfile,
    SafetyConfig,
    SensorReading,
)

__all__ = [
    # Enums
    "AcidType",
    "CycleOutcome",
    "DisinfectantType",
    "DoseDirection",
    "DosingMode",
    "LogLevel",

    # Entities
    "ChemicalDose",
    "CycleResult",
    "DoseDetails",
    "DoseSpec",
    "DosingState",
    "PoolConfig",
    "PoolProfile",
    "SafetyConfig",
    "SensorReading",
]
