"""
Database Models (SQLAlchemy ORM)
Pool configuration, sensor samples, dosing state and audit logs
"""

from sqlalchemy import (
    Column, Integer, String, Float, Date, DateTime,
    Text, Index, JSON
)

from pooldose.infrastructure.db.database import Base
from pooldose.utils.time import now_utc


class PoolConfigModel(Base):
    """
    Pool configuration

    Safety columns are nullable: NULL means "use the service default".
    """
    __tablename__ = "pool_config"

    pool_id = Column(String(64), primary_key=True)
    target_ph = Column(Float, nullable=False)
    tolerance = Column(Float, nullable=False)

    volume_liters = Column(Float, nullable=False)
    alkalinity_ppm = Column(Float, nullable=True)
    acid_type = Column(String(16), nullable=False, default="muriatic")
    disinfectant_type = Column(String(32), nullable=False, default="sodium-hypochlorite")
    dosing_mode = Column(String(16), nullable=False, default="automatic", index=True)

    # Safety overrides
    min_ph = Column(Float, nullable=True)
    max_ph = Column(Float, nullable=True)
    max_ph_change = Column(Float, nullable=True)
    min_wait_hours = Column(Float, nullable=True)
    max_daily_doses = Column(Integer, nullable=True)
    pump_flow_rate = Column(Float, nullable=True)
    max_dose_volume = Column(Float, nullable=True)
    min_dose_volume = Column(Float, nullable=True)
    correction_factor = Column(Float, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=now_utc)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=now_utc, onupdate=now_utc)


class SensorReadingModel(Base):
    """Raw pH sample - insert only"""
    __tablename__ = "sensor_reading"

    id = Column(Integer, primary_key=True, autoincrement=True)
    pool_id = Column(String(64), nullable=False)
    ph = Column(Float, nullable=False)
    captured_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=now_utc)

    __table_args__ = (
        Index("ix_sensor_reading_pool_captured", "pool_id", "captured_at"),
    )


class DosingStateModel(Base):
    """
    Per-pool dosing bookkeeping

    ``version`` guards every write (optimistic concurrency).
    """
    __tablename__ = "dosing_state"

    pool_id = Column(String(64), primary_key=True)
    last_dosing_time = Column(DateTime(timezone=True), nullable=True)
    last_dosing_date = Column(Date, nullable=True)
    dosing_count_today = Column(Integer, nullable=False, default=0)
    last_product = Column(String(16), nullable=True)
    last_duration_seconds = Column(Integer, nullable=True)
    last_ph = Column(Float, nullable=True)
    last_deviation = Column(Float, nullable=True)
    version = Column(Integer, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=now_utc, onupdate=now_utc)


class DosingCommandModel(Base):
    """Actuator command queue: pending -> processing -> executed | failed"""
    __tablename__ = "dosing_command"

    id = Column(Integer, primary_key=True, autoincrement=True)
    pool_id = Column(String(64), nullable=False)
    product = Column(String(16), nullable=False)
    duration_seconds = Column(Integer, nullable=False)
    source = Column(String(16), nullable=False, default="automatic")
    status = Column(String(16), nullable=False, default="pending")
    created_at = Column(DateTime(timezone=True), nullable=False, default=now_utc)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    executed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_dosing_command_pool_status", "pool_id", "status"),
    )


class CycleLogModel(Base):
    """Cycle audit log - insert only"""
    __tablename__ = "cycle_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    pool_id = Column(String(64), nullable=False)
    log_type = Column(String(16), nullable=False)
    outcome = Column(String(32), nullable=False)
    message = Column(Text, nullable=False)
    ph = Column(Float, nullable=True)
    target_ph = Column(Float, nullable=True)
    deviation = Column(Float, nullable=True)
    payload = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=now_utc)

    __table_args__ = (
        Index("ix_cycle_log_pool_created", "pool_id", "created_at"),
    )


class PoolStatusModel(Base):
    """Latest cycle summary per pool"""
    __tablename__ = "pool_status"

    pool_id = Column(String(64), primary_key=True)
    last_check = Column(DateTime(timezone=True), nullable=False)
    last_outcome = Column(String(32), nullable=False)
    last_level = Column(String(16), nullable=False)
    last_message = Column(Text, nullable=False)
    current_ph = Column(Float, nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=now_utc, onupdate=now_utc)
