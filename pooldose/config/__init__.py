"""
Application Settings
Load from environment variables
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    """Application settings from environment"""

    # ======================
    # Database
    # ======================
    DATABASE_URL: str = "sqlite+aiosqlite:///./pooldose.db"
    AUTO_CREATE_TABLES: bool = True

    # ======================
    # Application
    # ======================
    APP_ENV: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000

    # Calendar day used for the daily dose cap
    TIMEZONE: str = "UTC"

    # ======================
    # Logging
    # ======================
    LOG_FILE: str = ""
    LOG_MAX_BYTES: int = 10_485_760
    LOG_BACKUP_COUNT: int = 5

    # ======================
    # Scheduler
    # ======================
    SCHEDULER_ENABLED: bool = False
    EVALUATION_INTERVAL_SECONDS: int = 60

    # ======================
    # Sensor
    # ======================
    SENSOR_MAX_AGE_SECONDS: int = 300

    # ======================
    # Dispatch
    # ======================
    DISPATCH_MODE: str = "queue"  # queue | http
    ACTUATOR_BASE_URL: str = "http://localhost:8080"
    ACTUATOR_TIMEOUT_SECONDS: float = 10.0

    # ======================
    # Safety defaults (overridable per pool)
    # ======================
    DEFAULT_MIN_PH: float = 6.0
    DEFAULT_MAX_PH: float = 8.5
    DEFAULT_MAX_PH_CHANGE: float = 1.0
    DEFAULT_MIN_WAIT_HOURS: float = 0.5
    DEFAULT_MAX_DAILY_DOSES: int = 10
    DEFAULT_PUMP_FLOW_RATE: float = 60.0
    DEFAULT_MAX_DOSE_VOLUME: float = 500.0
    DEFAULT_MIN_DOSE_VOLUME: float = 1.0
    DEFAULT_CORRECTION_FACTOR: float = 0.8

    # ======================
    # Telegram alerts
    # ======================
    TELEGRAM_ENABLED: bool = False
    TELEGRAM_BOT_TOKEN: Optional[str] = None
    TELEGRAM_CHAT_ID: Optional[str] = None

    # ======================
    # Pydantic v2 config
    # ======================
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="forbid",
    )


settings = Settings()
