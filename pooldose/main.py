"""
FastAPI Main Application with Scheduler
Wires the dosing API, database and periodic evaluation
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from pooldose.config import settings
from pooldose.core.logging import setup_logging
from pooldose.infrastructure.db.database import init_db, close_db
from pooldose.scheduler.scheduler import DosingScheduler
from pooldose.api.routes import calculator, health, pools

logger = logging.getLogger(__name__)

scheduler: DosingScheduler | None = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager
    Handles startup and shutdown of all services
    """
    global scheduler

    # ===================
    # STARTUP
    # ===================
    setup_logging(
        settings.LOG_LEVEL,
        log_file=settings.LOG_FILE,
        max_bytes=settings.LOG_MAX_BYTES,
        backup_count=settings.LOG_BACKUP_COUNT,
    )
    logger.info("Starting pool dosing service")

    await init_db()
    logger.info("Database initialized")

    if settings.SCHEDULER_ENABLED:
        try:
            scheduler = DosingScheduler()
            scheduler.start()
        except Exception as e:
            logger.error(f"Failed to start scheduler: {e}")
            scheduler = None
    else:
        logger.info("Scheduler disabled")

    logger.info(
        f"API: http://{settings.API_HOST}:{settings.API_PORT} | "
        f"dispatch={settings.DISPATCH_MODE} | tz={settings.TIMEZONE}"
    )

    app.state.scheduler = scheduler

    yield

    # ===================
    # SHUTDOWN
    # ===================
    logger.info("Shutting down pool dosing service")

    if scheduler:
        scheduler.stop()
        scheduler = None
    app.state.scheduler = None

    await close_db()
    logger.info("Database connections closed")


# Create FastAPI app
app = FastAPI(
    title="Pool pH Dosing Service",
    description="Automatic pH correction with hard safety limits",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, tags=["Health"])
app.include_router(pools.router, prefix="/api/v1/pools", tags=["Pools"])
app.include_router(calculator.router, prefix="/api/v1/calculator", tags=["Calculator"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("pooldose.main:app", host=settings.API_HOST, port=settings.API_PORT, reload=settings.DEBUG)
