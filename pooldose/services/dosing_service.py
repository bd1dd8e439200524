"""
SERVICE - DOSING CYCLES

Wires repositories, dispatcher and orchestrator to a database session.

• One session (one transaction) per pool
• Per-pool failure isolation
• Alerts for safety and dispatch faults
"""

import logging
from datetime import timedelta
from typing import Awaitable, Callable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pooldose.config import settings
from pooldose.core.exceptions import ConfigurationError
from pooldose.domain.models import (
    CycleOutcome,
    CycleResult,
    DoseDirection,
    DosingMode,
    LogLevel,
)
from pooldose.domain.services.cycle_orchestrator import DoseDispatcher, DosingCycleOrchestrator
from pooldose.domain.services.policy_evaluator import DosingPolicyEvaluator
from pooldose.infrastructure.actuator import CommandQueueDispatcher, HttpDoseDispatcher
from pooldose.infrastructure.db.models import DosingCommandModel
from pooldose.infrastructure.db.repositories import (
    CycleLogRepository,
    DosingCommandRepository,
    DosingStateRepository,
    PoolConfigRepository,
    SensorReadingRepository,
)
from pooldose.infrastructure.db.repositories.dosing_command_repository import STATUS_EXECUTED
from pooldose.utils.notifications import send_cycle_alert
from pooldose.utils.time import now_utc

logger = logging.getLogger(__name__)

MAX_MANUAL_DURATION_SECONDS = 3600


def build_dispatcher(session: AsyncSession, mode: Optional[str] = None) -> DoseDispatcher:
    """Dispatcher for the configured DISPATCH_MODE"""
    mode = (mode or settings.DISPATCH_MODE).lower()
    if mode == "queue":
        return CommandQueueDispatcher(DosingCommandRepository(session))
    if mode == "http":
        return HttpDoseDispatcher()
    raise ConfigurationError(f"Unknown DISPATCH_MODE '{mode}' (expected 'queue' or 'http')")


def build_evaluator() -> DosingPolicyEvaluator:
    return DosingPolicyEvaluator(
        max_reading_age=timedelta(seconds=settings.SENSOR_MAX_AGE_SECONDS),
        timezone=settings.TIMEZONE,
    )


def build_orchestrator(
    session: AsyncSession,
    dispatcher: Optional[DoseDispatcher] = None,
) -> DosingCycleOrchestrator:
    """Orchestrator bound to one session's repositories"""
    return DosingCycleOrchestrator(
        readings=SensorReadingRepository(session),
        configs=PoolConfigRepository(session),
        states=DosingStateRepository(session),
        dispatcher=dispatcher or build_dispatcher(session),
        recorder=CycleLogRepository(session),
        evaluator=build_evaluator(),
    )


class DosingService:
    """Entry point for scheduled and on-demand dosing cycles"""

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        alert_sender: Callable[[CycleResult], Awaitable[bool]] = send_cycle_alert,
    ):
        if session_factory is None:
            from pooldose.infrastructure.db.database import async_session_factory
            session_factory = async_session_factory
        self.session_factory = session_factory
        self.alert_sender = alert_sender

    async def run_automatic_cycles(self) -> List[CycleResult]:
        """Evaluate every pool in automatic mode, one transaction per pool"""
        async with self.session_factory() as session:
            pool_ids = await PoolConfigRepository(session).list_automatic_pool_ids()

        if not pool_ids:
            logger.info("No pools in automatic mode")
            return []

        logger.info(f"Evaluating {len(pool_ids)} pool(s)")
        results = [await self.force_check(pool_id) for pool_id in pool_ids]

        dosed = sum(1 for r in results if r.dosed)
        faults = sum(1 for r in results if r.is_fault)
        logger.info(f"Cycle complete: {len(results)} evaluated, {dosed} dosed, {faults} faults")
        return results

    async def force_check(
        self,
        pool_id: str,
        session: Optional[AsyncSession] = None,
    ) -> CycleResult:
        """
        Run one cycle for a pool immediately

        With ``session`` the caller owns the transaction; otherwise a new
        session is opened and committed here.
        """
        if session is not None:
            result = await build_orchestrator(session).run_cycle(pool_id)
        else:
            result = await self._run_in_own_session(pool_id)

        await self._alert(result)
        return result

    async def manual_dose(
        self,
        session: AsyncSession,
        pool_id: str,
        product: DoseDirection,
        duration_seconds: int,
    ) -> DosingCommandModel:
        """
        Queue an operator-requested dose

        Manual commands skip the policy evaluator and leave the automatic
        dosing state untouched; they are always logged.
        """
        if not 1 <= duration_seconds <= MAX_MANUAL_DURATION_SECONDS:
            raise ValueError(
                f"Duration must be between 1 and {MAX_MANUAL_DURATION_SECONDS} seconds"
            )

        product = DoseDirection(product)
        command = await DosingCommandRepository(session).create(
            pool_id=pool_id,
            product=product,
            duration_seconds=duration_seconds,
            source=DosingMode.MANUAL,
        )
        await CycleLogRepository(session).append(
            pool_id=pool_id,
            level=LogLevel.INFO,
            outcome=CycleOutcome.DOSED,
            message=f"Manual command created: {product.value} for {duration_seconds}s",
            payload={"command_id": command.id, "source": DosingMode.MANUAL.value},
        )
        logger.info(f"Pool {pool_id}: manual {product.value} for {duration_seconds}s queued")
        return command

    async def confirm_command(
        self,
        session: AsyncSession,
        pool_id: str,
        command_id: int,
        status: str,
    ) -> Optional[DosingCommandModel]:
        """
        Apply the device's report for a queued command and log it

        Returns None if the pool has no such command. A failed command is
        not retried; the next cycle decides whether to dose again.
        """
        command = await DosingCommandRepository(session).confirm(pool_id, command_id, status)
        if command is None:
            return None

        executed = command.status == STATUS_EXECUTED
        await CycleLogRepository(session).append(
            pool_id=pool_id,
            level=LogLevel.SUCCESS if executed else LogLevel.ERROR,
            outcome=CycleOutcome.DOSED if executed else CycleOutcome.DISPATCH_FAILED,
            message=(
                f"Command {command.id} {command.status}: "
                f"{command.product} for {command.duration_seconds}s"
            ),
            payload={"command_id": command.id, "source": command.source},
        )
        if executed:
            logger.info(f"Pool {pool_id}: command {command.id} executed")
        else:
            logger.error(f"Pool {pool_id}: device reported command {command.id} failed")
        return command

    async def _run_in_own_session(self, pool_id: str) -> CycleResult:
        try:
            async with self.session_factory() as session:
                result = await build_orchestrator(session).run_cycle(pool_id)
                await session.commit()
                return result
        except Exception as exc:
            logger.exception(f"Pool {pool_id}: cycle aborted")
            return CycleResult(
                pool_id=pool_id,
                outcome=CycleOutcome.ERROR,
                level=LogLevel.ERROR,
                message=f"System error: {exc}",
                evaluated_at=now_utc(),
            )

    async def _alert(self, result: CycleResult) -> None:
        if not result.is_fault:
            return
        try:
            await self.alert_sender(result)
        except Exception:
            logger.exception(f"Alert delivery failed for pool {result.pool_id}")
