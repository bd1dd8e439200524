"""
DOSING CYCLE ORCHESTRATOR
One evaluation cycle per pool: load -> evaluate -> commit -> dispatch

RESPONSIBILITIES:
- Load config, latest reading and dosing state through repositories
- Run the policy evaluator
- Commit the next dosing state with compare-and-set BEFORE dispatch
- Dispatch the dose and compensate the state if dispatch fails
- Hand every result to the recorder

RULES:
- At most one of two overlapping cycles commits and dispatches
- Failed dispatch leaves the net dosing state unchanged, no inline retry
- One pool's failure never affects another pool
"""

import logging
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Protocol

from pooldose.core.exceptions import (
    ConfigurationError,
    PhChangeTooLargeError,
    PhOutOfBoundsError,
)
from pooldose.domain.models import (
    CycleOutcome,
    CycleResult,
    DoseDirection,
    DosingState,
    LogLevel,
    PoolConfig,
    SensorReading,
)
from pooldose.domain.services.policy_evaluator import (
    DosingPolicyEvaluator,
    PolicyDecision,
    PolicyVerdict,
)
from pooldose.utils.time import local_date, now_utc

logger = logging.getLogger(__name__)


class SensorReadingProvider(Protocol):
    """Latest pH sample per pool - ASYNC"""

    async def fetch_sensor_reading(self, pool_id: str) -> Optional[SensorReading]:
        ...


class PoolConfigRepository(Protocol):
    """Pool configuration access - ASYNC"""

    async def load_pool_config(self, pool_id: str) -> Optional[PoolConfig]:
        """Raises ConfigurationError when the stored config is unusable"""
        ...


class DosingStateRepository(Protocol):
    """Dosing state access with optimistic concurrency - ASYNC"""

    async def load_dosing_state(self, pool_id: str) -> DosingState:
        """Empty state (version 0) if the pool never dosed"""
        ...

    async def compare_and_set(
        self,
        pool_id: str,
        expected_version: int,
        new_state: DosingState,
    ) -> bool:
        """Persist ``new_state`` only if the stored version still matches"""
        ...


class DoseDispatcher(Protocol):
    """Actuator command channel - ASYNC"""

    async def dispatch_dose(
        self,
        pool_id: str,
        product: DoseDirection,
        duration_seconds: int,
    ) -> bool:
        ...


class CycleRecorder(Protocol):
    """Sink for cycle results (logs, status) - ASYNC"""

    async def record(self, result: CycleResult) -> None:
        ...


_VERDICT_OUTCOMES = {
    PolicyVerdict.NO_CONFIG: (CycleOutcome.NO_CONFIG, LogLevel.INFO),
    PolicyVerdict.NO_READING: (CycleOutcome.NO_READING, LogLevel.ERROR),
    PolicyVerdict.IN_RANGE: (CycleOutcome.IN_RANGE, LogLevel.INFO),
    PolicyVerdict.NOT_REQUIRED: (CycleOutcome.NOT_REQUIRED, LogLevel.INFO),
    PolicyVerdict.BLOCKED_RATE_LIMIT: (CycleOutcome.BLOCKED_RATE_LIMIT, LogLevel.INFO),
    PolicyVerdict.BLOCKED_DAILY_CAP: (CycleOutcome.BLOCKED_DAILY_CAP, LogLevel.WARNING),
}


class DosingCycleOrchestrator:
    """
    Cycle Orchestrator - ASYNC
    Drives one pool through a full decision/actuation cycle
    """

    def __init__(
        self,
        readings: SensorReadingProvider,
        configs: PoolConfigRepository,
        states: DosingStateRepository,
        dispatcher: DoseDispatcher,
        recorder: Optional[CycleRecorder] = None,
        evaluator: Optional[DosingPolicyEvaluator] = None,
        clock: Callable[[], datetime] = now_utc,
    ):
        self.readings = readings
        self.configs = configs
        self.states = states
        self.dispatcher = dispatcher
        self.recorder = recorder
        self.evaluator = evaluator or DosingPolicyEvaluator()
        self.clock = clock

    async def run_cycle(self, pool_id: str) -> CycleResult:
        """
        Run one evaluation cycle for a pool

        Returns:
            CycleResult describing what happened
        """
        result = await self._evaluate_and_act(pool_id)
        self._log_result(result)
        await self._record(result)
        return result

    async def run_all(self, pool_ids: Iterable[str]) -> List[CycleResult]:
        """
        Run cycles for several pools sequentially

        An unexpected exception in one pool becomes an ERROR result for
        that pool; the remaining pools are still evaluated.
        """
        results: List[CycleResult] = []
        for pool_id in pool_ids:
            try:
                results.append(await self.run_cycle(pool_id))
            except Exception as exc:
                logger.exception(f"Cycle for pool {pool_id} crashed")
                result = CycleResult(
                    pool_id=pool_id,
                    outcome=CycleOutcome.ERROR,
                    level=LogLevel.ERROR,
                    message=f"System error: {exc}",
                    evaluated_at=self.clock(),
                )
                await self._record(result)
                results.append(result)
        return results

    # ------------------------------------------------------------------
    # CYCLE STEPS
    # ------------------------------------------------------------------

    async def _evaluate_and_act(self, pool_id: str) -> CycleResult:
        now = self.clock()

        try:
            config = await self.configs.load_pool_config(pool_id)
        except ConfigurationError as exc:
            return CycleResult(
                pool_id=pool_id,
                outcome=CycleOutcome.INVALID_CONFIG,
                level=LogLevel.ERROR,
                message=f"Invalid configuration: {exc}",
                evaluated_at=now,
            )

        reading = await self.readings.fetch_sensor_reading(pool_id)
        state = await self.states.load_dosing_state(pool_id)
        target_ph = config.target_ph if config is not None else None

        try:
            decision = self.evaluator.evaluate(config, reading, state, now)
        except PhOutOfBoundsError as exc:
            return CycleResult(
                pool_id=pool_id,
                outcome=CycleOutcome.BLOCKED_SAFETY_BOUNDS,
                level=LogLevel.ERROR,
                message=str(exc),
                evaluated_at=now,
                current_ph=exc.current_ph,
                target_ph=target_ph,
                deviation=exc.deviation,
            )
        except PhChangeTooLargeError as exc:
            return CycleResult(
                pool_id=pool_id,
                outcome=CycleOutcome.BLOCKED_MAX_CHANGE,
                level=LogLevel.ERROR,
                message=str(exc),
                evaluated_at=now,
                current_ph=exc.current_ph,
                target_ph=target_ph,
                deviation=exc.deviation,
            )

        if not decision.should_dose:
            outcome, level = _VERDICT_OUTCOMES[decision.verdict]
            return CycleResult(
                pool_id=pool_id,
                outcome=outcome,
                level=level,
                message=decision.message,
                evaluated_at=now,
                current_ph=decision.current_ph,
                target_ph=target_ph,
                deviation=decision.deviation,
                dose=decision.dose,
                dosing_count_today=decision.dosing_count_today,
            )

        return await self._commit_and_dispatch(pool_id, config, state, decision, now)

    async def _commit_and_dispatch(
        self,
        pool_id: str,
        config: PoolConfig,
        state: DosingState,
        decision: PolicyDecision,
        now: datetime,
    ) -> CycleResult:
        dose = decision.dose
        next_state = state.record_dose(
            dosed_at=now,
            day=local_date(now, self.evaluator.timezone),
            product=dose.product,
            duration_seconds=dose.duration_seconds,
            ph=decision.current_ph,
            deviation=decision.deviation,
        )

        def result(outcome: CycleOutcome, level: LogLevel, message: str, count: int) -> CycleResult:
            return CycleResult(
                pool_id=pool_id,
                outcome=outcome,
                level=level,
                message=message,
                evaluated_at=now,
                current_ph=decision.current_ph,
                target_ph=config.target_ph,
                deviation=decision.deviation,
                dose=dose,
                dosing_count_today=count,
            )

        committed = await self.states.compare_and_set(pool_id, state.version, next_state)
        if not committed:
            return result(
                CycleOutcome.BLOCKED_CONCURRENT,
                LogLevel.WARNING,
                "Dosing state changed by a concurrent cycle, dose skipped",
                decision.dosing_count_today,
            )

        try:
            dispatched = await self.dispatcher.dispatch_dose(
                pool_id, dose.product, dose.duration_seconds
            )
            failure = None if dispatched else "dispatcher rejected the command"
        except Exception as exc:
            failure = str(exc) or exc.__class__.__name__

        if failure is not None:
            await self._restore_state(pool_id, state, next_state)
            return result(
                CycleOutcome.DISPATCH_FAILED,
                LogLevel.ERROR,
                f"Dose dispatch failed: {failure}",
                decision.dosing_count_today,
            )

        return result(
            CycleOutcome.DOSED,
            LogLevel.SUCCESS,
            (
                f"Dosing {dose.product.value} for {dose.duration_seconds}s. "
                f"pH: {decision.current_ph:.2f} -> target {config.target_ph:.2f}"
            ),
            next_state.dosing_count_today,
        )

    async def _restore_state(
        self,
        pool_id: str,
        previous: DosingState,
        committed: DosingState,
    ) -> None:
        # Versions only move forward, so the restore is a new write
        restored = previous.with_version(committed.version + 1)
        if not await self.states.compare_and_set(pool_id, committed.version, restored):
            logger.error(
                f"Pool {pool_id}: could not restore dosing state after failed dispatch "
                f"(version {committed.version} was overwritten)"
            )

    # ------------------------------------------------------------------
    # OBSERVABILITY
    # ------------------------------------------------------------------

    @staticmethod
    def _log_result(result: CycleResult) -> None:
        message = f"Pool {result.pool_id}: {result.outcome.value} - {result.message}"
        if result.level == LogLevel.ERROR:
            logger.error(message)
        elif result.level == LogLevel.WARNING:
            logger.warning(message)
        else:
            logger.info(message)

        if result.dose is not None:
            for warning in result.dose.warnings:
                logger.warning(f"Pool {result.pool_id}: {warning}")

    async def _record(self, result: CycleResult) -> None:
        if self.recorder is None:
            return
        try:
            await self.recorder.record(result)
        except Exception:
            logger.exception(f"Failed to record cycle result for pool {result.pool_id}")
