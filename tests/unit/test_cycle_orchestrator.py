"""
Unit Tests for DosingCycleOrchestrator

In-memory repositories with the same compare-and-set contract as the
SQL implementation.
"""

import asyncio
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest

from pooldose.core.exceptions import ConfigurationError, DispatchError
from pooldose.domain.models import (
    CycleOutcome,
    CycleResult,
    DoseDirection,
    DosingState,
    LogLevel,
    PoolConfig,
    PoolProfile,
    SensorReading,
)
from pooldose.domain.services.cycle_orchestrator import DosingCycleOrchestrator

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


# Mock collaborators for testing
class MockReadings:

    def __init__(self):
        self.readings: Dict[str, SensorReading] = {}
        self.broken: set = set()

    async def fetch_sensor_reading(self, pool_id: str) -> Optional[SensorReading]:
        if pool_id in self.broken:
            raise RuntimeError("probe offline")
        return self.readings.get(pool_id)

    def set_ph(self, pool_id: str, ph: float):
        self.readings[pool_id] = SensorReading(ph=ph, captured_at=NOW - timedelta(seconds=10))


class MockConfigs:

    def __init__(self):
        self.configs: Dict[str, PoolConfig] = {}
        self.invalid: set = set()

    async def load_pool_config(self, pool_id: str) -> Optional[PoolConfig]:
        if pool_id in self.invalid:
            raise ConfigurationError("volume_liters missing")
        return self.configs.get(pool_id)

    def add(self, pool_id: str, target_ph: float = 7.4):
        self.configs[pool_id] = PoolConfig(
            pool_id=pool_id,
            target_ph=target_ph,
            tolerance=0.1,
            profile=PoolProfile(volume_liters=40_000),
        )


class MockStates:

    def __init__(self):
        self.states: Dict[str, DosingState] = {}
        self.writes: List[DosingState] = []

    async def load_dosing_state(self, pool_id: str) -> DosingState:
        return self.states.get(pool_id, DosingState())

    async def compare_and_set(self, pool_id: str, expected_version: int, new_state: DosingState) -> bool:
        current = self.states.get(pool_id, DosingState())
        if current.version != expected_version:
            return False
        self.states[pool_id] = new_state
        self.writes.append(new_state)
        return True


class OverlappingStates(MockStates):
    """Both cycles read the state before either writes"""

    def __init__(self, readers: int = 2):
        super().__init__()
        self.readers = readers
        self.loaded = 0
        self.all_loaded = asyncio.Event()

    async def load_dosing_state(self, pool_id: str) -> DosingState:
        state = await super().load_dosing_state(pool_id)
        self.loaded += 1
        if self.loaded >= self.readers:
            self.all_loaded.set()
        await self.all_loaded.wait()
        return state


class MockDispatcher:

    def __init__(self, succeed: bool = True, error: Optional[Exception] = None):
        self.succeed = succeed
        self.error = error
        self.calls: List[tuple] = []

    async def dispatch_dose(self, pool_id: str, product: DoseDirection, duration_seconds: int) -> bool:
        self.calls.append((pool_id, product, duration_seconds))
        if self.error is not None:
            raise self.error
        return self.succeed


class MockRecorder:

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.results: List[CycleResult] = []

    async def record(self, result: CycleResult) -> None:
        if self.fail:
            raise RuntimeError("log store down")
        self.results.append(result)


@pytest.fixture
def readings():
    return MockReadings()


@pytest.fixture
def configs():
    return MockConfigs()


@pytest.fixture
def states():
    return MockStates()


@pytest.fixture
def recorder():
    return MockRecorder()


def make_orchestrator(readings, configs, states, dispatcher, recorder=None):
    return DosingCycleOrchestrator(
        readings=readings,
        configs=configs,
        states=states,
        dispatcher=dispatcher,
        recorder=recorder,
        clock=lambda: NOW,
    )


class TestRunCycle:

    async def test_dose_commits_state_and_dispatches(self, readings, configs, states, recorder):
        configs.add("pool-1")
        readings.set_ph("pool-1", 7.8)
        dispatcher = MockDispatcher()

        result = await make_orchestrator(readings, configs, states, dispatcher, recorder).run_cycle("pool-1")

        assert result.outcome == CycleOutcome.DOSED
        assert result.level == LogLevel.SUCCESS
        assert result.dosing_count_today == 1
        assert dispatcher.calls == [("pool-1", DoseDirection.LOWER, result.dose.duration_seconds)]

        state = states.states["pool-1"]
        assert state.version == 1
        assert state.dosing_count_today == 1
        assert state.last_dosing_time == NOW
        assert state.last_product == DoseDirection.LOWER
        assert state.last_ph == 7.8
        assert recorder.results == [result]

    async def test_no_config(self, readings, configs, states, recorder):
        dispatcher = MockDispatcher()
        result = await make_orchestrator(readings, configs, states, dispatcher, recorder).run_cycle("ghost")

        assert result.outcome == CycleOutcome.NO_CONFIG
        assert not result.is_fault
        assert dispatcher.calls == []

    async def test_invalid_config(self, readings, configs, states):
        configs.invalid.add("pool-1")
        result = await make_orchestrator(readings, configs, states, MockDispatcher()).run_cycle("pool-1")

        assert result.outcome == CycleOutcome.INVALID_CONFIG
        assert result.is_fault

    async def test_no_reading_leaves_state_untouched(self, readings, configs, states):
        configs.add("pool-1")
        dispatcher = MockDispatcher()
        result = await make_orchestrator(readings, configs, states, dispatcher).run_cycle("pool-1")

        assert result.outcome == CycleOutcome.NO_READING
        assert result.level == LogLevel.ERROR
        assert states.writes == []
        assert dispatcher.calls == []

    async def test_in_range(self, readings, configs, states):
        configs.add("pool-1")
        readings.set_ph("pool-1", 7.45)
        result = await make_orchestrator(readings, configs, states, MockDispatcher()).run_cycle("pool-1")

        assert result.outcome == CycleOutcome.IN_RANGE
        assert result.level == LogLevel.INFO

    async def test_out_of_bounds_is_blocked_fault(self, readings, configs, states):
        configs.add("pool-1")
        readings.set_ph("pool-1", 8.9)
        dispatcher = MockDispatcher()
        result = await make_orchestrator(readings, configs, states, dispatcher).run_cycle("pool-1")

        assert result.outcome == CycleOutcome.BLOCKED_SAFETY_BOUNDS
        assert result.level == LogLevel.ERROR
        assert result.current_ph == 8.9
        assert dispatcher.calls == []
        assert states.writes == []

    async def test_large_deviation_is_blocked_fault(self, readings, configs, states):
        configs.add("pool-1")
        readings.set_ph("pool-1", 6.2)
        result = await make_orchestrator(readings, configs, states, MockDispatcher()).run_cycle("pool-1")

        assert result.outcome == CycleOutcome.BLOCKED_MAX_CHANGE
        assert result.deviation == pytest.approx(-1.2)

    async def test_rate_limited_after_recent_dose(self, readings, configs, states):
        configs.add("pool-1")
        readings.set_ph("pool-1", 7.8)
        states.states["pool-1"] = DosingState(
            last_dosing_time=NOW - timedelta(minutes=5),
            last_dosing_date=NOW.date(),
            dosing_count_today=1,
            version=1,
        )
        dispatcher = MockDispatcher()
        result = await make_orchestrator(readings, configs, states, dispatcher).run_cycle("pool-1")

        assert result.outcome == CycleOutcome.BLOCKED_RATE_LIMIT
        assert not result.is_fault
        assert dispatcher.calls == []


class TestDispatchFailure:

    @pytest.mark.parametrize(
        "dispatcher",
        [MockDispatcher(succeed=False), MockDispatcher(error=DispatchError("timeout"))],
        ids=["rejected", "raised"],
    )
    async def test_failed_dispatch_keeps_state(self, readings, configs, states, recorder, dispatcher):
        configs.add("pool-1")
        readings.set_ph("pool-1", 7.8)
        before = DosingState(
            last_dosing_time=NOW - timedelta(hours=3),
            last_dosing_date=NOW.date(),
            dosing_count_today=2,
            last_product=DoseDirection.RAISE,
            last_duration_seconds=12,
            last_ph=7.1,
            last_deviation=-0.3,
            version=4,
        )
        states.states["pool-1"] = before

        result = await make_orchestrator(readings, configs, states, dispatcher, recorder).run_cycle("pool-1")

        assert result.outcome == CycleOutcome.DISPATCH_FAILED
        assert result.level == LogLevel.ERROR
        assert len(dispatcher.calls) == 1

        after = states.states["pool-1"]
        assert replace(after, version=before.version) == before
        assert after.version > before.version

    async def test_failed_first_dose_leaves_empty_state(self, readings, configs, states):
        configs.add("pool-1")
        readings.set_ph("pool-1", 7.8)

        result = await make_orchestrator(
            readings, configs, states, MockDispatcher(succeed=False)
        ).run_cycle("pool-1")

        assert result.outcome == CycleOutcome.DISPATCH_FAILED
        after = await states.load_dosing_state("pool-1")
        assert after.last_dosing_time is None
        assert after.dosing_count_today == 0

    async def test_next_cycle_retries_after_failure(self, readings, configs, states):
        configs.add("pool-1")
        readings.set_ph("pool-1", 7.8)
        dispatcher = MockDispatcher(succeed=False)
        orchestrator = make_orchestrator(readings, configs, states, dispatcher)

        first = await orchestrator.run_cycle("pool-1")
        dispatcher.succeed = True
        second = await orchestrator.run_cycle("pool-1")

        assert first.outcome == CycleOutcome.DISPATCH_FAILED
        assert second.outcome == CycleOutcome.DOSED
        assert states.states["pool-1"].dosing_count_today == 1


class TestConcurrency:

    async def test_overlapping_cycles_dose_once(self, readings, configs):
        configs.add("pool-1")
        readings.set_ph("pool-1", 7.8)
        states = OverlappingStates(readers=2)
        dispatcher = MockDispatcher()
        orchestrator = make_orchestrator(readings, configs, states, dispatcher)

        results = await asyncio.gather(
            orchestrator.run_cycle("pool-1"),
            orchestrator.run_cycle("pool-1"),
        )

        outcomes = sorted(r.outcome.value for r in results)
        assert outcomes == sorted([CycleOutcome.DOSED.value, CycleOutcome.BLOCKED_CONCURRENT.value])
        assert len(dispatcher.calls) == 1
        assert len(states.writes) == 1
        assert states.states["pool-1"].dosing_count_today == 1


class TestRunAll:

    async def test_one_pool_failure_does_not_stop_others(self, readings, configs, states, recorder):
        for pool_id in ("a", "b", "c"):
            configs.add(pool_id)
            readings.set_ph(pool_id, 7.8)
        readings.broken.add("b")
        dispatcher = MockDispatcher()

        results = await make_orchestrator(
            readings, configs, states, dispatcher, recorder
        ).run_all(["a", "b", "c"])

        assert [r.outcome for r in results] == [
            CycleOutcome.DOSED,
            CycleOutcome.ERROR,
            CycleOutcome.DOSED,
        ]
        assert "probe offline" in results[1].message
        assert [call[0] for call in dispatcher.calls] == ["a", "c"]
        assert len(recorder.results) == 3

    async def test_recorder_failure_is_not_raised(self, readings, configs, states):
        configs.add("pool-1")
        readings.set_ph("pool-1", 7.8)

        result = await make_orchestrator(
            readings, configs, states, MockDispatcher(), MockRecorder(fail=True)
        ).run_cycle("pool-1")

        assert result.outcome == CycleOutcome.DOSED
