"""
Unit Tests for the HTTP dispatcher and operator alerts
"""

from datetime import datetime, timezone

import json

import httpx
import pytest

from pooldose.domain.models import CycleOutcome, CycleResult, DoseDirection, LogLevel
from pooldose.infrastructure.actuator import HttpDoseDispatcher
from pooldose.utils.notifications import alert_tier_for, format_tiered_message


def make_dispatcher(handler) -> HttpDoseDispatcher:
    return HttpDoseDispatcher(
        base_url="http://actuator.local/",
        timeout=2.0,
        transport=httpx.MockTransport(handler),
    )


class TestHttpDoseDispatcher:

    async def test_posts_product_and_duration(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(202, json={"queued": True})

        ok = await make_dispatcher(handler).dispatch_dose("pool-1", DoseDirection.RAISE, 18)

        assert ok is True
        assert str(seen[0].url) == "http://actuator.local/pools/pool-1/dose"
        assert json.loads(seen[0].content) == {"product": "ph_plus", "duration": 18}

    async def test_non_2xx_is_failure(self):
        ok = await make_dispatcher(lambda request: httpx.Response(503)).dispatch_dose(
            "pool-1", DoseDirection.LOWER, 10
        )
        assert ok is False

    async def test_timeout_is_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("too slow", request=request)

        ok = await make_dispatcher(handler).dispatch_dose("pool-1", DoseDirection.LOWER, 10)
        assert ok is False

    async def test_connection_error_is_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        ok = await make_dispatcher(handler).dispatch_dose("pool-1", DoseDirection.LOWER, 10)
        assert ok is False


def result_with(outcome: CycleOutcome, level: LogLevel = LogLevel.ERROR) -> CycleResult:
    return CycleResult(
        pool_id="pool-1",
        outcome=outcome,
        level=level,
        message="test",
        evaluated_at=datetime(2026, 6, 1, tzinfo=timezone.utc),
    )


class TestAlerts:

    @pytest.mark.parametrize(
        "outcome, tier",
        [
            (CycleOutcome.BLOCKED_SAFETY_BOUNDS, "BLOCKED"),
            (CycleOutcome.BLOCKED_MAX_CHANGE, "BLOCKED"),
            (CycleOutcome.DISPATCH_FAILED, "ACTIONABLE"),
            (CycleOutcome.INVALID_CONFIG, "ACTIONABLE"),
            (CycleOutcome.IN_RANGE, None),
            (CycleOutcome.BLOCKED_RATE_LIMIT, None),
        ],
    )
    def test_alert_tiers(self, outcome, tier):
        assert alert_tier_for(result_with(outcome)) == tier

    def test_unknown_tier_falls_back_to_info(self):
        assert format_tiered_message("whatever", "Title", "Body") == "[INFO] Title\n\nBody"
