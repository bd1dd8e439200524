"""
Integration Tests - Pool API
Full request cycle against SQLite with the command-queue dispatcher
"""

from datetime import timedelta

import pytest

from pooldose.infrastructure.db.repositories import DosingCommandRepository
from pooldose.utils.time import now_utc

pytestmark = pytest.mark.integration

POOL_CONFIG = {"target_ph": 7.4, "tolerance": 0.1, "volume_liters": 40_000}


async def configure(client, pool_id="pool-1", **overrides):
    response = await client.put(f"/api/v1/pools/{pool_id}/config", json={**POOL_CONFIG, **overrides})
    assert response.status_code == 200
    return response.json()


class TestHealth:

    async def test_health(self, client):
        response = await client.get("/health")
        assert response.json() == {"status": "ok"}

    async def test_ready(self, client):
        body = (await client.get("/ready")).json()

        assert body["status"] == "ready"
        assert body["db_connected"] is True
        assert body["scheduler_running"] is False
        assert body["automatic_pools"] == 0
        assert body["pending_commands"] == 0

    async def test_ready_counts_pools_and_pending_commands(self, client):
        await configure(client)
        await client.post("/api/v1/pools/pool-1/manual-dose", json={"product": "ph_plus", "duration": 10})

        body = (await client.get("/ready")).json()
        assert body["automatic_pools"] == 1
        assert body["pending_commands"] == 1


class TestConfig:

    async def test_put_and_get_config(self, client):
        body = await configure(client, min_wait_hours=1.0)

        assert body["safety"]["min_wait_hours"] == 1.0
        assert body["safety"]["max_ph"] == 8.5
        assert body["acid_type"] == "muriatic"

        response = await client.get("/api/v1/pools/pool-1/config")
        assert response.status_code == 200
        assert response.json()["target_ph"] == 7.4

    async def test_unknown_pool(self, client):
        response = await client.get("/api/v1/pools/nowhere/config")
        assert response.status_code == 404

    async def test_inconsistent_limits(self, client):
        response = await client.put(
            "/api/v1/pools/pool-1/config", json={**POOL_CONFIG, "min_ph": 8.0, "max_ph": 7.0}
        )
        assert response.status_code == 422

    async def test_out_of_range_field(self, client):
        response = await client.put(
            "/api/v1/pools/pool-1/config", json={**POOL_CONFIG, "correction_factor": 1.5}
        )
        assert response.status_code == 422


class TestReadingsAndStatus:

    async def test_rejects_implausible_ph(self, client):
        response = await client.post("/api/v1/pools/pool-1/readings", json={"ph": 15})
        assert response.status_code == 422

    async def test_status_reports_sensor_freshness(self, client):
        await configure(client)
        await client.post("/api/v1/pools/pool-1/readings", json={"ph": 7.42})

        response = await client.get("/api/v1/pools/pool-1/status")
        body = response.json()

        assert body["current_ph"] == 7.42
        assert body["sensor_connected"] is True
        assert body["data_age_seconds"] <= 5
        assert body["dosing_count_today"] == 0

    async def test_stale_sensor_is_disconnected(self, client):
        captured_at = (now_utc() - timedelta(minutes=30)).isoformat()
        await client.post(
            "/api/v1/pools/pool-1/readings", json={"ph": 7.42, "captured_at": captured_at}
        )

        body = (await client.get("/api/v1/pools/pool-1/status")).json()
        assert body["sensor_connected"] is False


class TestCheck:

    async def test_check_doses_and_queues_command(self, client, db_session):
        await configure(client)
        await client.post("/api/v1/pools/pool-1/readings", json={"ph": 7.8})

        response = await client.post("/api/v1/pools/pool-1/check")
        body = response.json()

        assert response.status_code == 200
        assert body["outcome"] == "dosed"
        assert body["level"] == "success"
        assert body["dose"]["product"] == "ph_minus"
        assert body["dose"]["chemical"] == "muriatic-acid"

        commands = await DosingCommandRepository(db_session).list_for_pool("pool-1")
        assert len(commands) == 1
        assert commands[0].product == "ph_minus"
        assert commands[0].duration_seconds == body["dose"]["duration_seconds"]

        status = (await client.get("/api/v1/pools/pool-1/status")).json()
        assert status["dosing_count_today"] == 1
        assert status["last_outcome"] == "dosed"

    async def test_second_check_is_rate_limited(self, client):
        await configure(client)
        await client.post("/api/v1/pools/pool-1/readings", json={"ph": 7.8})

        await client.post("/api/v1/pools/pool-1/check")
        response = await client.post("/api/v1/pools/pool-1/check")

        assert response.json()["outcome"] == "blocked_rate_limit"

    async def test_out_of_bounds_is_reported(self, client):
        await configure(client)
        await client.post("/api/v1/pools/pool-1/readings", json={"ph": 8.9})

        body = (await client.post("/api/v1/pools/pool-1/check")).json()
        assert body["outcome"] == "blocked_safety_bounds"
        assert body["level"] == "error"

        logs = (await client.get("/api/v1/pools/pool-1/logs")).json()
        assert logs[0]["log_type"] == "error"

    async def test_unconfigured_pool(self, client):
        body = (await client.post("/api/v1/pools/ghost/check")).json()
        assert body["outcome"] == "no_config"


class TestManualDose:

    async def test_manual_dose_queues_command(self, client):
        response = await client.post(
            "/api/v1/pools/pool-1/manual-dose", json={"product": "ph_plus", "duration": 45}
        )
        body = response.json()

        assert response.status_code == 201
        assert body["status"] == "pending"
        assert body["duration_seconds"] == 45

        logs = (await client.get("/api/v1/pools/pool-1/logs")).json()
        assert "Manual command created" in logs[0]["message"]

    @pytest.mark.parametrize("duration", [0, 3601])
    async def test_manual_duration_limits(self, client, duration):
        response = await client.post(
            "/api/v1/pools/pool-1/manual-dose", json={"product": "ph_minus", "duration": duration}
        )
        assert response.status_code == 422

    async def test_unknown_product(self, client):
        response = await client.post(
            "/api/v1/pools/pool-1/manual-dose", json={"product": "chlorine", "duration": 10}
        )
        assert response.status_code == 422


class TestCalculator:

    async def test_reference_lowering(self, client):
        response = await client.post(
            "/api/v1/calculator/dose",
            json={"volume_liters": 37_854, "current_ph": 8.4, "target_ph": 7.6},
        )
        body = response.json()

        assert body["should_dose"] is True
        assert body["volume"] == 500
        assert body["duration_seconds"] == 30
        assert body["details"]["raw_calculation"] == 1888

    async def test_reference_raising(self, client):
        response = await client.post(
            "/api/v1/calculator/dose",
            json={"volume_liters": 37_854, "current_ph": 7.0, "target_ph": 7.4},
        )
        assert response.json()["volume"] == 368


class TestDeviceCommands:

    async def test_device_fetches_and_confirms_automatic_dose(self, client):
        await configure(client)
        await client.post("/api/v1/pools/pool-1/readings", json={"ph": 7.8})
        dose = (await client.post("/api/v1/pools/pool-1/check")).json()["dose"]

        fetched = (await client.get("/api/v1/pools/pool-1/commands/next")).json()["command"]
        assert fetched["product"] == "ph_minus"
        assert fetched["duration_seconds"] == dose["duration_seconds"]
        assert fetched["status"] == "processing"

        # Already handed out
        again = await client.get("/api/v1/pools/pool-1/commands/next")
        assert again.json() == {"command": None}

        response = await client.post(
            f"/api/v1/pools/pool-1/commands/{fetched['id']}/confirm", json={"status": "executed"}
        )
        assert response.status_code == 200
        assert response.json()["status"] == "executed"
        assert response.json()["executed_at"] is not None

        logs = (await client.get("/api/v1/pools/pool-1/logs")).json()
        assert logs[0]["log_type"] == "success"
        assert f"Command {fetched['id']} executed" in logs[0]["message"]

    async def test_nothing_pending(self, client):
        response = await client.get("/api/v1/pools/pool-1/commands/next")

        assert response.status_code == 200
        assert response.json() == {"command": None}

    async def test_busy_device_gets_nothing(self, client):
        await client.post("/api/v1/pools/pool-1/manual-dose", json={"product": "ph_plus", "duration": 10})

        busy = await client.get("/api/v1/pools/pool-1/commands/next", params={"dosing_in_progress": True})
        assert busy.json() == {"command": None}

        idle = (await client.get("/api/v1/pools/pool-1/commands/next")).json()
        assert idle["command"]["source"] == "manual"

    async def test_failed_report_is_logged_as_error(self, client):
        created = (
            await client.post("/api/v1/pools/pool-1/manual-dose", json={"product": "ph_minus", "duration": 5})
        ).json()

        response = await client.post(
            f"/api/v1/pools/pool-1/commands/{created['command_id']}/confirm", json={"status": "failed"}
        )
        assert response.json()["status"] == "failed"

        logs = (await client.get("/api/v1/pools/pool-1/logs")).json()
        assert logs[0]["log_type"] == "error"
        assert logs[0]["outcome"] == "dispatch_failed"

    async def test_confirm_twice_conflicts(self, client):
        created = (
            await client.post("/api/v1/pools/pool-1/manual-dose", json={"product": "ph_minus", "duration": 5})
        ).json()
        url = f"/api/v1/pools/pool-1/commands/{created['command_id']}/confirm"

        await client.post(url, json={"status": "executed"})
        response = await client.post(url, json={"status": "failed"})

        assert response.status_code == 409

    async def test_confirm_unknown_command(self, client):
        response = await client.post("/api/v1/pools/pool-1/commands/999/confirm", json={"status": "executed"})
        assert response.status_code == 404

    async def test_confirm_rejects_unknown_status(self, client):
        response = await client.post("/api/v1/pools/pool-1/commands/1/confirm", json={"status": "done"})
        assert response.status_code == 422

    async def test_list_commands_by_status(self, client):
        for duration in (5, 6):
            await client.post("/api/v1/pools/pool-1/manual-dose", json={"product": "ph_plus", "duration": duration})
        await client.get("/api/v1/pools/pool-1/commands/next")

        pending = (await client.get("/api/v1/pools/pool-1/commands", params={"status": "pending"})).json()
        assert [c["duration_seconds"] for c in pending] == [6]

        everything = (await client.get("/api/v1/pools/pool-1/commands")).json()
        assert [c["status"] for c in everything] == ["pending", "processing"]
