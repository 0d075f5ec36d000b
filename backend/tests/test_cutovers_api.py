"""
Tests for the operator API — status, config, start/stop, audit, diagnostics.
"""

from datetime import timedelta

import pytest

from integrations.base import WorkflowState


class TestStatus:
    @pytest.mark.asyncio
    async def test_health(self, client):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_status_lists_cutovers(self, client, seed, workflows):
        await seed("ToryBurch-850", is_active=True, total_runs=12)
        workflows.states["ToryBurch-850-v4"] = WorkflowState.ENABLED

        resp = await client.get("/api/v1/status")

        assert resp.status_code == 200
        data = resp.json()
        assert len(data) == 1
        assert data[0]["name"] == "ToryBurch-850"
        assert data[0]["is_active"] is True
        assert data[0]["v4_state"] == "Enabled"
        assert data[0]["v3_state"] is None
        assert data[0]["total_runs"] == 12

    @pytest.mark.asyncio
    async def test_status_empty(self, client):
        resp = await client.get("/api/v1/status")
        assert resp.status_code == 200
        assert resp.json() == []


class TestConfig:
    @pytest.mark.asyncio
    async def test_upsert_accepts_camel_case(self, client, load):
        resp = await client.put(
            "/api/v1/cutovers/X",
            json={
                "resourceGroup": "rg-edi",
                "v4": "x-v4",
                "v3": "x-v3",
                "cutover": "x-failover",
                "failureThreshold": 2,
                "autoCutback": True,
            },
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["failover_workflow"] == "x-failover"
        assert data["is_active"] is False

        schedule = await load()
        assert schedule.failure_threshold == 2
        assert schedule.auto_cutback is True

    @pytest.mark.asyncio
    async def test_upsert_partial_update_keeps_other_fields(self, client, seed, load):
        await seed(failure_threshold=4)
        resp = await client.put("/api/v1/cutovers/X", json={"autoCutback": True})
        assert resp.status_code == 200
        schedule = await load()
        assert schedule.failure_threshold == 4
        assert schedule.v4_workflow == "X-v4"

    @pytest.mark.asyncio
    async def test_upsert_converts_aware_times_to_utc(self, client, load):
        resp = await client.put(
            "/api/v1/cutovers/X",
            json={"scheduledStart": "2026-03-14T04:00:00-05:00", "scheduledEnd": "2026-03-14T06:00:00-05:00"},
        )
        assert resp.status_code == 200
        schedule = await load()
        assert schedule.scheduled_start.isoformat() == "2026-03-14T09:00:00"
        assert schedule.scheduled_end.isoformat() == "2026-03-14T11:00:00"

    @pytest.mark.asyncio
    async def test_upsert_rejects_zero_threshold(self, client):
        resp = await client.put("/api/v1/cutovers/X", json={"failureThreshold": 0})
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_upsert_rejects_null_required_field(self, client, seed, load):
        await seed(auto_cutback=True)
        resp = await client.put("/api/v1/cutovers/X", json={"autoCutback": None})
        assert resp.status_code == 422
        assert (await load()).auto_cutback is True

    @pytest.mark.asyncio
    async def test_upsert_null_clears_scheduled_start(self, client, seed, load, clock):
        await seed(scheduled_start=clock.now)
        resp = await client.put("/api/v1/cutovers/X", json={"scheduledStart": None})
        assert resp.status_code == 200
        assert (await load()).scheduled_start is None

    @pytest.mark.asyncio
    async def test_upsert_rejects_end_before_start(self, client):
        resp = await client.put(
            "/api/v1/cutovers/X",
            json={"scheduledStart": "2026-03-14T10:00:00", "scheduledEnd": "2026-03-14T09:00:00"},
        )
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_delete(self, client, seed, load):
        await seed()
        resp = await client.delete("/api/v1/cutovers/X")
        assert resp.status_code == 204
        assert await load() is None

    @pytest.mark.asyncio
    async def test_delete_active_conflicts(self, client, seed):
        await seed(is_active=True)
        resp = await client.delete("/api/v1/cutovers/X")
        assert resp.status_code == 409

    @pytest.mark.asyncio
    async def test_delete_unknown(self, client):
        resp = await client.delete("/api/v1/cutovers/nope")
        assert resp.status_code == 404


class TestStartStop:
    @pytest.mark.asyncio
    async def test_start(self, client, seed, load, clock, notifier):
        await seed()
        resp = await client.post("/api/v1/cutovers/X/start", json={"durationMinutes": 90, "autoCutback": True})
        assert resp.status_code == 200
        data = resp.json()
        assert data["outcome"] == "started"
        assert data["is_active"] is True
        assert data["remote_failures"] == []

        schedule = await load()
        assert schedule.scheduled_end == clock.now + timedelta(minutes=90)
        assert schedule.auto_cutback is True
        assert notifier.messages == ["CUTOVER STARTED: X\nScheduled end: 10:30"]

    @pytest.mark.asyncio
    async def test_start_without_body_uses_defaults(self, client, seed, load, clock):
        await seed(auto_cutback=True)
        resp = await client.post("/api/v1/cutovers/X/start")
        assert resp.status_code == 200
        schedule = await load()
        assert schedule.scheduled_end == clock.now + timedelta(minutes=120)
        assert schedule.auto_cutback is False

    @pytest.mark.asyncio
    async def test_start_reports_remote_failures(self, client, seed, workflows):
        await seed()
        workflows.failing = {"X-failover": "PUT 404: Not Found"}
        resp = await client.post("/api/v1/cutovers/X/start", json={})
        assert resp.status_code == 200
        assert resp.json()["remote_failures"] == ["X-failover -> Enabled (PUT 404: Not Found)"]

    @pytest.mark.asyncio
    async def test_start_unknown(self, client):
        resp = await client.post("/api/v1/cutovers/nope/start", json={})
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_start_unconfigured(self, client, seed):
        await seed(v4_workflow="")
        resp = await client.post("/api/v1/cutovers/X/start", json={})
        assert resp.status_code == 409

    @pytest.mark.asyncio
    async def test_stop(self, client, seed, load):
        await seed(is_active=True)
        resp = await client.post("/api/v1/cutovers/X/stop")
        assert resp.status_code == 200
        assert resp.json()["outcome"] == "ended"
        assert (await load()).is_active is False


class TestAudit:
    @pytest.mark.asyncio
    async def test_audit_after_start_and_stop(self, client, seed):
        await seed()
        await client.post("/api/v1/cutovers/X/start", json={"durationMinutes": 30})
        await client.post("/api/v1/cutovers/X/stop")

        resp = await client.get("/api/v1/audit", params={"days": 1})

        assert resp.status_code == 200
        data = resp.json()
        assert [entry["action"] for entry in data] == ["CutoverEnd", "CutoverStart"]
        assert data[0]["triggered_by"] == "API"
        assert data[0]["partition_key"] == "2026-03-14"

    @pytest.mark.asyncio
    async def test_audit_rejects_bad_days(self, client):
        resp = await client.get("/api/v1/audit", params={"days": 0})
        assert resp.status_code == 422


class TestDiagnostics:
    @pytest.mark.asyncio
    async def test_notify(self, client, notifier):
        resp = await client.post("/api/v1/diagnostics/notify")
        assert resp.status_code == 200
        assert resp.json() == {"sent": True, "delivery_id": "SM0001"}
        assert notifier.messages[0].startswith("Test notification from Cutover Monitor")

    @pytest.mark.asyncio
    async def test_workflow_state_probe(self, client, workflows):
        workflows.states["wf"] = WorkflowState.DISABLED
        resp = await client.post(
            "/api/v1/diagnostics/workflow-state",
            json={"resourceGroup": "rg", "workflowName": "wf", "state": "Enabled"},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["current_state"] == "Disabled"
        assert data["new_state"] == "Enabled"
        assert data["changed"] is True
        assert data["success"] is True

    @pytest.mark.asyncio
    async def test_workflow_state_rejects_unknown_state(self, client):
        resp = await client.post(
            "/api/v1/diagnostics/workflow-state",
            json={"resourceGroup": "rg", "workflowName": "wf", "state": "Suspended"},
        )
        assert resp.status_code == 422


class TestAuth:
    @pytest.mark.asyncio
    async def test_missing_token_is_rejected(self, controller, monkeypatch):
        from httpx import ASGITransport, AsyncClient

        from api import deps
        from api.main import app

        monkeypatch.setattr(deps.settings, "debug", False)
        app.dependency_overrides[deps.get_controller] = lambda: controller
        try:
            async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
                resp = await ac.get("/api/v1/status")
        finally:
            app.dependency_overrides.clear()
        assert resp.status_code in (401, 403)

    @pytest.mark.asyncio
    async def test_valid_token_is_accepted(self, controller):
        from httpx import ASGITransport, AsyncClient

        from api import deps
        from api.main import app
        from core.security import create_access_token

        token = create_access_token({"sub": "operator@example.com"})
        app.dependency_overrides[deps.get_controller] = lambda: controller
        try:
            async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
                resp = await ac.get("/api/v1/status", headers={"Authorization": f"Bearer {token}"})
        finally:
            app.dependency_overrides.clear()
        assert resp.status_code == 200
