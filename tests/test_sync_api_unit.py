"""
Unit tests for the sync API routes.
"""

import pytest
from fastapi.testclient import TestClient

from promosync.app import create_app
from promosync.database.models import Team
from promosync.exceptions import NonRetryableSyncError
from promosync.sync.connectors.base import InMemoryContentSource, RawPage


@pytest.fixture
def client(orchestrator, test_settings):
    app = create_app(config=test_settings, orchestrator=orchestrator)
    return TestClient(app)


class TestRunEndpoints:
    """Tests for triggering runs."""

    def test_full_run(self, client, content_source):
        content_source.set_pages("wrestlers", [RawPage("w-1", {"Name": "Ace"})])

        response = client.post("/api/v1/sync/run", json={})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["total_synced"] == 1
        assert len(data["results"]) == 14
        assert data["order"][0] == "show_types"

    def test_full_run_without_body(self, client):
        response = client.post("/api/v1/sync/run")

        assert response.status_code == 200
        assert response.json()["success"] is True

    def test_run_single_type_via_body(self, client, content_source):
        content_source.set_pages("npcs", [RawPage("n-1", {"Name": "Ref"})])

        response = client.post("/api/v1/sync/run", json={"entity_type": "npcs"})

        assert response.status_code == 200
        assert response.json()["entity_type"] == "npcs"
        assert response.json()["created_count"] == 1

    def test_run_single_type(self, client, content_source):
        content_source.set_pages("wrestlers", [RawPage("w-1", {"Name": "Ace"})])

        response = client.post("/api/v1/sync/run/wrestlers")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["synced_count"] == 1
        assert data["attempts"] == 1

    def test_unknown_entity_type(self, client):
        assert client.post("/api/v1/sync/run/belts").status_code == 404
        assert client.post("/api/v1/sync/run", json={"entity_type": "belts"}).status_code == 404

    def test_failed_run_is_reported_in_body(self, make_orchestrator, test_settings):
        class BrokenSource(InMemoryContentSource):
            def fetch_all(self, entity_type):
                raise NonRetryableSyncError("database gone")

        app = create_app(config=test_settings, orchestrator=make_orchestrator(client=BrokenSource()))
        response = TestClient(app).post("/api/v1/sync/run/wrestlers")

        assert response.status_code == 200
        assert response.json()["success"] is False
        assert response.json()["error_message"] == "database gone"

    def test_sync_record(self, client, content_source):
        content_source.put_page("wrestlers", RawPage("w-1", {"Name": "Ace"}))

        response = client.post("/api/v1/sync/records/wrestlers/w-1")

        assert response.status_code == 200
        assert response.json()["created_count"] == 1

    def test_run_with_session_closes_it_by_default(self, client, orchestrator, content_source):
        content_source.set_pages("wrestlers", [RawPage("w-1", {"Name": "Ace"})])

        first = client.post("/api/v1/sync/run", json={"session_id": "ops-1"})
        second = client.post("/api/v1/sync/run", json={"session_id": "ops-1"})

        assert first.json()["session_id"] == "ops-1"
        assert len(second.json()["results"]) == 14
        assert second.json()["skipped"] == []
        assert "ops-1" not in orchestrator.sessions.active_sessions()

    def test_run_can_keep_its_session_open(self, client, orchestrator):
        client.post("/api/v1/sync/run", json={"session_id": "ops-2", "end_session": False})
        second = client.post("/api/v1/sync/run", json={"session_id": "ops-2", "end_session": False})

        assert second.json()["results"] == []
        assert len(second.json()["skipped"]) == 14
        assert "ops-2" in orchestrator.sessions.active_sessions()

    def test_full_run_reports_integrity(self, client, content_source):
        content_source.set_pages("wrestlers", [RawPage("w-1", {"Name": "Ace"})])

        data = client.post("/api/v1/sync/run", json={}).json()

        assert data["integrity"]["valid"] is True
        assert data["integrity"]["statistics"]["total_wrestlers"] == 1


class TestStatusEndpoints:
    """Tests for status and health."""

    def test_status(self, client):
        client.post("/api/v1/sync/run/wrestlers")

        response = client.get("/api/v1/sync/status")

        assert response.status_code == 200
        data = response.json()
        assert "wrestlers" in data["latest_results"]
        assert data["circuit_breakers"]["wrestlers"]["state"] == "closed"

    def test_health_up(self, client):
        client.post("/api/v1/sync/run/wrestlers")

        response = client.get("/api/v1/sync/health")

        assert response.status_code == 200
        assert response.json()["status"] == "up"

    def test_health_down_returns_503(self, make_orchestrator, test_settings):
        class UnconfiguredSource(InMemoryContentSource):
            def is_configured(self):
                return False

        app = create_app(config=test_settings, orchestrator=make_orchestrator(client=UnconfiguredSource()))
        response = TestClient(app).get("/api/v1/sync/health")

        assert response.status_code == 503
        assert response.json()["status"] == "down"

    def test_not_initialized(self, test_settings):
        app = create_app(config=test_settings)

        response = TestClient(app).get("/api/v1/sync/status")

        assert response.status_code == 503

    def test_root(self, client, test_settings):
        response = client.get("/")

        assert response.json()["name"] == test_settings.app.app_name


class TestOperationEndpoints:
    """Tests for operation listing, lookup and cancellation."""

    def test_list_and_get_operations(self, client, orchestrator):
        client.post("/api/v1/sync/run/wrestlers")
        operation_id = orchestrator.progress.get_all_operations()[0].operation_id

        listing = client.get("/api/v1/sync/operations").json()
        assert listing["total"] == 1
        assert client.get("/api/v1/sync/operations", params={"active_only": True}).json()["total"] == 0

        detail = client.get(f"/api/v1/sync/operations/{operation_id}")
        assert detail.status_code == 200
        assert detail.json()["status"] == "succeeded"

    def test_get_unknown_operation(self, client):
        assert client.get("/api/v1/sync/operations/nope").status_code == 404

    def test_cancel_operation(self, client, orchestrator):
        orchestrator.progress.start_operation("wrestlers-1234", "Sync Wrestlers", 4)

        response = client.post("/api/v1/sync/operations/wrestlers-1234/cancel")

        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"
        assert orchestrator.progress.is_cancelled("wrestlers-1234")

        assert client.post("/api/v1/sync/operations/wrestlers-1234/cancel").status_code == 400
        assert client.post("/api/v1/sync/operations/unknown/cancel").status_code == 404


class TestCircuitBreakerEndpoints:
    def test_reset_breaker(self, client, orchestrator):
        breaker = orchestrator.breakers.get("wrestlers")
        breaker.failure_count = 10

        response = client.post("/api/v1/sync/circuit-breakers/wrestlers/reset")

        assert response.status_code == 200
        assert response.json()["status"] == "closed"
        assert breaker.failure_count == 0

    def test_reset_unknown_breaker(self, client):
        assert client.post("/api/v1/sync/circuit-breakers/belts/reset").status_code == 404


class TestSessionEndpoints:
    def test_list_get_and_end_session(self, client, orchestrator):
        client.post("/api/v1/sync/run", json={"session_id": "ops-3", "end_session": False})

        listing = client.get("/api/v1/sync/sessions").json()
        assert listing["total"] == 1
        assert listing["sessions"][0]["session_id"] == "ops-3"
        assert len(listing["sessions"][0]["synced_entities"]) == 14

        detail = client.get("/api/v1/sync/sessions/ops-3")
        assert detail.status_code == 200
        assert "wrestlers" in detail.json()["synced_entities"]

        response = client.post("/api/v1/sync/sessions/ops-3/end")
        assert response.status_code == 200
        assert response.json() == {"id": "ops-3", "status": "ended", "message": "Session ended"}
        assert orchestrator.sessions.active_sessions() == []

    def test_unknown_session(self, client):
        assert client.get("/api/v1/sync/sessions/nope").status_code == 404
        assert client.post("/api/v1/sync/sessions/nope/end").status_code == 404


class TestIntegrityEndpoint:
    def test_clean_database(self, client, content_source):
        content_source.set_pages("wrestlers", [RawPage("w-1", {"Name": "Ace"})])
        client.post("/api/v1/sync/run/wrestlers")

        response = client.get("/api/v1/sync/integrity")

        assert response.status_code == 200
        data = response.json()
        assert data["valid"] is True
        assert data["errors"] == []
        assert data["statistics"]["total_wrestlers"] == 1
        assert data["summary"] == "Data integrity check passed"

    def test_reports_problems(self, client, repositories):
        repositories.get("teams").save(Team(name="Lonely Hearts", external_id="t-1", wrestler1_id=99))

        data = client.get("/api/v1/sync/integrity").json()

        assert data["valid"] is False
        assert "Found 1 teams with references to missing records" in data["errors"]
        assert "Found 1 teams with only one wrestler" in data["warnings"]

    def test_without_checker(self, client, orchestrator):
        orchestrator.integrity_checker = None

        assert client.get("/api/v1/sync/integrity").status_code == 503
