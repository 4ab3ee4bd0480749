"""Tests for the sync and test-data HTTP endpoints."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import func, select

from outage_sync.api.app import create_app
from outage_sync.api.v1.sync import get_channel_sync_engine
from outage_sync.config import settings
from outage_sync.db.engine import get_sync_session
from outage_sync.models.source import StagingCabinIncident, StagingCableIncident
from outage_sync.sync.engine import ChannelSyncEngine, SyncResult, SyncState
from outage_sync.sync.procedures import OrmProcedures

from tests.conftest import fixed_clock

API_KEY = settings.api_key.get_secret_value()
AUTH = {"X-API-Key": API_KEY}


class _StubEngine:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.sources = []

    def run(self, source):
        self.sources.append(source)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def app(session_factory):
    app = create_app()

    def _session():
        with session_factory() as session:
            yield session

    app.dependency_overrides[get_sync_session] = _session
    app.dependency_overrides[get_channel_sync_engine] = lambda: ChannelSyncEngine(
        session_factory, OrmProcedures(clock=fixed_clock), clock=fixed_clock
    )
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app)


def _override_engine(app, engine):
    app.dependency_overrides[get_channel_sync_engine] = lambda: engine


class TestAuth:
    def test_health_is_public(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "Healthy"

    def test_missing_key_is_rejected(self, client):
        assert client.post("/api/sync?source=A").status_code == 401

    def test_wrong_key_is_rejected(self, client):
        response = client.post("/api/sync?source=A", headers={"X-API-Key": "nope"})
        assert response.status_code == 401

    def test_testdata_requires_key(self, client):
        response = client.post("/api/testdata/cabin-incidents", json={"count": 2})
        assert response.status_code == 401


class TestSyncEndpoint:
    def test_success_returns_camel_case_result(self, client):
        response = client.post("/api/sync?source=A", headers=AUTH)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["source"] == "A"
        assert body["message"] == "Complete synchronization finished for Source A"
        for key in ("createdIncidents", "closedIncidents", "totalProcessed", "insertedDetails"):
            assert key in body

    def test_source_defaults_to_a(self, app, client):
        engine = _StubEngine(SyncResult(success=True, source="A", state=SyncState.DONE))
        _override_engine(app, engine)

        assert client.post("/api/sync", headers=AUTH).status_code == 200
        assert engine.sources == ["A"]

    def test_lowercase_source_is_accepted(self, client):
        response = client.post("/api/sync?source=b", headers=AUTH)
        assert response.status_code == 200
        assert response.json()["source"] == "B"

    def test_unknown_source_is_bad_request(self, client):
        response = client.post("/api/sync?source=Z", headers=AUTH)
        assert response.status_code == 400

    def test_failed_sync_is_500_with_result_body(self, app, client):
        failed = SyncResult(
            success=False,
            message="Synchronization failed for Source A during create",
            source="A",
            state=SyncState.FAILED,
            error="connection lost",
        )
        _override_engine(app, _StubEngine(failed))

        response = client.post("/api/sync?source=A", headers=AUTH)

        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "connection lost"
        assert body["state"] == "failed"

    def test_unexpected_error_is_500_with_result_body(self, app, client):
        _override_engine(app, _StubEngine(error=RuntimeError("boom")))

        response = client.post("/api/sync?source=A", headers=AUTH)

        assert response.status_code == 500
        assert response.json()["success"] is False
        assert response.json()["error"] == "boom"

    def test_value_error_inside_a_valid_sync_is_500(self, app, client):
        engine = _StubEngine(error=ValueError("Invalid procedure name 'x;y'"))
        _override_engine(app, engine)

        response = client.post("/api/sync?source=a", headers=AUTH)

        assert response.status_code == 500
        assert response.json()["success"] is False
        assert response.json()["source"] == "A"
        assert engine.sources == ["A"]

    def test_unknown_source_never_reaches_the_engine(self, app, client):
        engine = _StubEngine(SyncResult(success=True, source="A", state=SyncState.DONE))
        _override_engine(app, engine)

        assert client.post("/api/sync?source=Z", headers=AUTH).status_code == 400
        assert engine.sources == []


class TestTestDataEndpoints:
    @pytest.mark.parametrize(
        "path,model",
        [
            ("/api/testdata/cabin-incidents", StagingCabinIncident),
            ("/api/testdata/cable-incidents", StagingCableIncident),
        ],
    )
    def test_generates_requested_count(self, client, session_factory, path, model):
        response = client.post(path, json={"count": 4, "scenario": "planned"}, headers=AUTH)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert len(body["data"]) == 4
        assert "scenario: planned" in body["message"]
        with session_factory() as session:
            assert session.execute(select(func.count()).select_from(model)).scalar_one() == 4

    def test_defaults_apply(self, client):
        response = client.post("/api/testdata/cabin-incidents", json={}, headers=AUTH)

        assert response.status_code == 200
        assert len(response.json()["data"]) == 10
        assert response.json()["message"] == "Generated 10 cabin incidents for scenario: mixed"

    @pytest.mark.parametrize(
        "payload",
        [
            {"count": 0},
            {"count": 101},
            {"count": 3, "scenario": "earthquake"},
        ],
    )
    def test_invalid_requests_are_rejected(self, client, payload):
        response = client.post("/api/testdata/cable-incidents", json=payload, headers=AUTH)
        assert response.status_code == 422

    def test_generated_incidents_sync_end_to_end(self, client):
        client.post(
            "/api/testdata/cabin-incidents", json={"count": 5, "scenario": "emergency"}, headers=AUTH
        )

        body = client.post("/api/sync?source=A", headers=AUTH).json()

        assert body["success"] is True
        assert body["insertedDetails"] == body["createdIncidents"]
