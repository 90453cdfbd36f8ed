"""
Application-level tests: health, error envelopes, request IDs and the
real-time channel.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from wastewatch.database.repositories.report import ReportRepository
from wastewatch.routers.dependencies import get_report_repository, get_report_service
from wastewatch.services.report_service import ReportService


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


class TestHealth:
    def test_health(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Server is running"
        assert body["timestamp"].endswith("+00:00")

    def test_request_id_header(self, client):
        response = client.get("/api/health")

        request_id = response.headers["x-request-id"]
        assert len(request_id) == 8
        int(request_id, 16)


class TestErrorEnvelopes:
    def test_unknown_route(self, client):
        response = client.get("/api/nothing-here")

        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Route not found"}

    def test_unexpected_error_is_a_500_envelope(self, app, client):
        service = MagicMock(spec=ReportService)
        service.list.side_effect = RuntimeError("database exploded")
        app.dependency_overrides[get_report_service] = lambda: service

        response = client.get("/api/reports")

        assert response.status_code == 500
        assert response.json() == {"success": False, "message": "database exploded"}

    def test_cors_allows_client_origin(self, client):
        response = client.get("/api/health", headers={"Origin": "http://localhost:5173"})

        assert response.headers["access-control-allow-origin"] == "http://localhost:5173"


class TestRealtimeChannel:
    def test_ping_pong(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_text("ping")
            assert ws.receive_json() == {"event": "pong"}

    def test_delete_is_broadcast(self, app, client, login_as, authority, make_report):
        login_as(authority)
        report = make_report()
        repository = MagicMock(spec=ReportRepository)
        repository.get_by_id.return_value = report
        repository.delete_by_id.return_value = True
        repository.commit = AsyncMock()
        app.dependency_overrides[get_report_repository] = lambda: repository

        with client.websocket_connect("/ws") as ws:
            # Round trip so the connection is registered before the delete
            ws.send_text("ping")
            assert ws.receive_json() == {"event": "pong"}

            response = client.delete(f"/api/reports/{report.id}")

            assert response.status_code == 200
            assert ws.receive_json() == {"event": "reportDeleted", "data": str(report.id)}
