"""Tests for health probes, the root endpoint and request ids."""

from fastapi.testclient import TestClient

from watchprogress.main import create_app


def test_liveness(client: TestClient) -> None:
    response = client.get("/health/live")
    assert response.status_code == 200
    assert response.json() == {"status": "alive"}


def test_ready_once_service_is_wired(client: TestClient) -> None:
    body = client.get("/health/ready").json()
    assert body == {"status": "ready", "ready": True, "storage_backend": "memory"}


def test_starting_without_service() -> None:
    """Lifespan has not run, so no progress service exists yet."""
    body = TestClient(create_app()).get("/health/ready").json()
    assert body["status"] == "starting"
    assert body["ready"] is False


def test_health_reports_app(client: TestClient) -> None:
    body = client.get("/health").json()
    assert body["status"] == "healthy"
    assert body["app_name"] == "watchprogress"
    assert body["environment"] == "testing"
    assert body["version"]


def test_root_points_at_progress_api(client: TestClient) -> None:
    body = client.get("/").json()
    assert body["message"] == "watchprogress API"
    assert body["progress"] == "/api/videos/{video_id}/progress"


def test_unknown_endpoint(client: TestClient) -> None:
    response = client.get("/nope")
    assert response.status_code == 404
    assert response.json()["message"] == "Endpoint not found"


def test_request_id_echoed(client: TestClient) -> None:
    response = client.get("/health/live", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


def test_request_id_generated(client: TestClient) -> None:
    assert client.get("/health/live").headers["X-Request-ID"]
