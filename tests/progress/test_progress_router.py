"""Tests for progress HTTP endpoints."""

from fastapi.testclient import TestClient

from watchprogress.main import create_app
from watchprogress.progress.schemas import FRESH_SESSION_MESSAGE
from watchprogress.progress.service import ProgressService, StorageUnavailableError


URL = "/api/videos/video-1/progress"


class TestGetProgress:
    """Tests for GET /api/videos/{video_id}/progress."""

    def test_fresh_session(self, client: TestClient):
        response = client.get(URL)

        assert response.status_code == 200
        data = response.json()
        assert data["checkpoints"] == []
        assert data["quizzes"] == {}
        assert data["updated_at"] is None
        assert data["message"] == FRESH_SESSION_MESSAGE

    def test_after_save(self, client: TestClient):
        client.post(URL, json={"checkpoints": [True, False], "quizzes": {"0": True}})

        data = client.get(URL).json()

        assert data["checkpoints"] == [True, False]
        assert data["quizzes"] == {"0": True}
        assert data["updated_at"] is not None
        assert data["message"] is None

    def test_user_id_query_param(self, client: TestClient):
        client.post(URL, params={"userId": "alice"}, json={"checkpoints": [True]})

        assert client.get(URL, params={"userId": "alice"}).json()["checkpoints"] == [
            True
        ]
        assert client.get(URL).json()["checkpoints"] == []
        assert client.get(URL, params={"userId": "bob"}).json()["checkpoints"] == []


class TestSaveProgress:
    """Tests for POST /api/videos/{video_id}/progress."""

    def test_save_returns_merged_progress_and_stats(self, client: TestClient):
        response = client.post(URL, json={"checkpoints": [True, False, False]})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["progress"]["checkpoints"] == [True, False, False]
        assert data["progress"]["quizzes"] == {}
        assert data["stats"] == {
            "total_checkpoints": 3,
            "completed_checkpoints": 1,
            "completion_rate": 33,
            "is_completed": False,
        }

    def test_completed_video(self, client: TestClient):
        response = client.post(URL, json={"checkpoints": [True] * 4 + [False]})

        assert response.json()["stats"]["is_completed"] is True
        assert response.json()["stats"]["completion_rate"] == 80

    def test_regression_is_409(self, client: TestClient):
        client.post(URL, json={"checkpoints": [True, False]})

        response = client.post(URL, json={"checkpoints": [False, True]})

        assert response.status_code == 409
        data = response.json()
        assert data["code"] == "checkpoint_regression"
        assert data["details"] == {"indices": [0]}
        assert client.get(URL).json()["checkpoints"] == [True, False]

    def test_invalid_checkpoints_is_400(self, client: TestClient):
        response = client.post(URL, json={"checkpoints": [1, 0]})

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_checkpoints"
        assert client.get(URL).json()["checkpoints"] == []

    def test_missing_checkpoints_is_400(self, client: TestClient):
        response = client.post(URL, json={"quizzes": {"0": True}})

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_checkpoints"

    def test_invalid_quizzes_is_400(self, client: TestClient):
        response = client.post(
            URL, json={"checkpoints": [True], "quizzes": {"first": True}}
        )

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_quizzes"

    def test_non_object_body_is_422(self, client: TestClient):
        response = client.post(URL, json=[True, False])

        assert response.status_code == 422
        assert response.json()["code"] == "invalid_request"

    def test_storage_failure_is_503(self, client: TestClient, service: ProgressService):
        async def failing_get(video_id, user_id):
            raise StorageUnavailableError("connection refused by 10.0.0.1")

        service.store.get = failing_get

        response = client.post(URL, json={"checkpoints": [True]})

        assert response.status_code == 503
        data = response.json()
        assert data["code"] == "storage_unavailable"
        assert "10.0.0.1" not in data["message"]

    def test_error_carries_request_id(self, client: TestClient):
        response = client.post(
            URL, json={"checkpoints": "nope"}, headers={"X-Request-ID": "abc"}
        )

        assert response.json()["request_id"] == "abc"


class TestDeleteProgress:
    """Tests for DELETE /api/videos/{video_id}/progress."""

    def test_delete_resets(self, client: TestClient):
        client.post(URL, json={"checkpoints": [True, True]})

        response = client.delete(URL)

        assert response.status_code == 200
        assert response.json() == {
            "message": "Progress deleted successfully",
            "success": True,
        }
        assert client.get(URL).json()["message"] == FRESH_SESSION_MESSAGE

    def test_delete_missing_is_ok(self, client: TestClient):
        assert client.delete(URL).status_code == 200


class TestUserProgress:
    """Tests for GET /api/users/{user_id}/progress."""

    def test_lists_user_videos(self, client: TestClient):
        client.post(
            "/api/videos/a/progress",
            params={"userId": "alice"},
            json={"checkpoints": [True, True]},
        )
        client.post(
            "/api/videos/b/progress",
            params={"userId": "alice"},
            json={"checkpoints": [False, True]},
        )
        client.post(
            "/api/videos/c/progress",
            params={"userId": "bob"},
            json={"checkpoints": [True]},
        )

        data = client.get("/api/users/alice/progress").json()

        assert data["total"] == 2
        assert [item["video_id"] for item in data["progress"]] == ["b", "a"]
        assert data["progress"][1]["stats"]["is_completed"] is True

    def test_unknown_user(self, client: TestClient):
        assert client.get("/api/users/nobody/progress").json() == {
            "progress": [],
            "total": 0,
        }


def test_service_unavailable_before_startup():
    response = TestClient(create_app()).get(URL)

    assert response.status_code == 503
    assert response.json()["message"] == "Progress service not available"
