"""
Integration tests for API endpoints.

Tests the full HTTP request/response cycle with a mocked content provider.
"""
import time
import pytest

from arbor.infrastructure.content_provider import ProviderError


def create_session(client) -> str:
    response = client.post("/api/v1/sessions")
    assert response.status_code == 201
    return response.json()["session_id"]


def start_trail(client, difficulty: str = "Easy") -> str:
    session_id = create_session(client)
    response = client.post(f"/api/v1/sessions/{session_id}/difficulty", json={"difficulty": difficulty})
    assert response.status_code == 200
    return session_id


# ============================================================
# Health Check Tests
# ============================================================

class TestHealthEndpoints:
    """Tests for health check endpoints."""

    def test_root_endpoint(self, test_client):
        """Root endpoint should return healthy status."""
        response = test_client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "service" in data
        assert "version" in data

    def test_health_endpoint(self, test_client):
        response = test_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_land_boundaries_loaded_on_startup(self, test_client, mock_land_provider):
        mock_land_provider.fetch_land_boundaries.assert_awaited_once()

    def test_health_reports_sessions(self, test_client):
        create_session(test_client)

        data = test_client.get("/health").json()

        assert data["sessions"] == 1
        assert data["land_boundaries"] is False


# ============================================================
# Session Lifecycle Tests
# ============================================================

class TestSessionLifecycle:
    """Tests for creating, reading and deleting sessions."""

    def test_new_session_awaits_difficulty(self, test_client):
        session_id = create_session(test_client)

        data = test_client.get(f"/api/v1/sessions/{session_id}").json()

        assert data["status"] == "DIFFICULTY_SELECTION"
        assert data["score"] == 0
        assert data["round"] is None

    def test_unknown_session_returns_404(self, test_client):
        response = test_client.get("/api/v1/sessions/does-not-exist")

        assert response.status_code == 404

    def test_delete_session(self, test_client):
        session_id = create_session(test_client)

        response = test_client.delete(f"/api/v1/sessions/{session_id}")

        assert response.status_code == 204
        assert test_client.get(f"/api/v1/sessions/{session_id}").status_code == 404
        assert test_client.delete(f"/api/v1/sessions/{session_id}").status_code == 404

    def test_invalid_difficulty_returns_422(self, test_client):
        session_id = create_session(test_client)

        response = test_client.post(
            f"/api/v1/sessions/{session_id}/difficulty", json={"difficulty": "Impossible"}
        )

        assert response.status_code == 422


# ============================================================
# Game Flow Tests
# ============================================================

class TestGameFlow:
    """Tests for playing rounds over HTTP."""

    def test_difficulty_starts_first_round(self, test_client):
        session_id = start_trail(test_client)

        data = test_client.get(f"/api/v1/sessions/{session_id}").json()

        assert data["status"] == "GUESSING"
        assert data["difficulty"] == "Easy"
        assert data["pool_size"] == 3
        assert sorted(data["round"]["options"]) == ["T1", "T2", "T3"]
        assert data["round"]["before_image"].startswith("data:image/png;base64,")
        # Identity stays hidden until the round is over
        assert data["round"]["specimen"] is None
        assert data["round"]["revealed_image"] is None

    def test_correct_guess_reveals_specimen(self, test_client):
        session_id = start_trail(test_client)

        response = test_client.post(f"/api/v1/sessions/{session_id}/guess", json={"choice": "T1"})

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "RESULT"
        assert data["score"] == 1
        assert data["round"]["is_correct"] is True
        assert data["round"]["after_image"] == "data:image/png;base64,spring:T1 in spring"
        assert data["round"]["revealed_image"] == data["round"]["after_image"]
        specimen = data["round"]["specimen"]
        assert specimen["common_name"] == "T1"
        assert specimen["scientific_name"] == "T1 scientifica"
        assert specimen["habitats"][0] == {"latitude": 45.0, "longitude": -75.0, "label": "Ottawa"}

    def test_incorrect_guess(self, test_client):
        session_id = start_trail(test_client)

        data = test_client.post(f"/api/v1/sessions/{session_id}/guess", json={"choice": "T3"}).json()

        assert data["status"] == "RESULT"
        assert data["score"] == 0
        assert data["round"]["is_correct"] is False
        assert data["round"]["specimen"]["common_name"] == "T1"
        assert data["round"]["after_image"] is None
        assert data["round"]["revealed_image"] == data["round"]["before_image"]

    def test_unknown_option_returns_400(self, test_client):
        session_id = start_trail(test_client)

        response = test_client.post(f"/api/v1/sessions/{session_id}/guess", json={"choice": "Baobab"})

        assert response.status_code == 400

    def test_guess_before_difficulty_returns_409(self, test_client):
        session_id = create_session(test_client)

        response = test_client.post(f"/api/v1/sessions/{session_id}/guess", json={"choice": "T1"})

        assert response.status_code == 409

    def test_advance_moves_to_next_specimen(self, test_client):
        session_id = start_trail(test_client)
        test_client.post(f"/api/v1/sessions/{session_id}/guess", json={"choice": "T1"})

        data = test_client.post(f"/api/v1/sessions/{session_id}/advance").json()

        assert data["status"] == "GUESSING"
        assert data["position"] == 1
        assert data["score"] == 1

    def test_regenerate_fact(self, test_client):
        session_id = start_trail(test_client)
        test_client.post(f"/api/v1/sessions/{session_id}/guess", json={"choice": "T1"})

        data = test_client.post(f"/api/v1/sessions/{session_id}/fact").json()

        assert data["round"]["specimen"]["fun_fact"] == "A brand new fact."
        assert data["round"]["fact_failed"] is False

    def test_reset_returns_to_selection(self, test_client):
        session_id = start_trail(test_client)
        test_client.post(f"/api/v1/sessions/{session_id}/guess", json={"choice": "T1"})

        data = test_client.post(f"/api/v1/sessions/{session_id}/reset").json()

        assert data["status"] == "DIFFICULTY_SELECTION"
        assert data["score"] == 0
        assert data["difficulty"] is None

    def test_pool_failure_reported_as_error_state(self, test_client, mock_provider):
        mock_provider.fetch_pool.side_effect = ProviderError("Quota exceeded", status_code=429)
        session_id = create_session(test_client)

        response = test_client.post(
            f"/api/v1/sessions/{session_id}/difficulty", json={"difficulty": "Hard"}
        )

        assert response.status_code == 200
        assert response.json()["status"] == "ERROR"
        assert response.json()["error"] == "Quota exceeded"

    def test_unexpected_failure_returns_500(self, test_client, mock_provider):
        mock_provider.fetch_pool.side_effect = RuntimeError("socket exploded")
        session_id = create_session(test_client)

        response = test_client.post(
            f"/api/v1/sessions/{session_id}/difficulty", json={"difficulty": "Easy"}
        )

        assert response.status_code == 500
        assert response.json()["error"] == "Internal server error"


# ============================================================
# Globe Endpoint Tests
# ============================================================

class TestGlobeEndpoint:
    """Tests for the habitat globe frame endpoint."""

    def test_globe_idle_before_reveal(self, test_client):
        session_id = start_trail(test_client)

        data = test_client.get(f"/api/v1/sessions/{session_id}/globe").json()

        assert data["running"] is False
        assert data["frame_count"] == 0
        assert data["primitives"] == []

    def test_globe_runs_after_correct_guess(self, test_client):
        session_id = start_trail(test_client)
        test_client.post(f"/api/v1/sessions/{session_id}/guess", json={"choice": "T1"})

        data = None
        for _ in range(100):
            data = test_client.get(f"/api/v1/sessions/{session_id}/globe").json()
            if data["frame_count"] > 0:
                break
            time.sleep(0.01)

        assert data["running"] is True
        assert data["width"] == data["height"] == 280
        assert data["tilt"] == -15.0
        assert data["primitives"][0]["kind"] == "circle"
        assert data["primitives"][1]["kind"] == "path"

    def test_globe_stops_on_advance(self, test_client):
        session_id = start_trail(test_client)
        test_client.post(f"/api/v1/sessions/{session_id}/guess", json={"choice": "T1"})

        test_client.post(f"/api/v1/sessions/{session_id}/advance")
        data = test_client.get(f"/api/v1/sessions/{session_id}/globe").json()

        assert data["running"] is False

    def test_globe_not_started_on_incorrect_guess(self, test_client):
        session_id = start_trail(test_client)
        test_client.post(f"/api/v1/sessions/{session_id}/guess", json={"choice": "T2"})

        data = test_client.get(f"/api/v1/sessions/{session_id}/globe").json()

        assert data["running"] is False

    def test_unknown_session_globe_returns_404(self, test_client):
        assert test_client.get("/api/v1/sessions/nope/globe").status_code == 404


# ============================================================
# Response Format Tests
# ============================================================

class TestResponseFormats:
    """Tests for API response formats."""

    def test_openapi_schema_available(self, test_client):
        response = test_client.get("/openapi.json")

        assert response.status_code == 200
        paths = response.json()["paths"]
        assert "/api/v1/sessions" in paths
        assert "/api/v1/sessions/{session_id}/guess" in paths
        assert "/api/v1/sessions/{session_id}/globe" in paths

    def test_docs_endpoint_available(self, test_client):
        response = test_client.get("/docs")

        assert response.status_code == 200


# ============================================================
# Rate Limiting Tests
# ============================================================

class TestRateLimiting:
    """Tests for rate limiting functionality."""

    @pytest.mark.parametrize("path", [
        "/api/v1/sessions/{session_id}/difficulty",
        "/api/v1/sessions/{session_id}/guess",
        "/api/v1/sessions/{session_id}/fact",
    ])
    def test_rate_limit_documented_in_openapi(self, test_client, path):
        data = test_client.get("/openapi.json").json()

        assert "429" in data["paths"][path]["post"]["responses"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
