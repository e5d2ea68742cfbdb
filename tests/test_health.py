"""Tests for health endpoints."""


class TestHealthEndpoints:
    def test_liveness(self, client):
        response = client.get("/health/live")

        assert response.status_code == 200
        assert response.json() == {"status": "alive"}

    def test_readiness_with_service(self, client):
        response = client.get("/health/ready")

        body = response.json()
        assert body["status"] == "ready"
        assert body["store_backend"] == "memory"
        assert body["catalog_backend"] == "static"

    def test_readiness_while_starting(self, client):
        client.app.state.progression_service = None

        assert client.get("/health/ready").json()["status"] == "starting"

    def test_health(self, client):
        body = client.get("/health").json()

        assert body["status"] == "healthy"
        assert body["app_name"] == "progression-engine"

    def test_root(self, client):
        assert client.get("/").json()["message"] == "Progression Engine API"

    def test_request_id_header(self, client):
        response = client.get("/health/live", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"
