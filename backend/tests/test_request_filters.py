# Overview: Pytest coverage for rate limiting, response headers, health and JSON error pages.

import pytest

from gestock import create_app
from gestock.services.rate_limit_service import RateLimiter


class FakeClock:
    def __init__(self, now=1_000.0):
        self.now = now

    def __call__(self):
        return self.now


class TestRateLimiter:
    def test_allows_up_to_limit(self):
        limiter = RateLimiter(max_requests=3, window_seconds=60, clock=FakeClock())

        decisions = [limiter.hit("10.0.0.1") for _ in range(3)]

        assert all(d.allowed for d in decisions)
        assert [d.remaining for d in decisions] == [2, 1, 0]

    def test_rejects_over_limit(self):
        clock = FakeClock()
        limiter = RateLimiter(max_requests=2, window_seconds=60, clock=clock)
        limiter.hit("10.0.0.1")
        clock.now += 10
        limiter.hit("10.0.0.1")

        decision = limiter.hit("10.0.0.1")

        assert not decision.allowed
        assert decision.retry_after == 50
        assert decision.headers()["Retry-After"] == "50"
        assert decision.headers()["X-RateLimit-Remaining"] == "0"

    def test_window_slides(self):
        clock = FakeClock()
        limiter = RateLimiter(max_requests=1, window_seconds=60, clock=clock)
        limiter.hit("10.0.0.1")
        assert not limiter.hit("10.0.0.1").allowed

        clock.now += 61

        assert limiter.hit("10.0.0.1").allowed

    def test_keys_are_independent(self):
        limiter = RateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())
        limiter.hit("10.0.0.1")

        assert limiter.hit("10.0.0.2").allowed

    def test_rejected_hits_are_not_counted(self):
        clock = FakeClock()
        limiter = RateLimiter(max_requests=1, window_seconds=60, clock=clock)
        limiter.hit("10.0.0.1")
        for _ in range(5):
            limiter.hit("10.0.0.1")

        clock.now += 61
        assert limiter.hit("10.0.0.1").allowed


@pytest.fixture
def limited_app():
    return create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'RATE_LIMIT_ENABLED': True,
        'RATE_LIMIT_MAX_REQUESTS': 2,
        'RATE_LIMIT_WINDOW_SECONDS': 600,
    })


class TestRateLimitedRequests:
    def test_headers_on_allowed_request(self, limited_app):
        response = limited_app.test_client().get("/api/stocks")

        assert response.status_code == 200
        assert response.headers["X-RateLimit-Limit"] == "2"
        assert response.headers["X-RateLimit-Remaining"] == "1"

    def test_third_request_is_rejected(self, limited_app):
        client = limited_app.test_client()
        client.get("/api/stocks")
        client.get("/api/stocks")

        response = client.get("/api/stocks")

        assert response.status_code == 429
        assert response.get_json()["error"] == "Trop de requêtes. Réessayez plus tard."
        assert int(response.headers["Retry-After"]) > 0

    def test_non_api_paths_are_not_limited(self, limited_app):
        client = limited_app.test_client()
        for _ in range(3):
            client.get("/api/stocks")

        response = client.get("/favicon.ico")

        assert response.status_code == 404
        assert "X-RateLimit-Limit" not in response.headers


class TestResponseHeaders:
    def test_security_headers(self, client):
        response = client.get("/api/stocks")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"

    def test_cors_for_allowed_origin(self, client):
        response = client.get("/api/stocks", headers={"Origin": "http://localhost:3000"})

        assert response.headers["Access-Control-Allow-Origin"] == "http://localhost:3000"

    def test_no_cors_for_other_origin(self, client):
        response = client.get("/api/stocks", headers={"Origin": "http://evil.example"})

        assert "Access-Control-Allow-Origin" not in response.headers


class TestHealthAndErrors:
    def test_health(self, client, db_session):
        response = client.get("/api/health")

        assert response.status_code == 200
        body = response.get_json()
        assert body["status"] == "ok"
        assert body["checks"]["database"]["status"] == "healthy"
        assert body["checks"]["database"]["details"] == {"stocks": 3}

    def test_unknown_route_is_json(self, client):
        response = client.get("/api/nothing-here")

        assert response.status_code == 404
        assert response.get_json() == {"success": False, "error": "Ressource introuvable"}

    def test_wrong_method_is_json(self, client):
        response = client.delete("/api/stocks")

        assert response.status_code == 405
        assert response.get_json()["success"] is False

    def test_malformed_json(self, client, db_session):
        response = client.post("/api/clients?stockId=renaissance", data="{not json", content_type="application/json")

        assert response.status_code == 400
        assert response.get_json()["error"] == "Invalid JSON payload"
