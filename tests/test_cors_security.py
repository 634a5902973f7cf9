"""Tests for CORS configuration and security headers."""

import pytest
from fastapi.testclient import TestClient

from main import app, validate_cors_origins


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


class TestCORSConfiguration:
    """CORS behaviour for the browser client calling the stream endpoint."""

    def test_cors_preflight_request(self, client):
        response = client.options(
            "/api/v1/process-dob",
            headers={
                "Origin": "http://localhost:3000",
                "Access-Control-Request-Method": "GET",
                "Access-Control-Request-Headers": "Content-Type",
            },
        )

        assert response.status_code == 200
        assert response.headers["Access-Control-Allow-Origin"] == "http://localhost:3000"
        assert "Access-Control-Allow-Credentials" not in response.headers

    def test_cors_simple_request_allowed_origin(self, client):
        response = client.get(
            "/api/v1/health",
            headers={"Origin": "http://127.0.0.1:3000"},
        )

        assert response.status_code == 200
        assert response.headers["Access-Control-Allow-Origin"] == "http://127.0.0.1:3000"

    def test_cors_request_from_disallowed_origin(self, client):
        response = client.get(
            "/api/v1/health",
            headers={"Origin": "http://malicious-site.com"},
        )

        # Still served, but the browser gets no allow header for that origin
        assert response.status_code == 200
        assert "Access-Control-Allow-Origin" not in response.headers


class TestSecurityHeaders:
    def test_security_headers_on_json_response(self, client):
        response = client.get("/api/v1/health")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert "application/json" in response.headers["content-type"]

    def test_security_headers_on_stream_response(self, client):
        response = client.get("/api/v1/process-dob/2000-07-20?lang=en")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["content-type"].startswith("text/event-stream")


class TestCORSOriginValidation:
    def test_invalid_origins_are_dropped(self):
        origins = validate_cors_origins(
            ["http://localhost:3000", "ftp://files.example", "not a url", "*"]
        )
        assert origins == ["http://localhost:3000", "*"]

    def test_cors_credentials_with_wildcard_prevented(self):
        from core.config import Settings

        with pytest.raises(ValueError, match="CORS configuration error"):
            Settings(_env_file=None, CORS_ORIGINS=["*"], ALLOW_CREDENTIALS=True)

    def test_cors_origins_csv_parsing(self):
        from core.config import Settings

        settings = Settings(
            _env_file=None,
            CORS_ORIGINS="http://localhost:3000, https://dob.example.com",
        )

        assert settings.CORS_ORIGINS == [
            "http://localhost:3000",
            "https://dob.example.com",
        ]
