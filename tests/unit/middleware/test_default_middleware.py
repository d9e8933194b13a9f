"""Behaviour of the default middleware implementations."""

import pytest
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from fastapi.testclient import TestClient
from pydantic import BaseModel
from structlog.testing import capture_logs

from routekit.config.middleware import CORSSettings
from routekit.middleware.access_log import AccessLogMiddleware
from routekit.middleware.compression import CompressionMiddleware
from routekit.middleware.cors import create_cors_middleware, get_cors_config
from routekit.middleware.rate_limit import FixedWindowCounter, RateLimitMiddleware
from routekit.middleware.response_time import ResponseTimeMiddleware
from routekit.middleware.security import SecurityHeadersMiddleware
from routekit.middleware.validation import ValidationMiddleware


pytestmark = pytest.mark.unit

LARGE_BODY = "x" * 4096


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class Signup(BaseModel):
    email: str
    age: int


def make_app() -> FastAPI:
    app = FastAPI()

    @app.get("/ok")
    async def ok() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/large", response_class=PlainTextResponse)
    async def large() -> str:
        return LARGE_BODY

    @app.get("/missing")
    async def missing() -> PlainTextResponse:
        return PlainTextResponse("nope", status_code=404)

    @app.get("/framed")
    async def framed() -> PlainTextResponse:
        return PlainTextResponse("framed", headers={"X-Frame-Options": "DENY"})

    @app.post("/signup")
    async def signup(payload: Signup) -> dict[str, str]:
        return {"email": payload.email}

    return app


class TestFixedWindowCounter:
    def test_counts_within_window_and_resets(self) -> None:
        clock = FakeClock()
        counter = FixedWindowCounter(60, clock=clock)

        assert counter.hit("a") == (1, 60)
        clock.now += 10
        assert counter.hit("a") == (2, 50)
        assert counter.hit("b")[0] == 1

        clock.now += 60
        assert counter.hit("a") == (1, 60)

    def test_reset(self) -> None:
        counter = FixedWindowCounter(60, clock=FakeClock())
        counter.hit("a")
        counter.hit("b")

        counter.reset("a")
        assert counter.hit("a")[0] == 1
        assert counter.hit("b")[0] == 2

        counter.reset()
        assert counter.hit("b")[0] == 1


class TestRateLimit:
    def test_headers_and_429(self) -> None:
        app = make_app()
        clock = FakeClock()
        app.add_middleware(
            RateLimitMiddleware, max_requests=2, window_seconds=900, clock=clock
        )
        client = TestClient(app)

        first = client.get("/ok")
        second = client.get("/ok")
        third = client.get("/ok")

        assert first.headers["RateLimit-Limit"] == "2"
        assert first.headers["RateLimit-Remaining"] == "1"
        assert first.headers["RateLimit-Reset"] == "900"
        assert second.headers["RateLimit-Remaining"] == "0"
        assert "X-RateLimit-Limit" not in first.headers

        assert third.status_code == 429
        assert third.json() == {
            "error": "Too Many Requests",
            "message": "Too many requests from this IP, please try again later.",
        }
        assert third.headers["Retry-After"] == "900"

        clock.now += 900
        assert client.get("/ok").status_code == 200

    def test_custom_key_func(self) -> None:
        app = make_app()
        app.add_middleware(
            RateLimitMiddleware,
            max_requests=1,
            key_func=lambda request: request.headers.get("x-api-key", "anon"),
        )
        client = TestClient(app)

        assert client.get("/ok", headers={"x-api-key": "a"}).status_code == 200
        assert client.get("/ok", headers={"x-api-key": "b"}).status_code == 200
        assert client.get("/ok", headers={"x-api-key": "a"}).status_code == 429


class TestCompression:
    def test_large_responses_compressed(self) -> None:
        app = make_app()
        app.add_middleware(CompressionMiddleware, minimum_size=1024)
        client = TestClient(app)

        response = client.get("/large", headers={"accept-encoding": "gzip"})

        assert response.headers["content-encoding"] == "gzip"
        assert response.text == LARGE_BODY

    def test_small_responses_untouched(self) -> None:
        app = make_app()
        app.add_middleware(CompressionMiddleware, minimum_size=1024)

        response = TestClient(app).get("/ok", headers={"accept-encoding": "gzip"})

        assert "content-encoding" not in response.headers

    def test_bypass_header(self) -> None:
        app = make_app()
        app.add_middleware(CompressionMiddleware, minimum_size=1024)

        response = TestClient(app).get(
            "/large", headers={"accept-encoding": "gzip", "x-no-compression": "1"}
        )

        assert "content-encoding" not in response.headers
        assert response.text == LARGE_BODY


class TestSecurityHeaders:
    def test_default_headers_without_csp(self) -> None:
        app = make_app()
        app.add_middleware(SecurityHeadersMiddleware)

        response = TestClient(app).get("/ok")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["Strict-Transport-Security"].startswith("max-age=15552000")
        assert "Content-Security-Policy" not in response.headers

    def test_csp_and_handler_headers_preserved(self) -> None:
        app = make_app()
        app.add_middleware(
            SecurityHeadersMiddleware, content_security_policy="default-src 'self'"
        )

        response = TestClient(app).get("/framed")

        assert response.headers["Content-Security-Policy"] == "default-src 'self'"
        assert response.headers["X-Frame-Options"] == "DENY"


class TestCORS:
    def test_config_mapping(self) -> None:
        config = get_cors_config(CORSSettings(origins=["https://app.example"]))

        assert config["allow_origins"] == ["https://app.example"]
        assert config["allow_credentials"] is True
        assert config["allow_methods"] == ["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"]

    def test_preflight_echoes_origin_with_credentials(self) -> None:
        app = make_app()
        factory = create_cors_middleware(CORSSettings())
        app.add_middleware(factory.func, **factory.keywords)

        response = TestClient(app).options(
            "/ok",
            headers={
                "Origin": "https://client.example",
                "Access-Control-Request-Method": "GET",
            },
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "https://client.example"
        assert response.headers["access-control-allow-credentials"] == "true"


class TestAccessLog:
    def test_success_logged_at_info(self) -> None:
        app = make_app()
        app.add_middleware(AccessLogMiddleware)

        with capture_logs() as logs:
            TestClient(app).get("/ok", headers={"user-agent": "pytest-agent"})

        entry = next(log for log in logs if log["event"] == "access_log")
        assert entry["log_level"] == "info"
        assert entry["method"] == "GET"
        assert entry["path"] == "/ok"
        assert entry["status_code"] == 200
        assert entry["user_agent"] == "pytest-agent"
        assert entry["category"] == "access"
        assert entry["duration_ms"] >= 0

    def test_client_errors_logged_at_warning(self) -> None:
        app = make_app()
        app.add_middleware(AccessLogMiddleware)

        with capture_logs() as logs:
            TestClient(app).get("/missing")

        entry = next(log for log in logs if log["event"] == "access_log")
        assert entry["log_level"] == "warning"
        assert entry["status_code"] == 404


class TestResponseTime:
    def test_header_format(self) -> None:
        app = make_app()
        app.add_middleware(ResponseTimeMiddleware)

        value = TestClient(app).get("/ok").headers["X-Response-Time"]

        assert value.endswith("ms")
        whole, _, fraction = value[:-2].partition(".")
        assert whole.isdigit()
        assert len(fraction) == 3


class TestValidation:
    def test_invalid_body_rejected(self) -> None:
        app = make_app()
        app.add_middleware(ValidationMiddleware, schema=Signup)
        client = TestClient(app)

        response = client.post("/signup", json={"email": "a@example.com", "age": "old"})

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Validation failed"
        assert body["details"][0]["loc"] == ["age"]

    def test_malformed_json_rejected(self) -> None:
        app = make_app()
        app.add_middleware(ValidationMiddleware, schema=Signup)

        response = TestClient(app).post(
            "/signup", content=b"{not json", headers={"content-type": "application/json"}
        )

        assert response.status_code == 400
        assert response.json()["details"][0]["type"] == "json_invalid"

    def test_valid_body_and_get_pass_through(self) -> None:
        app = make_app()
        app.add_middleware(ValidationMiddleware, schema=Signup)
        client = TestClient(app)

        assert client.post("/signup", json={"email": "a@example.com", "age": 30}).json() == {
            "email": "a@example.com"
        }
        assert client.get("/ok").status_code == 200
