"""Tests for rendering LIGHTSPEED_* errors as HTTP responses."""
import json

import pytest
from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport
from starlette.requests import Request

from suitsync.infrastructure import lightspeed_errors
from suitsync.infrastructure.lightspeed_errors import make_error
from suitsync.middleware.lightspeed_errors import (
    LightspeedErrorMiddleware,
    handle_lightspeed_error,
    render_lightspeed_error,
)


def make_request() -> Request:
    return Request({"type": "http", "method": "GET", "path": "/api/lightspeed/customers", "headers": [], "query_string": b""})


class NextHandler:
    def __init__(self):
        self.calls = []

    async def __call__(self, error):
        self.calls.append(error)
        return "handled by next"


class TestRender:
    @pytest.mark.parametrize(
        "tag,status,code",
        [
            (lightspeed_errors.AUTH_FAILED, 401, "AUTH_REQUIRED"),
            (lightspeed_errors.PERMISSION_DENIED, 403, "PERMISSION_DENIED"),
            (lightspeed_errors.RESOURCE_NOT_FOUND, 404, "RESOURCE_NOT_FOUND"),
            (lightspeed_errors.RATE_LIMITED, 429, "RATE_LIMITED"),
            (lightspeed_errors.VALIDATION_ERROR, 422, "VALIDATION_ERROR"),
            (lightspeed_errors.SERVICE_ERROR, 503, "SERVICE_UNAVAILABLE"),
        ],
    )
    def test_tag_table(self, tag, status, code):
        # the response status follows the tag, not the error's own status code
        rendered_status, body = render_lightspeed_error(make_error(tag, "upstream", 500))
        assert rendered_status == status
        assert body["code"] == code
        assert body["message"]
        assert body["error"] != body["message"]

    def test_auth_failed_points_to_reauth(self):
        status, body = render_lightspeed_error(make_error(lightspeed_errors.AUTH_FAILED, "expired", 401))
        assert status == 401
        assert body == {
            "error": "Authentication failed",
            "message": "Please re-authenticate with Lightspeed",
            "code": "AUTH_REQUIRED",
            "redirectTo": "/auth/start-lightspeed",
        }

    def test_not_found_carries_endpoint(self):
        _, body = render_lightspeed_error(make_error(lightspeed_errors.RESOURCE_NOT_FOUND, "gone", 404, endpoint="/customers/9"))
        assert body["endpoint"] == "/customers/9"

    def test_rate_limited_carries_retry_after(self):
        error = make_error(lightspeed_errors.RATE_LIMITED, "slow", 429)
        error.retry_after = "45"
        _, body = render_lightspeed_error(error)
        assert body["retryAfter"] == "45"

    def test_api_error_uses_own_status_and_message(self):
        status, body = render_lightspeed_error(make_error(lightspeed_errors.API_ERROR, "teapot", 418, details={"x": 1}))
        assert status == 418
        assert body == {"error": "Lightspeed API error", "message": "teapot", "code": "API_ERROR", "details": {"x": 1}}

    def test_network_error_renders_as_api_error(self):
        raw = ConnectionError("refused")
        status, body = render_lightspeed_error(make_error(lightspeed_errors.NETWORK_ERROR, "refused", 500, details=raw))
        assert status == 500
        assert body["code"] == "API_ERROR"
        assert body["details"] == "refused"
        json.dumps(body)


class TestHandle:
    async def test_owned_error_becomes_json_response(self):
        next_handler = NextHandler()
        response = await handle_lightspeed_error(
            make_error(lightspeed_errors.AUTH_FAILED, "expired", 401), make_request(), next_handler
        )
        assert response.status_code == 401
        assert json.loads(response.body)["redirectTo"] == "/auth/start-lightspeed"
        assert next_handler.calls == []

    async def test_foreign_error_goes_to_next_handler_once(self):
        next_handler = NextHandler()
        error = ValueError("database is down")
        result = await handle_lightspeed_error(error, make_request(), next_handler)
        assert result == "handled by next"
        assert next_handler.calls == [error]


class TestMiddleware:
    @pytest.fixture
    def app(self):
        app = FastAPI()
        app.add_middleware(LightspeedErrorMiddleware)

        @app.get("/rate-limited")
        async def rate_limited():
            error = make_error(lightspeed_errors.RATE_LIMITED, "slow", 429)
            error.retry_after = 30
            raise error

        @app.get("/broken")
        async def broken():
            raise RuntimeError("not ours")

        return app

    async def test_lightspeed_error_is_rendered(self, app):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            response = await ac.get("/rate-limited")
        assert response.status_code == 429
        assert response.json()["retryAfter"] == 30

    async def test_foreign_error_is_not_rendered_as_lightspeed(self, app):
        transport = ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            response = await ac.get("/broken")
        assert response.status_code == 500
        assert "LIGHTSPEED" not in response.text
        assert "code" not in response.text
