# suitsync/middleware/lightspeed_errors.py
from typing import Any, Awaitable, Callable, Dict, Tuple

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send
import structlog

from suitsync.infrastructure.lightspeed_errors import ERROR_PREFIX, is_lightspeed_error

logger = structlog.get_logger("http")

REAUTH_PATH = "/auth/start-lightspeed"


def _auth_failed(error) -> Tuple[int, Dict[str, Any]]:
    return 401, {
        "error": "Authentication failed",
        "message": "Please re-authenticate with Lightspeed",
        "code": "AUTH_REQUIRED",
        "redirectTo": REAUTH_PATH,
    }


def _permission_denied(error) -> Tuple[int, Dict[str, Any]]:
    return 403, {
        "error": "Permission denied",
        "message": "Insufficient permissions for this Lightspeed resource",
        "code": "PERMISSION_DENIED",
        "details": error.details,
    }


def _resource_not_found(error) -> Tuple[int, Dict[str, Any]]:
    return 404, {
        "error": "Resource not found",
        "message": "The requested Lightspeed resource was not found",
        "code": "RESOURCE_NOT_FOUND",
        "endpoint": error.endpoint,
    }


def _rate_limited(error) -> Tuple[int, Dict[str, Any]]:
    return 429, {
        "error": "Rate limit exceeded",
        "message": "Too many requests to Lightspeed API. Please try again later.",
        "code": "RATE_LIMITED",
        "retryAfter": error.retry_after,
    }


def _validation_error(error) -> Tuple[int, Dict[str, Any]]:
    return 422, {
        "error": "Validation error",
        "message": "The data sent to Lightspeed was invalid",
        "code": "VALIDATION_ERROR",
        "details": error.details,
    }


def _service_error(error) -> Tuple[int, Dict[str, Any]]:
    return 503, {
        "error": "Service unavailable",
        "message": "Lightspeed service is temporarily unavailable",
        "code": "SERVICE_UNAVAILABLE",
        "details": error.details,
    }


def _api_error(error) -> Tuple[int, Dict[str, Any]]:
    return getattr(error, "status_code", None) or 500, {
        "error": "Lightspeed API error",
        "message": getattr(error, "message", None) or "An error occurred while communicating with Lightspeed",
        "code": "API_ERROR",
        "details": _jsonable(getattr(error, "details", None)),
    }


_RENDERERS = {
    f"{ERROR_PREFIX}AUTH_FAILED": _auth_failed,
    f"{ERROR_PREFIX}PERMISSION_DENIED": _permission_denied,
    f"{ERROR_PREFIX}RESOURCE_NOT_FOUND": _resource_not_found,
    f"{ERROR_PREFIX}RATE_LIMITED": _rate_limited,
    f"{ERROR_PREFIX}VALIDATION_ERROR": _validation_error,
    f"{ERROR_PREFIX}SERVICE_ERROR": _service_error,
    f"{ERROR_PREFIX}API_ERROR": _api_error,
}


def _jsonable(details: Any) -> Any:
    # network errors carry the raw exception as details
    if isinstance(details, BaseException):
        return str(details) or details.__class__.__name__
    return details


def render_lightspeed_error(error) -> Tuple[int, Dict[str, Any]]:
    """Status code and JSON body for a LIGHTSPEED_* error, chosen by its code alone."""
    return _RENDERERS.get(error.code, _api_error)(error)


async def handle_lightspeed_error(
    error: BaseException,
    request: Request,
    next_handler: Callable[[BaseException], Awaitable[Any]],
):
    """
    Build the response for a Lightspeed error.
    Anything outside the LIGHTSPEED_ namespace goes to next_handler untouched.
    """
    if not is_lightspeed_error(error):
        return await next_handler(error)

    logger.error(
        "lightspeed_api_error",
        code=error.code,
        message=getattr(error, "message", str(error)),
        status_code=getattr(error, "status_code", None),
        endpoint=getattr(error, "endpoint", None),
        details=_jsonable(getattr(error, "details", None)),
        url=str(request.url),
        method=request.method,
    )
    status_code, body = render_lightspeed_error(error)
    return JSONResponse(status_code=status_code, content=body)


class LightspeedErrorMiddleware:
    """
    Sits between the route exception handling and the generic 500 handler.
    Foreign exceptions are re-raised unchanged.
    """

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            if response_started:
                raise

            async def reraise(error: BaseException):
                raise error

            response = await handle_lightspeed_error(exc, Request(scope, receive=receive), reraise)
            await response(scope, receive, send)
