# suitsync/infrastructure/lightspeed_errors.py
"""
Normalisation of Lightspeed API failures.

Every failure of a call to the Lightspeed API leaves the service layer as a
LightspeedError carrying a LIGHTSPEED_* code. Callers in between re-raise it
untouched; only the response mapper in suitsync.middleware.lightspeed_errors
turns it into an HTTP response.
"""
from typing import Any, Awaitable, Callable, Optional, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")

ERROR_PREFIX = "LIGHTSPEED_"
DEFAULT_RETRY_AFTER = 60

AUTH_FAILED = "AUTH_FAILED"
PERMISSION_DENIED = "PERMISSION_DENIED"
RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
RATE_LIMITED = "RATE_LIMITED"
VALIDATION_ERROR = "VALIDATION_ERROR"
SERVICE_ERROR = "SERVICE_ERROR"
API_ERROR = "API_ERROR"
NETWORK_ERROR = "NETWORK_ERROR"

# status -> (tag, message)
_STATUS_TAGS = {
    401: (AUTH_FAILED, "Authentication failed"),
    403: (PERMISSION_DENIED, "Insufficient permissions"),
    404: (RESOURCE_NOT_FOUND, "Resource not found"),
    422: (VALIDATION_ERROR, "Validation error"),
    429: (RATE_LIMITED, "Rate limit exceeded"),
    500: (SERVICE_ERROR, "Service temporarily unavailable"),
    502: (SERVICE_ERROR, "Service temporarily unavailable"),
    503: (SERVICE_ERROR, "Service temporarily unavailable"),
    504: (SERVICE_ERROR, "Service temporarily unavailable"),
}


class LightspeedError(Exception):
    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Any = None,
        endpoint: Optional[str] = None,
        retry_after: Any = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        self.endpoint = endpoint
        self.retry_after = retry_after

    @property
    def tag(self) -> str:
        return self.code[len(ERROR_PREFIX):]

    def __repr__(self) -> str:
        return f"LightspeedError(code={self.code!r}, status_code={self.status_code}, endpoint={self.endpoint!r})"


def is_lightspeed_error(error: Any) -> bool:
    code = getattr(error, "code", None)
    return isinstance(code, str) and code.startswith(ERROR_PREFIX)


def make_error(
    tag_suffix: str,
    message: str,
    status_code: int = 500,
    details: Any = None,
    endpoint: Optional[str] = None,
) -> LightspeedError:
    return LightspeedError(f"{ERROR_PREFIX}{tag_suffix}", message, status_code, details, endpoint)


def _response_body(response) -> Any:
    try:
        return response.json()
    except (ValueError, AttributeError):
        return getattr(response, "text", None)


def _upstream_message(raw_error: Any) -> Optional[str]:
    message = str(raw_error) if raw_error is not None else ""
    return message or None


def classify(raw_error: Any, endpoint: Optional[str] = None) -> LightspeedError:
    """
    Turn any failure of a Lightspeed call into a LightspeedError.

    Already-classified errors come back as the same object. Errors with an HTTP
    response are tagged by status code; everything else is a network error.
    """
    if is_lightspeed_error(raw_error):
        return raw_error

    response = getattr(raw_error, "response", None)
    if response is not None:
        status_code = response.status_code
        details = _response_body(response)
        tag, message = _STATUS_TAGS.get(status_code, (API_ERROR, None))
        if tag == API_ERROR:
            message = _upstream_message(raw_error) or "Unknown API error"
        error = make_error(tag, message, status_code, details, endpoint)
        if tag == RATE_LIMITED:
            error.retry_after = response.headers.get("retry-after") or DEFAULT_RETRY_AFTER
    else:
        error = make_error(
            NETWORK_ERROR,
            _upstream_message(raw_error) or "Network error occurred",
            500,
            raw_error,
            endpoint,
        )

    logger.warning(
        "lightspeed_error_classified",
        code=error.code,
        message=error.message,
        status_code=error.status_code,
        endpoint=error.endpoint,
        details=error.details if not isinstance(error.details, BaseException) else repr(error.details),
    )
    return error


async def with_lightspeed_error_handling(
    operation: Callable[[], Awaitable[T]],
    endpoint: Optional[str] = None,
) -> T:
    try:
        return await operation()
    except Exception as exc:
        error = classify(exc, endpoint)
        if error is exc:
            raise
        raise error from exc
