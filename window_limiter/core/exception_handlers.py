"""Exception handlers turning limiter errors into HTTP responses.

Design:
- RateLimitExceededError -> configured status (429) with the rendered error
  template or the plain-text message, plus quota/Retry-After headers
- StoreUnavailableError -> 503 JSON (only reached with the "raise" policy)
- Other AppError subclasses -> 400 JSON
- Unexpected Exception -> generic 500 (opt-in safety net)
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse, Response

from window_limiter.core.config import LimiterSettings, get_settings
from window_limiter.core.errors import AppError, RateLimitExceededError, StoreUnavailableError

logger = logging.getLogger(__name__)


def _limiter_settings(request: Request) -> LimiterSettings:
    limiter = getattr(request.app.state, "rate_limiter", None)
    if limiter is not None:
        return limiter.config
    return get_settings().limiter


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceededError) -> Response:
    """Render a denial as status code + body.

    The body is the configured ``error_template`` formatted with
    ``requests``, ``seconds`` and ``try_again``, or the default message
    ``"Rate limit exceeded (<requests> requests in <seconds> seconds).
    Try again in <try_again> seconds."``.

    Args:
        request: FastAPI request object.
        exc: Error carrying the ``Exceeded`` outcome and response headers.

    Returns:
        Response with the configured status code and media type.
    """
    config = _limiter_settings(request)

    if config.error_template:
        body = config.error_template.format(**exc.outcome.locals)
        media_type = config.error_media_type
    else:
        body = exc.outcome.message
        media_type = "text/plain"

    return Response(
        content=body,
        status_code=config.error_status_code,
        media_type=media_type,
        headers=exc.headers,
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle limiter errors with a consistent JSON format.

    - StoreUnavailableError -> 503 Service Unavailable
    - ValidationAppError and others -> 400 Bad Request

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with appropriate status code and error details.
    """
    status_code = 400
    if isinstance(exc, StoreUnavailableError):
        status_code = 503

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
        },
    )

    error_content = {
        "code": exc.code,
        "message": exc.message,
    }
    if exc.details:
        error_content["details"] = exc.details

    return JSONResponse(
        status_code=status_code,
        content={"error": error_content},
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs detailed information while returning a generic message, so no
    stack traces reach the client.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
            }
        },
    )


def setup_exception_handlers(app, *, catch_all: bool = False) -> None:
    """Register the limiter's exception handlers with a FastAPI app.

    Only limiter errors are handled by default. The generic 500 fallback
    replaces any ``Exception`` handler the host app registered, so it is
    installed only on request.

    Args:
        app: FastAPI application instance.
        catch_all: Also register ``general_exception_handler`` for ``Exception``.
    """
    app.exception_handler(RateLimitExceededError)(rate_limit_exceeded_handler)
    app.exception_handler(AppError)(app_error_handler)
    if catch_all:
        app.exception_handler(Exception)(general_exception_handler)
