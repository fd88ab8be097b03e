"""FastAPI exception handlers.

The callback pipeline converts its own rejections into responses; these
handlers cover errors raised outside it (dependency construction, the
mock provider route) so the provider always gets the same JSON shape:
``{"success": false, "error": "..."}``.

Usage:
    from paygate_api.exceptions import register_exception_handlers
    register_exception_handlers(app)
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.status import HTTP_400_BAD_REQUEST, HTTP_500_INTERNAL_SERVER_ERROR

from paygate.models.errors import ERROR_MESSAGES, CallbackError, ErrorCode
from paygate.utils.logging import get_logger

logger = get_logger(__name__)


async def callback_error_handler(request: Request, exc: CallbackError) -> JSONResponse:
    """Convert a CallbackError to its status code and JSON body."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.message},
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Answer invalid query or path parameters with the callback error shape."""
    logger.warning(
        "Request validation failed on %s %s: %s",
        request.method,
        request.url.path,
        exc.errors(),
    )
    return JSONResponse(
        status_code=HTTP_400_BAD_REQUEST,
        content={"success": False, "error": ERROR_MESSAGES[ErrorCode.INVALID_PARAMS]},
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Answer uncaught exceptions with a generic 500.

    Internal details are logged, never returned.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "error": ERROR_MESSAGES[ErrorCode.INTERNAL_ERROR]},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(CallbackError, callback_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, generic_exception_handler)
