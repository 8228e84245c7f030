from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from api.schemas.responses import ErrorType, error_response
from core.logging import get_api_logger_safe, get_error_logger_safe
from core.utils.exceptions import KiteGatewayException

logger = get_api_logger_safe("api.middleware.error_handling")
error_logger = get_error_logger_safe("api.middleware.error_handling")


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Global error handling middleware"""

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            error_logger.error(
                "Unhandled API exception",
                path=request.url.path,
                method=request.method,
                error=str(e),
                exc_info=True
            )
            return error_response(ErrorType.INTERNAL, "Internal server error", 500)


async def gateway_exception_handler(request: Request, exc: KiteGatewayException):
    log = logger.warning if exc.status_code < 500 else error_logger.error
    log("Request failed",
        path=request.url.path,
        method=request.method,
        error_type=exc.error_type,
        error=exc.message,
        details=exc.details)
    return error_response(ErrorType(exc.error_type), exc.message, exc.status_code)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Missing or malformed form/query fields."""
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        field = first.get("loc", ["", ""])[-1]
        if first.get("type") == "missing":
            message = f"{field} is required"
        else:
            message = f"{field}: {first.get('msg', 'invalid value')}"
    logger.warning("Request validation failed", path=request.url.path, message=message)
    return error_response(ErrorType.INPUT, message, 400)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 405:
        return error_response(
            ErrorType.METHOD_NOT_ALLOWED,
            f"Method {request.method} not allowed",
            405,
        )
    if exc.status_code == 404:
        return error_response(ErrorType.NOT_FOUND, "Not found", 404)
    error_type = ErrorType.INPUT if exc.status_code < 500 else ErrorType.INTERNAL
    return error_response(error_type, str(exc.detail), exc.status_code)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(KiteGatewayException, gateway_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
