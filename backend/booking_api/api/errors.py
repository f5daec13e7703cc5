"""
Exception handlers rendering the failure envelope:

    {"success": false, "error": {"message": ..., "details": ...}}
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from booking_api.core.exceptions import BookingAPIError
from booking_api.core.logging import get_logger

logger = get_logger(__name__)


def error_response(status_code: int, message: str, details=None, headers=None) -> JSONResponse:
    error = {"message": message}
    if details:
        error["details"] = details
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error},
        headers=headers,
    )


async def booking_api_error_handler(request: Request, exc: BookingAPIError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return error_response(exc.status_code, exc.message, exc.details, headers)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    field_errors: dict[str, list[str]] = {}
    for error in exc.errors():
        # drop the "body"/"query"/"path" prefix
        location = ".".join(str(part) for part in error["loc"][1:]) or str(error["loc"][0])
        field_errors.setdefault(location, []).append(error["msg"])
    return error_response(
        status.HTTP_400_BAD_REQUEST,
        "Validation failed",
        {"field_errors": field_errors},
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return error_response(exc.status_code, message, headers=getattr(exc, "headers", None))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", error=str(exc))
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BookingAPIError, booking_api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
