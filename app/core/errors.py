"""
app/core/errors.py

Purpose: Map exceptions to the ErrorResponse envelope

- PlatewiseError subclasses carry their own status and code
- Storage outages (server selection, timeouts) become 503 DATABASE_ERROR
- Request validation errors keep pydantic's error list in `details`
- Anything else is a 500 that hides its message in production
"""

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from pymongo.errors import ConnectionFailure, ExecutionTimeout, PyMongoError, ServerSelectionTimeoutError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.exceptions import PlatewiseError
from app.core.logging import get_logger
from app.schemas.response import ErrorResponse
from app.core.config import settings

logger = get_logger(__name__)

_UNAVAILABLE_ERRORS = (ServerSelectionTimeoutError, ConnectionFailure, ExecutionTimeout)


def _error_response(status_code: int, message: str, code: str, details: Optional[Any] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(ErrorResponse(error=message, code=code, details=details))
    )


def _request_extra(request: Request) -> dict:
    return {"method": request.method, "url": str(request.url)}


def add_exception_handlers(app: FastAPI):
    """
    Registers exception handlers with the FastAPI app.
    """
    @app.exception_handler(PlatewiseError)
    async def platewise_exception_handler(request: Request, exc: PlatewiseError):
        if exc.status_code >= 500:
            logger.error(f"{exc.code}: {exc.message}", extra=_request_extra(request))
        return _error_response(exc.status_code, exc.message, exc.code, exc.details)

    @app.exception_handler(PyMongoError)
    async def storage_exception_handler(request: Request, exc: PyMongoError):
        """
        Storage errors the services did not translate themselves.
        """
        if isinstance(exc, _UNAVAILABLE_ERRORS):
            logger.error(f"Database unavailable: {str(exc)}", extra=_request_extra(request))
            return _error_response(503, "Database temporarily unavailable", "DATABASE_ERROR")

        logger.error(f"Database error: {str(exc)}", extra=_request_extra(request), exc_info=True)
        message = "A database error occurred" if settings.is_production else str(exc)
        return _error_response(500, message, "DATABASE_ERROR")

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """
        Handles standard HTTP exceptions (404, 405, ...).
        """
        return _error_response(exc.status_code, str(exc.detail), "HTTP_ERROR")

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return _error_response(422, "Input validation failed", "VALIDATION_ERROR", exc.errors())

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Catch-all for unhandled exceptions.
        """
        logger.error(
            f"Unhandled exception: {str(exc)}",
            extra={
                **_request_extra(request),
                "client": request.client.host if request.client else "unknown"
            },
            exc_info=True
        )

        message = "An internal error occurred. Please try again later." if settings.is_production else str(exc)
        return _error_response(500, message, "INTERNAL_ERROR")
