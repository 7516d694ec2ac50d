"""
Global Error Handler Middleware
================================

The single place where errors become HTTP responses. ClipShare exceptions
are mapped by their ErrorKind; framework errors are wrapped in the same
`{statusCode, message, success: false}` envelope.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from exceptions import ClipShareError, ErrorKind
from config import get_settings


logger = logging.getLogger(__name__)


# Map error kinds to HTTP status codes
ERROR_KIND_STATUS_MAP = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.AUTH: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.UPSTREAM: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for(error: ClipShareError) -> int:
    return ERROR_KIND_STATUS_MAP.get(error.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)


def error_envelope(status_code: int, message: str) -> dict:
    return {"statusCode": status_code, "message": message, "success": False}


async def error_handler_middleware(request: Request, call_next):
    """
    Global error handling middleware.

    Catches ClipShare exceptions and converts them to appropriate
    HTTP responses with the error envelope.

    Args:
        request: The incoming request
        call_next: The next middleware/route handler

    Returns:
        Response or JSONResponse with error details
    """
    try:
        response = await call_next(request)
        return response
    except ClipShareError as e:
        status_code = status_for(e)
        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {e.message}")
        else:
            logger.info(f"{request.method} {request.url.path} rejected ({status_code}): {e.message}")
        return JSONResponse(status_code=status_code, content=e.to_dict(status_code))
    except Exception as e:
        # Unexpected errors - hide details in production
        logger.exception(f"Unexpected error on {request.method} {request.url.path}")
        settings = get_settings()
        message = f"An unexpected error occurred: {e}" if settings.api_debug else "An unexpected error occurred"
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_envelope(status.HTTP_500_INTERNAL_SERVER_ERROR, message)
        )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_envelope(exc.status_code, str(exc.detail)),
        headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = f"Invalid request: {location} {first.get('msg', '')}".strip()
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_envelope(status.HTTP_400_BAD_REQUEST, message)
    )


def setup_error_handling(app: FastAPI) -> None:
    """
    Register the error middleware and framework exception handlers.

    Args:
        app: The FastAPI application instance
    """
    app.middleware("http")(error_handler_middleware)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
