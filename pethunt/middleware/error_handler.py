"""
Error handlers.

Formats GameError, request validation failures, HTTP exceptions and
anything unhandled into the same JSON envelope:

    {"error": {code, message, details, recoverable, recovery_hint,
               error_id, timestamp}}
"""
import traceback
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from pethunt.core.errors import GameError, ErrorCode

logger = logging.getLogger("pethunt.errors")


HTTP_STATUS_ERROR_CODES = {
    400: ErrorCode.VALIDATION_ERROR,
    403: ErrorCode.FORBIDDEN,
    404: ErrorCode.NOT_FOUND,
    405: ErrorCode.VALIDATION_ERROR,
    409: ErrorCode.CONFLICT,
    500: ErrorCode.UNKNOWN,
}


def _generate_error_id() -> str:
    """Short id for correlating a response with its log line."""
    return str(uuid.uuid4())[:8]


def _envelope(error: Dict[str, Any], error_id: str) -> Dict[str, Any]:
    error["error_id"] = error_id
    error["timestamp"] = datetime.now(timezone.utc).isoformat()
    return {"error": error}


def setup_error_handlers(app: FastAPI, debug: bool = False):
    """
    Setup all error handlers for the FastAPI application.

    Call this function after creating the FastAPI app to register
    exception handlers for GameError and standard exceptions.
    """

    @app.exception_handler(GameError)
    async def game_error_handler(request: Request, exc: GameError):
        """Handle GameError exceptions."""
        error_id = _generate_error_id()
        log = logger.error if exc.http_status >= 500 else logger.warning
        log(
            "[%s] %s %s -> %s: %s",
            error_id, request.method, request.url.path, exc.code.value, exc.message,
            extra={"error_id": error_id, "error_code": exc.code.value},
        )

        return JSONResponse(
            status_code=exc.http_status,
            content=_envelope(exc.to_dict()["error"], error_id),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        """Handle Pydantic validation errors from request parsing."""
        errors = []
        for error in exc.errors():
            field = " -> ".join(str(loc) for loc in error.get("loc", []))
            errors.append({
                "field": field,
                "message": error.get("msg", "Invalid value"),
                "type": error.get("type", "validation_error"),
            })

        error_id = _generate_error_id()
        logger.info("[%s] Validation failed on %s: %s", error_id, request.url.path, errors)

        return JSONResponse(
            status_code=422,
            content=_envelope(
                {
                    "code": ErrorCode.VALIDATION_ERROR.value,
                    "message": "Request validation failed",
                    "details": {"errors": errors},
                    "recoverable": True,
                    "recovery_hint": "Check the request data and correct any invalid fields",
                },
                error_id,
            ),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle standard HTTP exceptions."""
        error_code = HTTP_STATUS_ERROR_CODES.get(exc.status_code, ErrorCode.UNKNOWN)

        return JSONResponse(
            status_code=exc.status_code,
            content=_envelope(
                {
                    "code": error_code.value,
                    "message": str(exc.detail) if exc.detail else "An error occurred",
                    "details": {},
                    "recoverable": exc.status_code < 500,
                    "recovery_hint": None,
                },
                _generate_error_id(),
            ),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Handle all unhandled exceptions."""
        error_id = _generate_error_id()
        logger.error(
            "[%s] Unhandled exception on %s %s: %s: %s",
            error_id, request.method, request.url.path, type(exc).__name__, exc,
            extra={"error_id": error_id},
            exc_info=True,
        )

        error = {
            "code": ErrorCode.UNKNOWN.value,
            "message": "An unexpected error occurred",
            "details": {},
            "recoverable": False,
            "recovery_hint": "Please try again or contact support",
        }
        if debug:
            error["debug"] = {
                "exception_type": type(exc).__name__,
                "exception_message": str(exc),
                "traceback": traceback.format_exc().split("\n"),
            }

        return JSONResponse(status_code=500, content=_envelope(error, error_id))

    return app
