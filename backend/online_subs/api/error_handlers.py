"""Error Handlers - turn raised errors into the JSON error envelope.

Invariants:
    - SubsError keeps its own http_status; client-side kinds (< 500) log at WARNING
    - Malformed bodies or query params answer 400 VALIDATION_ERROR with one entry per field
    - Anything unclassified answers 500 INTERNAL_ERROR with a fixed message, traceback only in logs

Design Decisions:
    - Routes raise and never build error responses; these handlers are the single exit
    - Registration lives here so main.py only wires the app together
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from online_subs.core.errors import SubsError, ErrorSeverity

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Install the SubsError, validation and fallback handlers."""
    _register_subs_error_handler(app)
    _register_validation_error_handler(app)
    _register_generic_error_handler(app)


def _register_subs_error_handler(app: FastAPI) -> None:
    """Map SubsError to its envelope and status."""

    @app.exception_handler(SubsError)
    async def subs_error_handler(request: Request, exc: SubsError):
        """Log at a level matching the status, then render to_response()."""
        log = logger.warning if exc.http_status < 500 else logger.error
        log(
            f"SubsError: {exc.message}",
            extra={"error_code": exc.code, "path": request.url.path},
        )
        return JSONResponse(
            status_code=exc.http_status, content=exc.to_response(),
        )


def _register_validation_error_handler(app: FastAPI) -> None:
    """Answer request validation failures with 400 instead of 422."""

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError,
    ):
        logger.warning(
            f"Validation error on {request.url.path}: {exc.errors()}",
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_build_validation_error_response(exc),
        )


def _register_generic_error_handler(app: FastAPI) -> None:
    """Last resort for unclassified exceptions."""

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        """The client sees a fixed message; the traceback goes to the log."""
        logger.error(
            f"Unhandled exception on {request.url.path}: {exc}",
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {
                    "code": "INTERNAL_ERROR",
                    "message": "An unexpected error occurred",
                    "category": "internal",
                    "severity": ErrorSeverity.CRITICAL.value,
                },
            },
        )


def _build_validation_error_response(exc: RequestValidationError) -> dict:
    """Flatten pydantic error locations into dotted field names."""
    return {
        "error": {
            "code": "VALIDATION_ERROR",
            "message": "Invalid request data",
            "category": "validation",
            "severity": ErrorSeverity.ERROR.value,
            "details": [
                {
                    "field": ".".join(str(loc) for loc in e["loc"]),
                    "message": e["msg"],
                    "type": e["type"],
                }
                for e in exc.errors()
            ],
        },
    }
