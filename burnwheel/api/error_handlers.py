"""Error Handlers — global exception handlers for the Burnwheel API.

Invariants:
    - BurnwheelError → structured JSON with code, message, severity, http_status
    - RequestValidationError → 400 VALIDATION_ERROR with field-level details
    - Exception (catch-all) → 500, never leaks internal details

Design Decisions:
    - Three-layer handler: domain, validation, catch-all (ADR: uniform error shape)
    - Admission rejections are expected traffic: logged at WARNING, not ERROR
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from burnwheel.core.errors import BurnwheelError, ErrorSeverity

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""
    _register_domain_error_handler(app)
    _register_validation_error_handler(app)
    _register_generic_error_handler(app)


def _register_domain_error_handler(app: FastAPI) -> None:

    @app.exception_handler(BurnwheelError)
    async def burnwheel_error_handler(request: Request, exc: BurnwheelError):
        level = (
            logging.WARNING if exc.http_status < 500 else logging.ERROR
        )
        logger.log(
            level,
            f"BurnwheelError: {exc.message}",
            extra={
                "error_code": exc.code,
                "path": request.url.path,
                "reference": exc.context.reference,
            },
        )
        headers = None
        if exc.context.retry_after_ms:
            headers = {"Retry-After": str(max(1, exc.context.retry_after_ms // 1000))}
        return JSONResponse(
            status_code=exc.http_status,
            content=exc.to_response(),
            headers=headers,
        )


def _register_validation_error_handler(app: FastAPI) -> None:

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError,
    ):
        details = [
            {
                "field": _field_name(e["loc"]),
                "message": e["msg"],
                "type": e["type"],
            }
            for e in exc.errors()
        ]
        # Field names only: rejected bodies may carry payment references
        logger.warning(
            f"Validation error on {request.url.path}",
            extra={
                "path": request.url.path,
                "fields": [d["field"] for d in details],
            },
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_error_body(
                "VALIDATION_ERROR", "Invalid request data", "validation",
                ErrorSeverity.ERROR, details=details,
            ),
        )


def _register_generic_error_handler(app: FastAPI) -> None:

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        """Catch-all — never leaks internal details."""
        logger.error(
            f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}",
            exc_info=exc,
            extra={"path": request.url.path},
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body(
                "INTERNAL_ERROR", "An unexpected error occurred", "internal",
                ErrorSeverity.CRITICAL,
            ),
        )


def _field_name(loc: tuple) -> str:
    parts = [str(p) for p in loc]
    if len(parts) > 1 and parts[0] in ("body", "query", "header"):
        parts = parts[1:]
    return ".".join(parts)


def _error_body(
    code: str, message: str, category: str, severity: ErrorSeverity, **extra,
) -> dict:
    return {
        "error": {
            "code": code,
            "message": message,
            "category": category,
            "severity": severity.value,
            **extra,
        },
    }
