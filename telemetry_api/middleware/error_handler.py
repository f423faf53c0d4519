"""Structured error responses.

All error bodies share one shape::

    {"error": ..., "message": ..., "correlation_id": ..., "path": ...}

plus error-specific fields (``errors`` for validation, ``retry_after_seconds``
for rate limiting). Internal exception text is logged, never returned.
"""
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
import structlog
from .correlation import get_correlation_id
from ..errors import StorageUnavailable

log = structlog.get_logger()


def problem_response(
    request: Request, status_code: int, error: str, message: str, headers=None, **extra
) -> JSONResponse:
    content = {
        "error": error,
        "message": message,
        **extra,
        "correlation_id": get_correlation_id(),
        "path": str(request.url.path),
    }
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def _field_path(loc) -> str:
    parts = [p for p in loc if p not in ("body", "query")]
    path = ""
    for p in parts:
        path += f"[{p}]" if isinstance(p, int) else (f".{p}" if path else str(p))
    return path or "body"


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report undecodable input (wrong types, bad dates) as a 400 with field paths."""
    errors = [
        {"field": _field_path(err.get("loc", ())), "message": err.get("msg", "Invalid value")}
        for err in exc.errors()
    ]
    log.warning("request.invalid", errors=errors)
    return problem_response(request, 400, "ValidationError", "Invalid payload", errors=errors)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Outermost error boundary; normalizes faults into problem responses."""

    async def dispatch(self, request: Request, call_next):
        try:
            response = await call_next(request)
            return response
        except StorageUnavailable as exc:
            log.error(
                "storage.unavailable",
                error=str(exc),
                cause=repr(exc.__cause__) if exc.__cause__ else None,
                path=request.url.path,
            )
            return problem_response(
                request, 500, "StorageUnavailable", "Storage is temporarily unavailable"
            )
        except Exception as exc:
            log.error(
                "unhandled.exception",
                error=str(exc),
                error_type=exc.__class__.__name__,
                path=request.url.path,
                exc_info=True,
            )
            return problem_response(
                request, 500, "InternalServerError", "An unexpected error occurred"
            )
