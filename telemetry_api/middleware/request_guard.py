"""Request body size and JSON structure guard."""
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
import structlog
import orjson
from .error_handler import problem_response

log = structlog.get_logger()


class RequestGuardMiddleware(BaseHTTPMiddleware):
    """Rejects oversized bodies (413) and malformed JSON (400) before routing."""

    def __init__(self, app, max_bytes: int = 256 * 1024):
        super().__init__(app)
        self.max_bytes = max_bytes

    def _too_large(self, request: Request, size: int):
        log.warning("payload.too_large", size=size, max_size=self.max_bytes)
        return problem_response(
            request,
            413,
            "PayloadTooLarge",
            f"Request payload exceeds maximum size of {self.max_bytes} bytes",
            max_size=self.max_bytes,
            received_size=size,
        )

    async def dispatch(self, request: Request, call_next):
        if request.method not in ("POST", "PUT", "PATCH"):
            return await call_next(request)

        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > self.max_bytes:
            return self._too_large(request, int(content_length))

        if request.headers.get("content-type", "").startswith("application/json"):
            body = await request.body()
            if len(body) > self.max_bytes:
                return self._too_large(request, len(body))

            if body:
                try:
                    orjson.loads(body)
                except orjson.JSONDecodeError as e:
                    log.warning("invalid.json", error=str(e))
                    return problem_response(
                        request, 400, "InvalidJSON", "Request body is not valid JSON"
                    )

        return await call_next(request)
