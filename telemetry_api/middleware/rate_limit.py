"""Rate limiting middleware for the telemetry API."""
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
import math
import structlog
from .error_handler import problem_response
from ..errors import AdmissionDenied
from ..rate_limit import FixedWindowRateLimiter, UNKNOWN_PARTITION

log = structlog.get_logger()


def client_partition(request: Request) -> str:
    """Partition key for a request: the peer address, or a fixed fallback."""
    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_PARTITION


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Applies the fixed-window limiter to every path under ``path_prefix``.

    Refused requests get a 429 with a Retry-After hint and never reach
    validation or storage.
    """

    def __init__(self, app, limiter: FixedWindowRateLimiter, path_prefix: str = "/api/telemetry", metrics=None):
        super().__init__(app)
        self.limiter = limiter
        self.path_prefix = path_prefix
        self.metrics = metrics

    async def dispatch(self, request: Request, call_next):
        if not request.url.path.startswith(self.path_prefix):
            return await call_next(request)

        try:
            self.limiter.admit(client_partition(request))
        except AdmissionDenied as exc:
            if self.metrics is not None:
                self.metrics.record_rate_limited()
            retry_after = int(math.ceil(exc.retry_after))
            return problem_response(
                request,
                429,
                "TooManyRequests",
                "Rate limit exceeded. Retry later.",
                headers={"Retry-After": str(retry_after)},
                retry_after_seconds=retry_after,
            )

        return await call_next(request)
