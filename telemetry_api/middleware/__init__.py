"""HTTP middleware for the telemetry API."""
from .correlation import CorrelationMiddleware, CORRELATION_HEADER, get_correlation_id
from .error_handler import ErrorHandlerMiddleware, problem_response, request_validation_handler
from .metrics import MetricsMiddleware
from .rate_limit import RateLimitMiddleware
from .request_guard import RequestGuardMiddleware

__all__ = [
    "CorrelationMiddleware",
    "CORRELATION_HEADER",
    "get_correlation_id",
    "ErrorHandlerMiddleware",
    "problem_response",
    "request_validation_handler",
    "MetricsMiddleware",
    "RateLimitMiddleware",
    "RequestGuardMiddleware",
]
