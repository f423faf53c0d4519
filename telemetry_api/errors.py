"""Service error taxonomy.

Validation failures are not exceptions: `validate_batch` returns a
`ValidationResult` and callers branch on it. The types here cover the
failures that escape a service call.
"""


class TelemetryError(Exception):
    """Base class for errors raised by the telemetry service."""


class StorageUnavailable(TelemetryError):
    """The store could not be reached or a transaction failed.

    Surfaced to clients as a generic HTTP 500; the original exception is kept
    as ``__cause__`` for server-side logs.
    """


class AdmissionDenied(TelemetryError):
    """A request was refused by the rate limiter."""

    def __init__(self, partition_key: str, retry_after: float):
        super().__init__(f"Rate limit exceeded for {partition_key}")
        self.partition_key = partition_key
        self.retry_after = retry_after


class InvalidQuery(TelemetryError):
    """A query parameter parsed but cannot be used as a filter."""

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message
