"""
Prometheus metrics for the telemetry service.
"""
from prometheus_client import Counter, Histogram, Gauge, Info, CollectorRegistry
import psutil
import os


class Metrics:
    """
    Centralized metrics for the telemetry service.

    Each instance owns its registry so several applications (tests) can
    coexist in one process.
    """

    def __init__(self, service_name: str = "telemetry-api", version: str = "0.1.0", registry=None):
        self.service_name = service_name
        self.version = version
        self.registry = registry or CollectorRegistry()

        # HTTP Metrics
        self.http_requests_total = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["service", "method", "path", "status"],
            registry=self.registry,
        )

        self.http_request_duration = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["service", "method", "path"],
            registry=self.registry,
        )

        self.http_requests_active = Gauge(
            "http_requests_active",
            "Number of active HTTP requests",
            ["service"],
            registry=self.registry,
        )
        self.http_requests_active.labels(service=service_name).set(0)

        # Application Info
        self.app_info = Info(
            "app",
            "Application information",
            registry=self.registry,
        )
        self.app_info.info({"service": service_name, "version": version})

        self.app_up = Gauge(
            "app_up",
            "Application up status (1=up, 0=down)",
            ["service", "version"],
            registry=self.registry,
        )
        self.app_up.labels(service=service_name, version=version).set(1)

        # Business Metrics - telemetry specific
        self.events_ingested_total = Counter(
            "telemetry_events_ingested_total",
            "Total telemetry events persisted",
            ["source"],
            registry=self.registry,
        )

        self.rate_limit_rejections_total = Counter(
            "telemetry_rate_limit_rejections_total",
            "Requests refused by the rate limiter",
            registry=self.registry,
        )

        # System Metrics
        self._setup_process_metrics()

    def _setup_process_metrics(self):
        """Set up process-level metrics using psutil."""
        self.process_memory_bytes = Gauge(
            "process_resident_memory_bytes",
            "Resident memory size in bytes",
            ["service"],
            registry=self.registry,
        )

        self.process_open_fds = Gauge(
            "process_open_fds",
            "Number of open file descriptors",
            ["service"],
            registry=self.registry,
        )

        self.update_system_metrics()

    def update_system_metrics(self):
        """Update system metrics from psutil."""
        process = psutil.Process(os.getpid())

        memory_info = process.memory_info()
        self.process_memory_bytes.labels(service=self.service_name).set(memory_info.rss)

        try:
            num_fds = process.num_fds()
            self.process_open_fds.labels(service=self.service_name).set(num_fds)
        except AttributeError:
            # num_fds() not available on all platforms
            pass

    def record_event_ingested(self, source: str):
        """Record one persisted telemetry event."""
        self.events_ingested_total.labels(source=source).inc()

    def record_rate_limited(self):
        """Record a request refused by the rate limiter."""
        self.rate_limit_rejections_total.inc()

    def mark_down(self):
        self.app_up.labels(service=self.service_name, version=self.version).set(0)
