"""
Liveness and readiness probes.
"""
import asyncio
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List
import time
import structlog
from .storage.base import TelemetryStore

logger = structlog.get_logger()

HEALTHY = "Healthy"
UNHEALTHY = "Unhealthy"


class HealthChecker:
    """
    Health checker for the telemetry service.

    Provides:
    - Liveness checks (is the process running?)
    - Readiness checks (can the store be reached?)

    Both return the same report shape: overall status plus one entry per
    check with its name, status, duration and optional error.
    """

    def __init__(
        self,
        store: TelemetryStore,
        timeout_seconds: float = 2.0,
        service_name: str = "telemetry-api",
        version: str = "0.1.0",
    ):
        self.store = store
        self.timeout_seconds = timeout_seconds
        self.service_name = service_name
        self.version = version

    def _report(self, checks: List[Dict[str, Any]]) -> Dict[str, Any]:
        overall = HEALTHY if all(c["status"] == HEALTHY for c in checks) else UNHEALTHY
        return {
            "status": overall,
            "service": self.service_name,
            "version": self.version,
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "checks": checks,
        }

    def liveness(self) -> Dict[str, Any]:
        """
        Liveness check - the process is up.

        Returns:
            dict: Report with a single always-healthy ``self`` check
        """
        return self._report([
            {"name": "self", "status": HEALTHY, "duration_ms": 0.0, "error": None}
        ])

    async def readiness(self) -> Dict[str, Any]:
        """
        Readiness check - the store answers a trivial round-trip in time.

        Returns:
            dict: Report with the ``storage`` check result
        """
        storage_check = await self._run_check("storage", self._check_storage)
        return self._report([storage_check])

    async def _check_storage(self) -> str | None:
        """Return None when reachable, otherwise the reason."""
        ok = await asyncio.wait_for(self.store.ping(), timeout=self.timeout_seconds)
        return None if ok else "Storage not reachable"

    async def _run_check(
        self, name: str, check: Callable[[], Awaitable[str | None]]
    ) -> Dict[str, Any]:
        start = time.perf_counter()
        try:
            error = await check()
        except asyncio.TimeoutError:
            error = f"Storage probe timed out after {self.timeout_seconds}s"
        except Exception as e:
            error = str(e) or type(e).__name__
        duration_ms = round((time.perf_counter() - start) * 1000, 2)

        if error is not None:
            logger.warning("health_check_failed", check=name, error=error)
        return {
            "name": name,
            "status": HEALTHY if error is None else UNHEALTHY,
            "duration_ms": duration_ms,
            "error": error,
        }
