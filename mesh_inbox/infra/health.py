"""
Health Checker - Readiness and Liveness Probes
=================================================

Aggregates async dependency checks for the health endpoint and the
``SYS.HEALTH`` command. The only hard dependency of the inbox is the
backing store, so the built-in check pings it.

A failing store never makes the health call itself fail: it is reported
as an unhealthy check and the aggregate degrades.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from mesh_inbox.core.exceptions import StorageError
from mesh_inbox.infra.telemetry import get_logger

if TYPE_CHECKING:
    from mesh_inbox.core.continuum_store import ContinuumStore

logger = get_logger(__name__)

class HealthStatus(StrEnum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"

@dataclass
class HealthCheck:
    """Result of a single health check."""

    name: str
    status: HealthStatus
    latency_ms: float = 0.0
    message: str = ""
    details: dict[str, Any] = field(default_factory=dict)

@dataclass
class SystemHealth:
    """Aggregate system health."""

    status: HealthStatus
    checks: list[HealthCheck]
    timestamp: float = field(default_factory=time.time)

    def get(self, name: str) -> HealthCheck | None:
        return next((c for c in self.checks if c.name == name), None)

class HealthChecker:
    """
    Aggregated health checker.

    Usage:
        checker = HealthChecker()
        checker.register("storage", storage_check(store))
        health = await checker.check()
    """

    def __init__(self, *, timeout_s: float = 5.0) -> None:
        self._checks: dict[str, Callable[[], Awaitable[HealthCheck]]] = {}
        self._timeout_s = timeout_s

    def register(self, name: str, check_fn: Callable[[], Awaitable[HealthCheck]]) -> None:
        """Register a health check function."""
        self._checks[name] = check_fn

    async def check(self) -> SystemHealth:
        """Run all health checks."""
        results = list(await asyncio.gather(
            *(self._run_check(name, fn) for name, fn in self._checks.items())
        ))

        statuses = [c.status for c in results]
        if HealthStatus.UNHEALTHY in statuses:
            overall = HealthStatus.UNHEALTHY
        elif HealthStatus.DEGRADED in statuses:
            overall = HealthStatus.DEGRADED
        else:
            overall = HealthStatus.HEALTHY

        return SystemHealth(status=overall, checks=results)

    async def _run_check(
        self, name: str, fn: Callable[[], Awaitable[HealthCheck]]
    ) -> HealthCheck:
        start = time.monotonic()
        try:
            result = await asyncio.wait_for(fn(), timeout=self._timeout_s)
            result.latency_ms = (time.monotonic() - start) * 1000
            return result
        except TimeoutError:
            return HealthCheck(
                name=name,
                status=HealthStatus.UNHEALTHY,
                latency_ms=(time.monotonic() - start) * 1000,
                message="Health check timed out",
            )
        except (StorageError, RuntimeError, OSError) as exc:
            logger.warning("health_check_failed", check=name, error=str(exc))
            return HealthCheck(
                name=name,
                status=HealthStatus.UNHEALTHY,
                latency_ms=(time.monotonic() - start) * 1000,
                message=str(exc),
            )

# ── Built-in Health Checks ────────────────────────────────────────

def storage_check(store: ContinuumStore) -> Callable[[], Awaitable[HealthCheck]]:
    """Build a check that pings the backing store."""

    async def check_storage() -> HealthCheck:
        ok = await store.ping()
        backend = type(getattr(store.backend, "backend", store.backend)).__name__
        return HealthCheck(
            name="storage",
            status=HealthStatus.HEALTHY if ok else HealthStatus.UNHEALTHY,
            message="" if ok else "PING returned a falsy reply",
            details={"backend": backend},
        )

    return check_storage
