from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import UTC, datetime
from threading import Lock


@dataclass
class ServiceCallStats:
    calls: int = 0
    duration_ms_total: float = 0.0
    duration_ms_max: float = 0.0
    failures: Counter[str] = field(default_factory=Counter)
    last_failure_at: str | None = None

    @property
    def error_count(self) -> int:
        return sum(self.failures.values())


class CallStatsStore:
    """Outbound call counters per external service, with failures split by reason code."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._since = datetime.now(UTC).isoformat()
        self._by_service: dict[str, ServiceCallStats] = {}

    def record(self, service: str, *, duration_ms: float, reason_code: str | None = None) -> None:
        """Count one call; a non-None `reason_code` marks it as failed."""
        key = service.strip() or "unknown"
        elapsed = max(float(duration_ms), 0.0)

        with self._lock:
            stats = self._by_service.get(key)
            if stats is None:
                stats = self._by_service[key] = ServiceCallStats()
            stats.calls += 1
            stats.duration_ms_total += elapsed
            stats.duration_ms_max = max(stats.duration_ms_max, elapsed)
            if reason_code is not None:
                stats.failures[reason_code] += 1
                stats.last_failure_at = datetime.now(UTC).isoformat()

    def call_count(self, service: str | None = None) -> int:
        with self._lock:
            if service is not None:
                stats = self._by_service.get(service)
                return stats.calls if stats is not None else 0
            return sum(s.calls for s in self._by_service.values())

    def snapshot(self) -> dict[str, object]:
        with self._lock:
            services = {
                name: {
                    "call_count": stats.calls,
                    "error_count": stats.error_count,
                    "errors_by_reason": dict(sorted(stats.failures.items())),
                    "avg_duration_ms": round(stats.duration_ms_total / stats.calls, 3) if stats.calls else 0.0,
                    "max_duration_ms": round(stats.duration_ms_max, 3),
                    "last_failure_at": stats.last_failure_at,
                }
                for name, stats in sorted(self._by_service.items())
            }
            return {
                "since": self._since,
                "total_calls": sum(s["call_count"] for s in services.values()),
                "total_errors": sum(s["error_count"] for s in services.values()),
                "services": services,
            }

    def reset(self) -> None:
        with self._lock:
            self._since = datetime.now(UTC).isoformat()
            self._by_service = {}


CALL_STATS = CallStatsStore()


def record_call(service: str, *, duration_ms: float, reason_code: str | None = None) -> None:
    CALL_STATS.record(service, duration_ms=duration_ms, reason_code=reason_code)


def call_stats_snapshot() -> dict[str, object]:
    return CALL_STATS.snapshot()


def reset_call_stats() -> None:
    CALL_STATS.reset()
