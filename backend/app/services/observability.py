from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from threading import Lock


@dataclass
class RouteStats:
    method: str
    path: str
    count: int = 0
    total_latency_ms: float = 0.0
    max_latency_ms: float = 0.0
    client_errors: int = 0
    server_errors: int = 0

    def record(self, duration_ms: float, status_code: int) -> None:
        self.count += 1
        self.total_latency_ms += duration_ms
        self.max_latency_ms = max(self.max_latency_ms, duration_ms)

        if 400 <= status_code <= 499:
            self.client_errors += 1
        elif status_code >= 500:
            self.server_errors += 1

    @property
    def avg_latency_ms(self) -> float:
        return self.total_latency_ms / self.count if self.count else 0.0


class ObservabilityTracker:
    """Per-route request counters plus a tally of scheduling failures by kind.

    Routes are keyed by their template (``/tank-assignments/{assignment_id}/start``)
    so ids in the URL do not fan out into separate series.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self.reset()

    def reset(self) -> None:
        with self._lock:
            self._started_at = datetime.utcnow()
            self._total_requests = 0
            self._routes: dict[tuple[str, str], RouteStats] = {}
            self._scheduling_errors: Counter[str] = Counter()

    def record(self, *, method: str, path: str, status_code: int, duration_ms: float) -> None:
        key = (method, path)
        with self._lock:
            route = self._routes.setdefault(key, RouteStats(method=method, path=path))
            route.record(duration_ms=duration_ms, status_code=status_code)
            self._total_requests += 1

    def record_scheduling_error(self, kind: str) -> None:
        with self._lock:
            self._scheduling_errors[kind] += 1

    def snapshot(self) -> dict[str, object]:
        with self._lock:
            now = datetime.utcnow()
            routes = [
                {
                    "method": route.method,
                    "path": route.path,
                    "count": route.count,
                    "avg_latency_ms": round(route.avg_latency_ms, 2),
                    "max_latency_ms": round(route.max_latency_ms, 2),
                    "client_errors": route.client_errors,
                    "server_errors": route.server_errors,
                }
                for route in sorted(self._routes.values(), key=lambda item: (item.path, item.method))
            ]

            return {
                "generated_at": now,
                "uptime_seconds": int((now - self._started_at).total_seconds()),
                "total_requests": self._total_requests,
                "scheduling_errors": dict(sorted(self._scheduling_errors.items())),
                "routes": routes,
            }


observability_tracker = ObservabilityTracker()
