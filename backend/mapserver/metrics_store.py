from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import UTC, datetime
from threading import Lock

from .map_data_errors import REASON_CODES


@dataclass
class EndpointStats:
    requests: int = 0
    errors: int = 0
    total_ms: float = 0.0
    max_ms: float = 0.0

    def observe(self, duration_ms: float, *, error: bool) -> None:
        self.requests += 1
        self.errors += int(error)
        self.total_ms += duration_ms
        self.max_ms = max(self.max_ms, duration_ms)

    def as_dict(self) -> dict[str, float | int]:
        return {
            "request_count": self.requests,
            "error_count": self.errors,
            "total_duration_ms": round(self.total_ms, 3),
            "avg_duration_ms": round(self.total_ms / self.requests, 3) if self.requests else 0.0,
            "max_duration_ms": round(self.max_ms, 3),
        }


class MetricsStore:
    """In-process request metrics for the map server.

    Tracks per-endpoint timings and how often each typed per-request outcome
    (``raster_no_coverage``, ``route_unreachable``) was returned. Outcome names
    outside the known reason codes are counted under ``other``.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._since = datetime.now(UTC).isoformat()
        self._by_endpoint: dict[str, EndpointStats] = {}
        self._outcomes: Counter[str] = Counter()

    def record(self, endpoint: str, *, duration_ms: float, error: bool = False) -> None:
        key = endpoint.strip() or "unknown"
        with self._lock:
            self._by_endpoint.setdefault(key, EndpointStats()).observe(max(float(duration_ms), 0.0), error=error)

    def record_outcome(self, outcome: str) -> None:
        key = outcome if outcome in REASON_CODES else "other"
        with self._lock:
            self._outcomes[key] += 1

    def snapshot(self) -> dict[str, object]:
        with self._lock:
            stats = [(name, self._by_endpoint[name]) for name in sorted(self._by_endpoint)]
            return {
                "created_at": self._since,
                "total_requests": sum(s.requests for _, s in stats),
                "total_errors": sum(s.errors for _, s in stats),
                "endpoint_count": len(stats),
                "endpoints": {name: s.as_dict() for name, s in stats},
                "outcomes": dict(sorted(self._outcomes.items())),
            }

    def reset(self) -> None:
        with self._lock:
            self._since = datetime.now(UTC).isoformat()
            self._by_endpoint.clear()
            self._outcomes.clear()


METRICS = MetricsStore()


def record_request(endpoint: str, *, duration_ms: float, error: bool = False) -> None:
    METRICS.record(endpoint, duration_ms=duration_ms, error=error)


def record_outcome(outcome: str) -> None:
    METRICS.record_outcome(outcome)


def metrics_snapshot() -> dict[str, object]:
    return METRICS.snapshot()


def reset_metrics() -> None:
    METRICS.reset()
