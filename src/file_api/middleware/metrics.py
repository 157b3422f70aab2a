"""In-process metrics registry and the RequestMetrics middleware."""

from __future__ import annotations

import math
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from file_api._types import Clock, Handler
from file_api.component import Component
from file_api.context import RequestContext
from file_api.exceptions import AppError
from file_api.response import Response

DEFAULT_MAX_POINTS = 1000


class MetricKind(str, Enum):
    COUNTER = "counter"
    GAUGE = "gauge"
    HISTOGRAM = "histogram"


@dataclass(frozen=True)
class MetricPoint:
    timestamp: float
    value: float
    labels: dict[str, str] = field(default_factory=dict)


@dataclass
class MetricSeries:
    name: str
    kind: MetricKind
    points: deque[MetricPoint]


def _percentile(sorted_values: list[float], p: float) -> float:
    index = min(math.floor(len(sorted_values) * p), len(sorted_values) - 1)
    return sorted_values[index]


def summarize(kind: MetricKind, values: list[float]) -> dict[str, Any]:
    """Summary statistics for a non-empty value sequence."""
    n = len(values)
    total = sum(values)

    if kind is MetricKind.COUNTER:
        return {"type": kind.value, "total": total, "count": n}

    if kind is MetricKind.GAUGE:
        return {
            "type": kind.value,
            "current": values[-1],
            "min": min(values),
            "max": max(values),
            "avg": total / n,
        }

    ordered = sorted(values)
    return {
        "type": kind.value,
        "count": n,
        "sum": total,
        "min": ordered[0],
        "max": ordered[-1],
        "avg": total / n,
        "p50": _percentile(ordered, 0.50),
        "p95": _percentile(ordered, 0.95),
        "p99": _percentile(ordered, 0.99),
    }


class MetricsRegistry:
    """Named series of timestamped points, each bounded to ``max_points``.

    A series keeps the kind it was first recorded with; later records under
    another kind are appended to the existing series unchanged.
    """

    def __init__(self, max_points: int = DEFAULT_MAX_POINTS, clock: Clock = time.time) -> None:
        self._max_points = max_points
        self._clock = clock
        self._series: dict[str, MetricSeries] = {}
        self._lock = threading.Lock()

    def record(
        self,
        name: str,
        value: float,
        kind: MetricKind,
        labels: dict[str, str] | None = None,
    ) -> None:
        point = MetricPoint(timestamp=self._clock(), value=value, labels=dict(labels or {}))
        with self._lock:
            series = self._series.get(name)
            if series is None:
                series = MetricSeries(
                    name=name, kind=kind, points=deque(maxlen=self._max_points)
                )
                self._series[name] = series
            series.points.append(point)

    def record_counter(
        self, name: str, value: float = 1, labels: dict[str, str] | None = None
    ) -> None:
        self.record(name, value, MetricKind.COUNTER, labels)

    def record_gauge(
        self, name: str, value: float, labels: dict[str, str] | None = None
    ) -> None:
        self.record(name, value, MetricKind.GAUGE, labels)

    def record_histogram(
        self, name: str, value: float, labels: dict[str, str] | None = None
    ) -> None:
        self.record(name, value, MetricKind.HISTOGRAM, labels)

    def get(self, name: str) -> MetricSeries | None:
        with self._lock:
            series = self._series.get(name)
            if series is None:
                return None
            return MetricSeries(series.name, series.kind, deque(series.points))

    def summary(self) -> dict[str, dict[str, Any]]:
        with self._lock:
            snapshot = [
                (s.name, s.kind, [p.value for p in s.points]) for s in self._series.values()
            ]
        return {name: summarize(kind, values) for name, kind, values in snapshot if values}

    def clear(self) -> None:
        with self._lock:
            self._series.clear()


class RequestMetrics(Component):
    """Records request count, latency and status per request.

    An ``AppError`` escaping the wrapped handler is recorded with its own
    status; any other exception counts as a 500.
    """

    def __init__(self, registry: MetricsRegistry) -> None:
        self._registry = registry

    def _record(self, ctx: RequestContext, status: int, duration_ms: float) -> None:
        labels = {"path": ctx.path, "method": ctx.method}
        status_text = str(status)

        self._registry.record_counter("http_requests_total", 1, labels)
        self._registry.record_histogram("http_request_duration_ms", duration_ms, labels)
        self._registry.record_counter(
            "http_response_status_total", 1, {**labels, "status": status_text}
        )
        if status < 400:
            self._registry.record_counter("http_requests_success_total", 1, labels)
        else:
            self._registry.record_counter(
                "http_requests_error_total", 1, {**labels, "status": status_text}
            )

    async def dispatch(self, ctx: RequestContext, call_next: Handler) -> Response:
        start = time.perf_counter()
        try:
            response = await call_next(ctx)
        except AppError as exc:
            self._record(ctx, exc.status_code, (time.perf_counter() - start) * 1000)
            raise
        except Exception:
            self._record(ctx, 500, (time.perf_counter() - start) * 1000)
            raise

        self._record(ctx, response.status_code, (time.perf_counter() - start) * 1000)
        return response
