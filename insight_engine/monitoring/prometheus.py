from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response


@dataclass(frozen=True)
class HttpMetrics:
    request_count: Counter
    request_latency: Histogram


@dataclass(frozen=True)
class QueryMetrics:
    executions: Counter
    execution_latency: Histogram
    cache_lookups: Counter
    pool_acquisitions: Counter
    analytics_runs: Counter


_HTTP_METRICS: Dict[str, HttpMetrics] = {}
_QUERY_METRICS: Dict[str, QueryMetrics] = {}


def _http_metrics(service_name: str) -> HttpMetrics:
    metrics = _HTTP_METRICS.get(service_name)
    if metrics is None:
        metrics = HttpMetrics(
            request_count=Counter(
                f"{service_name}_http_requests_total",
                "Total HTTP requests",
                ["method", "path", "status"],
            ),
            request_latency=Histogram(
                f"{service_name}_http_request_latency_seconds",
                "HTTP request latency in seconds",
                ["method", "path"],
            ),
        )
        _HTTP_METRICS[service_name] = metrics
    return metrics


def query_metrics(service_name: str = "insight_engine") -> QueryMetrics:
    """Process-wide query pipeline metrics, registered once per service name."""
    metrics = _QUERY_METRICS.get(service_name)
    if metrics is None:
        metrics = QueryMetrics(
            executions=Counter(
                f"{service_name}_query_executions_total",
                "Statements executed against a connection",
                ["dialect", "outcome"],
            ),
            execution_latency=Histogram(
                f"{service_name}_query_execution_seconds",
                "Statement execution latency in seconds",
                ["dialect"],
            ),
            cache_lookups=Counter(
                f"{service_name}_cache_lookups_total",
                "Result cache lookups",
                ["result"],
            ),
            pool_acquisitions=Counter(
                f"{service_name}_pool_acquisitions_total",
                "Connection checkouts from the pool registry",
                ["outcome"],
            ),
            analytics_runs=Counter(
                f"{service_name}_analytics_runs_total",
                "Analytics executions during result augmentation",
                ["analytic", "outcome"],
            ),
        )
        _QUERY_METRICS[service_name] = metrics
    return metrics


def _resolve_path(request: Any) -> str:
    route = getattr(request, "scope", {}).get("route")
    path = getattr(route, "path", None)
    return path or request.url.path


class PrometheusMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, *, service_name: str) -> None:
        super().__init__(app)
        self._metrics = _http_metrics(service_name)

    async def dispatch(self, request: Any, call_next) -> Any:
        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            path = _resolve_path(request)
            duration = time.perf_counter() - start
            self._metrics.request_count.labels(request.method, path, status_code).inc()
            self._metrics.request_latency.labels(request.method, path).observe(duration)


def metrics_response() -> Response:
    payload = generate_latest()
    return Response(payload, media_type=CONTENT_TYPE_LATEST)
