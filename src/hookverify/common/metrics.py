"""Prometheus metrics for webhook verification."""

import os
import time

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
    multiprocess,
)
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Match
from starlette.types import ASGIApp

# === Counters ===

VERIFICATIONS_TOTAL = Counter(
    "hookverify_verifications_total",
    "Webhook signature verification outcomes",
    ["receiver", "outcome"],  # outcome: forward, or the rejection code
)

HTTP_REQUESTS_TOTAL = Counter(
    "hookverify_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

# === Histograms ===

HTTP_REQUEST_LATENCY = Histogram(
    "hookverify_http_request_latency_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)

UNMATCHED_ENDPOINT = "unmatched"


# === Helper Functions ===


def record_verification(receiver: str, outcome: str) -> None:
    """Record a verification outcome."""
    VERIFICATIONS_TOTAL.labels(receiver=receiver, outcome=outcome).inc()


def route_template(request: Request) -> str:
    """Return the path template of the route serving ``request``.

    Labels never carry the raw path; ids and unknown paths are caller-chosen.
    """
    route = request.scope.get("route")
    if getattr(route, "path", None):
        return route.path
    app = request.scope.get("app")
    for candidate in getattr(app, "routes", ()):
        match, _ = candidate.matches(request.scope)
        if match != Match.NONE:
            return getattr(candidate, "path", UNMATCHED_ENDPOINT) or UNMATCHED_ENDPOINT
    return UNMATCHED_ENDPOINT


def record_http_request(
    method: str,
    endpoint: str,
    status: int,
    latency: float,
) -> None:
    """Record an HTTP request."""
    HTTP_REQUESTS_TOTAL.labels(
        method=method,
        endpoint=endpoint,
        status=str(status),
    ).inc()
    HTTP_REQUEST_LATENCY.labels(
        method=method,
        endpoint=endpoint,
    ).observe(latency)


# === HTTP Endpoint ===


class MetricsMiddleware(BaseHTTPMiddleware):
    """HTTP request metrics middleware."""

    def __init__(self, app: ASGIApp, exclude_paths: list[str] | None = None) -> None:
        super().__init__(app)
        self._exclude_paths = set(exclude_paths or [])

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in self._exclude_paths:
            return await call_next(request)

        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            duration = time.perf_counter() - start
            record_http_request(
                method=request.method,
                endpoint=route_template(request),
                status=500,
                latency=duration,
            )
            raise

        duration = time.perf_counter() - start
        record_http_request(
            method=request.method,
            endpoint=route_template(request),
            status=response.status_code,
            latency=duration,
        )
        return response


async def metrics_endpoint(_request: Request) -> Response:
    """
    Prometheus metrics endpoint.

    Returns metrics in Prometheus text format.
    """
    multiproc_dir = os.environ.get("PROMETHEUS_MULTIPROC_DIR")
    if multiproc_dir:
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)  # type: ignore[no-untyped-call]
        return Response(
            generate_latest(registry),
            media_type="text/plain; version=0.0.4; charset=utf-8",
        )

    return Response(
        generate_latest(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
