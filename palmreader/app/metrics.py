"""
Métriques Prometheus pour l'application.

Ce module définit les métriques Prometheus du service de lecture: trafic HTTP, résultats du
pipeline, replis, jetons consommés et état du gateway LLM.
"""

import time

from fastapi import APIRouter, Request
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

metrics_router = APIRouter()

REQUEST_COUNT = Counter(
    "http_requests_total", "Total HTTP requests", ["method", "route", "status"]
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds", "Latency of HTTP requests", ["route"]
)

# Pipeline de lecture
PALM_READINGS_TOTAL = Counter(
    "palm_readings_total",
    "Palm reading requests by outcome",
    ["outcome", "policy"],
)
PALM_READING_LATENCY = Histogram(
    "palm_reading_latency_seconds",
    "End-to-end latency of palm reading generation",
    ["policy"],
    buckets=[1, 2.5, 5, 10, 20, 30, 45, 60, 90, 120],
)
PALM_READING_VALIDATION_ISSUES = Counter(
    "palm_reading_validation_issues_total",
    "Validation issues found in provider output",
)
PALM_READING_FALLBACKS = Counter(
    "palm_reading_fallbacks_total",
    "Readings served from synthesized or patched content",
    ["reason"],
)

# Gateway LLM
LLM_TOKENS_TOTAL = Counter(
    "llm_tokens_total",
    "Accumulated LLM tokens",
    ["model"],
)
LLM_CALLS_TOTAL = Counter(
    "llm_calls_total",
    "LLM provider calls by outcome",
    ["outcome"],
)
LLM_INFLIGHT = Gauge(
    "llm_inflight_calls",
    "LLM provider calls currently in flight in this process",
)
LLM_THROTTLE_WAITS = Counter(
    "llm_throttle_waits_total",
    "Admission-control waits before issuing an LLM call",
)


def normalize_route(path: str) -> str:
    """Limite la cardinalité du label `route` aux routes connues."""
    known = {"/generate-palm-reading", "/health", "/metrics"}
    return path if path in known else "other"


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Compte et chronomètre chaque requête HTTP."""

    async def dispatch(self, request: Request, call_next):
        """Mesure la requête et alimente les métriques HTTP."""
        start = time.perf_counter()
        response = await call_next(request)
        route = normalize_route(request.url.path)
        REQUEST_LATENCY.labels(route=route).observe(time.perf_counter() - start)
        REQUEST_COUNT.labels(
            method=request.method, route=route, status=str(response.status_code)
        ).inc()
        return response


@metrics_router.get("/metrics")
def metrics():
    """Expose les métriques au format Prometheus."""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
