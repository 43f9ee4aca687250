"""Prometheus metrics for the model router."""

from __future__ import annotations

from prometheus_client import Counter, Histogram, Gauge


# ── HTTP metrics ─────────────────────────────────────────────
HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

HTTP_REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# ── Routing metrics ──────────────────────────────────────────
ROUTER_ATTEMPTS = Counter(
    "router_attempts_total",
    "Provider calls issued by the router",
    ["provider", "model", "outcome"],  # outcome: success / error kind
)

ROUTER_LATENCY = Histogram(
    "router_request_latency_seconds",
    "Latency from request start to successful completion",
    ["provider"],
    buckets=(0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0),
)

ROUTER_EXHAUSTED = Counter(
    "router_exhausted_total",
    "Requests that failed on every candidate or had none",
    ["intent"],
)

# ── Provider health ──────────────────────────────────────────
PROVIDER_RELIABILITY = Gauge(
    "provider_reliability",
    "Smoothed reliability score per provider",
    ["provider"],
)

PROVIDER_DAILY_USED = Gauge(
    "provider_daily_used",
    "Requests counted against the daily quota in the current epoch",
    ["provider"],
)
