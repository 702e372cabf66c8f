"""Prometheus metrics for the moderation service.

Tracks HTTP traffic, moderation transitions, gate decisions and cache
degradation.
"""

import os

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    Info,
    CollectorRegistry,
    generate_latest,
    CONTENT_TYPE_LATEST,
    multiprocess,
)

# Create a custom registry for our metrics
REGISTRY = CollectorRegistry()

# Check if running in multiprocess mode (e.g., with gunicorn)
if "prometheus_multiproc_dir" in os.environ:
    multiprocess.MultiProcessCollector(REGISTRY)


# ============================================
# Application Info
# ============================================
APP_INFO = Info(
    "classroom_moderation_app",
    "Application information",
    registry=REGISTRY,
)


# ============================================
# HTTP Request Metrics
# ============================================
HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
    registry=REGISTRY,
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
    registry=REGISTRY,
)

HTTP_REQUESTS_IN_PROGRESS = Gauge(
    "http_requests_in_progress",
    "Number of HTTP requests currently in progress",
    ["method", "endpoint"],
    registry=REGISTRY,
)


# ============================================
# Moderation Metrics
# ============================================
MODERATION_ACTIONS_TOTAL = Counter(
    "moderation_actions_total",
    "Moderation state changes by action",
    ["action"],
    registry=REGISTRY,
)

AUTHORIZATION_DECISIONS_TOTAL = Counter(
    "authorization_decisions_total",
    "Authorization gate decisions",
    ["outcome", "source"],
    registry=REGISTRY,
)

CACHE_FAILURES_TOTAL = Counter(
    "cache_failures_total",
    "Cache or pub/sub operations that failed and were skipped",
    ["operation"],
    registry=REGISTRY,
)


def record_moderation_action(action: str) -> None:
    """Count a committed moderation state change."""
    MODERATION_ACTIONS_TOTAL.labels(action=action).inc()


def record_authorization_decision(allowed: bool, source: str) -> None:
    """Count a gate decision by outcome and the check that produced it."""
    AUTHORIZATION_DECISIONS_TOTAL.labels(
        outcome="allow" if allowed else "deny",
        source=source,
    ).inc()


def record_cache_failure(operation: str) -> None:
    """Count a degraded cache or pub/sub call."""
    CACHE_FAILURES_TOTAL.labels(operation=operation).inc()


def set_app_info(version: str, environment: str) -> None:
    """Set application info labels."""
    APP_INFO.info({
        "version": version,
        "environment": environment,
    })


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest(REGISTRY)


def get_metrics_content_type() -> str:
    """Get the content type for Prometheus metrics."""
    return CONTENT_TYPE_LATEST
