"""Prometheus metrics definitions and helpers."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests processed",
    ("method", "route", "status"),
)

REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ("method", "route"),
    buckets=(
        0.005,
        0.01,
        0.025,
        0.05,
        0.1,
        0.25,
        0.5,
        1.0,
        2.5,
        5.0,
        10.0,
    ),
)

ERROR_COUNTER = Counter(
    "app_internal_errors_total",
    "Number of requests ending in internal server error responses",
    ("method", "route"),
)

GENERATION_COUNTER = Counter(
    "generation_requests_total",
    "Generation requests by the path that produced the output",
    ("path", "outcome"),
)

REMOTE_FAILURE_COUNTER = Counter(
    "generation_remote_failures_total",
    "Remote AI stage failures recovered by falling back",
    ("stage",),
)

TRANSCRIPTION_RETRY_COUNTER = Counter(
    "generation_transcription_retries_total",
    "Transcription attempts that failed and were retried",
)

GENERATION_LATENCY = Histogram(
    "generation_duration_seconds",
    "End-to-end generation duration in seconds",
    ("path",),
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0, 60.0, 120.0),
)


def observe_request(
    method: str,
    route: str,
    status_code: int,
    duration_seconds: float,
) -> None:
    """Record metrics for a completed HTTP request."""

    safe_route = route or "unknown"
    safe_method = method or "UNKNOWN"
    status_label = str(status_code)
    observed_duration = duration_seconds if duration_seconds >= 0 else 0

    REQUEST_COUNT.labels(
        method=safe_method,
        route=safe_route,
        status=status_label,
    ).inc()
    REQUEST_LATENCY.labels(
        method=safe_method,
        route=safe_route,
    ).observe(observed_duration)

    if status_code >= 500:
        ERROR_COUNTER.labels(
            method=safe_method,
            route=safe_route,
        ).inc()


def observe_generation(path: str, outcome: str, duration_seconds: float) -> None:
    """Record a finished generation request (``path`` is ``remote`` or ``local``)."""

    GENERATION_COUNTER.labels(path=path, outcome=outcome).inc()
    GENERATION_LATENCY.labels(path=path).observe(max(0.0, duration_seconds))


def increment_remote_failure(stage: str) -> None:
    REMOTE_FAILURE_COUNTER.labels(stage=stage).inc()


def increment_transcription_retry() -> None:
    TRANSCRIPTION_RETRY_COUNTER.inc()
