"""Telemetry helpers and metrics."""

from .metrics import (
    ERROR_COUNTER,
    GENERATION_COUNTER,
    GENERATION_LATENCY,
    REMOTE_FAILURE_COUNTER,
    REQUEST_COUNT,
    REQUEST_LATENCY,
    TRANSCRIPTION_RETRY_COUNTER,
    increment_remote_failure,
    increment_transcription_retry,
    observe_generation,
    observe_request,
)

__all__ = [
    "ERROR_COUNTER",
    "GENERATION_COUNTER",
    "GENERATION_LATENCY",
    "REMOTE_FAILURE_COUNTER",
    "REQUEST_COUNT",
    "REQUEST_LATENCY",
    "TRANSCRIPTION_RETRY_COUNTER",
    "increment_remote_failure",
    "increment_transcription_retry",
    "observe_generation",
    "observe_request",
]
