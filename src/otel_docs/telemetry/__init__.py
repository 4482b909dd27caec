"""OpenTelemetry tracing, metrics and propagation setup."""

from .otel import (
    MetricEmitter,
    TelemetryContext,
    TraceEmitter,
    build_context,
    configure_propagator,
    wait_for_endpoint,
    setup_telemetry,
)

__all__ = [
    "TraceEmitter",
    "MetricEmitter",
    "TelemetryContext",
    "build_context",
    "configure_propagator",
    "wait_for_endpoint",
    "setup_telemetry",
]
