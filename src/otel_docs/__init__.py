"""
Telemetry emission harness.

Initializes a JSON file logger together with an OpenTelemetry tracer and
meter exporting over OTLP/gRPC, then runs a loop that emits one correlated
span, log line and counter increment per interval.
"""

__version__ = "0.1.0"
