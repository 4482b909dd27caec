"""Domain types and errors for the telemetry harness."""

from .errors import (
    ConfigurationError,
    ExporterConstructionError,
    InstrumentRegistrationError,
    OtelDocsError,
    ShutdownFlushError,
)
from .resource import ResourceAttributes, build_resource_attributes

__all__ = [
    "OtelDocsError",
    "ConfigurationError",
    "ExporterConstructionError",
    "InstrumentRegistrationError",
    "ShutdownFlushError",
    "ResourceAttributes",
    "build_resource_attributes",
]
