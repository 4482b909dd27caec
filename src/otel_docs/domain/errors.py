# Assumptions:
# - Custom exceptions for the telemetry harness
# - Every startup failure maps to one of these and is fatal
# - Log sink failures use the stdlib OSError and are not wrapped


class OtelDocsError(Exception):
    """Base exception for the telemetry harness"""

    pass


class ConfigurationError(OtelDocsError):
    """Raised when settings or resource attributes are missing or invalid"""

    def __init__(self, message: str, field: str = None):
        self.field = field
        super().__init__(message)


class ExporterConstructionError(OtelDocsError):
    """Raised when an OTLP exporter cannot be built or its endpoint is unreachable"""

    def __init__(self, signal: str, endpoint: str, reason: str):
        self.signal = signal
        self.endpoint = endpoint
        self.reason = reason
        super().__init__(f"Failed to construct {signal} exporter for {endpoint}: {reason}")


class InstrumentRegistrationError(OtelDocsError):
    """Raised when a metric instrument cannot be registered"""

    def __init__(self, instrument_name: str, reason: str):
        self.instrument_name = instrument_name
        self.reason = reason
        super().__init__(f"Failed to register instrument {instrument_name}: {reason}")


class ShutdownFlushError(OtelDocsError):
    """Raised when buffered telemetry cannot be flushed during shutdown"""

    def __init__(self, signal: str, reason: str):
        self.signal = signal
        self.reason = reason
        super().__init__(f"Error shutting down {signal} provider: {reason}")
