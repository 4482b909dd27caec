import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

import grpc
import structlog
from opentelemetry import context, metrics, propagate, trace
from opentelemetry.baggage.propagation import W3CBaggagePropagator
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.metrics import Counter
from opentelemetry.propagators.composite import CompositePropagator
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

from otel_docs.config.settings import Settings
from otel_docs.domain.errors import (
    ExporterConstructionError,
    InstrumentRegistrationError,
    ShutdownFlushError,
)
from otel_docs.domain.resource import ResourceAttributes

logger = structlog.get_logger(__name__)

INSTRUMENT_NAME = re.compile(r"^[a-zA-Z][-_./a-zA-Z0-9]{0,254}$")
ERROR_COUNTER_NAME = "otel.docs.work.errors"


def grpc_target(endpoint: str) -> str:
    """Strip the scheme from an OTLP endpoint URL, leaving host:port"""
    parsed = urlparse(endpoint)
    if parsed.scheme and parsed.netloc:
        return parsed.netloc
    return endpoint


def wait_for_endpoint(endpoint: str, timeout: float, insecure: bool = True) -> None:
    """
    Wait for the collector's gRPC channel to become ready

    OTLP exporters connect lazily, so this is the only way to notice an
    unreachable collector before the work loop starts.

    Raises:
        ExporterConstructionError: if the channel is not ready within timeout
    """
    target = grpc_target(endpoint)
    if insecure:
        channel = grpc.insecure_channel(target)
    else:
        channel = grpc.secure_channel(target, grpc.ssl_channel_credentials())
    try:
        grpc.channel_ready_future(channel).result(timeout=timeout)
    except grpc.FutureTimeoutError as e:
        raise ExporterConstructionError(
            "otlp", endpoint, f"collector not reachable within {timeout}s"
        ) from e
    finally:
        channel.close()


def _flush_and_shutdown(signal: str, flush, shutdown, timeout_millis: int) -> None:
    """Run flush then shutdown; the provider is stopped even when the flush fails"""
    try:
        flushed = flush()
        reason = f"flush did not complete within {timeout_millis}ms"
    except Exception as e:
        flushed = False
        reason = str(e)

    try:
        shutdown()
    except Exception as e:
        raise ShutdownFlushError(signal, str(e)) from e

    if not flushed:
        raise ShutdownFlushError(signal, reason)


def configure_propagator() -> None:
    """Install the W3C trace-context + baggage propagator globally"""
    propagate.set_global_textmap(
        CompositePropagator([TraceContextTextMapPropagator(), W3CBaggagePropagator()])
    )


class TraceEmitter:
    """Starts and ends spans on a tracer bound to the service resource"""

    def __init__(self, provider: TracerProvider, tracer_name: str = "client-tracer"):
        self.provider = provider
        self.tracer = provider.get_tracer(tracer_name)

    @classmethod
    def initialize(
        cls,
        resource: Resource,
        endpoint: str,
        insecure: bool = True,
        tracer_name: str = "client-tracer",
        set_global: bool = True,
    ) -> "TraceEmitter":
        """
        Build a batching tracer provider over an OTLP/gRPC span exporter

        Args:
            resource: Resource attached to every span
            endpoint: Collector endpoint
            insecure: Use a plaintext channel
            tracer_name: Instrumentation scope name
            set_global: Register the provider as the global tracer provider

        Raises:
            ExporterConstructionError: if the exporter cannot be built
        """
        try:
            exporter = OTLPSpanExporter(endpoint=endpoint, insecure=insecure)
        except Exception as e:
            raise ExporterConstructionError("trace", endpoint, str(e)) from e

        provider = TracerProvider(resource=resource)
        provider.add_span_processor(BatchSpanProcessor(exporter))

        if set_global:
            trace.set_tracer_provider(provider)

        logger.info("Tracer provider initialized", endpoint=endpoint, insecure=insecure)
        return cls(provider, tracer_name)

    def start_span(self, name: str) -> trace.Span:
        """Open a span in a fresh root context"""
        return self.tracer.start_span(name, context=context.Context())

    def end_span(self, span: trace.Span) -> None:
        span.end()

    def shutdown(self, timeout_millis: int = 30000) -> None:
        """Flush buffered spans then stop the provider"""
        _flush_and_shutdown(
            "tracer",
            lambda: self.provider.force_flush(timeout_millis),
            self.provider.shutdown,
            timeout_millis,
        )


class MetricEmitter:
    """Registers and increments counters on a meter bound to the service resource"""

    def __init__(self, provider: MeterProvider, meter_name: str = "otel-docs"):
        self.provider = provider
        self.meter = provider.get_meter(meter_name)

    @classmethod
    def initialize(
        cls,
        resource: Resource,
        endpoint: str,
        insecure: bool = True,
        export_interval_millis: int = 60000,
        meter_name: str = "otel-docs",
        set_global: bool = True,
    ) -> "MetricEmitter":
        """
        Build a meter provider with a periodic reader over an OTLP/gRPC metric exporter

        Raises:
            ExporterConstructionError: if the exporter cannot be built
        """
        try:
            exporter = OTLPMetricExporter(endpoint=endpoint, insecure=insecure)
        except Exception as e:
            raise ExporterConstructionError("metric", endpoint, str(e)) from e

        reader = PeriodicExportingMetricReader(
            exporter=exporter,
            export_interval_millis=export_interval_millis,
        )
        provider = MeterProvider(resource=resource, metric_readers=[reader])

        if set_global:
            metrics.set_meter_provider(provider)

        logger.info(
            "Meter provider initialized",
            endpoint=endpoint,
            export_interval_millis=export_interval_millis,
        )
        return cls(provider, meter_name)

    def create_counter(self, name: str, unit: str = "1", description: str = "") -> Counter:
        """
        Register a monotonic counter instrument

        Raises:
            InstrumentRegistrationError: if the name is invalid or the SDK rejects it
        """
        if not INSTRUMENT_NAME.match(name or ""):
            raise InstrumentRegistrationError(name, "invalid instrument name")
        try:
            return self.meter.create_counter(name, unit=unit, description=description)
        except Exception as e:
            raise InstrumentRegistrationError(name, str(e)) from e

    def increment(self, counter: Counter, delta: int = 1, attributes: Optional[dict] = None) -> None:
        if delta < 0:
            raise ValueError(f"counter delta must be non-negative, got: {delta}")
        counter.add(delta, attributes=attributes)

    def shutdown(self, timeout_millis: int = 30000) -> None:
        """Flush pending aggregates then stop the provider"""
        _flush_and_shutdown(
            "meter",
            lambda: self.provider.force_flush(timeout_millis),
            lambda: self.provider.shutdown(timeout_millis=timeout_millis),
            timeout_millis,
        )


@dataclass
class TelemetryContext:
    """Handles built once at startup and passed into the work loop"""

    resource: ResourceAttributes
    traces: TraceEmitter
    metrics: MetricEmitter
    work_counter: Counter
    error_counter: Counter

    def shutdown(self, timeout_millis: int = 30000) -> None:
        """
        Flush and stop both providers, meter first

        Both providers are always shut down; the first flush failure is
        raised afterwards.
        """
        failures = []
        for emitter in (self.metrics, self.traces):
            try:
                emitter.shutdown(timeout_millis)
            except ShutdownFlushError as e:
                logger.error("Telemetry shutdown failed", signal=e.signal, error=e.reason)
                failures.append(e)

        if failures:
            raise failures[0]
        logger.info("Telemetry shutdown complete")


def build_context(
    resource: ResourceAttributes,
    traces: TraceEmitter,
    metrics_emitter: MetricEmitter,
    counter_name: str,
) -> TelemetryContext:
    """Register the work and error counters and bundle the emitters"""
    work_counter = metrics_emitter.create_counter(
        counter_name, description="Units of work completed by the work loop"
    )
    error_counter = metrics_emitter.create_counter(
        ERROR_COUNTER_NAME, description="Work loop iterations that raised"
    )
    return TelemetryContext(
        resource=resource,
        traces=traces,
        metrics=metrics_emitter,
        work_counter=work_counter,
        error_counter=error_counter,
    )


def setup_telemetry(settings: Settings, resource: ResourceAttributes) -> TelemetryContext:
    """
    Set up the complete telemetry stack

    Every failure here is a startup failure; providers already built are
    shut down before the error propagates.
    """
    endpoint = settings.otel_exporter_otlp_endpoint
    insecure = settings.otel_exporter_otlp_insecure

    if settings.startup_check_timeout_seconds > 0:
        wait_for_endpoint(endpoint, settings.startup_check_timeout_seconds, insecure=insecure)

    configure_propagator()
    sdk_resource = resource.to_resource()

    traces = TraceEmitter.initialize(
        sdk_resource,
        endpoint,
        insecure=insecure,
        tracer_name=settings.tracer_name,
    )
    try:
        metrics_emitter = MetricEmitter.initialize(
            sdk_resource,
            endpoint,
            insecure=insecure,
            export_interval_millis=settings.metric_export_interval_millis,
            meter_name=settings.meter_name,
        )
    except ExporterConstructionError:
        traces.provider.shutdown()
        raise

    try:
        return build_context(resource, traces, metrics_emitter, settings.counter_name)
    except InstrumentRegistrationError:
        metrics_emitter.provider.shutdown()
        traces.provider.shutdown()
        raise
