# Assumptions:
# - Using pytest for testing framework
# - SDK in-memory exporter/reader stand in for the OTLP collector
# - Logging is configured once per session so cached structlog proxies bind to stdlib

import json
import logging

import pytest
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import InMemoryMetricReader
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from otel_docs.domain.resource import build_resource_attributes
from otel_docs.logging.setup import set_service_context, setup_logging
from otel_docs.telemetry.otel import MetricEmitter, TraceEmitter, build_context

COUNTER_NAME = "otel.docs.custom.metric"


@pytest.fixture(scope="session", autouse=True)
def session_logging(tmp_path_factory):
    """Configure structlog before any module-level logger is first used"""
    setup_logging(str(tmp_path_factory.mktemp("logs") / "session.log"), "INFO")


@pytest.fixture(autouse=True)
def clear_service_context():
    """Drop log context bound by a previous test"""
    set_service_context(None)
    yield
    set_service_context(None)


@pytest.fixture
def resource_attributes():
    return build_resource_attributes("otel-docs", "dev", "0.1")


@pytest.fixture
def span_exporter():
    return InMemorySpanExporter()


@pytest.fixture
def metric_reader():
    return InMemoryMetricReader()


@pytest.fixture
def telemetry(resource_attributes, span_exporter, metric_reader):
    """TelemetryContext wired to in-memory exporters"""
    resource = resource_attributes.to_resource()

    tracer_provider = TracerProvider(resource=resource)
    tracer_provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    meter_provider = MeterProvider(resource=resource, metric_readers=[metric_reader])

    context = build_context(
        resource_attributes,
        TraceEmitter(tracer_provider),
        MetricEmitter(meter_provider),
        COUNTER_NAME,
    )
    yield context

    tracer_provider.shutdown()
    meter_provider.shutdown()


@pytest.fixture
def log_file(tmp_path, resource_attributes):
    """Point the JSON log sink at a temporary file, stamping the service context"""
    path = tmp_path / "app.log"
    setup_logging(str(path), "INFO")
    set_service_context({**resource_attributes.log_fields(), "source": "app"})
    yield path
    for handler in logging.getLogger().handlers:
        handler.flush()


@pytest.fixture
def read_log():
    """Return the JSON records written to a log file"""

    def _read(path):
        for handler in logging.getLogger().handlers:
            handler.flush()
        return [json.loads(line) for line in path.read_text().splitlines() if line.strip()]

    return _read


@pytest.fixture
def counter_value(metric_reader):
    """Return the cumulative value of a counter, 0 if it has no data points"""

    def _value(name=COUNTER_NAME):
        data = metric_reader.get_metrics_data()
        total = 0
        if data is None:
            return total
        for resource_metrics in data.resource_metrics:
            for scope_metrics in resource_metrics.scope_metrics:
                for metric in scope_metrics.metrics:
                    if metric.name == name:
                        total += sum(point.value for point in metric.data.data_points)
        return total

    return _value
