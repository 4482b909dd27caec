"""
Entry point for the telemetry emission harness

Startup failures (settings, resource, exporters, instruments) are fatal and
exit with status 1 before the work loop starts. SIGINT/SIGTERM stop the loop
and trigger a bounded flush of both providers.
"""

import asyncio
import signal
import sys

from otel_docs.application.work_loop import WorkLoop
from otel_docs.config.settings import Settings, load_settings
from otel_docs.domain.errors import OtelDocsError
from otel_docs.domain.resource import ResourceAttributes, build_resource_attributes
from otel_docs.logging.setup import get_logger, set_service_context, setup_logging
from otel_docs.telemetry.otel import setup_telemetry

logger = get_logger(__name__)

STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def build_resource(settings: Settings) -> ResourceAttributes:
    return build_resource_attributes(
        settings.service_name,
        settings.environment,
        settings.service_version,
    )


def log_context(settings: Settings, resource: ResourceAttributes) -> dict[str, str]:
    """Fields stamped on every log record"""
    return {**resource.log_fields(), "source": settings.log_source}


def install_signal_handlers(stop_event: asyncio.Event) -> list[int]:
    """Set stop_event on SIGINT/SIGTERM; returns the signals actually handled"""
    loop = asyncio.get_running_loop()
    installed = []
    for sig in STOP_SIGNALS:
        try:
            loop.add_signal_handler(sig, stop_event.set)
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            logger.warning("Signal handlers unavailable", signal=int(sig))
    return installed


async def run(
    settings: Settings,
    resource: ResourceAttributes | None = None,
    stop_event: asyncio.Event | None = None,
    handle_signals: bool = True,
) -> int:
    """
    Build the telemetry stack, run the work loop and flush on exit

    Returns:
        Number of completed work iterations
    """
    resource = resource or build_resource(settings)
    set_service_context(log_context(settings, resource))

    telemetry = setup_telemetry(settings, resource)
    logger.info("Telemetry initialized", endpoint=settings.otel_exporter_otlp_endpoint)

    stop_event = stop_event or asyncio.Event()
    installed = install_signal_handlers(stop_event) if handle_signals else []

    work_loop = WorkLoop(
        telemetry,
        interval_seconds=settings.work_interval_seconds,
        span_name=settings.span_name,
        max_iterations=settings.work_max_iterations,
    )
    try:
        return await work_loop.run(stop_event)
    finally:
        loop = asyncio.get_running_loop()
        for sig in installed:
            loop.remove_signal_handler(sig)
        telemetry.shutdown(settings.shutdown_timeout_millis)


def main() -> int:
    try:
        settings = load_settings()
        resource = build_resource(settings)
    except OtelDocsError as e:
        print(f"fatal: {e}", file=sys.stderr)
        return 1

    setup_logging(settings.log_file, settings.log_level)
    set_service_context(log_context(settings, resource))

    try:
        asyncio.run(run(settings, resource))
    except OtelDocsError as e:
        logger.error("Fatal error", error=str(e), error_type=type(e).__name__)
        print(f"fatal: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
