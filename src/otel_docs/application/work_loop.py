# Assumptions:
# - One asyncio task drives the loop; SDK export runs on its own threads
# - Each iteration opens and closes exactly one span
# - Iteration failures are logged and counted, never raised out of run()

import asyncio

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from otel_docs.logging.setup import get_logger
from otel_docs.telemetry.otel import TelemetryContext

logger = get_logger(__name__)


class WorkLoop:
    """Emits one correlated span, log record and counter increment per interval"""

    def __init__(
        self,
        telemetry: TelemetryContext,
        interval_seconds: float = 5.0,
        span_name: str = "work",
        max_iterations: int | None = None,
    ):
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got: {interval_seconds}")
        self.telemetry = telemetry
        self.interval_seconds = interval_seconds
        self.span_name = span_name
        self.max_iterations = max_iterations
        self.iterations = 0
        self.failures = 0

    def run_once(self) -> trace.Span:
        """Run a single unit of work and return its (ended) span"""
        traces = self.telemetry.traces
        span = traces.start_span(self.span_name)
        try:
            trace_id = trace.format_trace_id(span.get_span_context().trace_id)
            logger.info("Did Work", trace_id=trace_id)
            self.telemetry.metrics.increment(self.telemetry.work_counter, 1)
        except Exception as e:
            span.record_exception(e)
            span.set_status(Status(StatusCode.ERROR, str(e)))
            raise
        finally:
            traces.end_span(span)

        self.iterations += 1
        return span

    def _done(self) -> bool:
        if self.max_iterations is None:
            return False
        return self.iterations + self.failures >= self.max_iterations

    async def run(self, stop_event: asyncio.Event | None = None) -> int:
        """
        Run until stop_event is set or max_iterations is reached

        Returns:
            Number of successfully completed iterations
        """
        stop_event = stop_event or asyncio.Event()
        logger.info(
            "Work loop started",
            interval_seconds=self.interval_seconds,
            max_iterations=self.max_iterations,
        )

        while not stop_event.is_set():
            try:
                self.run_once()
            except Exception as e:
                self.failures += 1
                logger.error("Work iteration failed", error=str(e), failures=self.failures)
                self.telemetry.metrics.increment(self.telemetry.error_counter, 1)

            if self._done():
                break

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass

        logger.info("Work loop stopped", iterations=self.iterations, failures=self.failures)
        return self.iterations
