# Assumptions:
# - Using pytest for testing framework
# - setup_telemetry is patched to return the in-memory TelemetryContext
# - gRPC readiness is mocked when the real startup sequence runs
# - Settings are supplied through environment variables

import asyncio
from unittest.mock import Mock, patch

import grpc
import pytest

from otel_docs import main as entrypoint
from otel_docs.config.settings import Settings
from otel_docs.domain.errors import ExporterConstructionError


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        log_file=str(tmp_path / "app.log"),
        work_interval_seconds=0.01,
        work_max_iterations=2,
        shutdown_timeout_seconds=1,
    )


@pytest.fixture
def env(monkeypatch, tmp_path):
    """Environment for a short, bounded run of main()"""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("LOG_FILE", str(tmp_path / "app.log"))
    monkeypatch.setenv("WORK_INTERVAL_SECONDS", "0.01")
    monkeypatch.setenv("WORK_MAX_ITERATIONS", "2")
    monkeypatch.setenv("SHUTDOWN_TIMEOUT_SECONDS", "1")
    return tmp_path


class TestRun:
    """Test cases for the async run sequence"""

    @pytest.mark.asyncio
    async def test_run_completes_and_shuts_down(self, settings, telemetry, span_exporter, counter_value):
        """Test bounded run emits N units of work then flushes"""
        telemetry.shutdown = Mock()
        with patch.object(entrypoint, "setup_telemetry", return_value=telemetry) as setup:
            completed = await entrypoint.run(settings, handle_signals=False)

        assert completed == 2
        assert len(span_exporter.get_finished_spans()) == 2
        assert counter_value() == 2
        setup.assert_called_once()
        telemetry.shutdown.assert_called_once_with(1000)

    @pytest.mark.asyncio
    async def test_stop_event_triggers_shutdown(self, settings, telemetry):
        """Test an external stop still runs the flush path"""
        settings.work_max_iterations = None
        settings.work_interval_seconds = 60
        telemetry.shutdown = Mock()
        stop_event = asyncio.Event()

        with patch.object(entrypoint, "setup_telemetry", return_value=telemetry):
            task = asyncio.create_task(entrypoint.run(settings, stop_event=stop_event, handle_signals=False))
            await asyncio.sleep(0.05)
            stop_event.set()
            completed = await asyncio.wait_for(task, timeout=5)

        assert completed == 1
        telemetry.shutdown.assert_called_once()

    @pytest.mark.asyncio
    async def test_signal_handlers_installed_and_removed(self, settings, telemetry):
        """Test SIGINT/SIGTERM handlers are removed once the loop ends"""
        telemetry.shutdown = Mock()
        loop = asyncio.get_running_loop()

        with patch.object(entrypoint, "setup_telemetry", return_value=telemetry), patch.object(
            loop, "add_signal_handler"
        ) as add_handler, patch.object(loop, "remove_signal_handler") as remove_handler:
            await entrypoint.run(settings)

        assert add_handler.call_count == len(entrypoint.STOP_SIGNALS)
        assert remove_handler.call_count == len(entrypoint.STOP_SIGNALS)


class TestMain:
    """Test cases for the process entry point"""

    def test_main_success(self, env, telemetry, read_log):
        """Test a bounded run exits 0 and writes correlated log lines"""
        telemetry.shutdown = Mock()
        with patch.object(entrypoint, "setup_telemetry", return_value=telemetry):
            assert entrypoint.main() == 0

        records = [r for r in read_log(env / "app.log") if r["msg"] == "Did Work"]
        assert len(records) == 2
        assert all(r["trace_id"] for r in records)

    def test_exporter_failure_exits_non_zero(self, env, capsys):
        """Test an unreachable collector aborts before the loop"""
        error = ExporterConstructionError("otlp", "http://localhost:4317", "unreachable")
        with patch.object(entrypoint, "setup_telemetry", side_effect=error), patch.object(
            entrypoint, "WorkLoop"
        ) as work_loop:
            assert entrypoint.main() == 1

        work_loop.assert_not_called()
        assert "fatal" in capsys.readouterr().err

    def test_unreachable_collector_exits_non_zero(self, env, monkeypatch, capsys, read_log):
        """Test default startup fails fast when the collector never becomes ready"""
        monkeypatch.setenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://127.0.0.1:1")
        monkeypatch.setenv("STARTUP_CHECK_TIMEOUT_SECONDS", "0.2")
        future = Mock()
        future.result.side_effect = grpc.FutureTimeoutError()

        with patch("grpc.channel_ready_future", return_value=future), patch.object(
            entrypoint, "WorkLoop"
        ) as work_loop:
            assert entrypoint.main() == 1

        work_loop.assert_not_called()
        assert "127.0.0.1:1" in capsys.readouterr().err
        record = [r for r in read_log(env / "app.log") if r["msg"] == "Fatal error"][0]
        assert record["error_type"] == "ExporterConstructionError"
        assert record["service"] == "otel-docs"
        assert record["source"] == "app"

    def test_invalid_settings_exit_non_zero(self, env, monkeypatch, capsys):
        """Test configuration errors are fatal"""
        monkeypatch.setenv("WORK_INTERVAL_SECONDS", "0")

        assert entrypoint.main() == 1
        assert "fatal" in capsys.readouterr().err

    def test_blank_service_name_exit_non_zero(self, env, monkeypatch):
        """Test a missing resource attribute is fatal"""
        monkeypatch.setenv("SERVICE_NAME", " ")

        with patch.object(entrypoint, "setup_telemetry") as setup:
            assert entrypoint.main() == 1

        setup.assert_not_called()

    def test_unwritable_log_path_keeps_running(self, env, monkeypatch, telemetry, span_exporter, counter_value):
        """Test the loop still emits spans and counts when the log sink cannot be opened"""
        blocker = env / "not-a-dir"
        blocker.write_text("")
        monkeypatch.setenv("LOG_FILE", str(blocker / "app.log"))
        telemetry.shutdown = Mock()

        with patch.object(entrypoint, "setup_telemetry", return_value=telemetry):
            assert entrypoint.main() == 0

        assert len(span_exporter.get_finished_spans()) == 2
        assert counter_value() == 2
