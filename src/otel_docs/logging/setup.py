import contextvars
import logging
import sys
from pathlib import Path

import structlog
from pythonjsonlogger import jsonlogger
from structlog.stdlib import LoggerFactory

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

RENAMED_FIELDS = {
    "asctime": "time",
    "levelname": "level",
    "message": "msg",
}


class RecordJsonFormatter(jsonlogger.JsonFormatter):
    """JSON-lines formatter emitting time, level and msg plus any bound fields"""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        level = log_record.get("level") or record.levelname
        log_record["level"] = level.lower()


def open_log_sink(log_file: str) -> logging.Handler:
    """
    Open the append-only file sink for log records

    The parent directory and the file are created when absent. If the path
    cannot be opened the error is printed and records go to stdout instead,
    so the caller keeps running with a degraded sink.
    """
    try:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(log_file, mode="a", encoding="utf-8")
    except OSError as e:
        print(f"error opening file: {e}", file=sys.stdout)
        return logging.StreamHandler(sys.stdout)


def setup_logging(log_file: str, level: str = "INFO") -> logging.Handler:
    """
    Set up structured JSON logging to a file

    Args:
        log_file: Path of the JSON-lines log file
        level: Minimum severity (DEBUG, INFO, WARNING, ERROR)

    Returns:
        The handler now attached to the root logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handler = open_log_sink(log_file)
    handler.setFormatter(
        RecordJsonFormatter(
            fmt="%(asctime)s %(levelname)s %(message)s",
            datefmt=TIMESTAMP_FORMAT,
            rename_fields=RENAMED_FIELDS,
        )
    )

    root_logger = logging.getLogger()
    for old in root_logger.handlers:
        if isinstance(old, logging.FileHandler):
            old.close()
    root_logger.handlers = [handler]
    root_logger.setLevel(log_level)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            add_service_context(),
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.render_to_log_kwargs,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    return handler


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance"""
    return structlog.get_logger(name)


def add_service_context():
    """Add service identity fields to all log entries"""

    def processor(logger, method_name, event_dict):
        service_context = _service_context_var.get()
        if service_context:
            for key, value in service_context.items():
                event_dict.setdefault(key, value)
        return event_dict

    return processor


_service_context_var = contextvars.ContextVar("service_context", default=None)


def set_service_context(fields: dict[str, str] | None) -> None:
    """Set the fields stamped on every log entry in this context"""
    _service_context_var.set(dict(fields) if fields else None)


def get_service_context() -> dict[str, str] | None:
    """Get the fields stamped on every log entry in this context"""
    return _service_context_var.get()
