"""Structured JSON logging to an append-only file sink."""

from .setup import (
    RecordJsonFormatter,
    add_service_context,
    get_logger,
    get_service_context,
    open_log_sink,
    set_service_context,
    setup_logging,
)

__all__ = [
    "setup_logging",
    "open_log_sink",
    "get_logger",
    "add_service_context",
    "set_service_context",
    "get_service_context",
    "RecordJsonFormatter",
]
