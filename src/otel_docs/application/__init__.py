"""Application layer: the telemetry work loop."""

from .work_loop import WorkLoop

__all__ = ["WorkLoop"]
