"""Observability for cloudpool: the structured logger facade."""

from .logger import TRACE, BoundLogger, logger

__all__ = ["TRACE", "BoundLogger", "logger"]
