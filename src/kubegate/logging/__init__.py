"""Logging configuration for kubegate."""

from kubegate.logging.config import configure_logging, get_logger

__all__ = ["configure_logging", "get_logger"]
