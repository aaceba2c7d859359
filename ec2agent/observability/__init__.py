"""Observability for ec2agent: library logging and per-session audit streams."""

from .logging import LogConfig, LogLevel, logging_enabled, setup_logging, teardown_logging
from .session import SessionLog

__all__ = [
    "SessionLog",
    "LogConfig",
    "LogLevel",
    "logging_enabled",
    "setup_logging",
    "teardown_logging",
]
