"""Library logging for ec2agent.

Records go through loguru under the ``ec2agent`` namespace, which stays
disabled until the host process opts in. ``LogConfig`` can be built in code
or read from the ``[logging]`` table of ``ec2agent.toml``.

Example:
    from ec2agent.observability import LogConfig, logging_enabled

    with logging_enabled(LogConfig(level="DEBUG", file="logs/ec2agent.log")):
        delegate.launch(computer, listener)
"""

from __future__ import annotations

import sys
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from loguru import logger

logger.disable("ec2agent")

type LogLevel = Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"]

NAMESPACE = "ec2agent"

# Rendered in this order after the location, e.g. "[lifecycle i-0abc running 3/60]".
_CONTEXT_KEYS = ("component", "controller", "instance_id", "state", "attempt")


def _patch_context(record: Any) -> None:
    extra = record["extra"]
    values = [str(extra[k]) for k in _CONTEXT_KEYS if extra.get(k) is not None]
    extra["ctx"] = f" [{' '.join(values)}]" if values else ""


def _format(*, colors: bool) -> str:
    if colors:
        return (
            "<green>{time:HH:mm:ss}</green> <level>{level: <7}</level>"
            "<dim>{extra[ctx]}</dim> <level>{message}</level>"
        )
    return "{time:YYYY-MM-DD HH:mm:ss.SSS} {level: <7} {name}:{line}{extra[ctx]} {message}"


@dataclass(frozen=True, slots=True)
class LogConfig:
    """Where library records go.

    Attributes:
        level: Minimum level for the console sink.
        file: Log file path; None disables the file sink. The file always
            captures DEBUG and above.
        console: Whether to write to stderr.
        serialize: Write the file sink as one JSON object per line.
        rotation: loguru rotation policy for the file, e.g. "50 MB" or "1 day".
        retention: Number of rotated files to keep.
    """

    level: LogLevel = "INFO"
    file: str | None = None
    console: bool = True
    serialize: bool = False
    rotation: str = "50 MB"
    retention: int = 10


def setup_logging(config: LogConfig) -> list[int]:
    """Enable the ec2agent namespace and add the configured sinks.

    Returns:
        Handler ids to pass to ``teardown_logging``.
    """
    logger.enable(NAMESPACE)
    logger.configure(patcher=_patch_context)
    handler_ids: list[int] = []

    if config.console:
        handler_ids.append(
            logger.add(
                sys.stderr,
                level=config.level,
                format=_format(colors=True),
                colorize=True,
                filter=NAMESPACE,
            )
        )

    if config.file:
        Path(config.file).parent.mkdir(parents=True, exist_ok=True)
        handler_ids.append(
            logger.add(
                config.file,
                level="DEBUG",
                format=_format(colors=False),
                serialize=config.serialize,
                rotation=config.rotation,
                retention=config.retention,
                compression="zip",
                diagnose=False,  # tracebacks would otherwise include local credentials
                enqueue=True,
                filter=NAMESPACE,
            )
        )

    return handler_ids


def teardown_logging(handler_ids: list[int]) -> None:
    """Remove the given sinks and disable the namespace again."""
    for hid in handler_ids:
        logger.remove(hid)
    logger.disable(NAMESPACE)


@contextmanager
def logging_enabled(config: LogConfig) -> Iterator[list[int]]:
    handler_ids = setup_logging(config)
    try:
        yield handler_ids
    finally:
        logger.complete()
        teardown_logging(handler_ids)
