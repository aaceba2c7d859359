"""Per-session audit log.

The CI framework hands every launch a stream that the operator tails. Each
line written here carries the instance id, observed state and attempt
counter, and is mirrored to the library logger.
"""

from __future__ import annotations

import threading
import time
from datetime import datetime
from typing import TextIO

from loguru import logger

_ORDER = ("instance_id", "state", "attempt")
_LABELS = {"instance_id": "instance", "state": "state", "attempt": "attempt"}


class SessionLog:
    """Line-oriented writer bound to one launch/disconnect cycle.

    ``bind`` returns a child sharing the stream and clock with extra context;
    it never mutates the parent.
    """

    __slots__ = ("_stream", "_context", "_started", "_lock")

    def __init__(
        self,
        stream: TextIO | None = None,
        *,
        context: dict[str, object] | None = None,
        started: float | None = None,
        lock: threading.Lock | None = None,
    ) -> None:
        self._stream = stream
        self._context = context or {}
        self._started = time.monotonic() if started is None else started
        self._lock = lock or threading.Lock()

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self._started

    def bind(self, **context: object) -> SessionLog:
        return SessionLog(
            self._stream,
            context={**self._context, **context},
            started=self._started,
            lock=self._lock,
        )

    def _prefix(self, context: dict[str, object]) -> str:
        parts = [f"{_LABELS[k]}={context[k]}" for k in _ORDER if context.get(k) is not None]
        parts.append(f"elapsed={self.elapsed:.1f}s")
        return " ".join(parts)

    def _write(self, level: str, message: str, context: dict[str, object]) -> None:
        merged = {**self._context, **context}
        if self._stream is not None:
            stamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
            line = f"{stamp} {level:<7} [{self._prefix(merged)}] {message}\n"
            with self._lock:
                self._stream.write(line)
                self._stream.flush()
        logger.bind(component="session", **merged).opt(depth=2).log(level, message)

    def debug(self, message: str, **context: object) -> None:
        self._write("DEBUG", message, context)

    def info(self, message: str, **context: object) -> None:
        self._write("INFO", message, context)

    def warning(self, message: str, **context: object) -> None:
        self._write("WARNING", message, context)

    def error(self, message: str, **context: object) -> None:
        self._write("ERROR", message, context)
