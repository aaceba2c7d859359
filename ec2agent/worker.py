"""Dedicated worker thread per controller.

Launches block while the instance converges. Running each controller's
launches on its own single-thread executor keeps one stalled instance from
holding up the caller's other agents, and keeps launches of the same
controller strictly ordered.
"""

from __future__ import annotations

import asyncio
import contextvars
from concurrent.futures import Future, ThreadPoolExecutor
from typing import TextIO

from ec2agent.api.launcher import AgentComputer
from ec2agent.launcher import LauncherDelegate


class LaunchWorker:
    def __init__(self, delegate: LauncherDelegate, name: str = "ec2agent") -> None:
        self._delegate = delegate
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"{name}-launch")

    @property
    def delegate(self) -> LauncherDelegate:
        return self._delegate

    def submit_launch(self, computer: AgentComputer, listener: TextIO) -> Future[None]:
        """Queue a launch; contextvars of the caller are propagated."""
        ctx = contextvars.copy_context()
        return self._executor.submit(ctx.run, self._delegate.launch, computer, listener)

    async def launch(self, computer: AgentComputer, listener: TextIO) -> None:
        """Awaitable launch for asyncio callers."""
        await asyncio.wrap_future(self.submit_launch(computer, listener))

    def cancel(self, reason: str = "cancelled") -> None:
        self._delegate.controller.cancel(reason)

    def shutdown(self, *, cancel: bool = True) -> None:
        """Stop accepting work; optionally interrupt the active wait first."""
        if cancel:
            self.cancel("worker shut down")
        self._executor.shutdown(wait=True, cancel_futures=cancel)

    def __enter__(self) -> LaunchWorker:
        return self

    def __exit__(self, *exc: object) -> None:
        self.shutdown()
