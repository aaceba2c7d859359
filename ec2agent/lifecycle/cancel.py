from __future__ import annotations

import threading

from ec2agent.core.exceptions import LaunchCancelledError


class CancelSignal:
    """Cancellable timer used for every blocking wait of a session.

    ``sleep`` returns early and raises as soon as ``cancel`` is called from
    any thread.
    """

    __slots__ = ("_event", "_reason", "instance_id")

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason = "cancelled"
        self.instance_id: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise LaunchCancelledError(self.instance_id, self._reason)

    def sleep(self, seconds: float) -> None:
        """Block for ``seconds`` unless cancelled first.

        Raises:
            LaunchCancelledError: If the signal fires before or during the wait.
        """
        if self._event.wait(max(seconds, 0.0)):
            raise LaunchCancelledError(self.instance_id, self._reason)
