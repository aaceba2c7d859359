from __future__ import annotations

from typing import Protocol, TextIO, runtime_checkable


@runtime_checkable
class AgentComputer(Protocol):
    """The CI framework's handle for the agent being connected."""

    @property
    def name(self) -> str: ...


@runtime_checkable
class Launcher(Protocol):
    """Performs the actual agent-to-controller session handshake."""

    def launch(self, computer: AgentComputer, listener: TextIO) -> None: ...

    def before_disconnect(self, computer: AgentComputer, listener: TextIO) -> None: ...

    def after_disconnect(self, computer: AgentComputer, listener: TextIO) -> None: ...

    def supports_launch(self) -> bool: ...


@runtime_checkable
class Connector(Protocol):
    """Turns a reachable network address into a Launcher."""

    def produce_launcher(self, address: str, listener: TextIO) -> Launcher: ...
