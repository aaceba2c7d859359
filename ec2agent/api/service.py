from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from ec2agent.config import ImageLaunch
from ec2agent.constants import InstanceState


@dataclass(frozen=True, slots=True)
class InstanceDescription:
    """Point-in-time view of an instance as reported by the cloud API."""

    instance_id: str
    state: InstanceState
    public_address: str | None = None

    @property
    def has_address(self) -> bool:
        return bool(self.public_address)


@runtime_checkable
class InstanceService(Protocol):
    """Compute API operations the lifecycle controller relies on.

    Every method may raise ``CloudServiceError`` for transient failures
    (network, auth, throttling); ``describe_instance`` raises
    ``InstanceNotFoundError`` when the instance does not exist.
    """

    def describe_instance(self, instance_id: str) -> InstanceDescription: ...

    def create_instance(self, launch: ImageLaunch) -> str: ...

    def start_instance(self, instance_id: str) -> None: ...

    def stop_instance(self, instance_id: str) -> None: ...

    def terminate_instance(self, instance_id: str) -> None: ...
