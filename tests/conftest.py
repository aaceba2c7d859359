from __future__ import annotations

import io
from collections import deque
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import TextIO

import pytest

from ec2agent.api.service import InstanceDescription
from ec2agent.config import ControllerConfig, FixedInstance, ImageLaunch, RetryPolicy
from ec2agent.constants import InstanceState
from ec2agent.launcher import LauncherDelegate
from ec2agent.lifecycle.controller import LifecycleController

ADDRESS = "ec2-54-0-0-1.us-west-1.compute.amazonaws.com"

type StateEntry = InstanceState | str | tuple[InstanceState | str, str | None] | Exception


class FakeInstanceService:
    """Scripted InstanceService.

    ``states`` is consumed one entry per describe call; the last entry
    repeats forever. An entry may be a state, a ``(state, address)`` pair or
    an exception to raise.
    """

    def __init__(
        self,
        states: Iterable[StateEntry] = (InstanceState.STOPPED,),
        *,
        address: str = ADDRESS,
        created_id: str = "i-created",
    ) -> None:
        self._states: deque[StateEntry] = deque(states)
        self.address = address
        self.created_id = created_id
        self.calls: list[tuple[str, str]] = []
        self.failures: dict[str, Exception] = {}
        self.on_describe: Callable[[int], None] | None = None
        self.hooks: dict[str, Callable[[], None]] = {}

    def script(self, *states: StateEntry) -> None:
        self._states = deque(states)

    def count(self, operation: str) -> int:
        return sum(1 for op, _ in self.calls if op == operation)

    def operations(self) -> list[str]:
        return [op for op, _ in self.calls]

    def _record(self, operation: str, target: str) -> None:
        self.calls.append((operation, target))
        if operation in self.hooks:
            self.hooks[operation]()
        if operation in self.failures:
            raise self.failures[operation]

    def _next(self) -> StateEntry:
        return self._states.popleft() if len(self._states) > 1 else self._states[0]

    def describe_instance(self, instance_id: str) -> InstanceDescription:
        self._record("describe", instance_id)
        if self.on_describe is not None:
            self.on_describe(self.count("describe"))

        entry = self._next()
        if isinstance(entry, Exception):
            raise entry
        if isinstance(entry, tuple):
            state, address = entry
        else:
            state = entry
            address = self.address if InstanceState.parse(entry) is InstanceState.RUNNING else None
        return InstanceDescription(instance_id, InstanceState.parse(state), address)

    def create_instance(self, launch: ImageLaunch) -> str:
        self._record("create", launch.image_id)
        return self.created_id

    def start_instance(self, instance_id: str) -> None:
        self._record("start", instance_id)

    def stop_instance(self, instance_id: str) -> None:
        self._record("stop", instance_id)

    def terminate_instance(self, instance_id: str) -> None:
        self._record("terminate", instance_id)


@dataclass(frozen=True)
class FakeComputer:
    name: str = "agent-1"


@dataclass
class FakeLauncher:
    address: str
    journal: list[str]
    launch_supported: bool = False
    fail_launch: Exception | None = None

    def launch(self, computer: FakeComputer, listener: TextIO) -> None:
        self.journal.append(f"launch:{self.address}")
        if self.fail_launch is not None:
            raise self.fail_launch

    def before_disconnect(self, computer: FakeComputer, listener: TextIO) -> None:
        self.journal.append("before_disconnect")

    def after_disconnect(self, computer: FakeComputer, listener: TextIO) -> None:
        self.journal.append("after_disconnect")

    def supports_launch(self) -> bool:
        return self.launch_supported


@dataclass
class FakeConnector:
    journal: list[str] = field(default_factory=list)
    produced: list[FakeLauncher] = field(default_factory=list)

    def produce_launcher(self, address: str, listener: TextIO) -> FakeLauncher:
        self.journal.append(f"produce:{address}")
        launcher = FakeLauncher(address, self.journal)
        self.produced.append(launcher)
        return launcher


FAST = RetryPolicy(max_retries=5, poll_interval=0, settle_delay=0)

IMAGE = ImageLaunch(
    image_id="ami-0abc",
    instance_type="t3.medium",
    key_name="ci-key",
    security_group="ci-agents",
    availability_zone="us-west-1a",
)


def make_config(
    identity: FixedInstance | ImageLaunch | None = None,
    **overrides: object,
) -> ControllerConfig:
    overrides.setdefault("retry", FAST)
    return ControllerConfig(identity=identity or FixedInstance("i-fixed"), **overrides)  # type: ignore[arg-type]


@pytest.fixture
def service() -> FakeInstanceService:
    return FakeInstanceService()


@pytest.fixture
def listener() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def computer() -> FakeComputer:
    return FakeComputer()


@pytest.fixture
def make_controller(service: FakeInstanceService) -> Callable[..., LifecycleController]:
    def factory(
        identity: FixedInstance | ImageLaunch | None = None,
        **overrides: object,
    ) -> LifecycleController:
        return LifecycleController(make_config(identity, **overrides), lambda _config: service)

    return factory


@pytest.fixture
def make_delegate(
    make_controller: Callable[..., LifecycleController],
    connector: FakeConnector,
) -> Callable[..., LauncherDelegate]:
    def factory(
        identity: FixedInstance | ImageLaunch | None = None,
        **overrides: object,
    ) -> LauncherDelegate:
        return LauncherDelegate(make_controller(identity, **overrides), connector)

    return factory
