"""Composition root: wires a configuration and a connector into a LauncherDelegate."""

from __future__ import annotations

from collections.abc import Iterable

from injector import Injector, InstanceProvider, Module, provider, singleton

from ec2agent.api.launcher import Connector
from ec2agent.config import ControllerConfig
from ec2agent.launcher import LauncherDelegate
from ec2agent.lifecycle.controller import LifecycleController
from ec2agent.providers.aws.clients import AWSModule, InstanceServiceFactory


class ControllerModule(Module):
    """DI module binding one controller's configuration and connector.

    Usage:
        >>> injector = Injector([AWSModule(), ControllerModule(config, connector)])
        >>> delegate = injector.get(LauncherDelegate)
    """

    def __init__(self, config: ControllerConfig, connector: Connector) -> None:
        self._config = config
        self._connector = connector

    def configure(self, binder) -> None:
        binder.bind(ControllerConfig, to=InstanceProvider(self._config))
        binder.bind(Connector, to=InstanceProvider(self._connector))

    @singleton
    @provider
    def provide_controller(
        self, config: ControllerConfig, factory: InstanceServiceFactory,
    ) -> LifecycleController:
        return LifecycleController(config, factory)

    @singleton
    @provider
    def provide_delegate(self, controller: LifecycleController, connector: Connector) -> LauncherDelegate:
        return LauncherDelegate(controller, connector)


def create_delegate(
    config: ControllerConfig,
    connector: Connector,
    *,
    modules: Iterable[Module] = (),
) -> LauncherDelegate:
    """Build a LauncherDelegate backed by EC2.

    Extra ``modules`` are installed last and may override any binding,
    e.g. the InstanceServiceFactory in tests.
    """
    injector = Injector([AWSModule(), ControllerModule(config, connector), *modules])
    return injector.get(LauncherDelegate)
