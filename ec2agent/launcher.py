"""The launcher the CI framework talks to.

LauncherDelegate is not configured by users. It wraps a LifecycleController
and the user-configured Connector: on launch it brings the instance up, asks
the connector for a real Launcher bound to the instance's address, and from
then on forwards transport-level calls to that launcher.
"""

from __future__ import annotations

from typing import TextIO

from loguru import logger

from ec2agent.api.launcher import AgentComputer, Connector, Launcher
from ec2agent.core.exceptions import Ec2AgentError, LaunchCancelledError
from ec2agent.lifecycle.controller import LifecycleController

log = logger.bind(component="launcher")


class LauncherDelegate:
    def __init__(self, controller: LifecycleController, connector: Connector) -> None:
        self._controller = controller
        self._connector = connector

    @property
    def controller(self) -> LifecycleController:
        return self._controller

    @property
    def launcher(self) -> Launcher | None:
        session = self._controller.session
        return session.launcher if session is not None else None

    def supports_launch(self) -> bool:
        """Whether the scheduler may launch this agent on demand.

        Until the instance has been made ready this is always true, so the
        node looks auto-launchable. Once a launcher exists the answer is the
        launcher's, which keeps on-demand retention from spinning up the
        instance again and again.
        """
        launcher = self.launcher
        if launcher is None:
            return True
        supported = launcher.supports_launch()
        log.debug("Instance is ready, underlying launcher answers {supported}", supported=supported)
        return supported

    def launch(self, computer: AgentComputer, listener: TextIO) -> None:
        """Bring the instance up and hand the session to the connector's launcher.

        Raises:
            LaunchCancelledError: The launch was cancelled while waiting.
            Ec2AgentError: The instance could not be made ready. The connector
                is never invoked in that case.
        """
        session = self._controller.open_session(listener)
        try:
            address = self._controller.ensure_running_and_ready(session)
        except LaunchCancelledError as e:
            session.log.info(f"launch cancelled: {e.reason}")
            raise
        except Ec2AgentError as e:
            session.log.error(f"launch of {computer.name} aborted: {e}")
            raise

        log.info(
            "Instance {instance_id} ready for {computer}, passing control to the connector",
            instance_id=self._controller.instance_id,
            computer=computer.name,
        )
        launcher = self._connector.produce_launcher(address, listener)
        session.launcher = launcher
        launcher.launch(computer, listener)

    def before_disconnect(self, computer: AgentComputer, listener: TextIO) -> None:
        launcher = self.launcher
        if launcher is not None:
            launcher.before_disconnect(computer, listener)

    def after_disconnect(self, computer: AgentComputer, listener: TextIO) -> None:
        """Tear down the transport first, then release the instance once."""
        session = self._controller.session
        if session is None or session.torn_down:
            log.debug("Session for {computer} already torn down", computer=computer.name)
            return

        try:
            if session.launcher is not None:
                session.launcher.after_disconnect(computer, listener)
        finally:
            self._controller.teardown()
