"""Lifecycle controller for the one EC2 instance backing a CI agent.

The controller owns the instance id across sessions. Each launch opens a
Session (address, connector-produced launcher, cancellation signal, audit
stream); teardown closes it.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TextIO

from loguru import logger

from ec2agent.api.launcher import Launcher
from ec2agent.api.service import InstanceDescription, InstanceService
from ec2agent.config import ControllerConfig, FixedInstance, ImageLaunch, check_reconfiguration
from ec2agent.constants import GONE_STATES, LIVE_STATES, InstanceState, ReleaseAction
from ec2agent.core.exceptions import (
    ConfigurationError,
    Ec2AgentError,
    InstanceNotFoundError,
    InstanceTerminatedError,
    LaunchCancelledError,
    LaunchInProgressError,
    LifecycleError,
    UnexpectedStateError,
)
from ec2agent.observability.session import SessionLog

from .cancel import CancelSignal
from .poller import InstanceStatePoller

log = logger.bind(component="lifecycle")

type ServiceFactory = Callable[[ControllerConfig], InstanceService]


@dataclass(slots=True)
class Session:
    """In-memory state of one launch/disconnect cycle. Never persisted."""

    log: SessionLog
    cancel: CancelSignal = field(default_factory=CancelSignal)
    ready_address: str | None = None
    launcher: Launcher | None = None
    torn_down: bool = False

    @property
    def ready(self) -> bool:
        return self.ready_address is not None


class LifecycleController:
    """Creates or starts the instance, waits for it, and stops it afterwards.

    Args:
        config: Static controller configuration.
        service_factory: Builds the InstanceService for a configuration.
            Called again by ``reconfigure`` when the endpoint changes.
    """

    def __init__(self, config: ControllerConfig, service_factory: ServiceFactory) -> None:
        self._config = config
        self._service_factory = service_factory
        self._service = service_factory(config)
        self._poller = InstanceStatePoller(self._service, config.retry)
        self._wait_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._session: Session | None = None
        self._release_cancel: CancelSignal | None = None
        self._instance_id: str | None = (
            config.identity.instance_id if isinstance(config.identity, FixedInstance) else None
        )

    @property
    def config(self) -> ControllerConfig:
        return self._config

    @property
    def instance_id(self) -> str | None:
        return self._instance_id

    @property
    def session(self) -> Session | None:
        return self._session

    def open_session(self, listener: TextIO | None) -> Session:
        """Start a new session, replacing one left over from a failed cycle."""
        with self._state_lock:
            if self._session is not None and not self._session.torn_down:
                self._session.cancel.cancel("superseded by a new launch")
            self._session = Session(log=SessionLog(listener).bind(instance_id=self._instance_id))
            return self._session

    # -------------------------------------------------------------------------
    # Launch
    # -------------------------------------------------------------------------

    def ensure_running_and_ready(self, session: Session) -> str:
        """Drive the instance to running and return its public address.

        Raises:
            LaunchInProgressError: Another wait is already active.
            LifecycleError: The instance cannot be made ready.
            CloudServiceError: A create/start request failed.
            LaunchCancelledError: The session was cancelled mid-wait.
        """
        if not self._wait_lock.acquire(blocking=False):
            raise LaunchInProgressError(
                f"A launch is already waiting on instance {self._instance_id}"
            )
        try:
            description = self._bring_up(session)
        finally:
            self._wait_lock.release()

        address = description.public_address
        if not address:
            raise LifecycleError(f"Instance {description.instance_id} is running without a public address")
        session.ready_address = address
        session.log.info(f"instance is ready at {address}", instance_id=description.instance_id)
        return address

    def _bring_up(self, session: Session) -> InstanceDescription:
        wait = self._poller.wait_for_state
        cancel = session.cancel

        if self._instance_id is None:
            return wait(self._create(session), InstanceState.RUNNING, cancel=cancel, log=session.log)

        instance_id = self._instance_id
        try:
            state = self._service.describe_instance(instance_id).state
        except InstanceNotFoundError:
            if not self._config.image_mode:
                raise
            session.log.warning("instance no longer exists, launching a replacement")
            return wait(self._create(session), InstanceState.RUNNING, cancel=cancel, log=session.log)

        slog = session.log.bind(instance_id=instance_id, state=state)

        match state:
            case InstanceState.RUNNING:
                slog.info("instance is already running, skipping start")
                return wait(instance_id, InstanceState.RUNNING, cancel=cancel, log=session.log, settle=False)
            case InstanceState.PENDING:
                slog.info("instance is already starting")
                return wait(instance_id, InstanceState.RUNNING, cancel=cancel, log=session.log)
            case InstanceState.STOPPING:
                slog.info("instance is stopping, waiting for it to stop before starting it")
                wait(instance_id, InstanceState.STOPPED, cancel=cancel, log=session.log)
                self._start(instance_id, session)
                return wait(instance_id, InstanceState.RUNNING, cancel=cancel, log=session.log)
            case InstanceState.STOPPED:
                self._start(instance_id, session)
                return wait(instance_id, InstanceState.RUNNING, cancel=cancel, log=session.log)
            case _ if state in GONE_STATES:
                if not self._config.image_mode:
                    err = InstanceTerminatedError(instance_id, state)
                    slog.error(str(err))
                    raise err
                slog.warning("instance was terminated, launching a replacement")
                self._instance_id = None
                return wait(self._create(session), InstanceState.RUNNING, cancel=cancel, log=session.log)
            case _:
                err = UnexpectedStateError(instance_id, state, InstanceState.RUNNING)
                slog.error(f"{err}. Aborting launch")
                raise err

    def _create(self, session: Session) -> str:
        identity = self._config.identity
        if not isinstance(identity, ImageLaunch):
            raise ConfigurationError("Creating an instance requires an image launch configuration")
        session.cancel.raise_if_cancelled()
        session.log.info(f"creating instance from image [{identity.image_id}] ({identity.instance_type})")
        instance_id = self._service.create_instance(identity)
        self._instance_id = instance_id
        session.log = session.log.bind(instance_id=instance_id)
        session.log.info("instance created")
        return instance_id

    def _start(self, instance_id: str, session: Session) -> None:
        session.cancel.raise_if_cancelled()
        session.log.info("starting instance", instance_id=instance_id)
        self._service.start_instance(instance_id)

    # -------------------------------------------------------------------------
    # Teardown
    # -------------------------------------------------------------------------

    def cancel(self, reason: str = "cancelled") -> None:
        """Abort the active session's wait and any release wait in progress."""
        with self._state_lock:
            signals = [self._release_cancel]
            if self._session is not None:
                signals.append(self._session.cancel)
        for signal in signals:
            if signal is not None:
                signal.cancel(reason)

    def teardown(self, listener: TextIO | None = None) -> None:
        """Release the instance at the end of a session.

        Cancels the session's wait and blocks until an in-flight launch has
        unwound, so an instance it created or started is released too. Then
        stops (or terminates) the instance when its id is known. Never
        raises: failures are written to the session stream and the library
        log so the disconnect itself can complete.
        """
        release_cancel = CancelSignal()
        with self._state_lock:
            session = self._session
            self._session = None
            self._release_cancel = release_cancel

        if session is not None:
            session.cancel.cancel("session torn down")
            session.torn_down = True
            session.launcher = None
            session.ready_address = None
            slog = session.log if listener is None else SessionLog(listener)
        else:
            slog = SessionLog(listener)

        try:
            if not self._wait_lock.acquire(blocking=False):
                slog.info("waiting for the in-flight launch to unwind before releasing the instance")
                self._wait_lock.acquire()
            try:
                self._release(slog, release_cancel)
            finally:
                self._wait_lock.release()
        finally:
            with self._state_lock:
                if self._release_cancel is release_cancel:
                    self._release_cancel = None

    def _release(self, slog: SessionLog, cancel: CancelSignal) -> None:
        instance_id = self._instance_id
        if instance_id is None:
            slog.debug("no instance to release")
            return

        slog = slog.bind(instance_id=instance_id)
        action = self._config.release
        try:
            if action is ReleaseAction.TERMINATE:
                slog.info("terminating instance")
                self._service.terminate_instance(instance_id)
                goal = InstanceState.TERMINATED
            else:
                slog.info("stopping instance")
                self._service.stop_instance(instance_id)
                goal = InstanceState.STOPPED

            if self._config.wait_for_stop:
                self._poller.wait_for_state(instance_id, goal, cancel=cancel, log=slog)

            if action is ReleaseAction.TERMINATE:
                self._instance_id = None
        except LaunchCancelledError as e:
            slog.info(f"release wait interrupted: {e.reason}")
        except Ec2AgentError as e:
            slog.error(f"failed to {action} instance, it may still be running: {e}")
            log.bind(instance_id=instance_id).opt(exception=e).error(
                "Release of {instance_id} failed", instance_id=instance_id
            )

    # -------------------------------------------------------------------------
    # Introspection & reconfiguration
    # -------------------------------------------------------------------------

    def is_instance_running(self) -> bool:
        if self._instance_id is None:
            return False
        try:
            return self._service.describe_instance(self._instance_id).state is InstanceState.RUNNING
        except InstanceNotFoundError:
            return False

    def _is_instance_live(self) -> bool:
        if self._instance_id is None:
            return False
        try:
            return self._service.describe_instance(self._instance_id).state in LIVE_STATES
        except InstanceNotFoundError:
            return False

    def reconfigure(self, new_config: ControllerConfig) -> None:
        """Swap the configuration.

        Raises:
            ConfigurationConflictError: Credentials, region or identity differ
                while the instance is pending, running or stopping.
        """
        live_id = self._instance_id if self._is_instance_live() else None
        check_reconfiguration(self._config, new_config, live_instance_id=live_id)

        if new_config.connection_key() != self._config.connection_key():
            self._service = self._service_factory(new_config)
        if new_config.identity != self._config.identity:
            self._instance_id = (
                new_config.identity.instance_id
                if isinstance(new_config.identity, FixedInstance)
                else None
            )
        self._config = new_config
        self._poller = InstanceStatePoller(self._service, new_config.retry)
        log.info("Controller reconfigured for {identity}", identity=new_config.identity)
