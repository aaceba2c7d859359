"""ec2agent - run CI build agents on EC2 instances that start on demand.

Example:
    from ec2agent import ControllerConfig, FixedInstance, create_delegate

    delegate = create_delegate(
        ControllerConfig(identity=FixedInstance("i-0123456789abcdef0")),
        connector=SSHConnector(user="ci"),
    )
    delegate.launch(computer, listener)
"""

from ec2agent.app import ControllerModule, create_delegate
from ec2agent.config import (
    AwsCredentials,
    ControllerConfig,
    FixedInstance,
    ImageLaunch,
    RetryPolicy,
    load_config,
    resolve_controller,
    resolve_logging,
)
from ec2agent.constants import InstanceState, ReleaseAction
from ec2agent.core.exceptions import (
    CloudServiceError,
    ConfigurationConflictError,
    ConfigurationError,
    Ec2AgentError,
    InstanceNotFoundError,
    InstanceTerminatedError,
    LaunchCancelledError,
    LaunchInProgressError,
    LifecycleError,
    RetriesExhaustedError,
    UnexpectedStateError,
)
from ec2agent.launcher import LauncherDelegate
from ec2agent.lifecycle import CancelSignal, InstanceStatePoller, LifecycleController, Session
from ec2agent.observability import LogConfig, SessionLog, logging_enabled, setup_logging, teardown_logging
from ec2agent.worker import LaunchWorker

__version__ = "0.1.0"

__all__ = [
    # Configuration
    "AwsCredentials",
    "ControllerConfig",
    "FixedInstance",
    "ImageLaunch",
    "RetryPolicy",
    "ReleaseAction",
    "load_config",
    "resolve_controller",
    "resolve_logging",
    # Lifecycle
    "InstanceState",
    "CancelSignal",
    "InstanceStatePoller",
    "LifecycleController",
    "Session",
    "LauncherDelegate",
    "LaunchWorker",
    "ControllerModule",
    "create_delegate",
    # Observability
    "LogConfig",
    "SessionLog",
    "logging_enabled",
    "setup_logging",
    "teardown_logging",
    # Errors
    "Ec2AgentError",
    "ConfigurationError",
    "ConfigurationConflictError",
    "CloudServiceError",
    "InstanceNotFoundError",
    "LifecycleError",
    "UnexpectedStateError",
    "InstanceTerminatedError",
    "RetriesExhaustedError",
    "LaunchInProgressError",
    "LaunchCancelledError",
]
