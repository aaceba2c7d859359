"""Custom exception hierarchy for ec2agent.

All ec2agent-specific exceptions inherit from Ec2AgentError, enabling
callers to catch every controller failure with a single except clause.
"""

from __future__ import annotations


class Ec2AgentError(Exception):
    """Base exception for all ec2agent errors."""


class ConfigurationError(Ec2AgentError):
    """Raised for invalid configuration or missing required settings."""


class ConfigurationConflictError(ConfigurationError):
    """Raised when identity settings change while the instance is running."""

    def __init__(self, instance_id: str, fields: tuple[str, ...]) -> None:
        self.instance_id = instance_id
        self.fields = fields
        super().__init__(
            f"Cannot change {', '.join(fields)} while instance {instance_id} is live"
        )


class CloudServiceError(Ec2AgentError):
    """Raised when a call to the cloud compute API itself fails."""

    def __init__(self, operation: str, reason: str, code: str | None = None) -> None:
        self.operation = operation
        self.reason = reason
        self.code = code
        super().__init__(f"{operation} failed: {reason}")


class InstanceNotFoundError(CloudServiceError):
    """Raised when the cloud API reports that the instance does not exist."""

    def __init__(self, instance_id: str, code: str | None = None) -> None:
        self.instance_id = instance_id
        super().__init__("describe_instances", f"no such instance: {instance_id}", code)


class LifecycleError(Ec2AgentError):
    """Raised when the instance cannot be brought to the requested state."""


class UnexpectedStateError(LifecycleError):
    """Raised when the instance reports a state that will not resolve on its own."""

    def __init__(self, instance_id: str, state: str, goal: str) -> None:
        self.instance_id = instance_id
        self.state = state
        self.goal = goal
        super().__init__(
            f"Instance {instance_id} encountered unexpected state [{state}] "
            f"while waiting for [{goal}]"
        )


class InstanceTerminatedError(UnexpectedStateError):
    """Raised when a fixed instance was destroyed - do not retry."""

    def __init__(self, instance_id: str, state: str = "terminated") -> None:
        self.instance_id = instance_id
        self.state = state
        self.goal = "running"
        LifecycleError.__init__(
            self, f"Instance {instance_id} is {state} and cannot be restarted"
        )


class RetriesExhaustedError(LifecycleError):
    """Raised when the poll budget is consumed before reaching the goal."""

    def __init__(self, instance_id: str, goal: str, attempts: int) -> None:
        self.instance_id = instance_id
        self.goal = goal
        self.attempts = attempts
        super().__init__(
            f"Maximum number of retries {attempts} exceeded waiting for "
            f"instance {instance_id} to become [{goal}]"
        )


class LaunchInProgressError(LifecycleError):
    """Raised when a second wait is requested while one is already active."""


class LaunchCancelledError(Ec2AgentError):
    """Raised when a wait is aborted by an external cancellation signal."""

    def __init__(self, instance_id: str | None, reason: str = "cancelled") -> None:
        self.instance_id = instance_id
        self.reason = reason
        super().__init__(f"Wait on instance {instance_id} cancelled: {reason}")
