"""Centralized constants and enums for ec2agent.

All magic strings and tuning defaults are defined here to ensure
consistency and enable type-safe usage throughout the codebase.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Final

# =============================================================================
# EC2 Instance States
# =============================================================================


class InstanceState(StrEnum):
    """EC2 instance state names.

    ``UNKNOWN`` stands in for any value EC2 reports that is not listed here.
    """

    PENDING = "pending"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    SHUTTING_DOWN = "shutting-down"
    TERMINATED = "terminated"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str | None) -> InstanceState:
        """Map a raw EC2 state name to a member, ``UNKNOWN`` when unrecognized."""
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.UNKNOWN


IN_PROGRESS_STATES: Final = frozenset({InstanceState.PENDING, InstanceState.STOPPING})
GONE_STATES: Final = frozenset({InstanceState.SHUTTING_DOWN, InstanceState.TERMINATED})
LIVE_STATES: Final = frozenset({InstanceState.PENDING, InstanceState.RUNNING, InstanceState.STOPPING})


class ReleaseAction(StrEnum):
    """What happens to the instance when the agent disconnects."""

    STOP = "stop"
    TERMINATE = "terminate"


# =============================================================================
# Defaults
# =============================================================================

DEFAULT_REGION: Final = "us-west-1"
DEFAULT_SECURITY_GROUP: Final = "default"

DEFAULT_MAX_RETRIES: Final = 60
DEFAULT_POLL_INTERVAL: Final = 10.0
DEFAULT_SETTLE_DELAY: Final = 60.0

NOT_FOUND_ERROR_CODES: Final = frozenset({
    "InvalidInstanceID.NotFound",
    "InvalidInstanceID.Malformed",
})
