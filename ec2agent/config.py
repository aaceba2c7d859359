"""Controller configuration.

Immutable configuration values for a lifecycle controller, plus TOML-based
loading: ~/.ec2agent/defaults.toml (global) and ec2agent.toml (project) are
merged, named controllers are resolved into ControllerConfig instances and
the [logging] table into a LogConfig.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from ec2agent.constants import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_REGION,
    DEFAULT_SECURITY_GROUP,
    DEFAULT_SETTLE_DELAY,
    ReleaseAction,
)
from ec2agent.core.exceptions import ConfigurationConflictError, ConfigurationError
from ec2agent.observability.logging import LogConfig

type RawConfig = dict[str, Any]

GLOBAL_CONFIG_PATH = Path.home() / ".ec2agent" / "defaults.toml"
PROJECT_CONFIG_NAME = "ec2agent.toml"


# =============================================================================
# Configuration Values
# =============================================================================


@dataclass(frozen=True, slots=True)
class AwsCredentials:
    """Static AWS credentials.

    Empty keys defer to the default boto3 credential chain
    (environment, shared config, instance profile).
    """

    access_key: str = ""
    secret_key: str = field(default="", repr=False)
    session_token: str | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "access_key", self.access_key.strip())
        object.__setattr__(self, "secret_key", self.secret_key.strip())
        if bool(self.access_key) != bool(self.secret_key):
            raise ConfigurationError("access_key and secret_key must be given together")

    @property
    def is_explicit(self) -> bool:
        return bool(self.access_key)


@dataclass(frozen=True, slots=True)
class FixedInstance:
    """Bind the agent to a pre-existing instance."""

    instance_id: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "instance_id", self.instance_id.strip())
        if not self.instance_id:
            raise ConfigurationError("instance_id must not be empty")


@dataclass(frozen=True, slots=True)
class ImageLaunch:
    """Create the instance from a machine image on first launch.

    Args:
        image_id: AMI to launch.
        instance_type: EC2 instance type, e.g. ``t3.medium``.
        key_name: Key pair installed on the instance.
        security_group: Security group name. Empty means ``default``.
        availability_zone: Placement zone. Empty lets EC2 choose.
    """

    image_id: str
    instance_type: str
    key_name: str
    security_group: str = DEFAULT_SECURITY_GROUP
    availability_zone: str = ""

    def __post_init__(self) -> None:
        for name in ("image_id", "instance_type", "key_name"):
            if not getattr(self, name).strip():
                raise ConfigurationError(f"{name} must not be empty")
        if not self.security_group.strip():
            object.__setattr__(self, "security_group", DEFAULT_SECURITY_GROUP)


type InstanceIdentity = FixedInstance | ImageLaunch


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Polling budget for state transitions.

    Args:
        max_retries: Maximum describe attempts per wait.
        poll_interval: Seconds between attempts.
        settle_delay: Seconds to hold after the instance reports running,
            giving its services time to boot before a connection is tried.
    """

    max_retries: int = DEFAULT_MAX_RETRIES
    poll_interval: float = DEFAULT_POLL_INTERVAL
    settle_delay: float = DEFAULT_SETTLE_DELAY

    def __post_init__(self) -> None:
        if self.max_retries < 1:
            raise ConfigurationError(f"max_retries must be >= 1, got {self.max_retries}")
        if self.poll_interval < 0 or self.settle_delay < 0:
            raise ConfigurationError("poll_interval and settle_delay must be >= 0")


@dataclass(frozen=True, slots=True)
class ControllerConfig:
    """Static configuration of one lifecycle controller.

    Example:
        >>> config = ControllerConfig(
        ...     identity=FixedInstance("i-0123456789abcdef0"),
        ...     region="us-east-1",
        ... )
    """

    identity: InstanceIdentity
    credentials: AwsCredentials = AwsCredentials()
    region: str = DEFAULT_REGION
    endpoint_url: str | None = None
    retry: RetryPolicy = RetryPolicy()
    release: ReleaseAction = ReleaseAction.STOP
    wait_for_stop: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "release", ReleaseAction(self.release))
        if self.release is ReleaseAction.TERMINATE and isinstance(self.identity, FixedInstance):
            raise ConfigurationError("release='terminate' is only allowed when launching from an image")

    @property
    def image_mode(self) -> bool:
        return isinstance(self.identity, ImageLaunch)

    def connection_key(self) -> tuple[object, ...]:
        """Fields that determine which EC2 endpoint and account are used."""
        return (self.credentials, self.region, self.endpoint_url)


def check_reconfiguration(
    current: ControllerConfig,
    new: ControllerConfig,
    *,
    live_instance_id: str | None,
) -> None:
    """Reject identity changes while an instance is pending, running or stopping.

    Raises:
        ConfigurationConflictError: If credentials, region or identity differ
            and ``live_instance_id`` is set.
    """
    if live_instance_id is None:
        return

    changed = tuple(
        name
        for name in ("credentials", "region", "endpoint_url", "identity")
        if getattr(current, name) != getattr(new, name)
    )
    if changed:
        raise ConfigurationConflictError(live_instance_id, changed)


# =============================================================================
# TOML Loading
# =============================================================================


def _deep_merge(base: RawConfig, override: RawConfig) -> RawConfig:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_toml(path: Path) -> RawConfig:
    if not path.is_file():
        return {}
    with path.open("rb") as f:
        return tomllib.load(f)


def load_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> RawConfig:
    global_cfg = _read_toml(global_path or GLOBAL_CONFIG_PATH)
    project_path = (project_dir or Path.cwd()) / PROJECT_CONFIG_NAME
    project_cfg = _read_toml(project_path)

    merged = _deep_merge(global_cfg, project_cfg)
    merged.setdefault("controllers", {})
    return merged


def _build[T](cls: type[T], raw: RawConfig, section: str) -> T:
    known = {f.name for f in fields(cls)}  # type: ignore[arg-type]
    unknown = set(raw) - known
    if unknown:
        raise ConfigurationError(
            f"Unknown keys in [{section}]: {', '.join(sorted(unknown))}"
        )
    try:
        return cls(**raw)
    except TypeError as e:
        raise ConfigurationError(f"Invalid [{section}]: {e}") from e


def _build_identity(name: str, raw: RawConfig) -> InstanceIdentity:
    instance_id = raw.pop("instance_id", None)
    image = raw.pop("image", None)

    match instance_id, image:
        case str(), None:
            return FixedInstance(instance_id)
        case None, dict():
            return _build(ImageLaunch, image, f"controllers.{name}.image")
        case None, None:
            raise ConfigurationError(f"Controller '{name}' needs either 'instance_id' or an [image] table")
        case _:
            raise ConfigurationError(f"Controller '{name}' sets both 'instance_id' and [image]")


def build_controller_config(name: str, raw: RawConfig) -> ControllerConfig:
    raw = dict(raw)
    identity = _build_identity(name, raw)

    credentials = _build(AwsCredentials, raw.pop("credentials", {}), f"controllers.{name}.credentials")
    retry = _build(RetryPolicy, raw.pop("retry", {}), f"controllers.{name}.retry")

    if "release" in raw:
        try:
            raw["release"] = ReleaseAction(raw["release"])
        except ValueError as e:
            raise ConfigurationError(
                f"Unknown release action '{raw['release']}'. "
                f"Valid: {', '.join(ReleaseAction)}"
            ) from e

    return _build(
        ControllerConfig,
        {**raw, "identity": identity, "credentials": credentials, "retry": retry},
        f"controllers.{name}",
    )


def resolve_controller(
    name: str,
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> ControllerConfig:
    config = load_config(project_dir=project_dir, global_path=global_path)

    controllers = config["controllers"]
    if name not in controllers:
        raise KeyError(
            f"Controller '{name}' not found. Available: {', '.join(controllers) or 'none'}"
        )

    return build_controller_config(name, controllers[name])


def resolve_logging(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> LogConfig:
    """Build the LogConfig from the merged ``[logging]`` table, defaults when absent."""
    config = load_config(project_dir=project_dir, global_path=global_path)
    return _build(LogConfig, dict(config.get("logging", {})), "logging")
