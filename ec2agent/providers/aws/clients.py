"""AWS client factories with dependency injection.

Builds the boto3 session, EC2 client and InstanceService for a
ControllerConfig, and exposes the factory through an injector module.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import boto3
from botocore.config import Config as BotoConfig
from injector import Module, provider, singleton

from ec2agent.api.service import InstanceService
from ec2agent.config import ControllerConfig

from .service import EC2InstanceService

if TYPE_CHECKING:
    from mypy_boto3_ec2 import EC2Client


# One attempt per request; state queries are retried by the poll loop only.
_BOTO_CONFIG = BotoConfig(retries={"max_attempts": 1, "mode": "standard"})


def create_session(config: ControllerConfig) -> boto3.session.Session:
    credentials = config.credentials
    if not credentials.is_explicit:
        return boto3.session.Session(region_name=config.region)
    return boto3.session.Session(
        aws_access_key_id=credentials.access_key,
        aws_secret_access_key=credentials.secret_key,
        aws_session_token=credentials.session_token,
        region_name=config.region,
    )


def create_ec2_client(session: boto3.session.Session, config: ControllerConfig) -> EC2Client:
    kwargs: dict[str, Any] = {"region_name": config.region, "config": _BOTO_CONFIG}
    if config.endpoint_url:
        kwargs["endpoint_url"] = config.endpoint_url
    return session.client("ec2", **kwargs)


def create_instance_service(config: ControllerConfig) -> EC2InstanceService:
    return EC2InstanceService(create_ec2_client(create_session(config), config))


# =============================================================================
# Wrapper Classes for DI (each needs a unique type)
# =============================================================================


class InstanceServiceFactory:
    """Wrapper for the InstanceService factory."""

    def __init__(self, factory: Callable[[ControllerConfig], InstanceService]) -> None:
        self._factory = factory

    def __call__(self, config: ControllerConfig) -> InstanceService:
        return self._factory(config)


# =============================================================================
# AWS Module
# =============================================================================


class AWSModule(Module):
    """DI module that provides the EC2-backed InstanceService factory.

    Usage:
        >>> from injector import Injector
        >>> injector = Injector([AWSModule()])
        >>> factory = injector.get(InstanceServiceFactory)
        >>> service = factory(config)
    """

    @singleton
    @provider
    def provide_service_factory(self) -> InstanceServiceFactory:
        return InstanceServiceFactory(create_instance_service)


__all__ = [
    "AWSModule",
    "InstanceServiceFactory",
    "create_ec2_client",
    "create_instance_service",
    "create_session",
]
