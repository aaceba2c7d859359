"""AWS EC2 backend."""

from .clients import AWSModule, InstanceServiceFactory, create_instance_service
from .service import EC2InstanceService

__all__ = [
    "AWSModule",
    "EC2InstanceService",
    "InstanceServiceFactory",
    "create_instance_service",
]
