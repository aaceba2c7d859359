"""EC2-backed InstanceService."""

from __future__ import annotations

import functools
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from ec2agent.api.service import InstanceDescription
from ec2agent.config import ImageLaunch
from ec2agent.constants import NOT_FOUND_ERROR_CODES, InstanceState
from ec2agent.core.exceptions import CloudServiceError, InstanceNotFoundError

if TYPE_CHECKING:
    from mypy_boto3_ec2 import EC2Client

log = logger.bind(component="aws-service")


def _error_code(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Code", "")


def _translate_errors[**P, R](operation: str) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """Map botocore failures onto the ec2agent error taxonomy."""

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @functools.wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            try:
                return func(*args, **kwargs)
            except ClientError as e:
                code = _error_code(e)
                message = e.response.get("Error", {}).get("Message", str(e))
                raise CloudServiceError(operation, message, code) from e
            except BotoCoreError as e:
                raise CloudServiceError(operation, str(e)) from e

        return wrapper

    return decorator


class EC2InstanceService:
    """InstanceService over a boto3 EC2 client.

    Example:
        >>> import boto3
        >>> service = EC2InstanceService(boto3.client("ec2", region_name="us-west-1"))
        >>> service.describe_instance("i-0123456789abcdef0").state
        <InstanceState.STOPPED: 'stopped'>
    """

    def __init__(self, ec2: EC2Client) -> None:
        self._ec2 = ec2

    def describe_instance(self, instance_id: str) -> InstanceDescription:
        try:
            response = self._ec2.describe_instances(InstanceIds=[instance_id])
        except ClientError as e:
            if _error_code(e) in NOT_FOUND_ERROR_CODES:
                raise InstanceNotFoundError(instance_id, _error_code(e)) from e
            raise CloudServiceError(
                "describe_instances",
                e.response.get("Error", {}).get("Message", str(e)),
                _error_code(e),
            ) from e
        except BotoCoreError as e:
            raise CloudServiceError("describe_instances", str(e)) from e

        instances = [i for r in response.get("Reservations", []) for i in r.get("Instances", [])]
        if not instances:
            raise InstanceNotFoundError(instance_id)

        return _parse_instance(instances[0])

    @_translate_errors("run_instances")
    def create_instance(self, launch: ImageLaunch) -> str:
        run_args: dict[str, Any] = {
            "ImageId": launch.image_id,
            "InstanceType": launch.instance_type,
            "KeyName": launch.key_name,
            "MinCount": 1,
            "MaxCount": 1,
            "SecurityGroups": [launch.security_group],
        }
        if launch.availability_zone:
            run_args["Placement"] = {"AvailabilityZone": launch.availability_zone}

        response = self._ec2.run_instances(**run_args)
        instance_id = response["Instances"][0]["InstanceId"]
        log.info(
            "Launched {instance_id} from {image_id} ({instance_type})",
            instance_id=instance_id,
            image_id=launch.image_id,
            instance_type=launch.instance_type,
        )
        return instance_id

    @_translate_errors("start_instances")
    def start_instance(self, instance_id: str) -> None:
        self._ec2.start_instances(InstanceIds=[instance_id])

    @_translate_errors("stop_instances")
    def stop_instance(self, instance_id: str) -> None:
        self._ec2.stop_instances(InstanceIds=[instance_id])

    @_translate_errors("terminate_instances")
    def terminate_instance(self, instance_id: str) -> None:
        self._ec2.terminate_instances(InstanceIds=[instance_id])

    # -------------------------------------------------------------------------
    # Diagnostics
    # -------------------------------------------------------------------------

    @_translate_errors("describe_availability_zones")
    def check_credentials(self) -> list[str]:
        """Make a cheap authenticated call; returns the region's zone names."""
        response = self._ec2.describe_availability_zones()
        zones = [z["ZoneName"] for z in response.get("AvailabilityZones", [])]
        log.debug("Credentials valid, {n} availability zones visible", n=len(zones))
        return zones

    def validate_instance(self, instance_id: str) -> str:
        """Human-readable summary of an instance's current state."""
        description = self.describe_instance(instance_id)
        return f"Instance {instance_id} is in {description.state} state"


def _parse_instance(raw: dict[str, Any]) -> InstanceDescription:
    address = raw.get("PublicDnsName") or raw.get("PublicIpAddress") or None
    return InstanceDescription(
        instance_id=raw["InstanceId"],
        state=InstanceState.parse(raw.get("State", {}).get("Name")),
        public_address=address,
    )
