"""
AWS EC2 implementation of the VMProvider interface.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import boto3  # type: ignore
from botocore.exceptions import ClientError  # type: ignore

from cloud_playground.common.config import AWSConfig
from cloud_playground.common.errors import ProviderOperationFailed
from cloud_playground.common.types import ImageSpec, Instance

from .provider import VMProvider
from .ssh_keys import ensure_ssh_key, ssh_key_name


def _error_code(e: BaseException) -> Optional[str]:
    if isinstance(e, ClientError):
        return e.response.get("Error", {}).get("Code")
    return None


class AWSEC2Provider(VMProvider):
    """AWS EC2 implementation of the VMProvider interface.

    The instance ID is the EC2 instance ID (e.g. ``i-1234567890abcdef0``). Images are
    AMI IDs and sizes are EC2 instance types.
    """

    NAME = "aws"
    RUNNING_STATES = frozenset({"running"})
    DEFAULT_POLL_MAX_ATTEMPTS = 30
    DEFAULT_POLL_INTERVAL = 5.0

    def __init__(self, aws_config: AWSConfig) -> None:
        """Initialize the AWS EC2 provider.

        Args:
            aws_config: AWS configuration. If access_key and secret_key are not given the
                default boto3 credential chain is used.
        """
        super().__init__(aws_config)
        self._logger = logging.getLogger(__name__)

        self._credentials = {
            "aws_access_key_id": aws_config.access_key,
            "aws_secret_access_key": aws_config.secret_key,
        }
        self._region = aws_config.region
        self._subnet_id = aws_config.subnet_id
        self._security_group_id = aws_config.security_group_id

        self._ec2_client = boto3.client("ec2", region_name=self._region, **self._credentials)

        self._logger.debug(f"Initialized AWS EC2: region '{self._region}'")

    async def _ensure_key_pair(self, public_key: str) -> str:
        """Import the public key as an EC2 key pair if needed and return its name."""
        key_name = ssh_key_name(public_key)

        async def create() -> str:
            await asyncio.to_thread(
                self._ec2_client.import_key_pair,
                KeyName=key_name,
                PublicKeyMaterial=public_key.strip().encode("utf-8"),
                TagSpecifications=[
                    {
                        "ResourceType": "key-pair",
                        "Tags": [{"Key": "CreatedBy", "Value": "playground"}],
                    }
                ],
            )
            self._logger.debug(f"Imported key pair {key_name}")
            return key_name

        async def find() -> Optional[str]:
            try:
                response = await asyncio.to_thread(
                    self._ec2_client.describe_key_pairs, KeyNames=[key_name]
                )
            except ClientError as e:
                if _error_code(e) == "InvalidKeyPair.NotFound":
                    return None
                raise
            for key_pair in response.get("KeyPairs", []):
                if key_pair.get("KeyName") == key_name:
                    return key_name
            return None

        return await ensure_ssh_key(
            create,
            find,
            lambda e: _error_code(e) == "InvalidKeyPair.Duplicate",
            provider=self.NAME,
        )

    async def create_vm(
        self, spec: ImageSpec, ssh_key: str, startup_script: Optional[str] = None
    ) -> Instance:
        """Create an EC2 instance and wait until it is running with an address.

        Args:
            spec: AMI ID and instance type
            ssh_key: Public SSH key, imported as an EC2 key pair
            startup_script: Optional user data script

        Returns:
            The ready instance
        """
        key_name = await self._ensure_key_pair(ssh_key)
        vm_name = self.vm_name()

        run_params: Dict[str, Any] = {
            "ImageId": spec.image,
            "InstanceType": spec.size,
            "MinCount": 1,
            "MaxCount": 1,
            "KeyName": key_name,
            "TagSpecifications": [
                {
                    "ResourceType": "instance",
                    "Tags": [
                        {"Key": "Name", "Value": vm_name},
                        {"Key": "CreatedBy", "Value": "playground"},
                        {"Key": "Type", "Value": "ephemeral"},
                    ],
                }
            ],
        }
        # boto3 base64-encodes UserData for run_instances
        if startup_script:
            run_params["UserData"] = startup_script
        if self._security_group_id:
            run_params["SecurityGroupIds"] = [self._security_group_id]
        if self._subnet_id:
            run_params["SubnetId"] = self._subnet_id

        self._logger.info(f"Creating EC2 instance {vm_name} ({spec.size}, {spec.image})")
        try:
            response = await asyncio.to_thread(self._ec2_client.run_instances, **run_params)
        except Exception as e:
            self._logger.error(f"Failed to create instance: {e}")
            raise

        instances = response.get("Instances") or []
        if not instances or not instances[0].get("InstanceId"):
            raise ProviderOperationFailed(
                self.NAME, "create_vm", "run_instances returned no instance ID"
            )
        instance_id = instances[0]["InstanceId"]
        self._logger.info(f"Created EC2 instance {instance_id}; waiting for it to be ready")

        return await self.wait_until_ready(instance_id)

    async def destroy_vm(self, instance_id: str) -> None:
        """Terminate an EC2 instance. A missing instance is not an error."""
        self._logger.info(f"Terminating EC2 instance {instance_id}")
        try:
            await asyncio.to_thread(
                self._ec2_client.terminate_instances, InstanceIds=[instance_id]
            )
        except ClientError as e:
            if _error_code(e) == "InvalidInstanceID.NotFound":
                self._logger.warning(f"Instance {instance_id} not found; nothing to terminate")
                return
            raise

    async def _poll_vm(self, instance_id: str) -> Instance:
        # A new instance may not be visible to describe_instances yet
        try:
            return await self.get_vm(instance_id)
        except ClientError as e:
            if _error_code(e) == "InvalidInstanceID.NotFound":
                self._logger.debug(f"Instance {instance_id} not visible yet")
                return Instance(id=instance_id, provider_data={"status": "not_found"})
            raise

    async def get_vm(self, instance_id: str) -> Instance:
        """Describe an EC2 instance.

        The address is the public IP if there is one, otherwise the private IP.
        """
        response = await asyncio.to_thread(
            self._ec2_client.describe_instances, InstanceIds=[instance_id]
        )
        reservations = response.get("Reservations") or []
        if not reservations or not reservations[0].get("Instances"):
            raise ProviderOperationFailed(self.NAME, "get_vm", f"Instance {instance_id} not found")
        instance = reservations[0]["Instances"][0]

        return Instance(
            id=instance["InstanceId"],
            ip=instance.get("PublicIpAddress") or instance.get("PrivateIpAddress") or "",
            provider_data={
                "status": instance.get("State", {}).get("Name"),
                "instance_type": instance.get("InstanceType"),
                "availability_zone": instance.get("Placement", {}).get("AvailabilityZone"),
            },
        )
