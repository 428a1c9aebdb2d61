"""
Google Cloud Compute Engine implementation of the VMProvider interface.
"""

import asyncio
import logging
from typing import Any, Optional

from google.api_core.exceptions import NotFound  # type: ignore
from google.auth import default as get_default_credentials
from google.cloud import compute_v1  # type: ignore
from google.oauth2 import service_account

from cloud_playground.common.config import GCPConfig
from cloud_playground.common.types import ImageSpec, Instance

from .provider import VMProvider

# Notes:
# - If "credentials_file" is not provided, the default application credentials will be
#   used, and "project_id" may be taken from them.
# - The instance ID is the instance name, which is unique within the zone. The numeric
#   GCP ID is reported in provider_data.
# - Images are full image URLs or paths such as
#   "projects/ubuntu-os-cloud/global/images/family/ubuntu-2204-lts".


class GCPComputeProvider(VMProvider):
    """Google Cloud Compute Engine implementation of the VMProvider interface."""

    NAME = "gcp"
    RUNNING_STATES = frozenset({"RUNNING"})
    DEFAULT_POLL_MAX_ATTEMPTS = 30
    DEFAULT_POLL_INTERVAL = 3.0

    _SSH_USER = "playground"
    _OPERATION_TIMEOUT = 300  # Seconds

    def __init__(self, gcp_config: GCPConfig):
        """Initialize the GCP Compute Engine provider.

        Args:
            gcp_config: GCP configuration

        Raises:
            RuntimeError: If credentials cannot be loaded or no project ID is known
        """
        super().__init__(gcp_config)

        self._logger = logging.getLogger(__name__)

        self._project_id = gcp_config.project_id
        self._zone = gcp_config.zone

        if gcp_config.credentials_file:
            try:
                self._credentials = service_account.Credentials.from_service_account_file(
                    gcp_config.credentials_file
                )
                self._logger.debug(f"Using credentials from file: {gcp_config.credentials_file}")
            except Exception as e:
                raise RuntimeError(
                    f"Error loading credentials file: {gcp_config.credentials_file}: {e}"
                ) from e
            if not self._project_id:
                self._project_id = getattr(self._credentials, "project_id", None)
        else:
            try:
                self._credentials, project_id = get_default_credentials()
                self._logger.debug("Using default application credentials")
                if not self._project_id and project_id:
                    self._project_id = project_id
                    self._logger.info(
                        f"Using project ID from default credentials: {self._project_id}"
                    )
            except Exception as e:
                raise RuntimeError(
                    f"Error getting default credentials: {e}. "
                    "Please ensure you're authenticated with 'gcloud auth application-default "
                    "login' or provide a credentials_file entry in the GCP configuration."
                ) from e

        if self._project_id is None:
            raise RuntimeError("Missing required GCP configuration 'project_id'")

        self._compute_client = compute_v1.InstancesClient(credentials=self._credentials)

        self._logger.debug(
            f"Initialized GCP Compute Engine: project '{self._project_id}', zone '{self._zone}'"
        )

    async def create_vm(
        self, spec: ImageSpec, ssh_key: str, startup_script: Optional[str] = None
    ) -> Instance:
        """Create a Compute Engine instance and wait until it is running with an address.

        Args:
            spec: Source image and machine type
            ssh_key: Public SSH key, installed for the "playground" user through
                instance metadata
            startup_script: Optional startup script

        Returns:
            The ready instance
        """
        vm_name = self.vm_name()

        metadata_items = [{"key": "ssh-keys", "value": f"{self._SSH_USER}:{ssh_key.strip()}"}]
        if startup_script:
            metadata_items.append({"key": "startup-script", "value": startup_script})

        inst_config = compute_v1.Instance(
            name=vm_name,
            machine_type=f"zones/{self._zone}/machineTypes/{spec.size}",
            disks=[
                {
                    "boot": True,
                    "auto_delete": True,
                    "initialize_params": {"source_image": spec.image},
                }
            ],
            network_interfaces=[
                {
                    "network": "global/networks/default",
                    "access_configs": [{"type": "ONE_TO_ONE_NAT", "name": "External NAT"}],
                }
            ],
            metadata={"items": metadata_items},
            tags={"items": ["playground", "ephemeral"]},
            labels={"created-by": "playground", "type": "ephemeral"},
        )

        self._logger.info(f"Creating instance {vm_name} ({spec.size}) in zone {self._zone}")
        try:
            operation = await asyncio.to_thread(
                self._compute_client.insert,
                project=self._project_id,
                zone=self._zone,
                instance_resource=inst_config,
            )
            await self._wait_for_operation(operation, f"Creation of instance {vm_name}")
        except Exception as e:
            self._logger.error(f"Failed to create instance {vm_name}: {e}", exc_info=True)
            raise

        return await self.wait_until_ready(vm_name)

    async def destroy_vm(self, instance_id: str) -> None:
        """Delete a Compute Engine instance. A missing instance is not an error."""
        self._logger.info(f"Deleting instance {instance_id} in zone {self._zone}")
        try:
            operation = await asyncio.to_thread(
                self._compute_client.delete,
                project=self._project_id,
                zone=self._zone,
                instance=instance_id,
            )
            await self._wait_for_operation(operation, f"Deletion of instance {instance_id}")
        except NotFound:
            self._logger.warning(
                f"Instance {instance_id} not found in project {self._project_id}, "
                f"zone {self._zone}; nothing to delete"
            )

    async def get_vm(self, instance_id: str) -> Instance:
        """Describe a Compute Engine instance by name."""
        instance = await asyncio.to_thread(
            self._compute_client.get,
            project=self._project_id,
            zone=self._zone,
            instance=instance_id,
        )

        public_ip = ""
        if instance.network_interfaces and instance.network_interfaces[0].access_configs:
            public_ip = instance.network_interfaces[0].access_configs[0].nat_i_p or ""

        return Instance(
            id=instance.name or instance_id,
            ip=public_ip,
            provider_data={
                "status": instance.status,
                "zone": self._zone,
                "machine_type": (instance.machine_type or "").split("/")[-1],
                "gcp_id": str(instance.id) if instance.id else None,
            },
        )

    async def _wait_for_operation(self, operation, verbose_name: str) -> Any:
        """Wait for a Compute Engine zonal operation to complete.

        Raises:
            The operation's exception if it failed
        """
        self._logger.debug(f"Waiting for operation {operation.name} to complete")

        result = await asyncio.to_thread(operation.result, timeout=self._OPERATION_TIMEOUT)

        if operation.error_code:
            self._logger.error(
                f"Error during {verbose_name}: [Code: {operation.error_code}]: "
                f"{operation.error_message}"
            )
            raise operation.exception() or RuntimeError(operation.error_message)

        if operation.warnings:
            for warning in operation.warnings:
                self._logger.warning(f"{verbose_name}: {warning.code}: {warning.message}")

        return result
