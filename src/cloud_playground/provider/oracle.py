"""
Oracle Cloud Infrastructure implementation of the VMProvider interface.
"""

import asyncio
import base64
import logging
from typing import Optional

import oci  # type: ignore

from cloud_playground.common.config import OracleConfig
from cloud_playground.common.errors import ProviderOperationFailed
from cloud_playground.common.types import ImageSpec, Instance

from .provider import VMProvider

# Notes:
# - Instances are launched in the first availability domain of the tenancy and the
#   first subnet of the first VCN in the compartment.
# - The instance ID is the instance OCID. Images are image OCIDs and sizes are shapes.
# - The public IP is read from the instance's primary VNIC once it is attached.


class OracleProvider(VMProvider):
    """Oracle Cloud Infrastructure implementation of the VMProvider interface."""

    NAME = "oracle"
    RUNNING_STATES = frozenset({"RUNNING"})
    DEFAULT_POLL_MAX_ATTEMPTS = 30
    DEFAULT_POLL_INTERVAL = 5.0

    def __init__(self, oracle_config: OracleConfig) -> None:
        """Initialize the OCI provider.

        Args:
            oracle_config: OCI configuration

        Raises:
            oci.exceptions.InvalidConfig: If the API signing configuration is invalid
        """
        super().__init__(oracle_config)
        self._logger = logging.getLogger(__name__)

        self._compartment_id = oracle_config.compartment_id
        self._tenancy_id = oracle_config.tenancy_id
        self._region = oracle_config.region

        self._oci_config = {
            "user": oracle_config.user_id,
            "fingerprint": oracle_config.fingerprint,
            "key_file": oracle_config.private_key_file,
            "tenancy": oracle_config.tenancy_id,
            "region": oracle_config.region,
        }
        oci.config.validate_config(self._oci_config)

        self._compute_client = oci.core.ComputeClient(self._oci_config)
        self._network_client = oci.core.VirtualNetworkClient(self._oci_config)
        self._identity_client = oci.identity.IdentityClient(self._oci_config)

        self._logger.debug(
            f"Initialized OCI: region '{self._region}', compartment '{self._compartment_id}'"
        )

    async def _get_availability_domain(self) -> str:
        response = await asyncio.to_thread(
            self._identity_client.list_availability_domains, compartment_id=self._tenancy_id
        )
        if not response.data:
            raise ProviderOperationFailed(self.NAME, "create_vm", "No availability domains found")
        return response.data[0].name

    async def _get_subnet_id(self) -> str:
        vcns = await asyncio.to_thread(
            self._network_client.list_vcns, compartment_id=self._compartment_id
        )
        if not vcns.data:
            raise ProviderOperationFailed(
                self.NAME, "create_vm", f"No VCN found in compartment {self._compartment_id}"
            )
        subnets = await asyncio.to_thread(
            self._network_client.list_subnets,
            compartment_id=self._compartment_id,
            vcn_id=vcns.data[0].id,
        )
        if not subnets.data:
            raise ProviderOperationFailed(
                self.NAME, "create_vm", f"No subnet found in VCN {vcns.data[0].id}"
            )
        return subnets.data[0].id

    async def create_vm(
        self, spec: ImageSpec, ssh_key: str, startup_script: Optional[str] = None
    ) -> Instance:
        """Launch an instance and wait until it is running with a public IP.

        Args:
            spec: Image OCID and shape
            ssh_key: Public SSH key, installed through instance metadata
            startup_script: Optional cloud-init user data

        Returns:
            The ready instance
        """
        vm_name = self.vm_name()
        availability_domain = await self._get_availability_domain()
        subnet_id = await self._get_subnet_id()

        metadata = {"ssh_authorized_keys": ssh_key.strip()}
        if startup_script:
            metadata["user_data"] = base64.b64encode(startup_script.encode()).decode("utf-8")

        details = oci.core.models.LaunchInstanceDetails(
            display_name=vm_name,
            compartment_id=self._compartment_id,
            availability_domain=availability_domain,
            shape=spec.size,
            source_details=oci.core.models.InstanceSourceViaImageDetails(
                source_type="image", image_id=spec.image
            ),
            create_vnic_details=oci.core.models.CreateVnicDetails(
                subnet_id=subnet_id,
                assign_public_ip=True,
                display_name=f"{vm_name}-vnic",
                hostname_label=vm_name,
            ),
            metadata=metadata,
            freeform_tags={"CreatedBy": "playground", "Type": "ephemeral"},
        )

        self._logger.info(
            f"Launching instance {vm_name} ({spec.size}) in {availability_domain}"
        )
        try:
            response = await asyncio.to_thread(self._compute_client.launch_instance, details)
        except Exception as e:
            self._logger.error(f"Failed to launch instance {vm_name}: {e}")
            raise

        instance_id = response.data.id
        self._logger.info(f"Launched instance {instance_id}; waiting for it to be ready")
        return await self.wait_until_ready(instance_id)

    async def destroy_vm(self, instance_id: str) -> None:
        """Terminate an instance. A missing instance is not an error."""
        self._logger.info(f"Terminating instance {instance_id}")
        try:
            await asyncio.to_thread(self._compute_client.terminate_instance, instance_id)
        except oci.exceptions.ServiceError as e:
            if e.status == 404:
                self._logger.warning(f"Instance {instance_id} not found; nothing to terminate")
                return
            raise

    async def get_vm(self, instance_id: str) -> Instance:
        """Describe an instance, including the public IP of its primary VNIC."""
        response = await asyncio.to_thread(self._compute_client.get_instance, instance_id)
        instance = response.data

        public_ip = ""
        attachments = await asyncio.to_thread(
            self._compute_client.list_vnic_attachments,
            compartment_id=self._compartment_id,
            instance_id=instance_id,
        )
        if attachments.data and attachments.data[0].vnic_id:
            vnic = await asyncio.to_thread(
                self._network_client.get_vnic, attachments.data[0].vnic_id
            )
            public_ip = vnic.data.public_ip or ""

        return Instance(
            id=instance.id,
            ip=public_ip,
            provider_data={
                "status": instance.lifecycle_state,
                "shape": instance.shape,
                "availability_domain": instance.availability_domain,
            },
        )
