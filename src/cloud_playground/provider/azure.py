"""
Azure Virtual Machines implementation of the VMProvider interface.
"""

import asyncio
import base64
import logging
from typing import Any, Dict, Optional, Tuple

from azure.core.exceptions import ResourceNotFoundError  # type: ignore
from azure.identity import ClientSecretCredential, DefaultAzureCredential  # type: ignore
from azure.mgmt.compute import ComputeManagementClient  # type: ignore
from azure.mgmt.network import NetworkManagementClient  # type: ignore

from cloud_playground.common.config import AzureConfig
from cloud_playground.common.errors import ProviderOperationFailed
from cloud_playground.common.types import ImageSpec, Instance

from .provider import VMProvider

# Notes:
# - Each VM gets its own public IP "<vm>-pip" and network interface "<vm>-nic" in the
#   configured resource group; the virtual network and subnet must already exist.
# - The instance ID is the VM name.
# - Images are "publisher:offer:sku[:version]" URNs; the version defaults to "latest".


class AzureVMProvider(VMProvider):
    """Azure Virtual Machines implementation of the VMProvider interface."""

    NAME = "azure"
    RUNNING_STATES = frozenset({"Succeeded"})
    DEFAULT_POLL_MAX_ATTEMPTS = 24
    DEFAULT_POLL_INTERVAL = 5.0

    _TAGS = {"CreatedBy": "playground", "Type": "ephemeral"}

    def __init__(self, azure_config: AzureConfig) -> None:
        """Initialize the Azure provider.

        Args:
            azure_config: Azure configuration. If tenant_id, client_id, and client_secret
                are all given a service principal is used; otherwise DefaultAzureCredential.
        """
        super().__init__(azure_config)
        self._logger = logging.getLogger(__name__)

        self._subscription_id = azure_config.subscription_id
        self._resource_group = azure_config.resource_group
        self._location = azure_config.location
        self._virtual_network = azure_config.virtual_network
        self._subnet = azure_config.subnet
        self._admin_username = azure_config.admin_username

        if azure_config.tenant_id and azure_config.client_id and azure_config.client_secret:
            self._credentials = ClientSecretCredential(
                tenant_id=azure_config.tenant_id,
                client_id=azure_config.client_id,
                client_secret=azure_config.client_secret,
            )
            self._logger.debug("Using service principal credentials")
        else:
            self._credentials = DefaultAzureCredential()
            self._logger.debug("Using default Azure credentials")

        self._compute_client = ComputeManagementClient(self._credentials, self._subscription_id)
        self._network_client = NetworkManagementClient(self._credentials, self._subscription_id)

        self._logger.debug(
            f"Initialized Azure: subscription '{self._subscription_id}', resource group "
            f"'{self._resource_group}', location '{self._location}'"
        )

    @staticmethod
    def parse_image_urn(image: str) -> Dict[str, str]:
        """Split a "publisher:offer:sku[:version]" URN into an image reference.

        Raises:
            ValueError: If the URN does not have three or four parts
        """
        parts = image.split(":")
        if len(parts) not in (3, 4) or not all(parts):
            raise ValueError(
                f"Azure image must be 'publisher:offer:sku[:version]', got '{image}'"
            )
        publisher, offer, sku = parts[:3]
        version = parts[3] if len(parts) == 4 else "latest"
        return {"publisher": publisher, "offer": offer, "sku": sku, "version": version}

    @staticmethod
    def _resource_names(vm_name: str) -> Tuple[str, str]:
        return f"{vm_name}-nic", f"{vm_name}-pip"

    async def create_vm(
        self, spec: ImageSpec, ssh_key: str, startup_script: Optional[str] = None
    ) -> Instance:
        """Create a public IP, network interface, and VM, then wait until it is ready.

        Args:
            spec: Image URN and VM size
            ssh_key: Public SSH key for the admin user
            startup_script: Optional custom data script

        Returns:
            The ready instance
        """
        image_reference = self.parse_image_urn(spec.image)
        vm_name = self.vm_name()
        nic_name, pip_name = self._resource_names(vm_name)
        rg = self._resource_group

        self._logger.info(f"Creating public IP {pip_name}")
        poller = await asyncio.to_thread(
            self._network_client.public_ip_addresses.begin_create_or_update,
            rg,
            pip_name,
            {
                "location": self._location,
                "sku": {"name": "Standard"},
                "public_ip_allocation_method": "Static",
                "tags": self._TAGS,
            },
        )
        public_ip = await asyncio.to_thread(poller.result)

        # The public IP now exists; destroy_vm(vm_name) removes it and anything created after
        try:
            await self._create_nic_and_vm(
                vm_name, nic_name, public_ip.id, spec, image_reference, ssh_key, startup_script
            )
        except Exception as e:
            self._logger.error(
                f"Failed to create VM {vm_name}; public IP {pip_name} and network interface "
                f"{nic_name} may remain: {e}"
            )
            raise ProviderOperationFailed(
                self.NAME, "create_vm", f"VM {vm_name}: {e}", instance_id=vm_name
            ) from e

        return await self.wait_until_ready(vm_name)

    async def _create_nic_and_vm(
        self,
        vm_name: str,
        nic_name: str,
        public_ip_id: str,
        spec: ImageSpec,
        image_reference: Dict[str, str],
        ssh_key: str,
        startup_script: Optional[str],
    ) -> None:
        rg = self._resource_group
        subnet = await asyncio.to_thread(
            self._network_client.subnets.get, rg, self._virtual_network, self._subnet
        )

        self._logger.info(f"Creating network interface {nic_name}")
        poller = await asyncio.to_thread(
            self._network_client.network_interfaces.begin_create_or_update,
            rg,
            nic_name,
            {
                "location": self._location,
                "ip_configurations": [
                    {
                        "name": "ipconfig1",
                        "subnet": {"id": subnet.id},
                        "public_ip_address": {"id": public_ip_id},
                    }
                ],
                "tags": self._TAGS,
            },
        )
        nic = await asyncio.to_thread(poller.result)

        os_profile: Dict[str, Any] = {
            "computer_name": vm_name,
            "admin_username": self._admin_username,
            "linux_configuration": {
                "disable_password_authentication": True,
                "ssh": {
                    "public_keys": [
                        {
                            "path": f"/home/{self._admin_username}/.ssh/authorized_keys",
                            "key_data": ssh_key.strip(),
                        }
                    ]
                },
            },
        }
        if startup_script:
            os_profile["custom_data"] = base64.b64encode(startup_script.encode()).decode("utf-8")

        vm_parameters = {
            "location": self._location,
            "hardware_profile": {"vm_size": spec.size},
            "storage_profile": {
                "image_reference": image_reference,
                "os_disk": {
                    "create_option": "FromImage",
                    "delete_option": "Delete",
                    "managed_disk": {"storage_account_type": "Standard_LRS"},
                },
            },
            "os_profile": os_profile,
            "network_profile": {"network_interfaces": [{"id": nic.id}]},
            "tags": self._TAGS,
        }

        self._logger.info(f"Creating VM {vm_name} ({spec.size}, {spec.image})")
        poller = await asyncio.to_thread(
            self._compute_client.virtual_machines.begin_create_or_update,
            rg,
            vm_name,
            vm_parameters,
        )
        await asyncio.to_thread(poller.result)

    async def _delete(self, operation, kind: str, name: str) -> None:
        try:
            poller = await asyncio.to_thread(operation, self._resource_group, name)
            await asyncio.to_thread(poller.result)
        except ResourceNotFoundError:
            self._logger.debug(f"{kind} {name} not found; nothing to delete")

    async def destroy_vm(self, instance_id: str) -> None:
        """Delete the VM, then its network interface and public IP.

        Resources that no longer exist are skipped.
        """
        nic_name, pip_name = self._resource_names(instance_id)
        self._logger.info(f"Deleting VM {instance_id} and its network resources")

        await self._delete(self._compute_client.virtual_machines.begin_delete, "VM", instance_id)
        await self._delete(
            self._network_client.network_interfaces.begin_delete, "Network interface", nic_name
        )
        await self._delete(
            self._network_client.public_ip_addresses.begin_delete, "Public IP", pip_name
        )

    async def get_vm(self, instance_id: str) -> Instance:
        """Describe a VM by name, including the address of its public IP."""
        vm = await asyncio.to_thread(
            self._compute_client.virtual_machines.get, self._resource_group, instance_id
        )
        _, pip_name = self._resource_names(instance_id)
        try:
            pip = await asyncio.to_thread(
                self._network_client.public_ip_addresses.get, self._resource_group, pip_name
            )
            ip_address = pip.ip_address or ""
        except ResourceNotFoundError:
            self._logger.debug(f"Public IP {pip_name} not found")
            ip_address = ""

        return Instance(
            id=vm.name,
            ip=ip_address,
            provider_data={
                "status": vm.provisioning_state,
                "resource_group": self._resource_group,
                "location": vm.location,
                "vm_size": vm.hardware_profile.vm_size if vm.hardware_profile else None,
            },
        )
