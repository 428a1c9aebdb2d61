"""
Stateless orchestration of ephemeral VMs across cloud providers.

The Playground resolves a logical image type to one provider-specific image and size,
creates the VM with that provider, and returns a record describing it. It keeps no record
of the instances it creates: the caller tracks them, decides when they have expired, and
destroys them.

Typical use::

    config = load_config("playground.yaml")
    playground = Playground.from_config(config)
    instance = await playground.create_instance("ubuntu-22-small", ssh_public_key)
    ...
    await playground.destroy_instance(instance.provider, instance.id)
"""

import logging
from types import MappingProxyType
from typing import Awaitable, List, Mapping, Optional, Sequence, Tuple, TypeVar

from cloud_playground.common.config import Config, ImageMapping, load_image_mappings
from cloud_playground.common.errors import (
    PlaygroundError,
    ProviderOperationFailed,
    ProviderUnavailable,
    ReadinessTimeout,
    UnknownImageType,
)
from cloud_playground.common.time_utils import epoch_now
from cloud_playground.common.types import ImageSpec, Instance, PlaygroundInstance
from cloud_playground.provider import VMProvider, create_providers
from cloud_playground.selection import select_image_mapping

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class Playground:
    """Create, describe, and destroy ephemeral VMs through one interface.

    The provider registry and image mappings are fixed at construction. Calls share no
    mutable state and may run concurrently.
    """

    def __init__(
        self,
        providers: Mapping[str, VMProvider],
        image_mappings: Mapping[str, Sequence[ImageMapping]],
    ) -> None:
        """Initialize the playground.

        Args:
            providers: Provider registry mapping provider name to VMProvider
            image_mappings: Mapping of logical image type to its candidate mappings, in
                the order given by the routing table
        """
        self._providers: Mapping[str, VMProvider] = MappingProxyType(dict(providers))
        self._image_mappings: Mapping[str, Tuple[ImageMapping, ...]] = MappingProxyType(
            {image_type: tuple(mappings) for image_type, mappings in image_mappings.items()}
        )
        LOGGER.debug(
            f"Playground initialized with providers {list(self._providers)} and "
            f"{len(self._image_mappings)} image types"
        )

    @classmethod
    def from_files(
        cls, providers: Mapping[str, VMProvider], image_mappings_file: str
    ) -> "Playground":
        """Create a playground with image mappings loaded from a YAML file.

        Raises:
            FileNotFoundError: If the file cannot be found
            ValueError: If the file is invalid
        """
        return cls(providers, load_image_mappings(image_mappings_file))

    @classmethod
    def from_config(cls, config: Config) -> "Playground":
        """Create a playground with one provider for each configured provider section.

        Raises:
            ValueError: If the configuration has no image mappings
        """
        if config.image_mappings is None:
            raise ValueError("Configuration has no image_mappings or image_mappings_file")
        return cls(create_providers(config), config.image_mappings)

    def _get_provider(self, provider_name: str) -> VMProvider:
        provider = self._providers.get(provider_name)
        if provider is None:
            raise ProviderUnavailable(provider_name)
        return provider

    async def _call_provider(
        self,
        provider_name: str,
        operation: str,
        call: Awaitable[T],
        image_type: Optional[str] = None,
    ) -> T:
        """Await a provider call, attaching provider and image type context to errors."""
        try:
            return await call
        except (ProviderOperationFailed, ReadinessTimeout) as e:
            if e.image_type is None:
                e.image_type = image_type
            raise
        except PlaygroundError:
            raise
        except Exception as e:
            LOGGER.error(f"{provider_name}: {operation} failed: {e}")
            raise ProviderOperationFailed(
                provider_name, operation, str(e), image_type=image_type
            ) from e

    async def create_instance(
        self,
        image_type: str,
        ssh_key: str,
        startup_script: Optional[str] = None,
        preferred_provider: Optional[str] = None,
    ) -> PlaygroundInstance:
        """Create a VM for a logical image type and wait until it is reachable.

        Args:
            image_type: Logical image type from the image mappings
            ssh_key: Public SSH key in OpenSSH format
            startup_script: Optional initialization script
            preferred_provider: Provider to use if it has a mapping and is available

        Returns:
            The instance, with the provider, image type, creation time, TTL, and SSH key
            attached. The playground does not keep it.

        Raises:
            UnknownImageType: If the image type has no mappings
            NoAvailableProvider: If no mapping references a registered provider
            ProviderOperationFailed: If the provider's API call fails
            ReadinessTimeout: If the VM was created but never became ready. The VM is
                not destroyed.
        """
        mappings = self._image_mappings.get(image_type)
        if not mappings:
            raise UnknownImageType(image_type)

        mapping = select_image_mapping(
            image_type, mappings, self._providers.keys(), preferred_provider
        )
        provider = self._get_provider(mapping.provider)

        LOGGER.info(
            f"Creating '{image_type}' instance on {mapping.provider} "
            f"(image {mapping.image}, size {mapping.size})"
        )
        instance = await self._call_provider(
            mapping.provider,
            "create_vm",
            provider.create_vm(
                ImageSpec(image=mapping.image, size=mapping.size), ssh_key, startup_script
            ),
            image_type=image_type,
        )
        if not instance.id:
            raise ProviderOperationFailed(
                mapping.provider,
                "create_vm",
                "provider returned an empty instance ID",
                image_type=image_type,
            )

        LOGGER.info(f"Created instance {instance.id} on {mapping.provider} at {instance.ip}")
        return PlaygroundInstance(
            id=instance.id,
            ip=instance.ip,
            provider_data=instance.provider_data,
            provider=mapping.provider,
            image_type=image_type,
            created_at=epoch_now(),
            ttl=mapping.effective_ttl,
            ssh_key=ssh_key,
        )

    async def destroy_instance(self, provider_name: str, instance_id: str) -> None:
        """Destroy an instance. Destroying an instance that no longer exists succeeds.

        Raises:
            ProviderUnavailable: If the provider is not registered
            ProviderOperationFailed: If the provider's API call fails
        """
        provider = self._get_provider(provider_name)
        LOGGER.info(f"Destroying instance {instance_id} on {provider_name}")
        await self._call_provider(provider_name, "destroy_vm", provider.destroy_vm(instance_id))

    async def get_instance(self, provider_name: str, instance_id: str) -> Instance:
        """Describe an instance.

        Raises:
            ProviderUnavailable: If the provider is not registered
            ProviderOperationFailed: If the provider's API call fails, including when the
                instance does not exist
        """
        provider = self._get_provider(provider_name)
        return await self._call_provider(provider_name, "get_vm", provider.get_vm(instance_id))

    def get_available_image_types(self) -> List[str]:
        """Return the image types in the image mappings."""
        return list(self._image_mappings)

    def get_available_providers(self) -> List[str]:
        """Return the names of the registered providers."""
        return list(self._providers)

    def get_image_mappings(self, image_type: str) -> List[ImageMapping]:
        """Return the mappings for an image type, or an empty list if it is unknown."""
        return list(self._image_mappings.get(image_type, ()))
