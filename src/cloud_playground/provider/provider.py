from abc import ABC, abstractmethod
from typing import ClassVar, FrozenSet, Optional

import shortuuid

from cloud_playground.common.config import ProviderConfig
from cloud_playground.common.types import ImageSpec, Instance

from .polling import await_ready, is_running_with_address

shortuuid.set_alphabet("abcdefghijklmnopqrstuvwxyz0123456789")


class VMProvider(ABC):
    """Base interface for creating, describing, and destroying VMs on one cloud."""

    # Name used in the provider registry, logs, and errors
    NAME: ClassVar[str] = ""

    # Native status strings that mean the VM is up
    RUNNING_STATES: ClassVar[FrozenSet[str]] = frozenset()

    # Readiness polling defaults, overridden by poll_max_attempts/poll_interval in config
    DEFAULT_POLL_MAX_ATTEMPTS: ClassVar[int] = 30
    DEFAULT_POLL_INTERVAL: ClassVar[float] = 3.0

    _VM_NAME_PREFIX = "playground-"

    def __init__(self, config: ProviderConfig) -> None:
        """Initialize the provider with configuration."""
        self.config = config

    @property
    def poll_max_attempts(self) -> int:
        if self.config.poll_max_attempts is not None:
            return self.config.poll_max_attempts
        return self.DEFAULT_POLL_MAX_ATTEMPTS

    @property
    def poll_interval(self) -> float:
        if self.config.poll_interval is not None:
            return self.config.poll_interval
        return self.DEFAULT_POLL_INTERVAL

    @abstractmethod
    async def create_vm(
        self, spec: ImageSpec, ssh_key: str, startup_script: Optional[str] = None
    ) -> Instance:
        """Create a VM and wait until it is ready.

        Args:
            spec: Provider-native image and size
            ssh_key: Public SSH key in OpenSSH format
            startup_script: Optional initialization script (cloud-init, user data)

        Returns:
            The ready instance, with a non-empty ID and IP address

        Raises:
            ReadinessTimeout: If the VM was created but did not become ready. The VM is
                not destroyed.
        """
        pass

    @abstractmethod
    async def destroy_vm(self, instance_id: str) -> None:
        """Destroy a VM and any resources created with it.

        Destroying a VM that no longer exists is not an error.

        Args:
            instance_id: Provider-specific instance ID
        """
        pass

    @abstractmethod
    async def get_vm(self, instance_id: str) -> Instance:
        """Describe a VM.

        Args:
            instance_id: Provider-specific instance ID

        Returns:
            The current state of the instance

        Raises:
            Exception: The vendor's not-found error if the VM does not exist
        """
        pass

    def is_ready(self, instance: Instance) -> bool:
        """Return True if the instance is running and has an address."""
        return is_running_with_address(instance, self.RUNNING_STATES)

    async def _poll_vm(self, instance_id: str) -> Instance:
        """Describe a VM while waiting for it to become ready."""
        return await self.get_vm(instance_id)

    async def wait_until_ready(self, instance_id: str) -> Instance:
        """Poll the VM until it is ready or the attempt budget runs out."""
        return await await_ready(
            self._poll_vm,
            self.is_ready,
            instance_id,
            max_attempts=self.poll_max_attempts,
            interval=self.poll_interval,
            provider=self.NAME,
        )

    def vm_name(self) -> str:
        """Return a new unique resource name for a VM."""
        return f"{self._VM_NAME_PREFIX}{shortuuid.uuid()[:16]}"
