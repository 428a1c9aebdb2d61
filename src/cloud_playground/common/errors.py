"""
Exceptions raised by the playground orchestration layer.
"""

from typing import Optional


class PlaygroundError(Exception):
    """Base class for all errors raised by cloud_playground."""

    pass


class UnknownImageType(PlaygroundError):
    """No image mappings exist for the requested image type."""

    def __init__(self, image_type: str) -> None:
        self.image_type = image_type
        super().__init__(f"No image mappings found for image type: {image_type}")


class NoAvailableProvider(PlaygroundError):
    """Image mappings exist but none of them reference a registered provider."""

    def __init__(self, image_type: str) -> None:
        self.image_type = image_type
        super().__init__(f"No available providers for image type: {image_type}")


class ProviderUnavailable(PlaygroundError):
    """The named provider is not registered with the playground."""

    def __init__(self, provider: str) -> None:
        self.provider = provider
        super().__init__(f"Provider '{provider}' not available")


class ProviderOperationFailed(PlaygroundError):
    """A call into a provider's vendor API failed.

    ``image_type`` is set when the call was made by Playground.create_instance.
    ``instance_id`` names a resource the failed call may have left behind, when the
    provider knows one; pass it to destroy_instance to clean up. The original
    exception, if any, is available as ``__cause__``.
    """

    def __init__(
        self,
        provider: str,
        operation: str,
        message: str,
        image_type: Optional[str] = None,
        instance_id: Optional[str] = None,
    ) -> None:
        self.provider = provider
        self.operation = operation
        self.image_type = image_type
        self.instance_id = instance_id
        super().__init__(f"{provider}: {operation} failed: {message}")


class ReadinessTimeout(PlaygroundError):
    """An instance was created but never became ready within the attempt budget.

    The instance is not destroyed; the caller owns cleanup.
    """

    def __init__(
        self,
        instance_id: str,
        attempts: int,
        provider: Optional[str] = None,
        image_type: Optional[str] = None,
    ) -> None:
        self.instance_id = instance_id
        self.attempts = attempts
        self.provider = provider
        self.image_type = image_type
        where = f" on {provider}" if provider else ""
        super().__init__(
            f"Instance {instance_id}{where} did not become ready after {attempts} attempts"
        )
