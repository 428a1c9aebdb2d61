"""
Uniform records exchanged between the playground and provider adapters.
"""

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, PositiveInt


class ImageSpec(BaseModel):
    """Provider-native image and size identifiers for one VM."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    image: str
    size: str


class Instance(BaseModel):
    """A VM as reported by a provider.

    ``ip`` is the empty string when no address has been assigned. ``provider_data``
    is provider-specific and is only for diagnostics; every adapter stores its native
    status string under the ``"status"`` key.
    """

    model_config = ConfigDict(extra="forbid")

    id: str
    ip: str = ""
    provider_data: Dict[str, Any] = Field(default_factory=dict)

    @property
    def status(self) -> Any:
        return self.provider_data.get("status")


class PlaygroundInstance(Instance):
    """An Instance returned by Playground.create_instance with creation metadata.

    This is a transient value; the playground never stores it.
    """

    provider: str
    image_type: str
    created_at: NonNegativeInt  # Seconds since the epoch
    ttl: PositiveInt  # Seconds
    ssh_key: str

    @property
    def expires_at(self) -> int:
        return self.created_at + self.ttl
