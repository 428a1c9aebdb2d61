"""
Stateless, cloud-agnostic ephemeral VM orchestration.
"""

from cloud_playground.common.config import Config, ImageMapping, load_config, load_image_mappings
from cloud_playground.common.errors import (
    NoAvailableProvider,
    PlaygroundError,
    ProviderOperationFailed,
    ProviderUnavailable,
    ReadinessTimeout,
    UnknownImageType,
)
from cloud_playground.common.types import ImageSpec, Instance, PlaygroundInstance
from cloud_playground.expiry import filter_active, filter_expired, is_expired, time_to_expiry
from cloud_playground.playground import Playground
from cloud_playground.provider import VMProvider, create_provider, create_providers

__all__ = [
    "Config",
    "ImageMapping",
    "ImageSpec",
    "Instance",
    "NoAvailableProvider",
    "Playground",
    "PlaygroundError",
    "PlaygroundInstance",
    "ProviderOperationFailed",
    "ProviderUnavailable",
    "ReadinessTimeout",
    "UnknownImageType",
    "VMProvider",
    "create_provider",
    "create_providers",
    "filter_active",
    "filter_expired",
    "is_expired",
    "load_config",
    "load_image_mappings",
    "time_to_expiry",
]
