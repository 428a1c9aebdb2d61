"""
VM provider interface and factory functions
"""

from typing import Dict, cast

from .provider import VMProvider
from cloud_playground.common.config import (
    AWSConfig,
    AzureConfig,
    Config,
    DigitalOceanConfig,
    GCPConfig,
    HetznerConfig,
    OracleConfig,
    ProviderConfig,
)


def create_provider(provider: str, provider_config: ProviderConfig) -> VMProvider:
    """
    Create a VMProvider implementation for the specified cloud provider.

    Args:
        provider: Provider name ("aws", "gcp", "azure", "digitalocean", "hetzner",
            or "oracle")
        provider_config: Configuration for that provider

    Returns:
        A VMProvider implementation for the specified provider

    Raises:
        ValueError: If the provider is not supported
    """
    match provider:
        case "aws":
            # We import these here to avoid requiring the dependencies for unused providers
            from .aws import AWSEC2Provider
            vm_provider: VMProvider = AWSEC2Provider(cast(AWSConfig, provider_config))
        case "gcp":
            from .gcp import GCPComputeProvider
            vm_provider = GCPComputeProvider(cast(GCPConfig, provider_config))
        case "azure":
            from .azure import AzureVMProvider
            vm_provider = AzureVMProvider(cast(AzureConfig, provider_config))
        case "digitalocean":
            from .digitalocean import DigitalOceanProvider
            vm_provider = DigitalOceanProvider(cast(DigitalOceanConfig, provider_config))
        case "hetzner":
            from .hetzner import HetznerProvider
            vm_provider = HetznerProvider(cast(HetznerConfig, provider_config))
        case "oracle":
            from .oracle import OracleProvider
            vm_provider = OracleProvider(cast(OracleConfig, provider_config))
        case _:
            raise ValueError(f"Unsupported provider: {provider}")

    return vm_provider


def create_providers(config: Config) -> Dict[str, VMProvider]:
    """
    Create a provider registry with one VMProvider for each configured provider.

    Args:
        config: Configuration

    Returns:
        Dictionary mapping provider name to VMProvider
    """
    return {
        name: create_provider(name, config.get_provider_config(name))
        for name in config.configured_providers()
    }


__all__ = ["VMProvider", "create_provider", "create_providers"]
