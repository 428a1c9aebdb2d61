"""
Configuration handling for the playground: provider credentials, polling parameters,
and the image mappings (routing table) that resolve logical image types to
provider-specific images and sizes.
"""

import logging
import os
from typing import Any, Dict, List, Optional

import pydantic
import yaml
from filecache import FCPath
from pydantic import (
    BaseModel,
    ConfigDict,
    PositiveFloat,
    PositiveInt,
    StrictInt,
    constr,
)

LOGGER = logging.getLogger(__name__)

DEFAULT_TTL = 3600  # Seconds

PROVIDER_NAMES = ("aws", "gcp", "azure", "digitalocean", "hetzner", "oracle")


class ImageMapping(BaseModel):
    """One provider-specific way to satisfy a logical image type."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    provider: constr(min_length=1)
    image: constr(min_length=1)
    size: constr(min_length=1)
    priority: StrictInt  # Lower is more preferred
    ttl: Optional[PositiveInt] = None  # Seconds; DEFAULT_TTL if not given

    @property
    def effective_ttl(self) -> int:
        return self.ttl or DEFAULT_TTL


class ProviderConfig(BaseModel, validate_assignment=True):
    """Config options valid for all cloud providers.

    Readiness polling parameters are optional here; each provider adapter supplies its
    own defaults when they are not given.
    """

    model_config = ConfigDict(extra="forbid")

    poll_max_attempts: Optional[PositiveInt] = None
    poll_interval: Optional[PositiveFloat] = None  # Seconds


class AWSConfig(ProviderConfig, validate_assignment=True):
    """Config options specific to AWS EC2"""

    model_config = ConfigDict(extra="forbid")

    access_key: Optional[constr(min_length=1)] = None
    secret_key: Optional[constr(min_length=1)] = None
    region: constr(min_length=1) = "us-east-1"
    subnet_id: Optional[constr(min_length=1)] = None
    security_group_id: Optional[constr(min_length=1)] = None


class GCPConfig(ProviderConfig, validate_assignment=True):
    """Config options specific to GCP Compute Engine"""

    model_config = ConfigDict(extra="forbid")

    project_id: Optional[constr(min_length=1)] = None
    zone: constr(min_length=1) = "us-central1-a"
    credentials_file: Optional[constr(min_length=1)] = None


class AzureConfig(ProviderConfig, validate_assignment=True):
    """Config options specific to Azure Virtual Machines"""

    model_config = ConfigDict(extra="forbid")

    subscription_id: constr(min_length=1)
    resource_group: constr(min_length=1)
    location: constr(min_length=1) = "eastus"
    # If any of these are missing, DefaultAzureCredential is used instead
    tenant_id: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    virtual_network: constr(min_length=1) = "default-vnet"
    subnet: constr(min_length=1) = "default-subnet"
    admin_username: constr(min_length=1) = "playground"


class DigitalOceanConfig(ProviderConfig, validate_assignment=True):
    """Config options specific to DigitalOcean"""

    model_config = ConfigDict(extra="forbid")

    api_token: constr(min_length=1)
    region: constr(min_length=1) = "nyc3"


class HetznerConfig(ProviderConfig, validate_assignment=True):
    """Config options specific to Hetzner Cloud"""

    model_config = ConfigDict(extra="forbid")

    api_token: constr(min_length=1)
    location: constr(min_length=1) = "nbg1"


class OracleConfig(ProviderConfig, validate_assignment=True):
    """Config options specific to Oracle Cloud Infrastructure"""

    model_config = ConfigDict(extra="forbid")

    tenancy_id: constr(min_length=1)
    user_id: constr(min_length=1)
    fingerprint: constr(min_length=1)
    private_key_file: constr(min_length=1)
    compartment_id: constr(min_length=1)
    region: constr(min_length=1) = "us-ashburn-1"


class Config(BaseModel, validate_assignment=True):
    """Main configuration object.

    Normally created with::

        config = load_config(config_file)
    """

    model_config = ConfigDict(extra="forbid")

    image_mappings_file: Optional[str] = None
    image_mappings: Optional[Dict[str, List[ImageMapping]]] = None
    aws: Optional[AWSConfig] = None
    gcp: Optional[GCPConfig] = None
    azure: Optional[AzureConfig] = None
    digitalocean: Optional[DigitalOceanConfig] = None
    hetzner: Optional[HetznerConfig] = None
    oracle: Optional[OracleConfig] = None

    def configured_providers(self) -> List[str]:
        """Return the names of the providers that have a configuration section."""
        return [name for name in PROVIDER_NAMES if getattr(self, name) is not None]

    def get_provider_config(self, provider_name: str) -> ProviderConfig:
        """Get configuration for a specific cloud provider.

        Args:
            provider_name: Cloud provider name (e.g. 'aws' or 'hetzner')

        Returns:
            ProviderConfig object for the specified provider

        Raises:
            ValueError: If the provider is unknown or its configuration is missing
        """
        if provider_name not in PROVIDER_NAMES:
            raise ValueError(f"Unsupported provider: {provider_name}")
        provider_config = getattr(self, provider_name)
        if provider_config is None:
            raise ValueError(f"Provider configuration not found for {provider_name}")
        return provider_config


def parse_image_mappings(raw: Any, source: str = "<dict>") -> Dict[str, List[ImageMapping]]:
    """Validate a raw routing table.

    Args:
        raw: Mapping of image type to a list of mapping records
        source: Where the data came from, for error messages

    Returns:
        Dictionary mapping image type to the list of ImageMapping in original order

    Raises:
        ValueError: If the structure or any record is invalid
    """
    if not isinstance(raw, dict):
        raise ValueError(f"Image mappings in {source} must be a YAML dictionary")

    mappings: Dict[str, List[ImageMapping]] = {}
    for image_type, entries in raw.items():
        if not isinstance(entries, list):
            raise ValueError(
                f"Image mappings for image type '{image_type}' in {source} must be a list"
            )
        parsed = []
        for entry in entries:
            if not isinstance(entry, dict):
                raise ValueError(
                    f"Image mapping for image type '{image_type}' in {source} must be a "
                    f"dictionary, got {entry!r}"
                )
            try:
                parsed.append(ImageMapping(**entry))
            except pydantic.ValidationError as e:
                raise ValueError(
                    f"Invalid image mapping for image type '{image_type}' in {source}: {e}"
                ) from e
        mappings[str(image_type)] = parsed

    return mappings


def load_image_mappings(image_mappings_file: str) -> Dict[str, List[ImageMapping]]:
    """Load image mappings from a YAML file.

    The file maps each logical image type to an ordered list of records::

        ubuntu-22-small:
          - provider: hetzner
            image: ubuntu-22.04
            size: cx11
            priority: 1
            ttl: 3600

    Args:
        image_mappings_file: Path to the image mappings file

    Returns:
        Dictionary mapping image type to the list of ImageMapping in file order

    Raises:
        FileNotFoundError: If the file cannot be found
        ValueError: If the file cannot be parsed or is invalid
    """
    if not os.path.exists(image_mappings_file):
        raise FileNotFoundError(f"Image mappings file not found: {image_mappings_file}")

    try:
        with FCPath(image_mappings_file).open(mode="r") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Failed to parse image mappings file {image_mappings_file}: {e}") from e

    mappings = parse_image_mappings(raw, image_mappings_file)
    LOGGER.debug(f"Loaded {len(mappings)} image types from {image_mappings_file}")
    return mappings


def load_config(config_file: str) -> Config:
    """Load configuration from a YAML file.

    If ``image_mappings_file`` is given it is resolved relative to the configuration file
    and loaded into ``image_mappings``. Mappings given both inline and by file are an
    error.

    Args:
        config_file: Path to the configuration file

    Returns:
        Config object containing the configuration

    Raises:
        FileNotFoundError: If a file cannot be found
        ValueError: If a file cannot be loaded or is invalid
    """
    if not os.path.exists(config_file):
        raise FileNotFoundError(f"Configuration file not found: {config_file}")

    with FCPath(config_file).open(mode="r") as f:
        config_dict = yaml.safe_load(f)

    if config_dict is None:
        config_dict = {}
    if not isinstance(config_dict, dict):
        raise ValueError("Configuration file must contain a YAML dictionary")

    raw_mappings = config_dict.pop("image_mappings", None)

    config = Config(**config_dict)

    if config.image_mappings_file is not None:
        if raw_mappings is not None:
            raise ValueError("image_mappings and image_mappings_file cannot both be provided")
        # Relative paths are relative to the config file location
        config.image_mappings_file = FCPath(
            FCPath(config_file).parent, config.image_mappings_file
        ).as_posix()
        config.image_mappings = load_image_mappings(config.image_mappings_file)
    elif raw_mappings is not None:
        config.image_mappings = parse_image_mappings(raw_mappings, config_file)

    for name in PROVIDER_NAMES:
        if name in config_dict and getattr(config, name) is None:
            LOGGER.warning(f"Provider section '{name}' in {config_file} is empty; ignoring")

    return config
