"""
Selection of one image mapping for a logical image type.
"""

import logging
from typing import Collection, Optional, Sequence

from cloud_playground.common.config import ImageMapping
from cloud_playground.common.errors import NoAvailableProvider, UnknownImageType

LOGGER = logging.getLogger(__name__)


def select_image_mapping(
    image_type: str,
    mappings: Sequence[ImageMapping],
    registered_providers: Collection[str],
    preferred_provider: Optional[str] = None,
) -> ImageMapping:
    """Choose the mapping to use for an image type.

    A preferred provider wins over priority if it has a mapping for the image type and is
    registered. Otherwise the registered mapping with the lowest priority is chosen; ties
    go to the mapping listed first. A preference that cannot be satisfied is logged and
    ignored.

    Args:
        image_type: Logical image type, for error messages
        mappings: Mappings for the image type in their original order
        registered_providers: Names of the providers that are available
        preferred_provider: Optional provider name to use if possible

    Returns:
        The selected mapping

    Raises:
        UnknownImageType: If there are no mappings
        NoAvailableProvider: If no mapping references a registered provider
    """
    if not mappings:
        raise UnknownImageType(image_type)

    if preferred_provider:
        preferred = next((m for m in mappings if m.provider == preferred_provider), None)
        if preferred is None:
            LOGGER.warning(
                f"Preferred provider '{preferred_provider}' has no mapping for image type "
                f"'{image_type}'; selecting by priority"
            )
        elif preferred.provider not in registered_providers:
            LOGGER.warning(
                f"Preferred provider '{preferred_provider}' is not available; selecting "
                "by priority"
            )
        else:
            LOGGER.debug(f"Selected preferred provider '{preferred_provider}' for '{image_type}'")
            return preferred

    # sorted() is stable, so equal priorities keep their original order
    available = sorted(
        (m for m in mappings if m.provider in registered_providers),
        key=lambda m: m.priority,
    )
    if not available:
        raise NoAvailableProvider(image_type)

    selected = available[0]
    LOGGER.debug(
        f"Selected provider '{selected.provider}' (priority {selected.priority}) for "
        f"'{image_type}'"
    )
    return selected
