"""
SSH credential reconciliation shared by providers that store public keys as
account-level objects (AWS key pairs, DigitalOcean and Hetzner SSH keys).
"""

import hashlib
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from cloud_playground.common.errors import ProviderOperationFailed

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

_KEY_NAME_PREFIX = "playground-key-"


def normalize_public_key(public_key: str) -> str:
    """Return the key type and key material of an OpenSSH public key, without comment."""
    return " ".join(public_key.strip().split()[:2])


def ssh_key_name(public_key: str) -> str:
    """Return a stable provider-side name for a public key.

    The comment field is ignored so the same key always maps to the same name.
    """
    digest = hashlib.sha256(normalize_public_key(public_key).encode("utf-8")).hexdigest()
    return f"{_KEY_NAME_PREFIX}{digest[:12]}"


def public_keys_match(a: Optional[str], b: Optional[str]) -> bool:
    if not a or not b:
        return False
    return normalize_public_key(a) == normalize_public_key(b)


async def ensure_ssh_key(
    create: Callable[[], Awaitable[T]],
    find: Callable[[], Awaitable[Optional[T]]],
    is_conflict: Callable[[BaseException], bool],
    *,
    provider: str,
) -> T:
    """Make sure a public key exists on the provider and return its handle.

    ``create`` is called exactly once. If it fails because the key already exists (as
    decided by ``is_conflict``), ``find`` looks up the existing key instead. Any other
    error from ``create`` is propagated.

    Args:
        create: Coroutine function that uploads the key and returns its handle
        find: Coroutine function that lists existing keys and returns the matching
            handle, or None
        is_conflict: Predicate on the exception raised by create
        provider: Provider name for log and error messages

    Returns:
        The provider's handle for the key (ID, fingerprint, or name)

    Raises:
        ProviderOperationFailed: If the key already exists but cannot be found
    """
    try:
        return await create()
    except Exception as e:
        if not is_conflict(e):
            raise
        LOGGER.debug(f"{provider}: SSH key already exists ({e}); looking it up")

    existing = await find()
    if existing is None:
        raise ProviderOperationFailed(
            provider, "ensure_ssh_key", "SSH key reported as existing but could not be found"
        )
    return existing
