"""
Expiry helpers for callers that track playground instances themselves.

An instance is expired when ``now >= created_at + ttl``. Nothing here is called by the
playground; TTLs are advisory.
"""

from typing import Iterable, List, Optional

from cloud_playground.common.time_utils import epoch_now
from cloud_playground.common.types import PlaygroundInstance


def is_expired(instance: PlaygroundInstance, now: Optional[int] = None) -> bool:
    """Return True if the instance's TTL has run out.

    Args:
        instance: Instance returned by Playground.create_instance
        now: Current time in seconds since the epoch; defaults to the system clock
    """
    if now is None:
        now = epoch_now()
    return now >= instance.created_at + instance.ttl


def time_to_expiry(instance: PlaygroundInstance, now: Optional[int] = None) -> int:
    """Return the seconds until the instance expires; negative if already expired."""
    if now is None:
        now = epoch_now()
    return instance.created_at + instance.ttl - now


def filter_expired(
    instances: Iterable[PlaygroundInstance], now: Optional[int] = None
) -> List[PlaygroundInstance]:
    """Return the expired instances, in their original order."""
    if now is None:
        now = epoch_now()
    return [instance for instance in instances if is_expired(instance, now)]


def filter_active(
    instances: Iterable[PlaygroundInstance], now: Optional[int] = None
) -> List[PlaygroundInstance]:
    """Return the instances that have not expired, in their original order."""
    if now is None:
        now = epoch_now()
    return [instance for instance in instances if not is_expired(instance, now)]
