"""
Bounded readiness polling for newly created instances.

A provider reports an instance as ready when its native status is one of the provider's
"running" states and it has a non-empty address. The poll interval is constant; there is
no backoff, and a slow provider is indistinguishable from a broken one.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Collection, Optional

from cloud_playground.common.errors import ReadinessTimeout
from cloud_playground.common.types import Instance

LOGGER = logging.getLogger(__name__)

DescribeFn = Callable[[str], Awaitable[Instance]]
ReadyPredicate = Callable[[Instance], bool]


def is_running_with_address(instance: Instance, running_states: Collection[str]) -> bool:
    """Return True if the instance's native status is a running state and it has an IP."""
    return instance.status in running_states and bool(instance.ip)


async def await_ready(
    describe: DescribeFn,
    is_ready: ReadyPredicate,
    instance_id: str,
    *,
    max_attempts: int,
    interval: float,
    provider: Optional[str] = None,
) -> Instance:
    """Poll an instance until it is ready.

    Args:
        describe: Coroutine function returning the current Instance for an ID
        is_ready: Predicate deciding whether a snapshot is ready
        instance_id: The instance to poll
        max_attempts: Maximum number of describe calls, including the first
        interval: Seconds to sleep between attempts
        provider: Provider name, for logging and errors

    Returns:
        The first snapshot for which is_ready is True

    Raises:
        ReadinessTimeout: If no snapshot is ready after max_attempts calls
        ValueError: If max_attempts is less than 1

    Errors raised by describe are not retried.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

    for attempt in range(1, max_attempts + 1):
        snapshot = await describe(instance_id)
        if is_ready(snapshot):
            LOGGER.debug(
                f"Instance {instance_id} ready after {attempt} attempt(s) at {snapshot.ip}"
            )
            return snapshot
        LOGGER.debug(
            f"Instance {instance_id} not ready (attempt {attempt}/{max_attempts}, "
            f"status {snapshot.status!r}, ip {snapshot.ip!r})"
        )
        if attempt < max_attempts:
            await asyncio.sleep(interval)

    LOGGER.error(
        f"Instance {instance_id}{f' on {provider}' if provider else ''} did not become "
        f"ready after {max_attempts} attempts"
    )
    raise ReadinessTimeout(instance_id, max_attempts, provider=provider)
