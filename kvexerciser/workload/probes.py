"""
Event Notification Probe

Performs a short scripted sequence of operations that raises every
notification kind a handle can observe, so the operator can watch them
arrive through the event relay.
"""

import logging
import time
import uuid
from typing import Callable, List, Optional

from ..cache.base import ALL_EVENT_KINDS, CacheHandle

logger = logging.getLogger(__name__)


def run_event_probe(
        handle: CacheHandle,
        on_step: Optional[Callable[[str], None]] = None,
        pause: float = 0.5,
        expiry_ttl: int = 2,
        sleep: Callable[[float], None] = time.sleep,
) -> List[str]:
    """
    Subscribe to every event kind and exercise add, update, remove and expiry.

    The handle is unsubscribed from all kinds afterwards, whether or not
    the sequence succeeded. Cache faults propagate.

    Args:
        handle: Cache to exercise
        on_step: Receives a description of each step before it runs
        pause: Delay between steps, seconds
        expiry_ttl: TTL of the key used to observe expiration
        sleep: Blocking delay function

    Returns:
        The descriptions of the steps performed
    """
    steps = []

    def step(description: str) -> None:
        steps.append(description)
        logger.debug(f"Event probe: {description}")
        if on_step is not None:
            on_step(description)

    key = f"eventtest:{uuid.uuid4().hex}"
    handle.subscribe_events(ALL_EVENT_KINDS)
    try:
        sleep(pause)
        step("Adding item")
        handle.add(key, "event-test-product")

        sleep(pause)
        step("Updating item")
        handle.update(key, "updated-event-test")

        sleep(pause)
        step("Removing item")
        handle.remove(key)

        sleep(pause)
        step(f"Adding item with short expiration ({expiry_ttl}s)")
        handle.add(f"{key}:exp", "will-expire", ttl=expiry_ttl)

        step("Waiting for expiration")
        sleep(expiry_ttl + 1)
        handle.get(f"{key}:exp")
    finally:
        handle.unsubscribe_events()
    return steps
