"""
Expiration Monitor

Writes keys with known TTLs and watches them disappear.

    SEEDING -> POLLING -> ALL_EXPIRED
                       -> CANCELLED

Seeding is sequential and any write failure aborts the run. Polling runs
once per fixed interval: every still-tracked key is read, keys found
absent are dropped, and a progress observation is emitted. Cancellation
is checked between passes only.
"""

import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

from ..cache.base import CacheHandle
from ..config.settings import settings
from .results import attempt

logger = logging.getLogger(__name__)

DEFAULT_TTLS = (3, 5, 10)


class MonitorState(Enum):
    SEEDING = "seeding"
    POLLING = "polling"
    ALL_EXPIRED = "all_expired"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ExpirationProgress:
    """One observation, emitted after each polling pass."""
    elapsed_seconds: float
    remaining: int
    expired: int


@dataclass
class ExpirationReport:
    """Final outcome of a monitor run."""
    state: MonitorState
    elapsed_seconds: float
    seeded: List[Tuple[str, int]]
    remaining: List[Tuple[str, int]]
    observations: List[ExpirationProgress] = field(default_factory=list)

    @property
    def expired_count(self) -> int:
        return len(self.seeded) - len(self.remaining)


class ExpirationMonitor:
    """
    Seeds TTL keys through a handle and polls until they are all gone.

    Args:
        handle: Cache to write to and poll
        clock: Monotonic time source for elapsed time
        sleep: Blocks for the poll interval
    """

    def __init__(
            self,
            handle: CacheHandle,
            clock: Callable[[], float] = time.monotonic,
            sleep: Callable[[float], None] = time.sleep,
    ):
        self.handle = handle
        self.clock = clock
        self.sleep = sleep
        self.state = MonitorState.SEEDING

    def seed(self, ttls: Sequence[int]) -> List[Tuple[str, int]]:
        """
        Write one fresh key per TTL.

        Raises:
            ValueError: If any TTL is not positive; nothing is written in that case
            CacheFault: If any write fails; nothing is polled in that case
        """
        self.state = MonitorState.SEEDING
        for ttl in ttls:
            if ttl <= 0:
                raise ValueError(f"TTL must be positive, got {ttl}")

        seeded = []
        for ttl in ttls:
            key = f"exptest:{ttl}s:{uuid.uuid4().hex}"
            self.handle.add(key, f"expires-in-{ttl}s", ttl=ttl)
            logger.info(f"Added {key!r} with {ttl}s expiration")
            seeded.append((key, ttl))
        return seeded

    def run(
            self,
            ttls: Sequence[int] = DEFAULT_TTLS,
            cancel: Optional[threading.Event] = None,
            on_progress: Optional[Callable[[ExpirationProgress], None]] = None,
    ) -> ExpirationReport:
        """
        Seed the keys, then poll until all have expired or `cancel` is set.

        A read that faults during polling leaves its key tracked; it is
        tried again on the next pass.
        """
        seeded = self.seed(ttls)
        tracked = list(seeded)
        observations = []

        self.state = MonitorState.POLLING
        start = self.clock()

        while tracked:
            if cancel is not None and cancel.is_set():
                self.state = MonitorState.CANCELLED
                break

            self.sleep(settings.POLL_INTERVAL)

            for entry in list(tracked):
                outcome = attempt(self.handle.get, entry[0])
                if not outcome.ok:
                    logger.debug(f"Poll of {entry[0]!r} failed: {outcome.fault}")
                elif outcome.value is None:
                    tracked.remove(entry)

            progress = ExpirationProgress(
                elapsed_seconds=self.clock() - start,
                remaining=len(tracked),
                expired=len(seeded) - len(tracked),
            )
            observations.append(progress)
            if on_progress is not None:
                on_progress(progress)
        else:
            self.state = MonitorState.ALL_EXPIRED

        report = ExpirationReport(
            state=self.state,
            elapsed_seconds=self.clock() - start,
            seeded=seeded,
            remaining=tracked,
            observations=observations,
        )
        logger.info(
            f"Expiration monitor {self.state.value} after {report.elapsed_seconds:.1f}s "
            f"({report.expired_count}/{len(seeded)} expired)"
        )
        return report
