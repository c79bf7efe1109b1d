"""
Bounded Worker Pool

Every parallel workload runs its workers through run_workers(): spawn N
workers on a thread pool, then block until all of them have returned.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable

from ..config.settings import settings

logger = logging.getLogger(__name__)

Worker = Callable[[int], None]


def run_workers(count: int, worker: Worker, max_workers: int = None) -> None:
    """
    Run worker(index) for index in range(count) and join them all.

    At most max_workers (default settings.MAX_WORKERS) run at the same
    time; the rest queue. Returns only after every worker has finished.
    An exception escaping a worker is re-raised after the join.

    Args:
        count: Number of workers to spawn
        worker: Callable receiving the worker index
        max_workers: Pool size limit
    """
    if count <= 0:
        return

    limit = max_workers if max_workers is not None else settings.MAX_WORKERS
    pool_size = max(1, min(count, limit))
    logger.debug(f"Spawning {count} workers on a pool of {pool_size} threads")

    with ThreadPoolExecutor(max_workers=pool_size, thread_name_prefix="exerciser-worker") as pool:
        futures = [pool.submit(worker, index) for index in range(count)]
    # Leaving the with-block waited for every future
    for future in futures:
        future.result()
