"""
Benchmark Engine

Measures raw throughput of one operation kind against a cache handle.

WRITE, READ and UPDATE share one key space, perf:write:{i}, so a suite
run in that order reads and updates the keys its write phase planted.
MIXED draws a random key index and a random operation per step; its adds
go to perf:mixed:{i}.

Step faults are swallowed and not counted; use the stress engine when
error counts matter.
"""

import logging
import random
import time
from enum import Enum
from typing import Callable, List, Optional

from ..cache.base import CacheHandle
from .counters import AtomicCounters
from .pool import run_workers
from .results import OperationKind, RunResult, attempt

logger = logging.getLogger(__name__)

WRITE_KEY = "perf:write:{}"
MIXED_KEY = "perf:mixed:{}"

MIXED_OPERATIONS = (OperationKind.ADD, OperationKind.GET, OperationKind.UPDATE)


class BenchmarkKind(Enum):
    """Operation kinds a benchmark can measure."""
    WRITE = "write"
    READ = "read"
    UPDATE = "update"
    MIXED = "mixed"


SUITE_ORDER = (BenchmarkKind.WRITE, BenchmarkKind.READ, BenchmarkKind.UPDATE, BenchmarkKind.MIXED)


class BenchmarkEngine:
    """
    Runs benchmark iterations against a cache handle.

    Iterations are split across `workers` threads by step index (worker w
    takes steps w, w + workers, ...); each worker runs its steps in order.
    With the default single worker the run is strictly sequential.

    Args:
        workers: Number of parallel workers
        seed: Seed for the MIXED random draws (worker w uses seed + w);
              None for unseeded runs
    """

    def __init__(self, workers: int = 1, seed: Optional[int] = None):
        if workers < 1:
            raise ValueError("workers must be at least 1")
        self.workers = workers
        self.seed = seed

    def _rng(self, worker: int) -> random.Random:
        if self.seed is None:
            return random.Random()
        return random.Random(self.seed + worker)

    def run(
            self,
            handle: CacheHandle,
            kind: BenchmarkKind,
            iterations: int,
            cleanup: bool = True,
    ) -> RunResult:
        """
        Run `iterations` steps of one benchmark kind.

        Args:
            handle: Cache to drive
            kind: What each step does
            iterations: Number of steps
            cleanup: Remove every perf:* key the run may have created
                     afterwards. Suites pass False and clean up once.

        Returns:
            RunResult timed over the measured loop only
        """
        if iterations < 0:
            raise ValueError("iterations must be non-negative")

        logger.info(f"Benchmark {kind.name}: {iterations} iterations, {self.workers} worker(s)")
        counters = AtomicCounters()
        step = self._step_function(handle, kind, iterations, counters)

        def worker(index: int) -> None:
            rng = self._rng(index)
            for i in range(index, iterations, self.workers):
                step(i, rng)

        start = time.perf_counter()
        run_workers(min(self.workers, iterations), worker)
        elapsed = time.perf_counter() - start

        if cleanup:
            self.cleanup(handle, iterations)

        result = RunResult(
            name=kind.name,
            total_attempted=iterations,
            completed_by_kind=counters.snapshot(),
            error_count=0,
            elapsed_seconds=elapsed,
        )
        logger.info(f"Benchmark {kind.name} finished in {elapsed:.3f}s")
        return result

    def _step_function(
            self,
            handle: CacheHandle,
            kind: BenchmarkKind,
            iterations: int,
            counters: AtomicCounters,
    ) -> Callable[[int, random.Random], None]:
        def count(op: OperationKind, outcome) -> None:
            if outcome.ok:
                counters.increment(op.value)
            else:
                logger.debug(f"Benchmark step fault ignored: {outcome.fault}")

        if kind == BenchmarkKind.WRITE:
            def step(i, rng):
                count(OperationKind.ADD, attempt(handle.add, WRITE_KEY.format(i), f"perf-{i}"))
        elif kind == BenchmarkKind.READ:
            def step(i, rng):
                count(OperationKind.GET, attempt(handle.get, WRITE_KEY.format(i % iterations)))
        elif kind == BenchmarkKind.UPDATE:
            def step(i, rng):
                key = WRITE_KEY.format(i % iterations)
                count(OperationKind.UPDATE, attempt(handle.update, key, f"updated-{i}"))
        elif kind == BenchmarkKind.MIXED:
            def step(i, rng):
                key = WRITE_KEY.format(rng.randrange(iterations))
                op = rng.choice(MIXED_OPERATIONS)
                if op == OperationKind.ADD:
                    count(op, attempt(handle.add, MIXED_KEY.format(i), f"mixed-{i}"))
                elif op == OperationKind.GET:
                    count(op, attempt(handle.get, key))
                else:
                    count(op, attempt(handle.update, key, f"mixed-update-{i}"))
        else:
            raise ValueError(f"unknown benchmark kind {kind!r}")
        return step

    def run_suite(
            self,
            handle: CacheHandle,
            iterations: int,
            on_result: Optional[Callable[[RunResult], None]] = None,
    ) -> List[RunResult]:
        """
        Run WRITE, READ, UPDATE and MIXED in order, then clean up once.

        Args:
            on_result: Called with each phase's result as soon as it is ready
        """
        results = []
        try:
            for kind in SUITE_ORDER:
                result = self.run(handle, kind, iterations, cleanup=False)
                results.append(result)
                if on_result is not None:
                    on_result(result)
        finally:
            self.cleanup(handle, iterations)
        return results

    @staticmethod
    def cleanup(handle: CacheHandle, iterations: int) -> int:
        """
        Best-effort removal of perf:write:{i} and perf:mixed:{i} for i < iterations.

        Keys that do not exist are fine; every fault is swallowed.

        Returns:
            Number of keys actually removed
        """
        removed = 0
        for i in range(iterations):
            for template in (WRITE_KEY, MIXED_KEY):
                if attempt(handle.remove, template.format(i)).ok:
                    removed += 1
        logger.debug(f"Benchmark cleanup removed {removed} keys")
        return removed
