"""
Stress Engine

Drives concurrent populations of workers against a cache handle and
tallies what happened. Four scenarios are available:

- CONCURRENT_WRITERS: each worker adds its own keys
- CONCURRENT_READERS: workers read a pre-populated 100-key namespace
- MIXED_CONCURRENT:   workers add/get/update/remove in a 50-key namespace
- RAPID_FIRE:         one thread cycling add/get/remove over 100 keys

A fault on any single operation is counted and the worker carries on;
every worker always performs its full iteration count. Throughput is
measured over the worker phase only, never over pre-population or
cleanup.
"""

import logging
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Callable, Dict, Mapping, Optional

from ..cache.base import CacheHandle
from ..config.settings import settings
from .counters import AtomicCounters
from .pool import run_workers
from .results import OperationKind, RunResult, attempt

logger = logging.getLogger(__name__)

READ_KEYSPACE = 100
MIXED_KEYSPACE = 50
RAPID_CYCLE = 100
RAPID_NAMESPACE = "rapid"
RAPID_OPERATIONS = (OperationKind.ADD, OperationKind.GET, OperationKind.REMOVE)

ProgressCallback = Callable[[int], None]


class StressScenario(Enum):
    """Predefined stress workloads."""
    CONCURRENT_WRITERS = "writers"
    CONCURRENT_READERS = "readers"
    MIXED_CONCURRENT = "mixed"
    RAPID_FIRE = "rapid"


def _uniform_mix() -> Mapping[OperationKind, float]:
    return {kind: 1.0 for kind in OperationKind}


@dataclass(frozen=True)
class WorkloadSpec:
    """
    Configuration of one stress run. Immutable once built.

    Attributes:
        worker_count: Concurrent workers (parallel scenarios)
        ops_per_worker: Operations each worker performs
        total_ops: Operations of a RAPID_FIRE run
        key_namespace: Prefix of the keys the parallel scenarios touch
        operation_mix: Eligible operations and their relative weights
                       for MIXED_CONCURRENT
    """
    worker_count: int = 10
    ops_per_worker: int = 100
    total_ops: int = 5000
    key_namespace: str = "stress"
    operation_mix: Mapping[OperationKind, float] = field(default_factory=_uniform_mix)

    def __post_init__(self):
        if self.worker_count < 0 or self.ops_per_worker < 0 or self.total_ops < 0:
            raise ValueError("worker_count, ops_per_worker and total_ops must be non-negative")
        if not self.key_namespace:
            raise ValueError("key_namespace must not be empty")
        if not self.operation_mix or any(w <= 0 for w in self.operation_mix.values()):
            raise ValueError("operation_mix needs at least one operation, all with positive weight")
        object.__setattr__(self, "operation_mix", MappingProxyType(dict(self.operation_mix)))

    @classmethod
    def defaults(cls, scenario: StressScenario, **overrides) -> "WorkloadSpec":
        """Default sizing for a scenario, optionally overridden field by field."""
        sizing = {
            StressScenario.CONCURRENT_WRITERS: dict(worker_count=10, ops_per_worker=100),
            StressScenario.CONCURRENT_READERS: dict(worker_count=20, ops_per_worker=500),
            StressScenario.MIXED_CONCURRENT: dict(worker_count=15, ops_per_worker=200),
            StressScenario.RAPID_FIRE: dict(total_ops=5000),
        }[scenario]
        sizing.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**sizing)


class StressEngine:
    """
    Runs stress scenarios against a cache handle.

    Args:
        max_workers: Thread pool limit (default settings.MAX_WORKERS)
        progress_every: RAPID_FIRE reports progress every this many steps
    """

    def __init__(self, max_workers: int = None, progress_every: int = None):
        self.max_workers = max_workers
        self.progress_every = progress_every or settings.PROGRESS_EVERY

    def run(
            self,
            handle: CacheHandle,
            scenario: StressScenario,
            spec: Optional[WorkloadSpec] = None,
            on_progress: Optional[ProgressCallback] = None,
    ) -> RunResult:
        """
        Run one scenario to completion.

        Args:
            handle: Cache to drive
            scenario: Which workload to run
            spec: Sizing (default WorkloadSpec.defaults(scenario))
            on_progress: RAPID_FIRE only; receives a completion percentage
        """
        spec = spec if spec is not None else WorkloadSpec.defaults(scenario)
        logger.info(f"Stress scenario {scenario.name} starting: {spec}")

        if scenario == StressScenario.CONCURRENT_WRITERS:
            result = self._concurrent_writers(handle, spec)
        elif scenario == StressScenario.CONCURRENT_READERS:
            result = self._concurrent_readers(handle, spec)
        elif scenario == StressScenario.MIXED_CONCURRENT:
            result = self._mixed_concurrent(handle, spec)
        elif scenario == StressScenario.RAPID_FIRE:
            result = self._rapid_fire(handle, spec, on_progress)
        else:
            raise ValueError(f"unknown scenario {scenario!r}")

        logger.info(
            f"Stress scenario {scenario.name} finished: {result.completed} completed, "
            f"{result.error_count} errors in {result.elapsed_seconds:.3f}s"
        )
        return result

    def _timed_workers(self, count: int, worker: Callable[[int], None]) -> float:
        start = time.perf_counter()
        run_workers(count, worker, max_workers=self.max_workers)
        return time.perf_counter() - start

    # ------------------------------------------------------------------
    # Scenarios
    # ------------------------------------------------------------------

    def _concurrent_writers(self, handle: CacheHandle, spec: WorkloadSpec) -> RunResult:
        counters = AtomicCounters(["completed", "errors"])

        def key(worker: int, i: int) -> str:
            return f"{spec.key_namespace}:writer:{worker}:{i}"

        def writer(worker: int) -> None:
            for i in range(spec.ops_per_worker):
                outcome = attempt(handle.add, key(worker, i), f"stress-{worker}-{i}")
                counters.increment("completed" if outcome.ok else "errors")

        elapsed = self._timed_workers(spec.worker_count, writer)
        counts = counters.snapshot()

        def remover(worker: int) -> None:
            for i in range(spec.ops_per_worker):
                attempt(handle.remove, key(worker, i))

        logger.debug("Cleaning up writer keys")
        run_workers(spec.worker_count, remover, max_workers=self.max_workers)

        return RunResult(
            name=StressScenario.CONCURRENT_WRITERS.name,
            total_attempted=spec.worker_count * spec.ops_per_worker,
            completed_by_kind={OperationKind.ADD.value: counts["completed"]},
            error_count=counts["errors"],
            elapsed_seconds=elapsed,
        )

    def _concurrent_readers(self, handle: CacheHandle, spec: WorkloadSpec) -> RunResult:
        keys = [f"{spec.key_namespace}:read:{i}" for i in range(READ_KEYSPACE)]

        logger.debug(f"Pre-populating {READ_KEYSPACE} read keys")
        for i, key in enumerate(keys):
            attempt(handle.add, key, f"read-{i}")

        counters = AtomicCounters(["hits", "misses", "errors"])

        def reader(worker: int) -> None:
            rng = random.Random(worker)
            for _ in range(spec.ops_per_worker):
                outcome = attempt(handle.get, keys[rng.randrange(READ_KEYSPACE)])
                if not outcome.ok:
                    counters.increment("errors")
                elif outcome.value is not None:
                    counters.increment("hits")
                else:
                    counters.increment("misses")

        elapsed = self._timed_workers(spec.worker_count, reader)
        counts = counters.snapshot()

        for key in keys:
            attempt(handle.remove, key)

        return RunResult(
            name=StressScenario.CONCURRENT_READERS.name,
            total_attempted=spec.worker_count * spec.ops_per_worker,
            completed_by_kind={OperationKind.GET.value: counts["hits"] + counts["misses"]},
            error_count=counts["errors"],
            elapsed_seconds=elapsed,
            details={"hits": counts["hits"], "misses": counts["misses"]},
        )

    def _mixed_concurrent(self, handle: CacheHandle, spec: WorkloadSpec) -> RunResult:
        keys = [f"{spec.key_namespace}:mixed:{i}" for i in range(MIXED_KEYSPACE)]
        kinds = list(spec.operation_mix)
        weights = [spec.operation_mix[kind] for kind in kinds]
        counters = AtomicCounters([kind.value for kind in kinds] + ["errors"])

        def mixer(worker: int) -> None:
            rng = random.Random(worker)
            for i in range(spec.ops_per_worker):
                key = keys[rng.randrange(MIXED_KEYSPACE)]
                op = rng.choices(kinds, weights)[0]
                if op == OperationKind.ADD:
                    outcome = attempt(handle.add, key, f"mixed-{worker}-{i}")
                elif op == OperationKind.GET:
                    outcome = attempt(handle.get, key)
                elif op == OperationKind.UPDATE:
                    outcome = attempt(handle.update, key, f"updated-{worker}-{i}")
                else:
                    outcome = attempt(handle.remove, key)
                counters.increment(op.value if outcome.ok else "errors")

        elapsed = self._timed_workers(spec.worker_count, mixer)
        counts = counters.snapshot()
        errors = counts.pop("errors")

        for key in keys:
            attempt(handle.remove, key)

        return RunResult(
            name=StressScenario.MIXED_CONCURRENT.name,
            total_attempted=spec.worker_count * spec.ops_per_worker,
            completed_by_kind=counts,
            error_count=errors,
            elapsed_seconds=elapsed,
        )

    def _rapid_fire(
            self,
            handle: CacheHandle,
            spec: WorkloadSpec,
            on_progress: Optional[ProgressCallback],
    ) -> RunResult:
        # Single thread: plain counters are enough
        completed: Dict[str, int] = {kind.value: 0 for kind in RAPID_OPERATIONS}
        errors = 0
        total = spec.total_ops

        start = time.perf_counter()
        for i in range(total):
            key = f"{RAPID_NAMESPACE}:{i % RAPID_CYCLE}"
            op = RAPID_OPERATIONS[i % len(RAPID_OPERATIONS)]
            if op == OperationKind.ADD:
                outcome = attempt(handle.add, key, f"value-{i}")
            elif op == OperationKind.GET:
                outcome = attempt(handle.get, key)
            else:
                outcome = attempt(handle.remove, key)

            if outcome.ok:
                completed[op.value] += 1
            else:
                errors += 1

            if on_progress is not None and i % self.progress_every == 0:
                on_progress(i * 100 // total)
        elapsed = time.perf_counter() - start

        if on_progress is not None and total:
            on_progress(100)

        return RunResult(
            name=StressScenario.RAPID_FIRE.name,
            total_attempted=total,
            completed_by_kind=completed,
            error_count=errors,
            elapsed_seconds=elapsed,
        )
