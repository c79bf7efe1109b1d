"""Workload engines for KV-Exerciser."""

from .benchmark import SUITE_ORDER, BenchmarkEngine, BenchmarkKind
from .counters import AtomicCounters
from .expiration import (
    DEFAULT_TTLS,
    ExpirationMonitor,
    ExpirationProgress,
    ExpirationReport,
    MonitorState,
)
from .pool import run_workers
from .probes import run_event_probe
from .results import OperationKind, Outcome, RunResult, attempt
from .stress import StressEngine, StressScenario, WorkloadSpec

__all__ = [
    "AtomicCounters",
    "BenchmarkEngine",
    "BenchmarkKind",
    "DEFAULT_TTLS",
    "ExpirationMonitor",
    "ExpirationProgress",
    "ExpirationReport",
    "MonitorState",
    "OperationKind",
    "Outcome",
    "RunResult",
    "StressEngine",
    "StressScenario",
    "SUITE_ORDER",
    "WorkloadSpec",
    "attempt",
    "run_event_probe",
    "run_workers",
]
