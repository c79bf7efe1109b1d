"""
Run Results and Operation Outcomes

RunResult is the aggregate record every benchmark and stress run returns.
Outcome/attempt() turn a cache call into a value that carries either the
result or the CacheFault it raised, so worker loops can branch on it
instead of wrapping every call in try/except.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional

from ..errors import CacheFault


class OperationKind(Enum):
    """Cache operations a workload can issue."""
    ADD = "add"
    GET = "get"
    UPDATE = "update"
    REMOVE = "remove"


@dataclass(frozen=True)
class Outcome:
    """Result of one cache call: a value, or the fault it raised."""
    value: Any = None
    fault: Optional[CacheFault] = None

    @property
    def ok(self) -> bool:
        return self.fault is None


def attempt(operation: Callable[..., Any], *args, **kwargs) -> Outcome:
    """
    Call a cache operation and capture a CacheFault as an Outcome.

    Anything that is not a CacheFault propagates.
    """
    try:
        return Outcome(value=operation(*args, **kwargs))
    except CacheFault as e:
        return Outcome(fault=e)


@dataclass(frozen=True)
class RunResult:
    """
    Aggregate outcome of one benchmark or stress run.

    Attributes:
        name: Label of the run (benchmark kind or scenario)
        total_attempted: Operations issued during the measured phase
        completed_by_kind: Successful operations per operation kind
        error_count: Operations that raised a fault
        elapsed_seconds: Wall-clock time of the measured phase only
        details: Extra per-run tallies (e.g. cache hits and misses)
    """
    name: str
    total_attempted: int
    completed_by_kind: Mapping[str, int]
    error_count: int
    elapsed_seconds: float
    details: Mapping[str, int] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "completed_by_kind", MappingProxyType(dict(self.completed_by_kind)))
        object.__setattr__(self, "details", MappingProxyType(dict(self.details)))

    @property
    def completed(self) -> int:
        return sum(self.completed_by_kind.values())

    @property
    def throughput(self) -> float:
        """
        Operations per second.

        math.inf when the measured phase took no measurable time; 0.0 when
        nothing was attempted.
        """
        if self.total_attempted == 0:
            return 0.0
        if self.elapsed_seconds <= 0:
            return math.inf
        return self.total_attempted / self.elapsed_seconds

    @property
    def mean_latency_ms(self) -> float:
        if self.total_attempted == 0:
            return 0.0
        return self.elapsed_seconds * 1000 / self.total_attempted

    @property
    def error_rate(self) -> float:
        """Failed operations as a percentage of attempted ones."""
        if self.total_attempted == 0:
            return 0.0
        return self.error_count / self.total_attempted * 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "total_attempted": self.total_attempted,
            "completed": self.completed,
            "completed_by_kind": dict(self.completed_by_kind),
            "error_count": self.error_count,
            "elapsed_seconds": self.elapsed_seconds,
            "throughput": self.throughput,
            "details": dict(self.details),
        }
