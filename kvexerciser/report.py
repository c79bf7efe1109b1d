"""
Plain-text reporting of run results and notifications.

Engines return data records only; everything printed to the operator is
formatted here.
"""

import math
from typing import Callable, Iterable

from .clients.relay import Notification
from .workload.expiration import ExpirationProgress, ExpirationReport
from .workload.results import RunResult

Printer = Callable[[str], None]


def format_throughput(value: float) -> str:
    if math.isinf(value):
        return "unbounded"
    return f"{value:,.2f}"


def format_notification(notification: Notification) -> str:
    return (
        f"  [EVENT] {notification.kind.value.upper()} ({notification.client_name}): "
        f"{notification.key}"
    )


def print_run_result(result: RunResult, out: Printer = print) -> None:
    """Print a stress run result."""
    out("=" * 60)
    out(f"  {result.name} RESULTS")
    out("=" * 60)
    out(f"Total ops:          {result.total_attempted:,}")
    out(f"Completed:          {result.completed:,}")
    out(f"Errors:             {result.error_count:,} ({result.error_rate:.2f}%)")
    out(f"Duration:           {result.elapsed_seconds:.2f} seconds")
    out(f"Throughput:         {format_throughput(result.throughput)} ops/sec")

    if result.completed_by_kind:
        out("")
        out("Operations:")
        for kind, count in result.completed_by_kind.items():
            out(f"  {kind.upper():<18}{count:,}")

    if result.details:
        out("")
        for name, count in result.details.items():
            out(f"  {name.capitalize():<18}{count:,}")
    out("=" * 60)


def print_benchmark_table(results: Iterable[RunResult], out: Printer = print) -> None:
    """Print benchmark results in a table."""
    out("")
    out("=" * 70)
    out("                        BENCHMARK RESULTS")
    out("=" * 70)
    out(f"{'Operation':<12} {'Ops/sec':>14} {'Avg (ms/op)':>14} {'Total (ms)':>14}")
    out("-" * 70)
    for r in results:
        out(f"{r.name:<12} {format_throughput(r.throughput):>14} "
            f"{r.mean_latency_ms:>14.3f} {r.elapsed_seconds * 1000:>14.2f}")
    out("=" * 70)


def format_progress(progress: ExpirationProgress) -> str:
    minutes, seconds = divmod(int(progress.elapsed_seconds), 60)
    return (f"  [{minutes:02d}:{seconds:02d}] Active: {progress.remaining}, "
            f"Expired: {progress.expired}")


def print_expiration_report(report: ExpirationReport, out: Printer = print) -> None:
    minutes, seconds = divmod(int(report.elapsed_seconds), 60)
    if report.remaining:
        out(f"Expiration monitoring {report.state.value} after {minutes:02d}:{seconds:02d}; "
            f"{len(report.remaining)} key(s) still present")
    else:
        out(f"Expiration test completed in {minutes:02d}:{seconds:02d}")
