#!/usr/bin/env python3
"""
KV-Exerciser Command Line

Usage:
    kv-exerciser benchmark -n 1000                # WRITE/READ/UPDATE/MIXED suite
    kv-exerciser stress writers -w 10 --ops 100   # Concurrent writers
    kv-exerciser stress readers                   # Concurrent readers
    kv-exerciser stress mixed                     # Mixed concurrent CRUD
    kv-exerciser stress rapid --total 5000        # Rapid sequential fire
    kv-exerciser expire --ttl 3 --ttl 5 --ttl 10  # Watch keys expire
    kv-exerciser events                           # Watch change notifications
    kv-exerciser shell                            # Interactive CRUD + clients
    kv-exerciser --backend memory stress mixed    # Dry run, no server needed

Environment Variables:
    KV_EXERCISER_HOST       - Cache server host
    KV_EXERCISER_PORT       - Cache server port
    KV_EXERCISER_TIMEOUT    - Socket timeout in seconds
    KV_EXERCISER_BACKEND    - tcp or memory
    KV_EXERCISER_DEBUG      - Enable debug logging (true/false)
"""

import argparse
import logging
import sys
import threading
from typing import List, Optional

from .cache.base import ConnectionOptions
from .cache.factory import BACKENDS, connect
from .cache.memory import MemoryStore
from .clients.registry import ClientRegistry
from .clients.relay import EventRelay, Notification
from .config.settings import settings
from .errors import CacheConnectionError, ExerciserError
from .report import (
    format_notification,
    format_progress,
    print_benchmark_table,
    print_expiration_report,
    print_run_result,
)
from .shell import ExerciserShell
from .workload.benchmark import BenchmarkEngine
from .workload.expiration import DEFAULT_TTLS, ExpirationMonitor
from .workload.probes import run_event_probe
from .workload.stress import StressEngine, StressScenario, WorkloadSpec

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="kv-exerciser",
        description="KV-Exerciser: manual exercising tool for key-value cache services",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--host", type=str, default=settings.HOST, help="Cache server host")
    parser.add_argument("--port", type=int, default=settings.PORT, help="Cache server port")
    parser.add_argument("--timeout", type=float, default=settings.TIMEOUT,
                        help="Socket timeout in seconds")
    parser.add_argument("--backend", choices=BACKENDS, default=settings.BACKEND,
                        help="tcp for a live server, memory for an in-process dry run")
    parser.add_argument("--debug", action="store_true", default=settings.DEBUG,
                        help="Enable debug logging")

    commands = parser.add_subparsers(dest="command", required=True)

    bench = commands.add_parser("benchmark", help="Run the performance benchmark suite",
                                formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    bench.add_argument("--iterations", "-n", type=int, default=1000, help="Iterations per benchmark")
    bench.add_argument("--workers", "-w", type=int, default=1, help="Parallel workers")
    bench.add_argument("--seed", type=int, default=None, help="Seed for the MIXED phase")

    stress = commands.add_parser("stress", help="Run a concurrent stress scenario",
                                 formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    stress.add_argument("scenario", choices=[s.value for s in StressScenario])
    stress.add_argument("--workers", "-w", type=int, default=None,
                        help="Concurrent workers (scenario default when omitted)")
    stress.add_argument("--ops", type=int, default=None,
                        help="Operations per worker (scenario default when omitted)")
    stress.add_argument("--total", type=int, default=None,
                        help="Total operations for the rapid scenario")
    stress.add_argument("--namespace", type=str, default=None, help="Key prefix")

    expire = commands.add_parser("expire", help="Watch keys with different TTLs expire",
                                 formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    expire.add_argument("--ttl", type=int, action="append", default=None,
                        help=f"TTL in seconds, repeatable (default: {list(DEFAULT_TTLS)})")

    commands.add_parser("events", help="Trigger and display change notifications")
    commands.add_parser("shell", help="Interactive CRUD and client management")

    return parser.parse_args(argv)


def setup_logging(debug: bool = False) -> None:
    """Configure logging based on debug flag."""
    level = logging.DEBUG if debug else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
        ]
    )


def print_notification(notification: Notification) -> None:
    print(format_notification(notification))


def open_session(args: argparse.Namespace, relay: EventRelay) -> ClientRegistry:
    """
    Connect the default client and build the session registry around it.

    Raises:
        CacheConnectionError: If the default client cannot connect
    """
    options = ConnectionOptions(host=args.host, port=args.port, timeout=args.timeout)
    # Memory-backed clients of one session share a store, like clients of one server
    store = MemoryStore() if args.backend == "memory" else None

    def connector(name: str):
        return connect(options, backend=args.backend, name=name, store=store)

    handle = connector(settings.DEFAULT_CLIENT_NAME)
    relay.attach(handle, settings.DEFAULT_CLIENT_NAME)
    return ClientRegistry(handle, relay=relay, connector=connector)


def cmd_benchmark(args: argparse.Namespace, registry: ClientRegistry) -> None:
    name, handle = registry.active()
    print(f"Running benchmark suite on client '{name}': {args.iterations:,} iterations each")
    engine = BenchmarkEngine(workers=args.workers, seed=args.seed)
    results = engine.run_suite(
        handle,
        args.iterations,
        on_result=lambda r: print(f"  {r.name:<8} done in {r.elapsed_seconds * 1000:.2f}ms"),
    )
    print_benchmark_table(results)


def cmd_stress(args: argparse.Namespace, registry: ClientRegistry) -> None:
    name, handle = registry.active()
    scenario = StressScenario(args.scenario)
    spec = WorkloadSpec.defaults(
        scenario,
        worker_count=args.workers,
        ops_per_worker=args.ops,
        total_ops=args.total,
        key_namespace=args.namespace,
    )
    print(f"Running {scenario.name} on client '{name}'...")

    def progress(percent: int) -> None:
        print(f"\r  Progress: {percent}%    ", end="", flush=True)

    result = StressEngine().run(handle, scenario, spec, on_progress=progress)
    if scenario == StressScenario.RAPID_FIRE:
        print()
    print_run_result(result)


def _cancel_on_enter(cancel: threading.Event) -> None:
    try:
        input()
    except (EOFError, OSError):
        return
    cancel.set()


def cmd_expire(args: argparse.Namespace, registry: ClientRegistry) -> None:
    _, handle = registry.active()
    ttls = args.ttl or list(DEFAULT_TTLS)
    cancel = threading.Event()
    print("Monitoring expiration... press Enter to stop.")
    threading.Thread(target=_cancel_on_enter, args=(cancel,), daemon=True).start()

    report = ExpirationMonitor(handle).run(
        ttls,
        cancel=cancel,
        on_progress=lambda p: print(f"\r{format_progress(p)}    ", end="", flush=True),
    )
    print()
    print_expiration_report(report)


def cmd_events(args: argparse.Namespace, registry: ClientRegistry) -> None:
    _, handle = registry.active()
    print("Subscribing to all cache events. Watch for notifications:")
    run_event_probe(handle, on_step=lambda s: print(f"  -> {s}..."))
    print("Event notification test completed!")


def cmd_shell(args: argparse.Namespace, registry: ClientRegistry) -> None:
    ExerciserShell(registry).run()


COMMANDS = {
    "benchmark": cmd_benchmark,
    "stress": cmd_stress,
    "expire": cmd_expire,
    "events": cmd_events,
    "shell": cmd_shell,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the exerciser."""
    args = parse_args(argv)
    setup_logging(debug=args.debug)

    relay = EventRelay(print_notification)
    try:
        registry = open_session(args, relay)
    except CacheConnectionError as e:
        print(f"Failed to initialize cache client: {e}")
        print("Ensure the cache server is running.")
        return 1

    try:
        COMMANDS[args.command](args, registry)
    except (ExerciserError, ValueError) as e:
        print(f"Error: {e}")
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted.")
        return 130
    finally:
        registry.dispose_all()
        logger.debug("Cache clients disposed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
