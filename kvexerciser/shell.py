"""
Interactive Shell

A command-line REPL for manual CRUD against the active client and for
managing the session's clients.

Commands:
    add <key> <value>           - Add a value
    addex <key> <ttl> <value>   - Add with expiration (ttl in seconds)
    get <key>                   - Get a value
    update <key> <value>        - Update a value
    del <key>                   - Delete a key
    subscribe [kind ...]        - Deliver notifications (all kinds by default)
    unsubscribe [kind ...]      - Stop notifications (all kinds by default)
    clients                     - List clients (* marks the active one)
    new <name>                  - Create and connect a client
    use <name>                  - Switch the active client
    bulk-new <count> [prefix]   - Create clients {prefix}_1..{prefix}_{count}
    bulk-add [key-prefix]       - Every client adds {key-prefix}:{client}
    broadcast <key> <message>   - Every client updates the same key
    help                        - Show this help
    exit                        - Leave the shell
"""

import logging
from typing import Callable, List

from .cache.base import ALL_EVENT_KINDS, EventKind
from .clients.registry import ClientRegistry
from .errors import ExerciserError

# Enable command history with arrow keys (works on Unix systems)
try:
    import readline  # noqa: F401
except ImportError:
    pass  # readline not available on Windows by default

logger = logging.getLogger(__name__)

HELP_TEXT = __doc__.split("Commands:\n", 1)[1].rstrip()


class ExerciserShell:
    """
    Line-oriented command interpreter over a ClientRegistry.

    Args:
        registry: The session's clients
        out: Receives every line of output
        read: Prompts for and returns one input line
    """

    def __init__(
            self,
            registry: ClientRegistry,
            out: Callable[[str], None] = print,
            read: Callable[[str], str] = input,
    ):
        self.registry = registry
        self.out = out
        self.read = read
        self._commands = {
            "help": self._help,
            "add": self._add,
            "set": self._add,
            "addex": self._add_with_expiration,
            "get": self._get,
            "update": self._update,
            "del": self._delete,
            "delete": self._delete,
            "remove": self._delete,
            "subscribe": self._subscribe,
            "unsubscribe": self._unsubscribe,
            "clients": self._clients,
            "new": self._new,
            "use": self._use,
            "bulk-new": self._bulk_new,
            "bulk-add": self._bulk_add,
            "broadcast": self._broadcast,
        }

    @property
    def prompt(self) -> str:
        return f"cache({self.registry.active_name})> "

    def run(self) -> None:
        """Read and execute commands until exit, EOF or Ctrl+C."""
        self.out("Enter commands directly. Type 'help' for available commands, 'exit' to return.")
        while True:
            try:
                line = self.read(self.prompt)
            except (EOFError, KeyboardInterrupt):
                self.out("")
                break
            if not self.execute(line):
                break

    def execute(self, line: str) -> bool:
        """
        Execute one command line.

        Returns:
            False when the shell should exit, True otherwise
        """
        line = line.strip()
        if not line:
            return True

        command, _, args = line.partition(" ")
        command = command.lower()
        args = args.strip()

        if command in ("exit", "quit"):
            return False

        handler = self._commands.get(command)
        if handler is None:
            self.out(f"Unknown command: {command}. Type 'help' for available commands.")
            return True

        try:
            handler(args)
        except ExerciserError as e:
            logger.debug(f"Command {command!r} failed: {e}")
            self.out(f"Error: {e}")
        return True

    # ------------------------------------------------------------------
    # CRUD on the active client
    # ------------------------------------------------------------------

    def _active(self):
        return self.registry.active()[1]

    def _help(self, args: str) -> None:
        self.out(HELP_TEXT)

    def _add(self, args: str) -> None:
        parts = args.split(None, 1)
        if len(parts) < 2:
            self.out("Usage: add <key> <value>")
            return
        self._active().add(parts[0], parts[1])
        self.out("OK")

    def _add_with_expiration(self, args: str) -> None:
        parts = args.split(None, 2)
        if len(parts) < 3 or not parts[1].isdigit() or int(parts[1]) <= 0:
            self.out("Usage: addex <key> <ttl_seconds> <value>")
            return
        ttl = int(parts[1])
        self._active().add(parts[0], parts[2], ttl=ttl)
        self.out(f"OK (expires in {ttl}s)")

    def _get(self, args: str) -> None:
        if not args:
            self.out("Usage: get <key>")
            return
        value = self._active().get(args)
        self.out("(nil)" if value is None else f"  {value}")

    def _update(self, args: str) -> None:
        parts = args.split(None, 1)
        if len(parts) < 2:
            self.out("Usage: update <key> <value>")
            return
        self._active().update(parts[0], parts[1])
        self.out("OK")

    def _delete(self, args: str) -> None:
        if not args:
            self.out("Usage: del <key>")
            return
        self._active().remove(args)
        self.out("OK")

    def _parse_kinds(self, args: str) -> List[EventKind]:
        if not args:
            return list(ALL_EVENT_KINDS)
        try:
            return [EventKind(word.lower()) for word in args.split()]
        except ValueError:
            names = ", ".join(kind.value for kind in EventKind)
            raise ExerciserError(f"Unknown event kind; choose from {names}") from None

    def _subscribe(self, args: str) -> None:
        kinds = self._parse_kinds(args)
        self._active().subscribe_events(kinds)
        self.out(f"Subscribed to: {', '.join(kind.value for kind in kinds)}")

    def _unsubscribe(self, args: str) -> None:
        handle = self._active()
        if args:
            handle.unsubscribe_events(self._parse_kinds(args))
        else:
            handle.unsubscribe_events()
        self.out("Unsubscribed")

    # ------------------------------------------------------------------
    # Client management
    # ------------------------------------------------------------------

    def _clients(self, args: str) -> None:
        self.out("Active Clients:")
        for name in self.registry.list():
            marker = " * " if name == self.registry.active_name else "   "
            self.out(f"{marker}{name}")

    def _new(self, args: str) -> None:
        self.registry.create_client(args)
        self.out(f"Client '{args}' created and connected.")

    def _use(self, args: str) -> None:
        self.registry.switch_to(args)
        self.out(f"Switched to client '{args}'.")

    def _bulk_new(self, args: str) -> None:
        parts = args.split()
        if not parts or not parts[0].isdigit() or int(parts[0]) <= 0:
            self.out("Usage: bulk-new <count> [prefix]")
            return
        prefix = parts[1] if len(parts) > 1 else "Client"
        report = self.registry.bulk_create(int(parts[0]), prefix)
        for name, error in report.failed.items():
            self.out(f"Failed to create client '{name}': {error}")
        self.out(f"Bulk creation complete. Created: {len(report.created)}, Failed: {len(report.failed)}")

    def _bulk_add(self, args: str) -> None:
        report = self.registry.bulk_add(args)
        for name, error in report.faults.items():
            self.out(f"Client {name} failed: {error}")
        self.out(f"Bulk Add Completed. Success: {report.success}, Failed: {report.failed}")

    def _broadcast(self, args: str) -> None:
        parts = args.split(None, 1)
        if len(parts) < 2:
            self.out("Usage: broadcast <key> <message>")
            return
        for name, error in self.registry.broadcast(parts[0], parts[1]).items():
            if error is None:
                self.out(f"Client {name} sent update.")
            else:
                self.out(f"Client {name} failed: {error}")
