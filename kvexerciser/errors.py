"""
Exception Hierarchy

Every failure the exerciser raises derives from ExerciserError so that
command entry points can report it and keep the session alive.

    ExerciserError
    ├── CacheFault              per-operation failure from the cache service
    │   ├── DuplicateKeyError   add() on a key that already exists
    │   └── NotFoundError       update()/remove() on an absent key
    ├── CacheConnectionError    cannot reach the cache service
    └── RegistryError
        ├── DuplicateClientError
        └── ClientNotFoundError
"""


class ExerciserError(Exception):
    """Base class for all exerciser errors."""


class CacheFault(ExerciserError):
    """A single cache operation failed."""

    def __init__(self, message: str, key: str = ""):
        super().__init__(message)
        self.key = key


class DuplicateKeyError(CacheFault):
    """Raised by add() when the key is already present."""

    def __init__(self, key: str):
        super().__init__(f"key already exists: {key}", key=key)


class NotFoundError(CacheFault):
    """Raised by update()/remove() when the key is absent."""

    def __init__(self, key: str):
        super().__init__(f"key not found: {key}", key=key)


class CacheConnectionError(ExerciserError):
    """The cache service could not be reached."""


class RegistryError(ExerciserError):
    """Misuse of the client registry."""


class DuplicateClientError(RegistryError):
    """A client with this name is already registered."""

    def __init__(self, name: str):
        super().__init__(f"Client '{name}' already exists")
        self.name = name


class ClientNotFoundError(RegistryError):
    """No client is registered under this name."""

    def __init__(self, name: str):
        super().__init__(f"Client '{name}' not found")
        self.name = name
