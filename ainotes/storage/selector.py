"""
Backend selection.

BackendSelector owns the process-wide "which backend is active" state:

    • select(config) records a configuration; when it differs from the
      current one the live backend is retired and discarded before anything
      else can obtain a backend
    • get_backend() builds and initializes the backend lazily, on first use
      after a selection
    • at most one live backend exists per selector at any time

Requests still in flight against a retired backend fail with
BackendReselectedError; the retired backend is closed once they drain.

NoteService uses the module-level selector from get_selector() unless it is
given one; tests construct their own selectors.
"""

import asyncio
import logging
from typing import Callable, Optional

from ainotes.config import StorageConfig, load_config
from ainotes.storage.base import StorageBackend
from ainotes.storage.local import LocalBackend
from ainotes.storage.remote import RemoteBackend

logger = logging.getLogger(__name__)

BackendFactory = Callable[[StorageConfig], StorageBackend]


def create_backend(config: StorageConfig) -> StorageBackend:
    """Build an uninitialized backend for a validated config."""
    config.validate()

    if config.backend == "remote":
        return RemoteBackend(
            url=config.supabase_url or "",
            key=config.supabase_key or "",
            table=config.table,
        )

    return LocalBackend(config.local_path)


class BackendSelector:
    """
    Controlled singleton holder for the active StorageBackend.

    Parameters
    ----------
    config : StorageConfig | None
        Initial configuration. When None, load_config() is consulted on
        first use.
    factory : callable | None
        Builds a backend from a config. Defaults to create_backend().
    """

    def __init__(
        self,
        config: Optional[StorageConfig] = None,
        factory: Optional[BackendFactory] = None,
    ) -> None:
        self._config = config.validate() if config is not None else None
        self._factory = factory or create_backend
        self._backend: Optional[StorageBackend] = None
        self._epoch = 0
        self._lock = asyncio.Lock()

    @property
    def config(self) -> StorageConfig:
        if self._config is None:
            self._config = load_config().validate()
        return self._config

    @property
    def epoch(self) -> int:
        """Incremented every time the active configuration changes."""
        return self._epoch

    @property
    def current(self) -> Optional[StorageBackend]:
        """The live backend, or None when none has been built since selection."""
        return self._backend

    async def get_backend(self) -> StorageBackend:
        """Return the live backend, building and initializing it if needed."""
        backend = self._backend
        if backend is not None and not backend.retired:
            return backend

        async with self._lock:
            if self._backend is not None and not self._backend.retired:
                return self._backend

            config = self.config
            backend = self._factory(config)
            await backend.initialize()
            self._backend = backend
            logger.info("Selected %s backend (epoch %d)", config.backend, self._epoch)
            return backend

    async def select(self, config: StorageConfig) -> bool:
        """
        Make `config` the active configuration.

        Returns True when the configuration changed (and the previous backend,
        if any, was retired), False when it was already active.
        """
        config.validate()

        async with self._lock:
            if self._config == config:
                return False

            previous = self._backend
            self._backend = None
            self._config = config
            self._epoch += 1

        logger.info("Storage configuration changed to %s backend", config.backend)

        if previous is not None:
            await previous.retire()
        return True

    async def reset(self) -> None:
        """Retire the live backend without changing the configuration."""
        async with self._lock:
            previous = self._backend
            self._backend = None

        if previous is not None:
            await previous.retire()


# ---------------------------------------------------------------------------
# Process-wide accessor
# ---------------------------------------------------------------------------

_selector: Optional[BackendSelector] = None


def get_selector() -> BackendSelector:
    """Return the process-wide selector, creating it on first call."""
    global _selector
    if _selector is None:
        _selector = BackendSelector()
    return _selector

