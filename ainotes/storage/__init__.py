"""
Public API for the storage subsystem.

    from ainotes.storage import StorageBackend, BackendSelector, get_selector

Callers depend on StorageBackend only; which concrete backend is active is
decided by the BackendSelector from the current StorageConfig.
"""

from .base import StorageBackend, normalize_tags
from .local import LocalBackend
from .remote import RemoteBackend
from .selector import BackendSelector, create_backend, get_selector

__all__ = [
    "BackendSelector",
    "LocalBackend",
    "RemoteBackend",
    "StorageBackend",
    "create_backend",
    "get_selector",
    "normalize_tags",
]
