"""Backend implementations for key vault storage."""

from .base import BackendError, RecordNotFoundError, StorageUnavailableError, VaultStore
from .memory import MemoryVaultStore
from .sqlite import STORE_VERSION, SQLiteVaultStore

__all__ = [
    "BackendError",
    "RecordNotFoundError",
    "StorageUnavailableError",
    "VaultStore",
    "MemoryVaultStore",
    "SQLiteVaultStore",
    "STORE_VERSION",
]
