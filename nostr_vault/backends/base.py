"""Abstract base class for vault storage backends."""

from abc import ABC, abstractmethod

from ..schema import EncryptedKeyRecord


class BackendError(Exception):
    """Base exception for backend errors."""


class RecordNotFoundError(BackendError):
    """Raised when no key record is stored."""

    def __init__(self, message: str = "No keys stored locally"):
        super().__init__(message)


class StorageUnavailableError(BackendError):
    """Raised when the storage engine cannot be opened."""


class VaultStore(ABC):
    """Abstract base class for the single-record key vault.

    Implementations are not synchronised across processes: concurrent
    writers race and the last one wins.
    """

    name: str = "base"

    @abstractmethod
    def load(self) -> EncryptedKeyRecord:
        """Load the stored record. Raises RecordNotFoundError if absent."""

    @abstractmethod
    def save(self, record: EncryptedKeyRecord) -> None:
        """Store the record. Overwrites if exists."""

    @abstractmethod
    def delete(self) -> bool:
        """Delete the record. Returns True if deleted, False if not found."""

    def exists(self) -> bool:
        """Check if a record is stored."""
        try:
            self.load()
        except RecordNotFoundError:
            return False
        return True
