"""In-memory vault backend (tests and ephemeral sessions)."""

from ..schema import RECORD_ID, EncryptedKeyRecord
from .base import RecordNotFoundError, VaultStore


class MemoryVaultStore(VaultStore):
    """Dict-backed vault storage backend."""

    name = "memory"

    def __init__(self) -> None:
        self.records: dict[str, EncryptedKeyRecord] = {}

    def load(self) -> EncryptedKeyRecord:
        record = self.records.get(RECORD_ID)
        if record is None:
            raise RecordNotFoundError()
        return record

    def save(self, record: EncryptedKeyRecord) -> None:
        self.records[record.id] = record

    def delete(self) -> bool:
        return self.records.pop(RECORD_ID, None) is not None
