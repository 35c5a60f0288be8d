"""Encrypted key record and its JSON representation."""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from typing import Any

from .crypto import DEFAULT_ROUNDS, decrypt, encrypt

RECORD_ID = "current"
SCHEMA_VERSION = 2


class SchemaError(Exception):
    """Raised when a record cannot be parsed."""


def _encode_bytes(value: bytes) -> str:
    return base64.b64encode(value).decode()


def _decode_bytes(field: str, value: Any) -> bytes:
    """Accept base64 strings or integer arrays (browser vault layout)."""
    if isinstance(value, str):
        try:
            return base64.b64decode(value, validate=True)
        except binascii.Error as e:
            raise SchemaError(f"Invalid base64 in '{field}'") from e
    if isinstance(value, list):
        try:
            return bytes(value)
        except (TypeError, ValueError) as e:
            raise SchemaError(f"Invalid byte array in '{field}'") from e
    raise SchemaError(f"Missing or invalid '{field}'")


@dataclass(frozen=True)
class EncryptedKeyRecord:
    """The single encrypted nsec record held by a vault."""

    salt: bytes
    iv: bytes
    encrypted: bytes
    id: str = RECORD_ID
    schema_version: int = SCHEMA_VERSION

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "salt": _encode_bytes(self.salt),
            "iv": _encode_bytes(self.iv),
            "encrypted": _encode_bytes(self.encrypted),
            "schemaVersion": self.schema_version,
        }

    def to_json(self) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, obj: Any) -> EncryptedKeyRecord:
        if not isinstance(obj, dict):
            raise SchemaError("Record must be a JSON object")

        record_id = obj.get("id", RECORD_ID)
        if record_id != RECORD_ID:
            raise SchemaError(f"Unexpected record id: {record_id!r}")

        version = obj.get("schemaVersion", SCHEMA_VERSION)
        if not isinstance(version, int):
            raise SchemaError("Invalid 'schemaVersion'")

        return cls(
            salt=_decode_bytes("salt", obj.get("salt")),
            iv=_decode_bytes("iv", obj.get("iv")),
            encrypted=_decode_bytes("encrypted", obj.get("encrypted")),
            schema_version=version,
        )

    @classmethod
    def from_json(cls, data: str) -> EncryptedKeyRecord:
        """Deserialize from JSON string."""
        try:
            obj = json.loads(data)
        except json.JSONDecodeError as e:
            raise SchemaError("Record is not valid JSON") from e
        return cls.from_dict(obj)


def encrypt_and_wrap(
    nsec: str,
    password: str,
    rounds: int = DEFAULT_ROUNDS,
) -> EncryptedKeyRecord:
    """Encrypt an nsec under a password with a fresh salt and iv."""
    salt, iv, ciphertext = encrypt(nsec.encode(), password, rounds=rounds)
    return EncryptedKeyRecord(salt=salt, iv=iv, encrypted=ciphertext)


def unwrap_record(record: EncryptedKeyRecord, password: str) -> bytes:
    """
    Decrypt a record's ciphertext.

    Raises:
        DecryptionError: Wrong password or corrupted record
    """
    return decrypt(record.encrypted, password, record.salt, record.iv)
