"""Async vault operations over an injected store."""

from __future__ import annotations

import asyncio
import logging

from . import bech32
from .backends import VaultStore
from .identity import InvalidFormatError, encode_nsec, materialize
from .schema import EncryptedKeyRecord, encrypt_and_wrap, unwrap_record

logger = logging.getLogger(__name__)


class PasswordRequiredError(ValueError):
    """Raised when an empty password is supplied."""

    def __init__(self) -> None:
        super().__init__("Please enter your password")


def _check_password(password: str | None) -> str:
    if not password:
        raise PasswordRequiredError()
    return password


async def load_record(store: VaultStore) -> EncryptedKeyRecord:
    """Load the encrypted record without blocking the event loop."""
    return await asyncio.to_thread(store.load)


async def has_key(store: VaultStore) -> bool:
    return await asyncio.to_thread(store.exists)


async def unlock(store: VaultStore, password: str) -> str:
    """
    Decrypt the stored nsec and return the hex private key.

    Steps run strictly in order: load, derive and decrypt, materialize.
    Nothing is written, so a failed or abandoned unlock leaves the store
    untouched.

    Raises:
        PasswordRequiredError: Empty password
        RecordNotFoundError: No key stored
        StorageUnavailableError: Store could not be opened
        DecryptionError: Wrong password or corrupted record
        InvalidFormatError: Decrypted plaintext is not a valid nsec
    """
    password = _check_password(password)
    record = await load_record(store)
    logger.debug("Loaded vault record (schema v%d)", record.schema_version)

    plaintext = await asyncio.to_thread(unwrap_record, record, password)
    logger.debug("Vault record decrypted")

    return materialize(plaintext)


async def store_key(store: VaultStore, nsec: str, password: str) -> EncryptedKeyRecord:
    """
    Validate an nsec and store it encrypted under password.

    Overwrites any existing record.
    """
    password = _check_password(password)
    nsec = nsec.strip()
    # Reject anything unlock would later refuse.
    materialize(nsec)

    record = await asyncio.to_thread(encrypt_and_wrap, nsec, password)
    await asyncio.to_thread(store.save, record)
    logger.info("Stored encrypted key in %s vault", store.name)
    return record


async def store_private_key(store: VaultStore, private_key_hex: str, password: str) -> EncryptedKeyRecord:
    """Store a hex private key, encoding it as nsec first."""
    try:
        nsec = encode_nsec(private_key_hex)
    except (ValueError, bech32.Bech32Error) as e:
        raise InvalidFormatError() from e
    return await store_key(store, nsec, password)


async def restore_record(store: VaultStore, record: EncryptedKeyRecord) -> None:
    """Write a previously exported record back into the store."""
    await asyncio.to_thread(store.save, record)
    logger.info("Restored encrypted key into %s vault", store.name)


async def remove_key(store: VaultStore) -> bool:
    """Delete the stored key. Returns False if nothing was stored."""
    removed = await asyncio.to_thread(store.delete)
    if removed:
        logger.info("Removed key from %s vault", store.name)
    return removed
