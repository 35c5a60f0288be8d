"""Password-based AES-256-GCM encryption for the key vault."""

import os

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

DEFAULT_ROUNDS = 100000
KEY_LENGTH = 32
SALT_LENGTH = 16
IV_LENGTH = 12

DECRYPTION_FAILED = "Failed to decrypt. Wrong password?"


class CryptoError(Exception):
    """Base exception for cryptographic errors."""


class DecryptionError(CryptoError):
    """Raised when decryption fails (wrong password or corrupted data)."""

    def __init__(self, message: str = DECRYPTION_FAILED):
        super().__init__(message)


def generate_salt() -> bytes:
    """Generate a random 16-byte salt."""
    return os.urandom(SALT_LENGTH)


def generate_iv() -> bytes:
    """Generate a random 12-byte GCM nonce."""
    return os.urandom(IV_LENGTH)


def derive_key(password: str, salt: bytes, rounds: int = DEFAULT_ROUNDS) -> bytes:
    """Derive a 32-byte AES key from password using PBKDF2-HMAC-SHA256."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=rounds,
    )
    return kdf.derive(password.encode())


def encrypt(
    plaintext: bytes,
    password: str,
    salt: bytes | None = None,
    iv: bytes | None = None,
    rounds: int = DEFAULT_ROUNDS,
) -> tuple[bytes, bytes, bytes]:
    """
    Encrypt plaintext with AES-256-GCM under a password-derived key.

    Returns:
        Tuple of (salt, iv, ciphertext_with_tag)
    """
    if salt is None:
        salt = generate_salt()
    if iv is None:
        iv = generate_iv()

    key = derive_key(password, salt, rounds)
    ciphertext = AESGCM(key).encrypt(iv, plaintext, None)
    return salt, iv, ciphertext


def decrypt(
    ciphertext: bytes,
    password: str,
    salt: bytes,
    iv: bytes,
    rounds: int = DEFAULT_ROUNDS,
) -> bytes:
    """
    Decrypt AES-256-GCM ciphertext (tag appended) with a password.

    The GCM tag is the only integrity check, so a wrong password and a
    tampered record raise the same error.

    Raises:
        DecryptionError: If decryption fails for any reason
    """
    try:
        key = derive_key(password, salt, rounds)
        return AESGCM(key).decrypt(iv, ciphertext, None)
    except Exception as e:
        raise DecryptionError() from e
