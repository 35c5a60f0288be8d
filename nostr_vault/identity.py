"""Nostr identity keys: nsec/npub encoding and private key materialization."""

from __future__ import annotations

import logging
import secrets

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from . import bech32

logger = logging.getLogger(__name__)

NSEC_PREFIX = "nsec"
NPUB_PREFIX = "npub"
KEY_LENGTH = 32

# Order of the secp256k1 group.
SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141


class InvalidFormatError(ValueError):
    """Raised when decrypted key material is not a valid nsec.

    The message is fixed on purpose: it does not say which check failed.
    """

    def __init__(self) -> None:
        super().__init__("Invalid nsec format")


def materialize(plaintext: str | bytes) -> str:
    """
    Turn a decrypted nsec into a hex-encoded 32-byte private key.

    Raises:
        InvalidFormatError: If the plaintext is not a bech32 nsec holding
            exactly 32 bytes, or the key is not a valid secp256k1 scalar
    """
    try:
        if isinstance(plaintext, bytes):
            plaintext = plaintext.decode()
        decoded = bech32.decode(plaintext.strip())
    except (UnicodeDecodeError, bech32.Bech32Error) as e:
        logger.debug("nsec decode failed: %s", type(e).__name__)
        raise InvalidFormatError() from None

    if decoded.hrp != NSEC_PREFIX:
        logger.debug("Unexpected prefix in decrypted key")
        raise InvalidFormatError()

    try:
        raw = bytearray(bech32.from_words(decoded.data))
    except bech32.Bech32Error as e:
        logger.debug("nsec word conversion failed: %s", type(e).__name__)
        raise InvalidFormatError() from None

    try:
        if len(raw) != KEY_LENGTH:
            logger.debug("Decoded key has %d bytes", len(raw))
            raise InvalidFormatError()
        if not 0 < int.from_bytes(raw, "big") < SECP256K1_N:
            logger.debug("Decoded key is outside the secp256k1 range")
            raise InvalidFormatError()
        return raw.hex()
    finally:
        # Best effort only; copies made by the runtime are out of reach.
        raw[:] = bytes(len(raw))


def _encode(prefix: str, raw: bytes) -> str:
    if len(raw) != KEY_LENGTH:
        raise ValueError(f"Expected {KEY_LENGTH} bytes, got {len(raw)}")
    return bech32.encode(prefix, bech32.to_words(raw))


def encode_nsec(private_key: bytes | str) -> str:
    """Encode a 32-byte private key (bytes or hex) as nsec."""
    if isinstance(private_key, str):
        private_key = bytes.fromhex(private_key)
    return _encode(NSEC_PREFIX, private_key)


def encode_npub(public_key: bytes | str) -> str:
    """Encode a 32-byte x-only public key (bytes or hex) as npub."""
    if isinstance(public_key, str):
        public_key = bytes.fromhex(public_key)
    return _encode(NPUB_PREFIX, public_key)


def decode_npub(npub: str) -> str:
    """Decode an npub into its hex public key."""
    decoded = bech32.decode(npub)
    if decoded.hrp != NPUB_PREFIX:
        raise bech32.Bech32Error(f"Expected '{NPUB_PREFIX}' prefix, got '{decoded.hrp}'")
    raw = bech32.from_words(decoded.data)
    if len(raw) != KEY_LENGTH:
        raise bech32.InvalidLengthError(f"Expected {KEY_LENGTH} bytes, got {len(raw)}")
    return raw.hex()


def generate_private_key() -> str:
    """Generate a random secp256k1 private key as hex."""
    while True:
        candidate = secrets.token_bytes(KEY_LENGTH)
        if 0 < int.from_bytes(candidate, "big") < SECP256K1_N:
            return candidate.hex()


def derive_public_key(private_key_hex: str) -> str:
    """Derive the x-only (BIP-340) public key for a hex private key."""
    scalar = int(private_key_hex, 16)
    if not 0 < scalar < SECP256K1_N:
        raise ValueError("Private key out of range for secp256k1")
    key = ec.derive_private_key(scalar, ec.SECP256K1())
    point = key.public_key().public_bytes(
        serialization.Encoding.X962,
        serialization.PublicFormat.CompressedPoint,
    )
    return point[1:].hex()
