"""Bech32 and bech32m encoding (BIP-173 / BIP-350)."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
CHECKSUM_LENGTH = 6
DEFAULT_LIMIT = 90

_GENERATOR = [0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3]
_CHARSET_REV = {c: i for i, c in enumerate(CHARSET)}


class Encoding(Enum):
    """Checksum constant selecting bech32 or bech32m."""

    BECH32 = 1
    BECH32M = 0x2BC830A3


class Bech32Error(ValueError):
    """Base exception for bech32 errors."""


class InvalidChecksumError(Bech32Error):
    """Raised when the checksum does not verify."""


class InvalidCharacterError(Bech32Error):
    """Raised for mixed case or characters outside the alphabet."""


class InvalidLengthError(Bech32Error):
    """Raised when the string or one of its parts has an invalid length."""


class InvalidPaddingError(Bech32Error):
    """Raised when 5-bit words leave non-zero or excess padding bits."""


@dataclass(frozen=True)
class Bech32Value:
    """Decoded bech32 string: prefix and 5-bit data words without checksum."""

    hrp: str
    data: list[int]


def _polymod(values: list[int]) -> int:
    chk = 1
    for v in values:
        b = chk >> 25
        chk = ((chk & 0x1FFFFFF) << 5) ^ v
        for i in range(5):
            chk ^= _GENERATOR[i] if ((b >> i) & 1) else 0
    return chk


def _hrp_expand(hrp: str) -> list[int]:
    return [ord(x) >> 5 for x in hrp] + [0] + [ord(x) & 31 for x in hrp]


def _create_checksum(hrp: str, data: list[int], encoding: Encoding) -> list[int]:
    values = _hrp_expand(hrp) + data
    polymod = _polymod(values + [0] * CHECKSUM_LENGTH) ^ encoding.value
    return [(polymod >> 5 * (5 - i)) & 31 for i in range(CHECKSUM_LENGTH)]


def _verify_checksum(hrp: str, data: list[int], encoding: Encoding) -> bool:
    return _polymod(_hrp_expand(hrp) + data) == encoding.value


def _check_hrp(hrp: str) -> None:
    if not hrp:
        raise InvalidLengthError("Empty human-readable part")
    for ch in hrp:
        if not 33 <= ord(ch) <= 126:
            raise InvalidCharacterError(f"Invalid character in prefix: {ch!r}")


def encode(
    hrp: str,
    data: list[int],
    encoding: Encoding = Encoding.BECH32,
    limit: int = DEFAULT_LIMIT,
) -> str:
    """Encode a prefix and 5-bit words into a lowercase bech32 string."""
    _check_hrp(hrp)
    if hrp.lower() != hrp and hrp.upper() != hrp:
        raise InvalidCharacterError("Mixed-case prefix")
    hrp = hrp.lower()
    for word in data:
        if not 0 <= word < 32:
            raise InvalidCharacterError(f"Word out of range: {word}")

    if len(hrp) + 1 + len(data) + CHECKSUM_LENGTH > limit:
        raise InvalidLengthError(f"Encoded string exceeds {limit} characters")

    checksum = _create_checksum(hrp, list(data), encoding)
    return hrp + "1" + "".join(CHARSET[d] for d in list(data) + checksum)


def decode(
    value: str,
    encoding: Encoding = Encoding.BECH32,
    limit: int = DEFAULT_LIMIT,
) -> Bech32Value:
    """
    Decode a bech32 string and verify its checksum.

    Raises:
        InvalidLengthError: Over-long input, missing separator, empty prefix
            or a data part too short to hold the checksum
        InvalidCharacterError: Mixed case or characters outside the alphabet
        InvalidChecksumError: Checksum does not match for ``encoding``
    """
    if len(value) > limit:
        raise InvalidLengthError(f"String exceeds {limit} characters")
    if value.lower() != value and value.upper() != value:
        raise InvalidCharacterError("Mixed-case string")

    value = value.lower()
    pos = value.rfind("1")
    if pos == -1:
        raise InvalidLengthError("Missing separator")

    hrp = value[:pos]
    _check_hrp(hrp)

    data_part = value[pos + 1 :]
    if len(data_part) < CHECKSUM_LENGTH:
        raise InvalidLengthError("Data part too short")

    data = []
    for ch in data_part:
        if ch not in _CHARSET_REV:
            raise InvalidCharacterError(f"Invalid data character: {ch!r}")
        data.append(_CHARSET_REV[ch])

    if not _verify_checksum(hrp, data, encoding):
        raise InvalidChecksumError("Invalid checksum")

    return Bech32Value(hrp=hrp, data=data[:-CHECKSUM_LENGTH])


def _convert_bits(data: bytes | list[int], frombits: int, tobits: int, pad: bool) -> list[int]:
    acc, bits, ret = 0, 0, []
    maxv = (1 << tobits) - 1
    for val in data:
        if val < 0 or val >> frombits:
            raise Bech32Error(f"Value out of range: {val}")
        acc = ((acc << frombits) | val) & 0xFFFFFFFF
        bits += frombits
        while bits >= tobits:
            bits -= tobits
            ret.append((acc >> bits) & maxv)
    if pad:
        if bits:
            ret.append((acc << (tobits - bits)) & maxv)
    elif bits >= frombits or ((acc << (tobits - bits)) & maxv):
        raise InvalidPaddingError("Non-zero padding")
    return ret


def to_words(data: bytes) -> list[int]:
    """Regroup bytes into 5-bit words, zero-padding the final word."""
    return _convert_bits(data, 8, 5, pad=True)


def from_words(words: list[int]) -> bytes:
    """Regroup 5-bit words into bytes, rejecting any leftover padding."""
    return bytes(_convert_bits(words, 5, 8, pad=False))
