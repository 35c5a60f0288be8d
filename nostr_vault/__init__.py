"""Encrypted local vault for a Nostr identity key, with NIP-98 sign-in."""

__version__ = "0.1.0"
