"""Sign-in attempts: state machine, flows and user-facing error messages."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .auth import (
    NetworkError,
    NoSignerError,
    RemoteSigner,
    SessionClient,
    SignerError,
    SignInRejectedError,
    Signer,
)
from .backends import RecordNotFoundError, StorageUnavailableError, VaultStore
from .config import ConfigError
from .crypto import DecryptionError
from .history import AttemptLog
from .identity import InvalidFormatError
from .vault import PasswordRequiredError, unlock

logger = logging.getLogger(__name__)


class AttemptState(Enum):
    IDLE = "idle"
    DECRYPTING = "decrypting"
    DECRYPTED = "decrypted"
    SIGNING = "signing"
    SENT = "sent"
    FAILED = "failed"


_TRANSITIONS: dict[AttemptState, set[AttemptState]] = {
    AttemptState.IDLE: {AttemptState.DECRYPTING, AttemptState.SIGNING, AttemptState.FAILED},
    AttemptState.DECRYPTING: {AttemptState.DECRYPTED, AttemptState.FAILED},
    AttemptState.DECRYPTED: {AttemptState.SIGNING, AttemptState.FAILED},
    AttemptState.SIGNING: {AttemptState.SENT, AttemptState.FAILED},
    AttemptState.SENT: set(),
    AttemptState.FAILED: set(),
}


class InvalidTransitionError(RuntimeError):
    """Raised on a state change the attempt lifecycle does not allow."""


# (category, exception type, user message); first match wins.
ERROR_CATEGORIES: list[tuple[str, type[BaseException], str]] = [
    ("password_required", PasswordRequiredError, "Please enter your password."),
    ("not_found", RecordNotFoundError, "No keys found. Please generate or import keys first."),
    ("storage_unavailable", StorageUnavailableError, "Local key storage could not be opened."),
    ("decryption_failed", DecryptionError, "Wrong password. Please try again."),
    ("invalid_format", InvalidFormatError, "Stored key is not a valid nsec."),
    (
        "no_signer",
        NoSignerError,
        "No Nostr signer found. Install a NIP-07 extension such as nos2x or Alby.",
    ),
    ("signer_error", SignerError, "The signer failed or returned an invalid event."),
    ("rejected", SignInRejectedError, "Sign-in was rejected by the server."),
    ("network_failure", NetworkError, "Could not reach the server. Please try again."),
    ("not_configured", ConfigError, "API URL not configured."),
]

HANDLED_ERRORS = tuple(exc_type for _, exc_type, _ in ERROR_CATEGORIES)


def categorize(exc: BaseException) -> tuple[str, str]:
    """Map an exception to (category, user message)."""
    for category, exc_type, message in ERROR_CATEGORIES:
        if isinstance(exc, exc_type):
            return category, message
    return "unexpected", "Failed to sign in. Please try again."


def user_message(exc: BaseException) -> str:
    return categorize(exc)[1]


class SignInAttempt:
    """One pass through the sign-in lifecycle.

    SENT and FAILED are terminal; a new attempt needs fresh user input.
    """

    def __init__(self, flow: str):
        self.flow = flow
        self.state = AttemptState.IDLE

    def transition(self, new_state: AttemptState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise InvalidTransitionError(
                f"Cannot move from {self.state.value} to {new_state.value}"
            )
        logger.debug("%s attempt: %s -> %s", self.flow, self.state.value, new_state.value)
        self.state = new_state

    @property
    def finished(self) -> bool:
        return not _TRANSITIONS[self.state]


@dataclass
class SignInResult:
    """Outcome of an attempt as presented to the caller."""

    state: AttemptState
    data: dict[str, Any] = field(default_factory=dict)
    category: str = "ok"
    message: str = ""
    private_key_hex: str | None = field(default=None, repr=False)

    @property
    def ok(self) -> bool:
        return self.category == "ok"


async def _record(log: AttemptLog | None, operation: str, flow: str, outcome: str) -> None:
    if log is not None:
        await asyncio.to_thread(log.log, operation, flow, outcome)


async def _fail(
    attempt: SignInAttempt,
    exc: BaseException,
    operation: str,
    log: AttemptLog | None,
) -> SignInResult:
    category, message = categorize(exc)
    logger.debug("%s %s failed (%s): %s", attempt.flow, operation, category, exc)
    attempt.transition(AttemptState.FAILED)
    await _record(log, operation, attempt.flow, category)
    return SignInResult(state=attempt.state, category=category, message=message)


async def unlock_vault(
    store: VaultStore,
    password: str,
    log: AttemptLog | None = None,
) -> SignInResult:
    """Decrypt the vault without signing in.

    The hex key is returned on the result and must not be kept longer
    than needed.
    """
    attempt = SignInAttempt("local")
    try:
        attempt.transition(AttemptState.DECRYPTING)
        private_key_hex = await unlock(store, password)
        attempt.transition(AttemptState.DECRYPTED)
    except HANDLED_ERRORS as e:
        return await _fail(attempt, e, "unlock", log)

    await _record(log, "unlock", attempt.flow, "ok")
    return SignInResult(state=attempt.state, private_key_hex=private_key_hex)


async def sign_in_with_signer(
    client: SessionClient,
    signer: Signer,
    log: AttemptLog | None = None,
) -> SignInResult:
    """Sign in with an external signer; the private key is never seen here."""
    attempt = SignInAttempt(signer.name)
    try:
        attempt.transition(AttemptState.SIGNING)
        data = await client.sign_in(signer)
        attempt.transition(AttemptState.SENT)
    except HANDLED_ERRORS as e:
        return await _fail(attempt, e, "sign-in", log)

    await _record(log, "sign-in", attempt.flow, "ok")
    return SignInResult(state=attempt.state, data=data)


async def sign_in_with_vault(
    client: SessionClient,
    store: VaultStore,
    password: str,
    sign_url: str | None,
    log: AttemptLog | None = None,
) -> SignInResult:
    """Unlock the local vault and sign in through the remote signing function."""
    attempt = SignInAttempt("local")
    try:
        if not sign_url:
            raise ConfigError("Signing URL not configured")
        attempt.transition(AttemptState.DECRYPTING)
        private_key_hex = await unlock(store, password)
        attempt.transition(AttemptState.DECRYPTED)

        attempt.transition(AttemptState.SIGNING)
        signer = RemoteSigner(client.http, sign_url, private_key_hex)
        data = await client.sign_in(signer)
        attempt.transition(AttemptState.SENT)
    except HANDLED_ERRORS as e:
        return await _fail(attempt, e, "sign-in", log)

    await _record(log, "sign-in", attempt.flow, "ok")
    return SignInResult(state=attempt.state, data=data)
