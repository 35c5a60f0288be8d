"""NIP-98 HTTP auth events, signers and the session client."""

from __future__ import annotations

import base64
import copy
import hashlib
import inspect
import json
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

import httpx

logger = logging.getLogger(__name__)

AUTH_EVENT_KIND = 27235
AUTH_SCHEME = "Nostr"
SUCCESS_STATUSES = (200, 201)

Event = dict[str, Any]


class AuthError(Exception):
    """Base exception for sign-in protocol errors."""


class NoSignerError(AuthError):
    """Raised when no external signer is available."""

    def __init__(self, message: str = "No NIP-07 signer available"):
        super().__init__(message)


class SignerError(AuthError):
    """Raised when a signer fails or returns a malformed or mismatched event."""


class SignInRejectedError(AuthError):
    """Raised when the server answers with a non-success status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class NetworkError(AuthError):
    """Raised when a remote call does not complete."""


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def build_auth_event(
    url: str,
    method: str,
    body: bytes = b"",
    clock: Callable[[], float] = time.time,
) -> Event:
    """Build an unsigned kind 27235 event for one HTTP request.

    The payload tag hashes exactly ``body``, which must be the bytes sent.
    """
    return {
        "kind": AUTH_EVENT_KIND,
        "created_at": int(clock()),
        "tags": [
            ["u", url],
            ["method", method.upper()],
            ["payload", sha256_hex(body)],
        ],
        "content": "",
    }


def event_id(event: Event) -> str:
    """Compute the NIP-01 id of an event."""
    serialized = json.dumps(
        [0, event["pubkey"], event["created_at"], event["kind"], event["tags"], event["content"]],
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return sha256_hex(serialized.encode())


def check_signed_event(unsigned: Event, signed: Any) -> Event:
    """Ensure a signer returned the event it was asked to sign."""
    if not isinstance(signed, dict):
        raise SignerError("Signer returned no event")
    for field in ("kind", "created_at", "tags", "content"):
        if signed.get(field) != unsigned[field]:
            raise SignerError(f"Signer altered field '{field}'")
    for field in ("pubkey", "sig"):
        if not isinstance(signed.get(field), str) or not signed[field]:
            raise SignerError(f"Signed event is missing '{field}'")
    if "id" in signed and signed["id"] != event_id(signed):
        raise SignerError("Signed event id does not match its content")
    return signed


def authorization_header(signed: Event) -> str:
    encoded = json.dumps(signed, separators=(",", ":")).encode()
    return f"{AUTH_SCHEME} {base64.b64encode(encoded).decode()}"


class Signer(ABC):
    """Capability that signs events without exposing the private key."""

    name: str = "base"

    @abstractmethod
    async def sign_event(self, unsigned: Event) -> Event:
        """Return the signed form of ``unsigned``."""


class NoSigner(Signer):
    """Explicit absence of a signer."""

    name = "none"

    async def sign_event(self, unsigned: Event) -> Event:
        raise NoSignerError()


class CallableSigner(Signer):
    """Adapt an externally supplied ``sign_event`` callable (sync or async)."""

    name = "external"

    def __init__(self, sign_event: Callable[[Event], Any]):
        self._sign_event = sign_event

    async def sign_event(self, unsigned: Event) -> Event:
        try:
            signed = self._sign_event(copy.deepcopy(unsigned))
            if inspect.isawaitable(signed):
                signed = await signed
        except AuthError:
            raise
        except Exception as e:
            raise SignerError(f"Signer failed: {e}") from e
        return signed


def _json_or_empty(response: httpx.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {"data": data}


def _raise_for_status(response: httpx.Response, data: dict[str, Any]) -> None:
    if response.status_code not in SUCCESS_STATUSES:
        message = data.get("error") or f"HTTP {response.status_code}"
        raise SignInRejectedError(str(message), status_code=response.status_code)


class RemoteSigner(Signer):
    """Sign through a remote signing function holding the decrypted key.

    Used by the local-vault flow: the hex key leaves this process only in
    the body of this call.
    """

    name = "remote"

    def __init__(self, http: httpx.AsyncClient, sign_url: str, private_key_hex: str):
        self.http = http
        self.sign_url = sign_url
        self._private_key_hex = private_key_hex

    def __repr__(self) -> str:
        return f"RemoteSigner(sign_url={self.sign_url!r})"

    async def sign_event(self, unsigned: Event) -> Event:
        try:
            response = await self.http.post(
                self.sign_url,
                json={"unsigned_event": unsigned, "private_key_hex": self._private_key_hex},
            )
        except httpx.HTTPError as e:
            raise NetworkError(f"Signing request failed: {e}") from e

        data = _json_or_empty(response)
        _raise_for_status(response, data)
        if data.get("error"):
            raise SignInRejectedError(str(data["error"]), status_code=response.status_code)
        return data.get("signed_event")


class SessionClient:
    """Async client for a NIP-98 protected session endpoint.

    Cookies set by the server are kept in the underlying client, so a
    session established by ``sign_in`` is reused by later calls.
    """

    def __init__(
        self,
        session_url: str,
        http: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
        clock: Callable[[], float] = time.time,
    ):
        self.session_url = session_url
        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(timeout=timeout)
        self.clock = clock

    async def __aenter__(self) -> SessionClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()

    async def _send(
        self,
        method: str,
        headers: dict[str, str] | None = None,
        content: bytes | None = None,
    ) -> dict[str, Any]:
        try:
            response = await self.http.request(
                method, self.session_url, headers=headers, content=content
            )
        except httpx.HTTPError as e:
            raise NetworkError(f"{method} {self.session_url} failed: {e}") from e

        data = _json_or_empty(response)
        logger.debug("%s %s -> %d", method, self.session_url, response.status_code)
        _raise_for_status(response, data)
        return data

    async def signed_request(
        self,
        method: str,
        signer: Signer,
        body: bytes | None = None,
    ) -> dict[str, Any]:
        """Sign a request for the session URL and send it."""
        method = method.upper()
        unsigned = build_auth_event(self.session_url, method, body or b"", self.clock)
        signed = check_signed_event(unsigned, await signer.sign_event(copy.deepcopy(unsigned)))

        headers = {"Authorization": authorization_header(signed)}
        if body is not None:
            headers["Content-Type"] = "application/json"
        return await self._send(method, headers=headers, content=body)

    async def sign_in(self, signer: Signer) -> dict[str, Any]:
        """POST a signed sign-in request and return the server response."""
        body = json.dumps({"ts": int(self.clock() * 1000)}, separators=(",", ":")).encode()
        return await self.signed_request("POST", signer, body)

    async def check_session(self) -> dict[str, Any]:
        return await self._send("GET")

    async def logout(self) -> dict[str, Any]:
        return await self._send("DELETE")
