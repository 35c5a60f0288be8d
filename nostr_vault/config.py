"""Configuration loaded from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_DATA_DIR = Path.home() / ".nostr-vault"
DEFAULT_TIMEOUT = 10.0
DB_FILENAME = "vault.db"
HISTORY_FILENAME = "history.db"


class ConfigError(Exception):
    """Raised when a required setting is missing or invalid."""


@dataclass
class Config:
    """Runtime settings for the vault and the session endpoint."""

    data_dir: Path = DEFAULT_DATA_DIR
    db_path: Path | None = None
    session_url: str | None = None
    sign_url: str | None = None
    timeout: float = DEFAULT_TIMEOUT

    @property
    def vault_path(self) -> Path:
        return self.db_path or self.data_dir / DB_FILENAME

    @property
    def history_path(self) -> Path:
        return self.data_dir / HISTORY_FILENAME

    @classmethod
    def from_env(cls) -> Config:
        data_dir = os.environ.get("NOSTR_VAULT_DATA_DIR")
        timeout = os.environ.get("NOSTR_VAULT_TIMEOUT")
        try:
            timeout_value = float(timeout) if timeout else DEFAULT_TIMEOUT
        except ValueError as e:
            raise ConfigError(f"Invalid NOSTR_VAULT_TIMEOUT: {timeout!r}") from e

        return cls(
            data_dir=Path(data_dir) if data_dir else DEFAULT_DATA_DIR,
            session_url=os.environ.get("NOSTR_VAULT_SESSION_URL") or None,
            sign_url=os.environ.get("NOSTR_VAULT_SIGN_URL") or None,
            timeout=timeout_value,
        )

    def require_session_url(self) -> str:
        if not self.session_url:
            raise ConfigError("API URL not configured")
        return self.session_url

    def require_sign_url(self) -> str:
        if not self.sign_url:
            raise ConfigError("Signing URL not configured")
        return self.sign_url
