"""
Durable client-side key-value store.

One record per well-known key, last write wins, no locking. Two processes
sharing a state directory can race; each record is independently
overwritable.
"""
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from cryptography.fernet import InvalidToken

from .crypto import StoreCrypto

logger = logging.getLogger(__name__)

# Well-known record keys, shared with the web storefront
GUEST_SESSION_KEY = "guest_session"
PHONE_AUTH_SESSION_KEY = "phone_auth_session"
USER_KEY = "user"
AUTH_TOKEN_KEY = "authToken"
REFRESH_TOKEN_KEY = "refreshToken"
USER_ROLE_KEY = "userRole"


class KeyValueStore(ABC):
    """Abstract durable store of JSON-compatible values."""

    @abstractmethod
    def get(self, key: str) -> Any | None:
        """Return the stored value, or None if absent."""
        ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store a value, replacing any previous one."""
        ...

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete a key. Missing keys are ignored."""
        ...


class MemoryStore(KeyValueStore):
    """In-process store. Values are JSON round-tripped so callers never share references."""

    def __init__(self):
        self._data: dict[str, str] = {}

    def get(self, key: str) -> Any | None:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class EncryptedFileStore(KeyValueStore):
    """One encrypted file per key under a state directory."""

    def __init__(self, directory: Path, crypto: StoreCrypto | None = None):
        self._dir = directory
        self._crypto = crypto or StoreCrypto(key_path=directory / "store.key")

    def _path(self, key: str) -> Path:
        if not key or "/" in key or key.startswith("."):
            raise ValueError(f"Invalid store key: {key!r}")
        return self._dir / f"{key}.enc"

    def get(self, key: str) -> Any | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return self._crypto.decrypt(path.read_bytes())
        except (InvalidToken, ValueError) as e:
            logger.warning("Discarding unreadable record %s: %s", key, type(e).__name__)
            return None

    def set(self, key: str, value: Any) -> None:
        path = self._path(key)
        self._dir.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".tmp")
        tmp.write_bytes(self._crypto.encrypt(value))
        tmp.replace(path)
        logger.debug("Stored record %s", key)

    def remove(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            pass
