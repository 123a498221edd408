"""Symmetric encryption for records kept in the durable store."""
import json
import logging
import os
from pathlib import Path
from typing import Any

from cryptography.fernet import Fernet

logger = logging.getLogger(__name__)

DEFAULT_KEY_PATH = Path.home() / ".config" / "storefront-session" / "store.key"


class StoreCrypto:
    """Fernet wrapper. The key is generated on first use and reused afterwards."""

    def __init__(self, key_path: Path | None = None):
        self._key_path = key_path or DEFAULT_KEY_PATH
        self._fernet: Fernet | None = None

    def _get_fernet(self) -> Fernet:
        if self._fernet is not None:
            return self._fernet
        if self._key_path.exists():
            key = self._key_path.read_bytes().strip()
        else:
            self._key_path.parent.mkdir(parents=True, exist_ok=True)
            key = Fernet.generate_key()
            self._key_path.write_bytes(key)
            try:
                os.chmod(self._key_path, 0o600)
            except OSError:
                logger.debug("Could not restrict permissions on %s", self._key_path)
            logger.info("Generated new store key at %s", self._key_path)
        self._fernet = Fernet(key)
        return self._fernet

    def encrypt(self, value: Any) -> bytes:
        """Serialize a JSON-compatible value and encrypt it."""
        payload = json.dumps(value).encode("utf-8")
        return self._get_fernet().encrypt(payload)

    def decrypt(self, token: bytes) -> Any:
        """Decrypt and deserialize. Raises cryptography.fernet.InvalidToken on tampering."""
        payload = self._get_fernet().decrypt(token)
        return json.loads(payload.decode("utf-8"))
