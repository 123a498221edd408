"""Durable client-side storage for guest carts, OTP challenges and account sessions."""
from .crypto import StoreCrypto
from .store import (
    KeyValueStore,
    MemoryStore,
    EncryptedFileStore,
    GUEST_SESSION_KEY,
    PHONE_AUTH_SESSION_KEY,
    USER_KEY,
    AUTH_TOKEN_KEY,
    REFRESH_TOKEN_KEY,
    USER_ROLE_KEY,
)

__all__ = [
    "StoreCrypto",
    "KeyValueStore",
    "MemoryStore",
    "EncryptedFileStore",
    "GUEST_SESSION_KEY",
    "PHONE_AUTH_SESSION_KEY",
    "USER_KEY",
    "AUTH_TOKEN_KEY",
    "REFRESH_TOKEN_KEY",
    "USER_ROLE_KEY",
]
