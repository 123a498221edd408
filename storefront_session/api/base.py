"""Abstract storefront API: the request/response contracts the session core depends on."""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from ..account.schema import AccountUser
from ..cart.schema import Cart, GuestCartLine


@dataclass
class AuthTokens:
    """Bearer and refresh credentials issued by the identity provider."""
    id_token: str
    refresh_token: Optional[str] = None


@dataclass
class VerifiedIdentity:
    """Result of a successful login exchange, ready for the account store to adopt."""
    user: AccountUser
    id_token: str
    refresh_token: Optional[str] = None


class StorefrontAPI(ABC):
    """Abstract base for storefront backends."""

    @abstractmethod
    async def send_code(self, phone_number: str, proof_token: str) -> str:
        """Start a phone verification. Returns the server's session_info token."""
        ...

    @abstractmethod
    async def verify_code(self, phone_number: str, code: str, session_info: str) -> VerifiedIdentity:
        """Exchange a one-time code for an authenticated identity."""
        ...

    @abstractmethod
    async def login(self, email: str, password: str) -> VerifiedIdentity:
        """Direct email/password login."""
        ...

    @abstractmethod
    async def refresh_token(self, refresh_token: str) -> AuthTokens:
        """Mint a fresh bearer token."""
        ...

    @abstractmethod
    async def logout(self, token: str) -> None:
        """Server-side logout."""
        ...

    @abstractmethod
    async def migrate_cart(self, token: str, session_id: Optional[str], items: list[GuestCartLine]) -> Cart:
        """Fold a guest session's items into the account cart. Returns the resulting cart."""
        ...

    @abstractmethod
    async def get_cart(self, token: str) -> Cart:
        """Read the account's authoritative cart."""
        ...

    @abstractmethod
    async def get_wishlist_count(self, token: str) -> int:
        ...
