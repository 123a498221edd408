"""Shared test fixtures."""
from unittest.mock import AsyncMock

import jwt
import pytest

from storefront_session.account.schema import AccountUser
from storefront_session.api.base import StorefrontAPI, VerifiedIdentity
from storefront_session.cart.schema import Cart
from storefront_session.events import NotificationBus
from storefront_session.storage import MemoryStore
from storefront_session.verification.base import HumanProofProvider

EPOCH = 1_700_000_000.0


class FakeClock:
    """Settable wall clock. Call it like time.time()."""

    def __init__(self, now: float = EPOCH):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_jwt(exp: float, sub: str = "user-1") -> str:
    return jwt.encode({"sub": sub, "exp": int(exp)}, "test-secret", algorithm="HS256")


def make_cart(*lines: tuple[str, int, float]) -> Cart:
    return Cart.from_api({
        "success": True,
        "data": {
            "cart": {
                "items": [
                    {"product_id": pid, "quantity": qty, "unit_price": price}
                    for pid, qty, price in lines
                ],
            },
        },
    })


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def bus():
    return NotificationBus()


@pytest.fixture
def sample_user():
    return AccountUser(
        id="user-1",
        display_name="Jane Doe",
        phone_number="+15551234567",
        is_verified=True,
        role="customer",
    )


@pytest.fixture
def sample_identity(sample_user):
    return VerifiedIdentity(user=sample_user, id_token="id-token-abc", refresh_token="refresh-xyz")


@pytest.fixture
def fake_api(sample_identity):
    """StorefrontAPI double. Every method is an AsyncMock with a sensible default."""
    api = AsyncMock(spec=StorefrontAPI)
    api.send_code.return_value = "session-info-123"
    api.verify_code.return_value = sample_identity
    api.login.return_value = sample_identity
    api.migrate_cart.return_value = Cart.empty()
    api.get_cart.return_value = Cart.empty()
    api.get_wishlist_count.return_value = 0
    api.logout.return_value = None
    return api


@pytest.fixture
def fake_proof():
    proof = AsyncMock(spec=HumanProofProvider)
    proof.provider_name = "recaptcha"
    proof.obtain_proof.return_value = "recaptcha-token"
    proof.release.return_value = None
    return proof
