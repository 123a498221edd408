"""Tests for the login action and the client that wires it."""
import pytest

from storefront_session.cart import Cart
from storefront_session.client import StorefrontClient
from storefront_session.config import Settings
from storefront_session.errors import InvalidCodeFormat, NetworkError
from storefront_session.otp import OtpState
from storefront_session.storage import AUTH_TOKEN_KEY, PHONE_AUTH_SESSION_KEY

from conftest import make_cart

PHONE = "+15551234567"


@pytest.fixture
def client(tmp_path, store, fake_api, fake_proof, clock):
    settings = Settings(state_dir=tmp_path, debug_dir=tmp_path / "debug", merge_settle_seconds=0)
    return StorefrontClient(settings, store=store, api=fake_api, proof=fake_proof, clock=clock)


@pytest.mark.asyncio
class TestPhoneLogin:
    async def test_request_code(self, client):
        result = await client.login.request_code(PHONE)
        assert result == {"status": "ok", "phone_number": "+1555***4567", "expires_in": 240}
        client.otp.reset()

    async def test_verify_adopts_and_merges(self, client, fake_api, store):
        client.guest.add_item("P1", 2, unit_price=10.0)
        client.guest.add_item("P2", 1, unit_price=5.0)
        fake_api.get_cart.side_effect = [Cart.empty(), make_cart(("P1", 2, 10.0), ("P2", 1, 5.0))]
        await client.login.request_code(PHONE)

        result = await client.login.verify_code("123456", PHONE)

        assert result["status"] == "ok"
        assert result["user"]["id"] == "user-1"
        assert result["cart_migration"]["verified"] is True
        assert result["cart_migration"]["attempts"] == 2
        assert result["cart_migration"]["cart_items"] == 3
        assert result["counters"]["cart_items"] == 3
        assert store.get(AUTH_TOKEN_KEY) == "id-token-abc"
        assert store.get(PHONE_AUTH_SESSION_KEY) is None
        assert client.guest.session_id is None
        assert client.otp.state == OtpState.ABSENT

    async def test_bad_code_does_not_log_in(self, client):
        await client.login.request_code(PHONE)
        with pytest.raises(InvalidCodeFormat):
            await client.login.verify_code("12", PHONE)
        assert not client.account.is_authenticated
        client.otp.reset()


@pytest.mark.asyncio
class TestPasswordLogin:
    async def test_login_with_password(self, client, fake_api):
        result = await client.login.login_with_password(" jane@example.com ", "pw")
        fake_api.login.assert_awaited_once_with("jane@example.com", "pw")
        assert result["status"] == "ok"
        assert client.account.is_authenticated

    async def test_missing_credentials(self, client, fake_api):
        with pytest.raises(ValueError):
            await client.login.login_with_password("", "pw")
        fake_api.login.assert_not_awaited()

    async def test_rejected_credentials_propagate(self, client, fake_api):
        fake_api.login.side_effect = NetworkError("Invalid credentials", status_code=401)
        with pytest.raises(NetworkError):
            await client.login.login_with_password("jane@example.com", "wrong")
        assert not client.account.is_authenticated


@pytest.mark.asyncio
class TestLogout:
    async def test_backend_failure_still_clears(self, client, fake_api, store):
        await client.login.login_with_password("jane@example.com", "pw")
        fake_api.logout.side_effect = NetworkError("down")

        result = await client.login.logout()

        assert result == {"status": "ok", "was_authenticated": True}
        fake_api.logout.assert_awaited_once_with("id-token-abc")
        assert not client.account.is_authenticated
        assert store.get(AUTH_TOKEN_KEY) is None
        assert client.cache.get() is None
        assert client.counters.snapshot.cart_items == 0

    async def test_logout_when_anonymous(self, client, fake_api):
        result = await client.login.logout()
        assert result["was_authenticated"] is False
        fake_api.logout.assert_not_awaited()


@pytest.mark.asyncio
class TestClient:
    async def test_status_for_guest(self, client):
        client.guest.add_item("P1", 2)
        status = client.login.status()
        assert status["authenticated"] is False
        assert status["guest_cart_items"] == 2
        assert status["otp"] == {"state": "absent", "remaining_seconds": 0}

    async def test_start_restores_session_and_challenge(self, tmp_path, store, fake_api, fake_proof, clock, client):
        await client.login.request_code(PHONE)
        client.otp._cancel_timers()
        await client.login.login_with_password("jane@example.com", "pw")
        clock.advance(30)

        settings = Settings(state_dir=tmp_path, debug_dir=tmp_path / "debug", merge_settle_seconds=0)
        restarted = StorefrontClient(settings, store=store, api=fake_api, proof=fake_proof, clock=clock)
        restarted.start()
        try:
            assert restarted.account.is_authenticated
            assert restarted.otp.state == OtpState.ACTIVE
            assert restarted.otp.remaining_seconds == 210
        finally:
            restarted.otp.reset()

    async def test_view_cart_guest_and_account(self, client, fake_api):
        client.guest.add_item("P1", 2, unit_price=3.0)
        guest_view = await client.view_cart()
        assert guest_view["source"] == "guest"
        assert guest_view["total_items"] == 2
        assert guest_view["total_price"] == 6.0

        fake_api.get_cart.return_value = make_cart(("P1", 2, 3.0))
        await client.login.login_with_password("jane@example.com", "pw")
        account_view = await client.view_cart()
        assert account_view["source"] == "account"
        assert account_view["total_items"] == 2

    async def test_close_releases_resources(self, client, fake_proof):
        await client.close()
        fake_proof.release.assert_awaited()
