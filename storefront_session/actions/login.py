"""Login action: phone/code and password login, logout, and session status."""
import logging

from ..account.manager import AccountSessionStore
from ..api.base import StorefrontAPI, VerifiedIdentity
from ..cart.cache import CartCache
from ..cart.guest import GuestCartStore
from ..errors import NetworkError
from ..otp import OtpSessionMachine
from ..output_sanitizer import redact_phone
from .counters import SessionCounters
from .migration import CartMigrationCoordinator

logger = logging.getLogger(__name__)


class LoginAction:
    """
    Drives the login flows end to end.

    Adopting an identity publishes login-completed; the migration
    coordinator picks that up on its own. verify_code() and
    login_with_password() wait for that reconciliation by default so the
    caller sees the merged cart.
    """

    def __init__(
        self,
        api: StorefrontAPI,
        otp: OtpSessionMachine,
        account: AccountSessionStore,
        guest: GuestCartStore,
        cache: CartCache,
        counters: SessionCounters,
        coordinator: CartMigrationCoordinator,
    ):
        self._api = api
        self._otp = otp
        self._account = account
        self._guest = guest
        self._cache = cache
        self._counters = counters
        self._coordinator = coordinator

    async def request_code(self, phone_number: str) -> dict:
        """Send a one-time code. Raises on invalid input, proof failure or network failure."""
        remaining = await self._otp.issue_challenge(phone_number)
        challenge = self._otp.challenge
        return {
            "status": "ok",
            "phone_number": redact_phone(challenge.phone_number) if challenge else None,
            "expires_in": remaining,
        }

    async def verify_code(self, code: str, phone_number: str, wait_for_merge: bool = True) -> dict:
        identity = await self._otp.verify(code, phone_number)
        return await self._complete_login(identity, wait_for_merge)

    async def login_with_password(self, email: str, password: str, wait_for_merge: bool = True) -> dict:
        email = (email or "").strip()
        if not email or not password:
            raise ValueError("Email and password are required")
        identity = await self._api.login(email, password)
        return await self._complete_login(identity, wait_for_merge)

    async def _complete_login(self, identity: VerifiedIdentity, wait_for_merge: bool) -> dict:
        self._account.adopt(identity.user, identity.id_token, identity.refresh_token)
        result = {"status": "ok", "user": identity.user.to_dict()}
        if wait_for_merge:
            await self._coordinator.drain()
            outcome = self._coordinator.last_outcome
            if outcome is not None:
                result["cart_migration"] = outcome.to_dict()
            result["counters"] = self._counters.snapshot.to_dict()
        return result

    async def logout(self) -> dict:
        """
        Server logout is best effort; the local session is cleared whatever
        the backend answers.
        """
        session = self._account.current()
        if session is not None:
            try:
                await self._api.logout(session.token)
            except NetworkError as e:
                logger.warning("Backend logout failed, clearing local session anyway: %s", e)
        self._account.clear()
        self._cache.clear()
        return {"status": "ok", "was_authenticated": session is not None}

    def status(self) -> dict:
        session = self._account.current()
        return {
            "authenticated": session is not None,
            "user": session.user.to_dict() if session else None,
            "guest_session_id": self._guest.session_id,
            "guest_cart_items": self._guest.item_count,
            "otp": {
                "state": self._otp.state.value,
                "remaining_seconds": self._otp.remaining_seconds,
            },
            "counters": self._counters.snapshot.to_dict(),
        }
