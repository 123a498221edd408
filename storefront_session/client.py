"""
Storefront client: builds and owns every session collaborator.

One instance per process. start() restores whatever survived the last run
(account session, in-flight OTP challenge); close() tears down timers,
pending reconciliations, the verification browser and the HTTP client.
"""
import logging
import time
from typing import Callable, Optional

from .account.manager import AccountSessionStore
from .actions.counters import SessionCounters
from .actions.login import LoginAction
from .actions.migration import CartMigrationCoordinator
from .api.base import StorefrontAPI
from .api.http import HttpStorefrontAPI
from .browser import BrowserManager
from .cart.cache import CartCache
from .cart.guest import GuestCartStore
from .config import Settings
from .events import NotificationBus
from .otp import OtpSessionMachine
from .storage import EncryptedFileStore, KeyValueStore
from .verification.base import HumanProofProvider
from .verification.recaptcha import RecaptchaProofProvider

logger = logging.getLogger(__name__)


class StorefrontClient:
    def __init__(
        self,
        settings: Settings,
        store: Optional[KeyValueStore] = None,
        api: Optional[StorefrontAPI] = None,
        proof: Optional[HumanProofProvider] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self.bus = NotificationBus()
        self.store = store if store is not None else EncryptedFileStore(settings.state_dir / "state")

        self._owns_api = api is None
        self.api = api if api is not None else HttpStorefrontAPI(
            settings.api_url, timeout=settings.http_timeout, bus=self.bus,
        )

        self.browser: Optional[BrowserManager] = None
        if proof is None:
            self.browser = BrowserManager(headless=settings.headless)
            proof = RecaptchaProofProvider(self.browser, settings.login_page_url, settings.recaptcha_site_key)
        self.proof = proof

        self.guest = GuestCartStore(self.store)
        self.cache = CartCache()
        self.account = AccountSessionStore(self.store, self.bus, api=self.api, clock=clock)
        self.otp = OtpSessionMachine(self.api, self.proof, self.store, clock=clock)
        self.counters = SessionCounters(self.api, self.account, self.cache, self.bus)
        self.coordinator = CartMigrationCoordinator(
            self.api,
            self.account,
            self.guest,
            self.cache,
            self.bus,
            counters=self.counters,
            settle_seconds=settings.merge_settle_seconds,
        )
        self.login = LoginAction(
            self.api, self.otp, self.account, self.guest, self.cache, self.counters, self.coordinator,
        )
        self._started = False

    @classmethod
    def from_env(cls) -> "StorefrontClient":
        return cls(Settings.from_env())

    def start(self) -> None:
        """Restore persisted state. Needs a running event loop for the OTP timers."""
        if self._started:
            return
        self.account.hydrate()
        self.otp.restore_on_load()
        self._started = True

    async def view_cart(self) -> dict:
        """Account cart when signed in, guest cart otherwise."""
        token = await self.account.get_token()
        if token is None:
            lines = self.guest.get_cart()
            return {
                "status": "ok",
                "source": "guest",
                "session_id": self.guest.session_id,
                "items": [line.model_dump() for line in lines],
                "total_items": self.guest.item_count,
                "total_price": round(self.guest.total_price, 2),
            }

        cart = self.cache.get()
        if cart is None:
            cart = await self.api.get_cart(token)
            self.cache.set(cart)
        return {"status": "ok", "source": "account", **cart.model_dump()}

    async def close(self) -> None:
        await self.coordinator.close()
        self.counters.close()
        await self.otp.close()
        if self.browser is not None:
            await self.browser.close()
        if self._owns_api and isinstance(self.api, HttpStorefrontAPI):
            await self.api.close()
        logger.info("Storefront client closed")
