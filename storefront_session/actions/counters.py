"""Header counters: cart item count and wishlist count for the signed-in account."""
import logging
from dataclasses import dataclass

from ..account.manager import AccountSessionStore
from ..api.base import StorefrontAPI
from ..cart.cache import CartCache
from ..errors import NetworkError
from ..events import Event, NotificationBus

logger = logging.getLogger(__name__)


@dataclass
class CounterSnapshot:
    cart_items: int = 0
    wishlist_items: int = 0

    def to_dict(self) -> dict:
        return {"cart_items": self.cart_items, "wishlist_items": self.wishlist_items}


class SessionCounters:
    """Keeps the two header badges in step with the account. Zeroed on logout."""

    def __init__(
        self,
        api: StorefrontAPI,
        account: AccountSessionStore,
        cache: CartCache,
        bus: NotificationBus,
    ):
        self._api = api
        self._account = account
        self._cache = cache
        self._snapshot = CounterSnapshot()
        self._dispose = bus.subscribe(Event.LOGOUT_COMPLETED, self._on_logout)

    @property
    def snapshot(self) -> CounterSnapshot:
        return self._snapshot

    async def refresh(self) -> CounterSnapshot:
        """Re-read both counters. A failing read leaves that counter at 0."""
        token = await self._account.get_token()
        if token is None:
            self._snapshot = CounterSnapshot()
            return self._snapshot

        cart_items = 0
        cached = self._cache.get()
        if cached is not None:
            cart_items = cached.total_items
        else:
            try:
                cart = await self._api.get_cart(token)
                self._cache.set(cart)
                cart_items = cart.total_items
            except NetworkError as e:
                logger.warning("Cart count unavailable: %s", e)

        wishlist_items = 0
        try:
            wishlist_items = await self._api.get_wishlist_count(token)
        except NetworkError as e:
            logger.warning("Wishlist count unavailable: %s", e)

        self._snapshot = CounterSnapshot(cart_items=cart_items, wishlist_items=wishlist_items)
        logger.debug("Counters refreshed: cart=%d wishlist=%d", cart_items, wishlist_items)
        return self._snapshot

    def reset(self) -> None:
        self._snapshot = CounterSnapshot()

    def _on_logout(self, payload) -> None:
        if payload is None or getattr(payload, "reset_counters", True):
            self.reset()

    def close(self) -> None:
        self._dispose()
