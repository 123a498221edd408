"""Cached cart view. Holds the last authoritative cart the UI should render."""
import logging
from typing import Optional

from .schema import Cart

logger = logging.getLogger(__name__)


class CartCache:
    """Single-slot cache with explicit invalidation."""

    def __init__(self):
        self._cart: Optional[Cart] = None
        self._stale = True

    def set(self, cart: Cart) -> None:
        self._cart = cart
        self._stale = False
        logger.debug("Cart cache updated (%d items)", cart.total_items)

    def invalidate(self) -> None:
        self._stale = True
        logger.debug("Cart cache invalidated")

    def clear(self) -> None:
        self._cart = None
        self._stale = True

    def get(self) -> Optional[Cart]:
        """The cached cart, or None if nothing fresh is cached."""
        return None if self._stale else self._cart

    @property
    def is_stale(self) -> bool:
        return self._stale
