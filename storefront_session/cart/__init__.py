"""Guest cart storage, the canonical account cart and its cached view."""
from .schema import Cart, CartItem, GuestCartLine, GuestSession
from .guest import GuestCartStore
from .cache import CartCache

__all__ = ["Cart", "CartItem", "GuestCartLine", "GuestSession", "GuestCartStore", "CartCache"]
