"""Storefront session client: guest carts, phone-code login and guest-to-account cart migration."""
from .client import StorefrontClient
from .config import Settings

__all__ = ["StorefrontClient", "Settings"]
