"""Storefront backend abstraction and its HTTP implementation."""
from .base import StorefrontAPI, AuthTokens, VerifiedIdentity
from .http import HttpStorefrontAPI

__all__ = ["StorefrontAPI", "AuthTokens", "VerifiedIdentity", "HttpStorefrontAPI"]
