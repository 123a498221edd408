"""Authenticated account session: user record plus bearer token."""
from .manager import AccountSessionStore
from .schema import AccountSession, AccountUser

__all__ = ["AccountSessionStore", "AccountSession", "AccountUser"]
