"""Account session store. Holds the authenticated user and bearer token together."""
import logging
import time
from typing import TYPE_CHECKING, Callable, Optional

import jwt
from pydantic import ValidationError

from ..errors import NetworkError
from ..events import Event, LogoutCompleted, NotificationBus
from ..storage import (
    KeyValueStore,
    USER_KEY,
    AUTH_TOKEN_KEY,
    REFRESH_TOKEN_KEY,
    USER_ROLE_KEY,
)
from .schema import AccountSession, AccountUser

if TYPE_CHECKING:
    from ..api.base import StorefrontAPI

logger = logging.getLogger(__name__)

# Refresh a bearer token this many seconds before its exp claim
TOKEN_REFRESH_SKEW = 60


def token_expiry(token: str) -> Optional[float]:
    """Read the exp claim without verifying the signature. None if absent or unreadable."""
    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError:
        return None
    exp = claims.get("exp")
    return float(exp) if isinstance(exp, (int, float)) else None


class AccountSessionStore:
    """Authenticated identity, persisted so a restart does not log the user out."""

    def __init__(
        self,
        store: KeyValueStore,
        bus: NotificationBus,
        api: "StorefrontAPI | None" = None,
        clock: Callable[[], float] = time.time,
    ):
        self._store = store
        self._bus = bus
        self._api = api
        self._clock = clock
        self._session: Optional[AccountSession] = None

    def hydrate(self) -> Optional[AccountSession]:
        """
        Soft restore from durable storage.

        Not re-validated against the server; the next authorized call that
        fails is what surfaces a dead credential. A half-written record is
        discarded rather than restored.
        """
        raw_user = self._store.get(USER_KEY)
        token = self._store.get(AUTH_TOKEN_KEY)
        if not raw_user or not token:
            if raw_user or token:
                logger.warning("Discarding partial account session from storage")
                self._remove_persisted()
            self._session = None
            return None
        try:
            user = AccountUser.model_validate(raw_user)
        except ValidationError:
            logger.warning("Discarding malformed stored user record")
            self._remove_persisted()
            self._session = None
            return None
        self._session = AccountSession(
            user=user,
            token=token,
            refresh_token=self._store.get(REFRESH_TOKEN_KEY),
        )
        logger.info("Restored account session for user %s", user.id)
        return self._session

    def adopt(self, user: AccountUser, token: str, refresh_token: Optional[str] = None) -> AccountSession:
        """Set user and token together, persist them, then announce the login."""
        if not token:
            raise ValueError("Cannot adopt a session without a token")
        session = AccountSession(user=user, token=token, refresh_token=refresh_token)
        self._session = session
        self._persist(session)
        logger.info("Account session adopted for user %s", user.id)
        self._bus.publish(Event.LOGIN_COMPLETED, user)
        return session

    def clear(self) -> None:
        """Drop user and token together and announce the logout."""
        had_session = self._session is not None
        self._session = None
        self._remove_persisted()
        if had_session:
            logger.info("Account session cleared")
        self._bus.publish(Event.LOGOUT_COMPLETED, LogoutCompleted(reset_counters=True))

    def current(self) -> Optional[AccountSession]:
        return self._session

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None

    async def get_token(self) -> Optional[str]:
        """
        Current bearer token, refreshed first if it is about to expire.

        Returns None when nobody is logged in. A failed refresh hands back
        the stale token; the server's rejection of it is what prompts a
        new login.
        """
        session = self._session
        if session is None:
            return None
        if not self._is_stale(session.token) or not session.refresh_token or self._api is None:
            return session.token

        try:
            tokens = await self._api.refresh_token(session.refresh_token)
        except NetworkError as e:
            logger.warning("Token refresh failed: %s", e)
            return session.token

        # Logged out while the refresh was in flight
        if self._session is not session:
            return self._session.token if self._session else None

        refreshed = AccountSession(
            user=session.user,
            token=tokens.id_token,
            refresh_token=tokens.refresh_token or session.refresh_token,
        )
        self._session = refreshed
        self._persist(refreshed)
        logger.info("Bearer token refreshed for user %s", session.user.id)
        return refreshed.token

    def _is_stale(self, token: str) -> bool:
        exp = token_expiry(token)
        if exp is None:
            return False
        return exp - TOKEN_REFRESH_SKEW <= self._clock()

    def _persist(self, session: AccountSession) -> None:
        self._store.set(USER_KEY, session.user.model_dump(by_alias=True))
        self._store.set(AUTH_TOKEN_KEY, session.token)
        if session.refresh_token:
            self._store.set(REFRESH_TOKEN_KEY, session.refresh_token)
        else:
            self._store.remove(REFRESH_TOKEN_KEY)
        if session.user.role:
            self._store.set(USER_ROLE_KEY, session.user.role)
        else:
            self._store.remove(USER_ROLE_KEY)

    def _remove_persisted(self) -> None:
        for key in (USER_KEY, AUTH_TOKEN_KEY, REFRESH_TOKEN_KEY, USER_ROLE_KEY):
            self._store.remove(key)
