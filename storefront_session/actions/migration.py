"""
Cart migration: fold the guest cart into the account cart after login.

The migrate response is not trusted as the final state. After a settle
delay the account cart is re-read; if the guest had items and the account
cart still comes back empty, the merge is replayed exactly once. Nothing
here raises to the login path: a failed reconciliation is logged and the
user stays logged in.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from ..account.manager import AccountSessionStore
from ..api.base import StorefrontAPI
from ..cart.cache import CartCache
from ..cart.guest import GuestCartStore
from ..cart.schema import Cart, GuestCartLine
from ..errors import MergeVerificationFailed, NetworkError
from ..events import Event, NotificationBus
from .counters import SessionCounters

logger = logging.getLogger(__name__)

DEFAULT_SETTLE_SECONDS = 1.0
MAX_MERGE_ATTEMPTS = 2


@dataclass
class MergeOutcome:
    """What one reconciliation pass ended with."""
    merged_cart: Optional[Cart]
    expected_non_empty: bool
    attempts: int
    verified: bool

    def to_dict(self) -> dict:
        return {
            "verified": self.verified,
            "attempts": self.attempts,
            "expected_non_empty": self.expected_non_empty,
            "cart_items": self.merged_cart.total_items if self.merged_cart else None,
        }


class CartMigrationCoordinator:
    """Runs one reconciliation per login-completed event."""

    def __init__(
        self,
        api: StorefrontAPI,
        account: AccountSessionStore,
        guest: GuestCartStore,
        cache: CartCache,
        bus: NotificationBus,
        counters: SessionCounters | None = None,
        settle_seconds: float = DEFAULT_SETTLE_SECONDS,
    ):
        self._api = api
        self._account = account
        self._guest = guest
        self._cache = cache
        self._counters = counters
        self._settle = settle_seconds
        self._lock = asyncio.Lock()
        self._tasks: set[asyncio.Task] = set()
        self.last_outcome: Optional[MergeOutcome] = None
        self._dispose = bus.subscribe(Event.LOGIN_COMPLETED, self._on_login)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def _on_login(self, user) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, cart reconciliation skipped")
            return
        task = loop.create_task(self._run())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.debug("Scheduled cart reconciliation for user %s", getattr(user, "id", "?"))

    async def _run(self) -> None:
        try:
            await self.reconcile()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Cart reconciliation crashed")

    async def _token(self) -> str:
        token = await self._account.get_token()
        if token is None:
            raise NetworkError("Account session ended during cart migration")
        return token

    async def _merge_once(self, session_id: Optional[str], snapshot: list[GuestCartLine]) -> Cart:
        await self._api.migrate_cart(await self._token(), session_id, snapshot)
        if self._settle > 0:
            await asyncio.sleep(self._settle)
        return await self._api.get_cart(await self._token())

    async def reconcile(self) -> MergeOutcome:
        """Merge, settle, verify, retry at most once, then publish the result to the cache."""
        async with self._lock:
            self.last_outcome = None
            outcome = await self._reconcile()
        self.last_outcome = outcome
        if self._counters is not None:
            await self._counters.refresh()
        return outcome

    async def _reconcile(self) -> MergeOutcome:
        # Snapshot before any server call; the guest cart is the source of truth
        snapshot = self._guest.get_cart()
        session_id = self._guest.session_id
        expected_non_empty = bool(snapshot)
        guest_items = sum(line.quantity for line in snapshot)

        merged: Optional[Cart] = None
        attempts = 0
        verified = False
        try:
            while attempts < MAX_MERGE_ATTEMPTS:
                attempts += 1
                merged = await self._merge_once(session_id, snapshot)
                if not (expected_non_empty and merged.is_empty):
                    verified = True
                    break
                logger.warning("%s", MergeVerificationFailed(guest_items, attempts))
        except NetworkError as e:
            logger.error("Cart migration failed on attempt %d: %s", attempts, e)
        except Exception:
            logger.exception("Cart migration crashed on attempt %d", attempts)

        if merged is not None:
            self._cache.set(merged)
        else:
            self._cache.invalidate()

        if verified:
            self._guest.clear()
            logger.info(
                "Cart migration verified after %d attempt(s): %d item(s) in account cart",
                attempts, merged.total_items,
            )
        elif merged is not None:
            logger.error("Giving up on cart migration, guest cart kept for a later login")

        return MergeOutcome(
            merged_cart=merged,
            expected_non_empty=expected_non_empty,
            attempts=attempts,
            verified=verified,
        )

    async def drain(self) -> None:
        """Wait for every scheduled reconciliation to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        self._dispose()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
