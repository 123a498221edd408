"""Guest identity store: transient session id and the cart addressed by it."""
import logging
import secrets
import string
import time

from pydantic import ValidationError

from ..storage import KeyValueStore, GUEST_SESSION_KEY
from .schema import GuestCartLine, GuestSession, MAX_LINE_QUANTITY

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_lowercase


def generate_session_id() -> str:
    """guest_<epoch ms>_<9 random base36 chars>, same shape the web client mints."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"guest_{int(time.time() * 1000)}_{suffix}"


def _validate_quantity(quantity: int) -> None:
    if quantity < 1 or quantity > MAX_LINE_QUANTITY:
        raise ValueError(f"Quantity must be between 1 and {MAX_LINE_QUANTITY}, got {quantity}")


class GuestCartStore:
    """Synchronous CRUD on the locally persisted guest cart. No network access."""

    def __init__(self, store: KeyValueStore):
        self._store = store

    def _load(self) -> GuestSession | None:
        raw = self._store.get(GUEST_SESSION_KEY)
        if not raw:
            return None
        try:
            return GuestSession.model_validate(raw)
        except ValidationError:
            logger.warning("Discarding malformed guest session record")
            self._store.remove(GUEST_SESSION_KEY)
            return None

    def _save(self, session: GuestSession) -> None:
        self._store.set(GUEST_SESSION_KEY, session.model_dump(by_alias=True))

    @property
    def session_id(self) -> str | None:
        session = self._load()
        return session.session_id if session else None

    def ensure_session_id(self) -> str:
        """Return the existing guest session id, minting and persisting one if needed."""
        session = self._load()
        if session is None:
            session = GuestSession(session_id=generate_session_id())
            self._save(session)
            logger.info("Created guest session %s", session.session_id)
        return session.session_id

    def _ensure_session(self) -> GuestSession:
        self.ensure_session_id()
        return self._load()

    def get_cart(self) -> list[GuestCartLine]:
        session = self._load()
        return list(session.cart) if session else []

    def add_item(self, product_id: str, quantity: int = 1, unit_price: float = 0.0) -> list[GuestCartLine]:
        """Add a product. Re-adding an existing product merges the quantity."""
        _validate_quantity(quantity)
        session = self._ensure_session()
        for line in session.cart:
            if line.product_id == product_id:
                merged = line.quantity + quantity
                _validate_quantity(merged)
                line.quantity = merged
                if unit_price:
                    line.unit_price = unit_price
                break
        else:
            session.cart.append(GuestCartLine(product_id=product_id, quantity=quantity, unit_price=unit_price))
        self._save(session)
        logger.info("Guest cart: added %dx %s", quantity, product_id)
        return list(session.cart)

    def update_quantity(self, product_id: str, quantity: int) -> list[GuestCartLine]:
        """Set a line's quantity. Zero or less removes the line."""
        if quantity <= 0:
            return self.remove_item(product_id)
        _validate_quantity(quantity)
        session = self._load()
        if session is None:
            raise KeyError(product_id)
        for line in session.cart:
            if line.product_id == product_id:
                line.quantity = quantity
                break
        else:
            raise KeyError(product_id)
        self._save(session)
        return list(session.cart)

    def remove_item(self, product_id: str) -> list[GuestCartLine]:
        session = self._load()
        if session is None:
            return []
        remaining = [line for line in session.cart if line.product_id != product_id]
        if len(remaining) != len(session.cart):
            session.cart = remaining
            self._save(session)
            logger.info("Guest cart: removed %s", product_id)
        return list(session.cart)

    def clear(self) -> None:
        """Drop the guest session entirely, id included."""
        self._store.remove(GUEST_SESSION_KEY)
        logger.info("Guest session cleared")

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.get_cart())

    @property
    def total_price(self) -> float:
        return sum(line.line_total for line in self.get_cart())
