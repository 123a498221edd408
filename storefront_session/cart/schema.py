"""Pydantic models for guest carts and the canonical account cart."""
import logging
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

MAX_LINE_QUANTITY = 99


class GuestCartLine(BaseModel):
    """One product line in the locally persisted guest cart."""
    model_config = ConfigDict(populate_by_name=True)

    product_id: str = Field(alias="productId")
    quantity: int
    unit_price: float = Field(default=0.0, alias="unitPrice")

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity


class GuestSession(BaseModel):
    """Stored under the `guest_session` key as {sessionId, cart[]}."""
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId")
    cart: list[GuestCartLine] = Field(default_factory=list)


class CartItem(BaseModel):
    product_id: str
    quantity: int
    unit_price: float = 0.0
    total_price: float = 0.0


class Cart(BaseModel):
    """Authoritative account cart. Every API response is normalized into this shape."""
    items: list[CartItem] = Field(default_factory=list)
    total_items: int = 0
    total_price: float = 0.0
    discount_amount: float = 0.0

    @property
    def is_empty(self) -> bool:
        return not self.items

    @classmethod
    def empty(cls) -> "Cart":
        return cls()

    @classmethod
    def from_api(cls, payload: Any) -> "Cart":
        """
        Normalize an upstream cart response.

        Accepts {"data": {"cart": {...}, "discount_amount": ...}}, {"data": {...}}
        or a bare cart, and the older total field names.
        """
        envelope: dict = payload if isinstance(payload, dict) else {}
        body = envelope.get("data", envelope)
        if not isinstance(body, dict):
            body = {}
        raw = body.get("cart") if isinstance(body.get("cart"), dict) else body

        items = [_item_from_api(i) for i in raw.get("items") or [] if isinstance(i, dict)]
        items = [i for i in items if i is not None]

        total_items = _first_number(raw, "total_items", "items_count")
        if total_items is None:
            total_items = sum(i.quantity for i in items)
        total_price = _first_number(raw, "total_price", "final_price")
        if total_price is None:
            total_price = sum(i.total_price for i in items)
        discount = _first_number(raw, "discount_amount")
        if discount is None:
            discount = _first_number(body, "discount_amount") or 0.0

        return cls(
            items=items,
            total_items=int(total_items),
            total_price=float(total_price),
            discount_amount=float(discount),
        )


def _first_number(source: dict, *names: str) -> Optional[float]:
    for name in names:
        value = source.get(name)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return value
    return None


def _item_from_api(raw: dict) -> Optional[CartItem]:
    product_id = raw.get("product_id") or raw.get("productId")
    if not product_id:
        return None
    try:
        quantity = int(float(raw.get("quantity") or 0))
        unit_price = float(raw.get("unit_price") or raw.get("unitPrice") or 0.0)
    except (TypeError, ValueError, OverflowError):
        logger.warning("Skipping unreadable cart line for product %s", product_id)
        return None
    total_price = raw.get("total_price")
    if not isinstance(total_price, (int, float)):
        total_price = unit_price * quantity
    return CartItem(
        product_id=str(product_id),
        quantity=quantity,
        unit_price=unit_price,
        total_price=float(total_price),
    )
