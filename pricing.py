"""
Unit price resolution for cart mutations.

Traders pay the list price of the chosen size minus the newest discount
policy; everybody else pays list price. A missing or corrupt policy never
blocks a purchase, the trader simply pays list price.
"""
import logging
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

from pydantic import BaseModel
from pymongo.errors import PyMongoError

from database import from_mongo
from errors import InsufficientStock, InvalidVariant
from schemas import Role

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")

DISCOUNTED_ROLES = frozenset({Role.TRADER})


class PriceQuote(BaseModel):
    final_price: Decimal
    applied_discount_percent: Decimal = ZERO


def round2(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def to_money(value) -> Decimal:
    """Accept Decimal, Decimal128, int, float or str and return a 2-place Decimal."""
    value = from_mongo(value)
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return round2(value)


def apply_discount(base_price: Decimal, percent: Decimal) -> Decimal:
    return round2(base_price * (HUNDRED - percent) / HUNDRED)


def latest_discount(db) -> Optional[dict]:
    return db["discount"].find_one(sort=[("created_at", -1), ("_id", -1)])


def active_discount_percent(db) -> Decimal:
    try:
        doc = latest_discount(db)
    except PyMongoError:
        logger.warning("Discount lookup failed, charging list price", exc_info=True)
        return ZERO
    if not doc:
        return ZERO
    try:
        value = Decimal(str(from_mongo(doc.get("value"))))
    except (InvalidOperation, TypeError, ValueError):
        logger.warning("Discount %s has a non-numeric value, ignoring it", doc.get("_id"))
        return ZERO
    if not value.is_finite() or value < ZERO or value > HUNDRED:
        logger.warning("Discount %s is outside 0-100, ignoring it", doc.get("_id"))
        return ZERO
    return value


def find_size(product: dict, size_label: str) -> Optional[dict]:
    for size in product.get("sizes") or []:
        if size.get("label") == size_label:
            return size
    return None


def resolve_unit_price(db, product: dict, size_label: str, role, quantity: int = 1) -> PriceQuote:
    size = find_size(product, size_label)
    if size is None:
        raise InvalidVariant(f"Size {size_label!r} is not available for this product")
    if int(size.get("stock") or 0) < quantity:
        raise InsufficientStock(f"Only {int(size.get('stock') or 0)} left in size {size_label}")

    base_price = to_money(size["price"])
    if Role(role) not in DISCOUNTED_ROLES:
        return PriceQuote(final_price=base_price)

    percent = active_discount_percent(db)
    return PriceQuote(final_price=apply_discount(base_price, percent), applied_discount_percent=percent)
