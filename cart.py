"""
Per-user cart stored on the user document.

Each line keeps the unit price resolved when it was added or updated; reads
never reprice.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from database import from_mongo, parse_object_id, to_mongo
from errors import CartLineNotFound, InvalidVariant, ProductNotFound, StoreError
from pricing import PriceQuote, resolve_unit_price
from schemas import CartLine, Role

logger = logging.getLogger(__name__)


def load_cart(user: dict) -> List[CartLine]:
    return [CartLine.model_validate(from_mongo(line)) for line in user.get("cart") or []]


def save_cart(db, user: dict, lines: List[CartLine]) -> List[CartLine]:
    db["user"].update_one(
        {"_id": user["_id"]},
        {"$set": {"cart": to_mongo([line.model_dump() for line in lines]), "updated_at": datetime.now(timezone.utc)}},
    )
    return lines


def _load_product(db, product_id: str) -> dict:
    oid = parse_object_id(product_id)
    product = db["product"].find_one({"_id": oid}) if oid else None
    if not product:
        raise ProductNotFound()
    return from_mongo(product)


def _matches(line: CartLine, product_id: str, size: Optional[str], color: Optional[str]) -> bool:
    if line.product_id != product_id:
        return False
    if size is not None and line.size != size:
        return False
    if color is not None and line.color != color:
        return False
    return True


def add_to_cart(db, user: dict, product_id: str, size: str, color: Optional[str], quantity: int = 1) -> Tuple[List[CartLine], PriceQuote]:
    if quantity < 1:
        raise StoreError("Quantity must be >= 1")
    product = _load_product(db, product_id)
    colors = [c.get("label") for c in product.get("colors") or []]
    if color is not None and colors and color not in colors:
        raise InvalidVariant(f"Color {color!r} is not available for this product")

    lines = load_cart(user)
    existing = next((l for l in lines if l.product_id == product_id and l.size == size and l.color == color), None)
    wanted = quantity + (existing.quantity if existing else 0)
    quote = resolve_unit_price(db, product, size, user.get("role", Role.USER), quantity=wanted)

    if existing:
        existing.quantity = wanted
        existing.price = quote.final_price
    else:
        images = product.get("images") or []
        lines.append(CartLine(
            product_id=product_id,
            name=product.get("name", "Rug"),
            size=size,
            color=color,
            quantity=quantity,
            price=quote.final_price,
            image=images[0] if images else None,
        ))
    logger.info("Cart of %s: %s x%d at %s", user["_id"], product_id, wanted, quote.final_price)
    return save_cart(db, user, lines), quote


def update_quantity(db, user: dict, product_id: str, quantity: int, size: Optional[str] = None, color: Optional[str] = None) -> List[CartLine]:
    if quantity < 1:
        raise StoreError("Quantity must be a number >= 1")
    lines = load_cart(user)
    line = next((l for l in lines if _matches(l, product_id, size, color)), None)
    if line is None:
        raise CartLineNotFound()
    product = _load_product(db, product_id)
    quote = resolve_unit_price(db, product, line.size, user.get("role", Role.USER), quantity=quantity)
    line.quantity = quantity
    line.price = quote.final_price
    return save_cart(db, user, lines)


def remove_from_cart(db, user: dict, product_id: str, size: Optional[str] = None, color: Optional[str] = None) -> List[CartLine]:
    lines = [l for l in load_cart(user) if not _matches(l, product_id, size, color)]
    return save_cart(db, user, lines)


def clear_cart(db, user: dict) -> List[CartLine]:
    return save_cart(db, user, [])
