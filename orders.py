"""
Order lifecycle: checkout snapshot, payment session, payment verification
and delivery.

An order document moves through

    created -> awaiting_payment -> paid -> delivered

where `delivered` is set by an admin and is not gated on payment. Paid and
delivered transitions are single atomic updates so duplicate gateway
callbacks cannot double-apply them.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Iterable, List, Optional, Union

from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from database import create_document, from_mongo, parse_object_id
from errors import (
    EmptyOrder,
    InsufficientStock,
    InvalidVariant,
    OrderAlreadyPaid,
    OrderNotFound,
    SignatureMismatch,
    UnauthenticatedActor,
)
from payments import CURRENCY, PaymentSession, new_receipt, to_minor_units
from pricing import ZERO, round2, to_money
from schemas import CartLine, Order, OrderItem, Role, ShippingAddress

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserActor:
    user_id: str
    role: Role = Role.USER


@dataclass(frozen=True)
class AdminActor:
    admin_id: str


Actor = Union[UserActor, AdminActor]


class OrderState(str, Enum):
    CREATED = "created"
    AWAITING_PAYMENT = "awaiting_payment"
    PAID = "paid"
    DELIVERED = "delivered"


def order_state(order: dict) -> OrderState:
    if order.get("is_delivered"):
        return OrderState.DELIVERED
    if order.get("is_paid"):
        return OrderState.PAID
    if order.get("payment_session_id"):
        return OrderState.AWAITING_PAYMENT
    return OrderState.CREATED


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _order_oid(order_id: str):
    oid = parse_object_id(str(order_id))
    if oid is None:
        raise OrderNotFound()
    return oid


def get_order(db, order_id: str) -> dict:
    order = db["order"].find_one({"_id": _order_oid(order_id)})
    if not order:
        raise OrderNotFound()
    return from_mongo(order)


# ----------------------- Stock -----------------------
def reserve_stock(db, product_id: str, size: str, quantity: int) -> None:
    """Decrement stock for one size only if enough is left."""
    oid = parse_object_id(product_id)
    if oid is None:
        raise InvalidVariant(f"Unknown product {product_id}")
    res = db["product"].update_one(
        {"_id": oid, "sizes": {"$elemMatch": {"label": size, "stock": {"$gte": quantity}}}},
        {"$inc": {"sizes.$.stock": -quantity}},
    )
    if res.matched_count:
        return
    if db["product"].find_one({"_id": oid, "sizes.label": size}) is None:
        raise InvalidVariant(f"Size {size} of product {product_id} no longer exists")
    raise InsufficientStock(f"Not enough stock for size {size} of product {product_id}")


def release_stock(db, product_id: str, size: str, quantity: int) -> None:
    db["product"].update_one(
        {"_id": parse_object_id(product_id), "sizes": {"$elemMatch": {"label": size}}},
        {"$inc": {"sizes.$.stock": quantity}},
    )


# ----------------------- Checkout -----------------------
def create_order(
    db,
    cart_lines: Iterable,
    shipping_address: ShippingAddress,
    mobile_number: str,
    actor: Optional[Actor],
    tax_price: Decimal = ZERO,
    shipping_price: Decimal = ZERO,
    payment_method: str = "Razorpay",
) -> dict:
    lines: List[CartLine] = [CartLine.model_validate(from_mongo(line)) for line in cart_lines or []]
    if not lines:
        raise EmptyOrder()
    if not isinstance(actor, (UserActor, AdminActor)):
        raise UnauthenticatedActor()
    if not (actor.user_id if isinstance(actor, UserActor) else actor.admin_id):
        raise UnauthenticatedActor()

    # Prices come from the cart snapshot, never from the live product.
    items = [OrderItem(**line.model_dump()) for line in lines]
    items_price = round2(sum((round2(i.price) * i.quantity for i in items), ZERO))
    tax_price = to_money(tax_price)
    shipping_price = to_money(shipping_price)

    order = Order(
        user=actor.user_id if isinstance(actor, UserActor) else None,
        admin=actor.admin_id if isinstance(actor, AdminActor) else None,
        items=items,
        shipping_address=shipping_address,
        mobile_number=mobile_number,
        payment_method=payment_method,
        items_price=items_price,
        tax_price=tax_price,
        shipping_price=shipping_price,
        total_price=round2(items_price + tax_price + shipping_price),
    )

    reserved = []
    try:
        for item in items:
            reserve_stock(db, item.product_id, item.size, item.quantity)
            reserved.append(item)
        order_id = create_document(db, "order", order)
    except (InvalidVariant, InsufficientStock, PyMongoError):
        for item in reserved:
            release_stock(db, item.product_id, item.size, item.quantity)
        raise

    logger.info("Order %s created: %d items, total %s", order_id, len(items), order.total_price)
    return get_order(db, order_id)


# ----------------------- Payment -----------------------
def begin_payment(db, gateway, order_id: str) -> PaymentSession:
    order = get_order(db, order_id)
    if order.get("is_paid"):
        raise OrderAlreadyPaid()

    amount = to_minor_units(to_money(order["total_price"]))
    session = gateway.create_order(amount, CURRENCY, new_receipt(str(order["_id"])))

    db["order"].update_one(
        {"_id": order["_id"], "is_paid": False},
        {"$set": {"payment_session_id": session.gateway_order_id, "updated_at": _now()}},
    )
    logger.info("Payment session %s opened for order %s (%d paise)", session.gateway_order_id, order["_id"], amount)
    return session


def verify_payment(db, gateway, order_id: str, gateway_order_id: str, gateway_payment_id: str, signature: str) -> dict:
    order = get_order(db, order_id)

    if not gateway.signature_matches(gateway_order_id, gateway_payment_id, signature):
        logger.warning("Signature mismatch for order %s (gateway order %s)", order["_id"], gateway_order_id)
        raise SignatureMismatch()
    if order.get("payment_session_id") != gateway_order_id:
        logger.warning("Gateway order %s does not belong to order %s", gateway_order_id, order["_id"])
        raise SignatureMismatch("Payment does not belong to this order")

    now = _now()
    updated = db["order"].find_one_and_update(
        {"_id": order["_id"], "is_paid": False, "payment_session_id": gateway_order_id},
        {
            "$set": {
                "is_paid": True,
                "paid_at": now,
                "payment_result": {"id": gateway_payment_id, "status": "paid", "update_time": now.isoformat()},
                "updated_at": now,
            }
        },
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        current = get_order(db, order_id)
        if not current.get("is_paid"):
            # A new payment session replaced this one in the meantime.
            raise SignatureMismatch("Payment does not belong to this order")
        logger.info("Order %s already paid, ignoring repeated verification", order["_id"])
        return current

    logger.info("Order %s paid with %s", order["_id"], gateway_payment_id)
    return from_mongo(updated)


def mark_paid(db, order_id: str) -> dict:
    """Admin override for payments settled outside the gateway."""
    now = _now()
    updated = db["order"].find_one_and_update(
        {"_id": _order_oid(order_id), "is_paid": False},
        {"$set": {"is_paid": True, "paid_at": now, "updated_at": now}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        return get_order(db, order_id)
    logger.info("Order %s marked paid by admin", order_id)
    return from_mongo(updated)


def mark_delivered(db, order_id: str) -> dict:
    # No is_paid precondition: cash-on-delivery style orders are delivered unpaid.
    now = _now()
    updated = db["order"].find_one_and_update(
        {"_id": _order_oid(order_id)},
        {"$set": {"is_delivered": True, "delivered_at": now, "updated_at": now}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise OrderNotFound()
    logger.info("Order %s marked delivered", order_id)
    return from_mongo(updated)
