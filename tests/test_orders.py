from decimal import Decimal

import pytest
from bson.objectid import ObjectId

from conftest import GATEWAY_ORDER_ID
from errors import (
    EmptyOrder,
    GatewayUnavailable,
    InsufficientStock,
    InvalidVariant,
    OrderAlreadyPaid,
    OrderNotFound,
    SignatureMismatch,
    UnauthenticatedActor,
)
from orders import (
    AdminActor,
    OrderState,
    UserActor,
    begin_payment,
    create_order,
    get_order,
    mark_delivered,
    mark_paid,
    order_state,
    verify_payment,
)
from schemas import CartLine, Role, ShippingAddress

ADDRESS = ShippingAddress(address="12 MG Road", city="Jaipur", postal_code="302001", country="India")
SHOPPER = UserActor(user_id=str(ObjectId()), role=Role.USER)


def line(product_id, size="5x8", quantity=1, price="500.00"):
    return CartLine(product_id=product_id, name="Kashan Heritage", size=size, color="Red", quantity=quantity, price=Decimal(price))


def stock_of(db, product_id, size):
    doc = db["product"].find_one({"_id": ObjectId(product_id)})
    return next(s["stock"] for s in doc["sizes"] if s["label"] == size)


def place(db, lines, actor=SHOPPER, **kwargs):
    return create_order(db, lines, ADDRESS, "9999999999", actor, **kwargs)


def test_empty_order_persists_nothing(db):
    with pytest.raises(EmptyOrder):
        place(db, [])
    assert db["order"].count_documents({}) == 0


def test_order_needs_an_actor(db, make_product):
    pid = make_product()
    with pytest.raises(UnauthenticatedActor):
        place(db, [line(pid)], actor=None)
    assert db["order"].count_documents({}) == 0
    assert stock_of(db, pid, "5x8") == 5


@pytest.mark.parametrize("actor", [UserActor(user_id=""), AdminActor(admin_id="")])
def test_order_needs_an_actor_id(db, make_product, actor):
    pid = make_product()
    with pytest.raises(UnauthenticatedActor):
        place(db, [line(pid)], actor=actor)
    assert db["order"].count_documents({}) == 0
    assert stock_of(db, pid, "5x8") == 5


def test_order_snapshots_cart_prices_and_totals(db, make_product):
    pid = make_product()
    # Live price changes after the line was carted must not leak into the order.
    db["product"].update_one({"_id": ObjectId(pid), "sizes.label": "5x8"}, {"$set": {"sizes.$.price": 9999}})

    order = place(db, [line(pid, quantity=2, price="400.00"), line(pid, size="6x9", price="799.20")],
                  tax_price=Decimal("10.50"), shipping_price=Decimal("99"))

    assert order["items_price"] == Decimal("1599.20")
    assert order["total_price"] == Decimal("1708.70")
    assert [i["price"] for i in order["items"]] == [Decimal("400.00"), Decimal("799.20")]
    assert order["items"][0]["name"] == "Kashan Heritage"
    assert order["user"] == SHOPPER.user_id
    assert order["admin"] is None
    assert order["is_paid"] is False and order["is_delivered"] is False
    assert order_state(order) is OrderState.CREATED


def test_admin_orders_are_attributed_to_admin(db, make_product):
    pid = make_product()
    admin = AdminActor(admin_id=str(ObjectId()))
    order = place(db, [line(pid)], actor=admin)
    assert order["admin"] == admin.admin_id
    assert order["user"] is None


def test_order_decrements_stock(db, make_product):
    pid = make_product()
    place(db, [line(pid, quantity=3)])
    assert stock_of(db, pid, "5x8") == 2
    assert stock_of(db, pid, "6x9") == 2


def test_last_unit_cannot_be_sold_twice(db, make_product):
    pid = make_product(sizes=[{"label": "4x6", "price": Decimal("300"), "stock": 1}])

    place(db, [line(pid, size="4x6")])
    with pytest.raises(InsufficientStock):
        place(db, [line(pid, size="4x6")])

    assert stock_of(db, pid, "4x6") == 0
    assert db["order"].count_documents({}) == 1


def test_failed_line_releases_earlier_reservations(db, make_product):
    pid = make_product()
    with pytest.raises(InsufficientStock):
        place(db, [line(pid, quantity=2), line(pid, size="6x9", quantity=3)])
    assert stock_of(db, pid, "5x8") == 5
    assert stock_of(db, pid, "6x9") == 2
    assert db["order"].count_documents({}) == 0


def test_missing_variant_at_checkout(db, make_product):
    pid = make_product()
    with pytest.raises(InvalidVariant):
        place(db, [line(pid, size="2x3")])
    with pytest.raises(InvalidVariant):
        place(db, [line(str(ObjectId()))])


@pytest.fixture
def order(db, make_product):
    pid = make_product()
    return place(db, [line(pid, quantity=2, price="400.00")], shipping_price=Decimal("0.50"))


def test_begin_payment_uses_paise(db, gateway, gateway_calls, order):
    session = begin_payment(db, gateway, str(order["_id"]))

    assert session.gateway_order_id == GATEWAY_ORDER_ID
    assert session.amount == 80050
    assert session.currency == "INR"
    sent = gateway_calls[0]
    assert sent.url.path == "/v1/orders"
    assert sent.headers["authorization"].startswith("Basic ")
    stored = get_order(db, str(order["_id"]))
    assert stored["payment_session_id"] == GATEWAY_ORDER_ID
    assert order_state(stored) is OrderState.AWAITING_PAYMENT


def test_gateway_failure_leaves_order_retryable(db, gateway, broken_gateway, order):
    with pytest.raises(GatewayUnavailable):
        begin_payment(db, broken_gateway, str(order["_id"]))
    assert order_state(get_order(db, str(order["_id"]))) is OrderState.CREATED

    session = begin_payment(db, gateway, str(order["_id"]))
    assert session.gateway_order_id == GATEWAY_ORDER_ID


def test_begin_payment_unknown_order(db, gateway):
    with pytest.raises(OrderNotFound):
        begin_payment(db, gateway, str(ObjectId()))
    with pytest.raises(OrderNotFound):
        begin_payment(db, gateway, "not-an-id")


def test_verify_payment_is_idempotent(db, gateway, order):
    oid = str(order["_id"])
    begin_payment(db, gateway, oid)
    signature = gateway.signature(GATEWAY_ORDER_ID, "pay_001")

    first = verify_payment(db, gateway, oid, GATEWAY_ORDER_ID, "pay_001", signature)
    assert first["is_paid"] is True
    assert first["payment_result"]["id"] == "pay_001"
    assert first["payment_result"]["status"] == "paid"
    assert order_state(first) is OrderState.PAID

    second = verify_payment(db, gateway, oid, GATEWAY_ORDER_ID, "pay_001", signature)
    assert second["is_paid"] is True
    assert second["paid_at"] == first["paid_at"]
    assert second["items"] == first["items"]
    assert second["total_price"] == first["total_price"]


def test_tampered_signature_is_rejected(db, gateway, order):
    oid = str(order["_id"])
    begin_payment(db, gateway, oid)
    signature = gateway.signature(GATEWAY_ORDER_ID, "pay_001")
    tampered = signature[:-1] + chr(ord(signature[-1]) ^ 1)

    with pytest.raises(SignatureMismatch):
        verify_payment(db, gateway, oid, GATEWAY_ORDER_ID, "pay_001", tampered)
    with pytest.raises(SignatureMismatch):
        verify_payment(db, gateway, oid, GATEWAY_ORDER_ID, "pay_001", signature[:20])

    stored = get_order(db, oid)
    assert stored["is_paid"] is False
    assert stored["paid_at"] is None


def test_signature_for_another_session_is_rejected(db, gateway, order):
    oid = str(order["_id"])
    begin_payment(db, gateway, oid)
    signature = gateway.signature("order_OTHER", "pay_001")
    with pytest.raises(SignatureMismatch):
        verify_payment(db, gateway, oid, "order_OTHER", "pay_001", signature)
    assert get_order(db, oid)["is_paid"] is False


def test_paid_signature_cannot_settle_order_without_session(db, gateway, make_product):
    pid = make_product()
    cheap = str(place(db, [line(pid, price="1.00")])["_id"])
    costly = str(place(db, [line(pid, size="6x9", price="999.00")])["_id"])
    begin_payment(db, gateway, cheap)
    signature = gateway.signature(GATEWAY_ORDER_ID, "pay_cheap")
    verify_payment(db, gateway, cheap, GATEWAY_ORDER_ID, "pay_cheap", signature)

    with pytest.raises(SignatureMismatch):
        verify_payment(db, gateway, costly, GATEWAY_ORDER_ID, "pay_cheap", signature)
    stored = get_order(db, costly)
    assert stored["is_paid"] is False
    assert stored["payment_result"] is None


def test_order_with_failed_gateway_call_cannot_be_verified(db, gateway, broken_gateway, order):
    oid = str(order["_id"])
    with pytest.raises(GatewayUnavailable):
        begin_payment(db, broken_gateway, oid)
    signature = gateway.signature(GATEWAY_ORDER_ID, "pay_001")

    with pytest.raises(SignatureMismatch):
        verify_payment(db, gateway, oid, GATEWAY_ORDER_ID, "pay_001", signature)
    assert get_order(db, oid)["is_paid"] is False


def test_verify_unknown_order(db, gateway):
    with pytest.raises(OrderNotFound):
        verify_payment(db, gateway, str(ObjectId()), GATEWAY_ORDER_ID, "pay_001", "sig")


def test_paid_order_cannot_start_new_payment(db, gateway, order):
    mark_paid(db, str(order["_id"]))
    with pytest.raises(OrderAlreadyPaid):
        begin_payment(db, gateway, str(order["_id"]))


def test_mark_delivered_does_not_require_payment(db, order):
    delivered = mark_delivered(db, str(order["_id"]))
    assert delivered["is_delivered"] is True
    assert delivered["delivered_at"] is not None
    assert delivered["is_paid"] is False
    assert order_state(delivered) is OrderState.DELIVERED


def test_mark_delivered_unknown_order(db):
    with pytest.raises(OrderNotFound):
        mark_delivered(db, str(ObjectId()))


def test_mark_paid_keeps_first_paid_at(db, order):
    first = mark_paid(db, str(order["_id"]))
    second = mark_paid(db, str(order["_id"]))
    assert first["is_paid"] is True
    assert second["paid_at"] == first["paid_at"]
