import copy
from decimal import Decimal

import pytest
from pymongo.errors import PyMongoError

from database import create_document, from_mongo
from errors import InsufficientStock, InvalidVariant
from pricing import active_discount_percent, apply_discount, resolve_unit_price, round2
from schemas import Role


def product(price="1000", stock=5, label="5x8"):
    return {"name": "Kashan", "sizes": [{"label": label, "price": Decimal(price), "stock": stock}]}


@pytest.mark.parametrize("role", [Role.USER, Role.ADMIN, "user", "admin"])
def test_non_traders_pay_list_price(db, role):
    create_document(db, "discount", {"value": Decimal("25")})
    quote = resolve_unit_price(db, product("1499.99"), "5x8", role)
    assert quote.final_price == Decimal("1499.99")
    assert quote.applied_discount_percent == 0


@pytest.mark.parametrize("percent,expected", [
    ("0", "1000.00"),
    ("10", "900.00"),
    ("12.5", "875.00"),
    ("100", "0.00"),
])
def test_trader_discount(db, percent, expected):
    create_document(db, "discount", {"value": Decimal(percent)})
    quote = resolve_unit_price(db, product("1000"), "5x8", Role.TRADER)
    assert quote.final_price == Decimal(expected)
    assert quote.applied_discount_percent == Decimal(percent)


def test_trader_discount_rounds_to_cents(db):
    create_document(db, "discount", {"value": Decimal("33")})
    quote = resolve_unit_price(db, product("999"), "5x8", "trader")
    assert quote.final_price == Decimal("669.33")


def test_round_half_up():
    assert round2(Decimal("0.125")) == Decimal("0.13")
    assert apply_discount(Decimal("10.05"), Decimal("50")) == Decimal("5.03")


def test_newest_discount_is_active(db):
    create_document(db, "discount", {"value": Decimal("10")})
    create_document(db, "discount", {"value": Decimal("20")})
    assert active_discount_percent(db) == Decimal("20")
    assert resolve_unit_price(db, product("500"), "5x8", Role.TRADER).final_price == Decimal("400.00")


def test_trader_without_discount_pays_list_price(db):
    quote = resolve_unit_price(db, product("1000"), "5x8", Role.TRADER)
    assert quote.final_price == Decimal("1000.00")
    assert quote.applied_discount_percent == 0


def test_out_of_range_discount_is_ignored(db):
    db["discount"].insert_one({"value": 150})
    assert resolve_unit_price(db, product("1000"), "5x8", Role.TRADER).final_price == Decimal("1000.00")


class BrokenCollection:
    def find_one(self, *args, **kwargs):
        raise PyMongoError("connection reset")


def test_discount_lookup_failure_fails_open():
    quote = resolve_unit_price({"discount": BrokenCollection()}, product("750"), "5x8", Role.TRADER)
    assert quote.final_price == Decimal("750.00")
    assert quote.applied_discount_percent == 0


def test_unknown_size(db):
    with pytest.raises(InvalidVariant):
        resolve_unit_price(db, product(), "2x3", Role.USER)


def test_insufficient_stock(db):
    with pytest.raises(InsufficientStock):
        resolve_unit_price(db, product(stock=1), "5x8", Role.USER, quantity=2)


def test_resolver_does_not_mutate(db, make_product):
    pid = make_product()
    create_document(db, "discount", {"value": Decimal("20")})
    doc = from_mongo(db["product"].find_one())
    before = copy.deepcopy(doc)
    resolve_unit_price(db, doc, "5x8", Role.TRADER)
    assert doc == before
    assert db["discount"].count_documents({}) == 1
    assert str(db["product"].find_one()["_id"]) == pid
