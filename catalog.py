"""
Product listing queries: attribute filters, price range, sorting and paging.
"""
import re
from decimal import Decimal
from typing import List, Optional

from bson.decimal128 import Decimal128
from pymongo import ASCENDING, DESCENDING

FILTER_FIELDS = ("style", "by_type", "by_room", "category")

SORTS = {
    "newest": [("created_at", DESCENDING), ("_id", DESCENDING)],
    "price_asc": [("min_price", ASCENDING), ("_id", ASCENDING)],
    "price_desc": [("min_price", DESCENDING), ("_id", DESCENDING)],
    "name": [("name", ASCENDING), ("_id", ASCENDING)],
}

DEFAULT_PAGE_SIZE = 12
MAX_PAGE_SIZE = 100


def icontains(value: str) -> dict:
    return {"$regex": re.escape(value), "$options": "i"}


def lowest_price(sizes: List[dict]) -> Optional[Decimal]:
    prices = [s["price"] for s in sizes or [] if s.get("price") is not None]
    return min(prices) if prices else None


def build_product_query(
    q: Optional[str] = None,
    category: Optional[str] = None,
    style: Optional[str] = None,
    by_type: Optional[str] = None,
    by_room: Optional[str] = None,
    color: Optional[str] = None,
    size: Optional[str] = None,
    min_price: Optional[Decimal] = None,
    max_price: Optional[Decimal] = None,
) -> dict:
    filt = {}
    if q:
        filt["$or"] = [{"name": icontains(q)}, {"description": icontains(q)}]
    for field, value in (("category", category), ("style", style), ("by_type", by_type), ("by_room", by_room)):
        if value:
            filt[field] = icontains(value)
    if color:
        filt["colors.label"] = icontains(color)

    size_match = {}
    if size:
        size_match["label"] = size
    price_range = {}
    if min_price is not None:
        price_range["$gte"] = Decimal128(min_price)
    if max_price is not None:
        price_range["$lte"] = Decimal128(max_price)
    if price_range:
        size_match["price"] = price_range
    if size_match:
        filt["sizes"] = {"$elemMatch": size_match}
    return filt


def parse_filter(filter_value: str) -> dict:
    """
    Parse the storefront quick filter.

    "FIELD:VALUE" matches one field (or color), a bare "VALUE" matches any of
    the filter fields or a color. Raises ValueError on an unknown field.
    """
    if ":" in filter_value:
        field, value = filter_value.split(":", 1)
        if field == "color":
            return {"colors.label": icontains(value)}
        if field not in FILTER_FIELDS:
            raise ValueError(f"Invalid filter field. Valid fields are: {', '.join(FILTER_FIELDS)}, color")
        return {field: icontains(value)}
    return {"$or": [{f: icontains(filter_value)} for f in FILTER_FIELDS] + [{"colors.label": icontains(filter_value)}]}


def paginate(page: int, limit: int):
    limit = max(1, min(limit or DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE))
    page = max(1, page or 1)
    return (page - 1) * limit, limit


def filter_options(db) -> dict:
    def distinct(field):
        return sorted(v for v in db["product"].distinct(field) if v)

    return {
        "styles": distinct("style"),
        "types": distinct("by_type"),
        "rooms": distinct("by_room"),
        "categories": distinct("category"),
        "colors": distinct("colors.label"),
    }
