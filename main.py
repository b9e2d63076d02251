import hashlib
import logging
import os
import secrets
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional

import jwt
from bson.decimal128 import Decimal128
from bson.objectid import ObjectId
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, EmailStr, Field
from pymongo import ReturnDocument

import database
from cart import add_to_cart, clear_cart, load_cart, remove_from_cart, update_quantity
from catalog import SORTS, build_product_query, filter_options, lowest_price, paginate, parse_filter
from database import create_document, from_mongo, get_documents, parse_object_id, to_mongo
from errors import GatewayUnavailable, StoreError
from orders import (
    AdminActor,
    UserActor,
    begin_payment,
    create_order,
    get_order,
    mark_delivered,
    mark_paid,
    order_state,
    verify_payment,
)
from payments import RazorpayGateway
from pricing import active_discount_percent, latest_discount
from schemas import (
    CartLine,
    Category as CategorySchema,
    ColorOption,
    Product as ProductSchema,
    Role,
    ShippingAddress,
    SizeLabel,
    SizeOption,
    Trade as TradeSchema,
    User as UserSchema,
)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Shabnam Rugs Backend")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ----------------------- Utils -----------------------
JWT_SECRET = os.getenv("JWT_SECRET", "devsecret")
JWT_ALGO = "HS256"
security = HTTPBearer()

gateway = RazorpayGateway()


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def serialize_doc(doc):
    if isinstance(doc, list):
        return [serialize_doc(d) for d in doc]
    if not isinstance(doc, dict):
        if isinstance(doc, ObjectId):
            return str(doc)
        if isinstance(doc, datetime):
            return doc.isoformat()
        if isinstance(doc, Decimal128):
            return doc.to_decimal()
        return doc
    doc = dict(doc)
    _id = doc.pop("_id", None)
    if _id is not None:
        doc["id"] = str(_id)
    doc.pop("password_hash", None)
    return {k: serialize_doc(v) for k, v in doc.items()}


def hash_password(password: str, salt: Optional[str] = None) -> str:
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), 100_000).hex()
    return f"{salt}${digest}"


def verify_password(password: str, password_hash: str) -> bool:
    salt, _, _digest = (password_hash or "").partition("$")
    return bool(salt) and secrets.compare_digest(hash_password(password, salt), password_hash)


def create_token(payload: dict) -> str:
    exp = datetime.now(timezone.utc) + timedelta(days=7)
    to_encode = {**payload, "exp": exp}
    return jwt.encode(to_encode, JWT_SECRET, algorithm=JWT_ALGO)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGO])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")


def get_db():
    if database.db is None:
        raise HTTPException(status_code=500, detail="Database unavailable")
    return database.db


def get_gateway():
    return gateway


def ensure_object_id(id_str: str) -> ObjectId:
    oid = parse_object_id(id_str)
    if oid is None:
        raise HTTPException(status_code=400, detail="Invalid ID format")
    return oid


async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security), db=Depends(get_db)):
    payload = decode_token(credentials.credentials)
    user_id = payload.get("id")
    if not user_id or not ObjectId.is_valid(user_id):
        raise HTTPException(status_code=401, detail="Invalid token payload")
    user = db["user"].find_one({"_id": ObjectId(user_id)})
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user


def require_admin(user=Depends(get_current_user)):
    if user.get("role") != Role.ADMIN.value:
        raise HTTPException(status_code=403, detail="Admin only")
    return user


def actor_for(user: dict):
    if user.get("role") == Role.ADMIN.value:
        return AdminActor(admin_id=str(user["_id"]))
    return UserActor(user_id=str(user["_id"]), role=Role(user.get("role", Role.USER.value)))


def public_user(user: dict) -> dict:
    suser = serialize_doc(user)
    return {"id": suser["id"], "name": suser["name"], "email": suser["email"], "role": suser.get("role", "user")}


def public_order(order: dict) -> dict:
    return {**serialize_doc(order), "state": order_state(order).value}


def public_cart(lines: List[CartLine]) -> dict:
    items = [line.model_dump() for line in lines]
    subtotal = sum((line.price * line.quantity for line in lines), Decimal("0"))
    return {"items": items, "subtotal": subtotal}


# ----------------------- Models -----------------------
class RegisterBody(BaseModel):
    name: str
    email: EmailStr
    password: str = Field(..., min_length=6)


class LoginBody(BaseModel):
    email: EmailStr
    password: str


class ProfileUpdateBody(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=6)


class ProductCreateBody(ProductSchema):
    pass


class ProductUpdateBody(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    images: Optional[List[str]] = None
    category: Optional[str] = None
    sizes: Optional[List[SizeOption]] = Field(None, min_length=1)
    colors: Optional[List[ColorOption]] = None
    by_type: Optional[str] = None
    by_room: Optional[str] = None
    style: Optional[str] = None
    dimensions: Optional[str] = None
    material: Optional[str] = None
    care_information: Optional[str] = None
    additional_details: Optional[str] = None
    shipping_returns: Optional[str] = None


class CategoryCreateBody(CategorySchema):
    pass


class DiscountCreateBody(BaseModel):
    discount: Decimal = Field(..., ge=0, le=100)


class CartAddBody(BaseModel):
    product_id: str
    size: SizeLabel
    color: Optional[str] = None
    quantity: int = Field(1, ge=1)


class CartUpdateBody(BaseModel):
    quantity: int = Field(..., ge=1)
    size: Optional[SizeLabel] = None
    color: Optional[str] = None


class CheckoutBody(BaseModel):
    shipping_address: ShippingAddress
    mobile_number: str
    tax_price: Decimal = Field(Decimal("0"), ge=0)
    shipping_price: Decimal = Field(Decimal("0"), ge=0)
    payment_method: str = "Razorpay"


class OrderCreateBody(CheckoutBody):
    items: Optional[List[CartLine]] = None


class VerifyPaymentBody(BaseModel):
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str
    order_id: str


class TradeApplyBody(BaseModel):
    company_name: str = Field(..., max_length=100)
    phone_number: str = Field(..., max_length=20)
    country: str = Field(..., max_length=50)


# ----------------------- Health -----------------------
@app.get("/")
def root():
    return {"message": "Rug store API running"}


@app.get("/test")
def test_database():
    db = database.db
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set",
        "connection_status": "Not Connected",
        "collections": [],
    }
    try:
        if db is not None:
            response["database"] = "✅ Connected & Working"
            response["connection_status"] = "Connected"
            response["collections"] = db.list_collection_names()[:10]
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:80]}"
    return response


# ----------------------- Auth -----------------------
@app.post("/api/users/register", status_code=201)
def register(body: RegisterBody, db=Depends(get_db)):
    if db["user"].find_one({"email": body.email}):
        raise HTTPException(status_code=400, detail="Email already registered")
    user = UserSchema(name=body.name, email=body.email, password_hash=hash_password(body.password))
    user_id = create_document(db, "user", user)
    token = create_token({"id": user_id, "email": body.email, "role": Role.USER.value})
    return {"token": token, "user": {"id": user_id, "name": body.name, "email": body.email, "role": Role.USER.value}}


@app.post("/api/users/login")
def login(body: LoginBody, db=Depends(get_db)):
    user = db["user"].find_one({"email": body.email})
    if not user or not verify_password(body.password, user.get("password_hash")):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    suser = public_user(user)
    token = create_token({"id": suser["id"], "email": suser["email"], "role": suser["role"]})
    return {"token": token, "user": suser}


@app.get("/api/users/profile")
def profile(user=Depends(get_current_user)):
    return public_user(user)


@app.put("/api/users/profile")
def update_profile(body: ProfileUpdateBody, user=Depends(get_current_user), db=Depends(get_db)):
    update = {}
    if body.name:
        update["name"] = body.name
    if body.email and body.email != user["email"]:
        if db["user"].find_one({"email": body.email}):
            raise HTTPException(status_code=400, detail="Email already registered")
        update["email"] = body.email
    if body.password:
        update["password_hash"] = hash_password(body.password)
    if update:
        update["updated_at"] = datetime.now(timezone.utc)
        db["user"].update_one({"_id": user["_id"]}, {"$set": update})
    return public_user(db["user"].find_one({"_id": user["_id"]}))


@app.get("/api/users/wishlist")
def get_wishlist(user=Depends(get_current_user), db=Depends(get_db)):
    ids = [ObjectId(pid) for pid in user.get("wishlist") or [] if ObjectId.is_valid(pid)]
    products = {str(p["_id"]): p for p in db["product"].find({"_id": {"$in": ids}})}
    # Keep wishlist order; products deleted since are skipped.
    return [serialize_doc(products[str(oid)]) for oid in ids if str(oid) in products]


@app.post("/api/users/wishlist/{product_id}")
def add_to_wishlist(product_id: str, user=Depends(get_current_user), db=Depends(get_db)):
    if not db["product"].find_one({"_id": ensure_object_id(product_id)}):
        raise HTTPException(status_code=404, detail="Product not found")
    res = db["user"].update_one(
        {"_id": user["_id"], "wishlist": {"$ne": product_id}},
        {"$push": {"wishlist": product_id}},
    )
    if res.matched_count == 0:
        raise HTTPException(status_code=400, detail="Product already in wishlist")
    wishlist = db["user"].find_one({"_id": user["_id"]})["wishlist"]
    return {"message": "Product added to wishlist", "wishlist": wishlist}


@app.delete("/api/users/wishlist/{product_id}")
def remove_from_wishlist(product_id: str, user=Depends(get_current_user), db=Depends(get_db)):
    res = db["user"].update_one(
        {"_id": user["_id"], "wishlist": product_id},
        {"$pull": {"wishlist": product_id}},
    )
    if res.matched_count == 0:
        raise HTTPException(status_code=400, detail="Product not found in wishlist")
    wishlist = db["user"].find_one({"_id": user["_id"]})["wishlist"]
    return {"message": "Product removed from wishlist", "wishlist": wishlist}


# ----------------------- Products -----------------------
@app.get("/api/products")
def list_products(
    q: Optional[str] = None,
    category: Optional[str] = None,
    style: Optional[str] = None,
    by_type: Optional[str] = None,
    by_room: Optional[str] = None,
    color: Optional[str] = None,
    size: Optional[SizeLabel] = None,
    min_price: Optional[Decimal] = Query(None, ge=0),
    max_price: Optional[Decimal] = Query(None, ge=0),
    sort: str = Query("newest"),
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    db=Depends(get_db),
):
    if sort not in SORTS:
        raise HTTPException(status_code=400, detail=f"Invalid sort. Use one of: {', '.join(SORTS)}")
    filt = build_product_query(q, category, style, by_type, by_room, color, size, min_price, max_price)
    skip, limit = paginate(page, limit)
    total = db["product"].count_documents(filt)
    items = db["product"].find(filt).sort(SORTS[sort]).skip(skip).limit(limit)
    return {
        "products": [serialize_doc(i) for i in items],
        "page": page,
        "pages": (total + limit - 1) // limit,
        "total": total,
    }


@app.get("/api/products/{product_id}")
def get_product(product_id: str, db=Depends(get_db)):
    item = db["product"].find_one({"_id": ensure_object_id(product_id)})
    if not item:
        raise HTTPException(status_code=404, detail="Product not found")
    return serialize_doc(item)


@app.post("/api/products", status_code=201)
def create_product(body: ProductCreateBody, user=Depends(require_admin), db=Depends(get_db)):
    data = body.model_dump()
    data["min_price"] = lowest_price(data["sizes"])
    pid = create_document(db, "product", data)
    logger.info("Product %s created by %s", pid, user["_id"])
    return {"id": pid}


@app.put("/api/products/{product_id}")
def update_product(product_id: str, body: ProductUpdateBody, user=Depends(require_admin), db=Depends(get_db)):
    update = body.model_dump(exclude_none=True)
    if "sizes" in update:
        update["min_price"] = lowest_price(update["sizes"])
    update["updated_at"] = datetime.now(timezone.utc)
    res = db["product"].update_one({"_id": ensure_object_id(product_id)}, {"$set": to_mongo(update)})
    if res.matched_count == 0:
        raise HTTPException(status_code=404, detail="Product not found")
    return {"ok": True}


@app.delete("/api/products/{product_id}")
def delete_product(product_id: str, user=Depends(require_admin), db=Depends(get_db)):
    res = db["product"].delete_one({"_id": ensure_object_id(product_id)})
    if res.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Product not found")
    return {"ok": True}


# ----------------------- Filters -----------------------
@app.get("/api/filter")
def quick_filter(filter: Optional[str] = None, db=Depends(get_db)):
    try:
        filt = parse_filter(filter) if filter else {}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    products = [serialize_doc(p) for p in db["product"].find(filt)]
    return {"success": True, "count": len(products), "products": products}


@app.get("/api/filter/options")
def quick_filter_options(db=Depends(get_db)):
    return {"success": True, "options": filter_options(db)}


# ----------------------- Categories -----------------------
@app.get("/api/categories")
def list_categories(db=Depends(get_db)):
    return [serialize_doc(c) for c in db["category"].find({}).sort("name", 1)]


@app.post("/api/categories", status_code=201)
def create_category(body: CategoryCreateBody, user=Depends(require_admin), db=Depends(get_db)):
    if db["category"].find_one({"name": body.name}):
        raise HTTPException(status_code=400, detail="Category already exists")
    return {"id": create_document(db, "category", body)}


@app.delete("/api/categories/{category_id}")
def delete_category(category_id: str, user=Depends(require_admin), db=Depends(get_db)):
    res = db["category"].delete_one({"_id": ensure_object_id(category_id)})
    if res.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Category not found")
    return {"ok": True}


# ----------------------- Discounts -----------------------
@app.post("/api/discounts", status_code=201)
def create_discount(body: DiscountCreateBody, user=Depends(require_admin), db=Depends(get_db)):
    did = create_document(db, "discount", {"value": body.discount})
    logger.info("Trader discount set to %s%% by %s", body.discount, user["_id"])
    return {"success": True, "message": "Discount saved successfully", "data": {"id": did, "value": body.discount}}


@app.get("/api/discounts")
def list_discounts(user=Depends(require_admin), db=Depends(get_db)):
    docs = db["discount"].find({}).sort([("created_at", -1), ("_id", -1)])
    return {"success": True, "data": [serialize_doc(d) for d in docs]}


@app.get("/api/discounts/active")
def active_discount(db=Depends(get_db)):
    doc = latest_discount(db)
    return {
        "value": active_discount_percent(db),
        "created_at": serialize_doc(doc.get("created_at")) if doc else None,
    }


# ----------------------- Cart -----------------------
@app.get("/api/cart")
def get_cart(user=Depends(get_current_user)):
    return public_cart(load_cart(user))


@app.post("/api/cart")
def add_cart_item(body: CartAddBody, user=Depends(get_current_user), db=Depends(get_db)):
    lines, quote = add_to_cart(db, user, body.product_id, body.size, body.color, body.quantity)
    applied = quote.applied_discount_percent
    return {
        **public_cart(lines),
        "applied_discount": applied,
        "message": f"Trader discount of {applied}% applied" if applied > 0 else "Added to cart",
    }


@app.put("/api/cart/{product_id}")
def update_cart_item(product_id: str, body: CartUpdateBody, user=Depends(get_current_user), db=Depends(get_db)):
    lines = update_quantity(db, user, product_id, body.quantity, body.size, body.color)
    return {"message": "Quantity updated", **public_cart(lines)}


@app.delete("/api/cart/{product_id}")
def remove_cart_item(
    product_id: str,
    size: Optional[SizeLabel] = None,
    color: Optional[str] = None,
    user=Depends(get_current_user),
    db=Depends(get_db),
):
    lines = remove_from_cart(db, user, product_id, size, color)
    return {"message": "Product removed from cart", **public_cart(lines)}


@app.delete("/api/cart")
def clear_cart_items(user=Depends(get_current_user), db=Depends(get_db)):
    clear_cart(db, user)
    return {"message": "Cart cleared"}


# ----------------------- Orders -----------------------
def checkout(db, user: dict, body: CheckoutBody, lines=None) -> dict:
    from_cart = lines is None
    order = create_order(
        db,
        load_cart(user) if from_cart else lines,
        body.shipping_address,
        body.mobile_number,
        actor_for(user),
        tax_price=body.tax_price,
        shipping_price=body.shipping_price,
        payment_method=body.payment_method,
    )
    if from_cart:
        clear_cart(db, user)
    return order


def owned_order(db, order_id: str, user: dict) -> dict:
    order = get_order(db, order_id)
    uid = str(user["_id"])
    if user.get("role") != Role.ADMIN.value and order.get("user") != uid:
        raise HTTPException(status_code=403, detail="Not allowed")
    return order


@app.post("/api/orders", status_code=201)
def place_order(body: OrderCreateBody, user=Depends(get_current_user), db=Depends(get_db)):
    if body.items is not None and user.get("role") != Role.ADMIN.value:
        raise HTTPException(status_code=403, detail="Only admins can place orders with explicit items")
    return public_order(checkout(db, user, body, body.items))


@app.get("/api/orders/myorders")
def my_orders(user=Depends(get_current_user), db=Depends(get_db)):
    orders = db["order"].find({"user": str(user["_id"])}).sort("created_at", -1)
    return [public_order(from_mongo(o)) for o in orders]


@app.get("/api/orders")
def all_orders(user=Depends(require_admin), db=Depends(get_db)):
    return [public_order(o) for o in sorted(get_documents(db, "order"), key=lambda o: o["created_at"], reverse=True)]


@app.get("/api/orders/{order_id}")
def order_detail(order_id: str, user=Depends(require_admin), db=Depends(get_db)):
    return public_order(get_order(db, order_id))


@app.put("/api/orders/{order_id}/deliver")
def deliver_order(order_id: str, user=Depends(require_admin), db=Depends(get_db)):
    return public_order(mark_delivered(db, order_id))


@app.put("/api/orders/{order_id}/pay")
def pay_order(order_id: str, user=Depends(require_admin), db=Depends(get_db)):
    return public_order(mark_paid(db, order_id))


# ----------------------- Payment -----------------------
def payment_response(order: dict, session, gw) -> dict:
    return {
        "success": True,
        "order_id": str(order["_id"]),
        "key": gw.key_id,
        "razorpay_order": {
            "id": session.gateway_order_id,
            "amount": session.amount,
            "currency": session.currency,
            "receipt": session.receipt,
        },
    }


@app.post("/api/payment/create-order")
def create_payment_order(body: CheckoutBody, user=Depends(get_current_user), db=Depends(get_db), gw=Depends(get_gateway)):
    order = checkout(db, user, body)
    try:
        session = begin_payment(db, gw, str(order["_id"]))
    except GatewayUnavailable as e:
        return JSONResponse(
            status_code=e.status_code,
            content={"success": False, "detail": e.message, "order_id": str(order["_id"])},
        )
    return payment_response(order, session, gw)


@app.post("/api/payment/begin/{order_id}")
def begin_order_payment(order_id: str, user=Depends(get_current_user), db=Depends(get_db), gw=Depends(get_gateway)):
    order = owned_order(db, order_id, user)
    session = begin_payment(db, gw, order_id)
    return payment_response(order, session, gw)


@app.post("/api/payment/verify")
def verify_order_payment(body: VerifyPaymentBody, db=Depends(get_db), gw=Depends(get_gateway)):
    order = verify_payment(
        db, gw, body.order_id, body.razorpay_order_id, body.razorpay_payment_id, body.razorpay_signature
    )
    return {"success": True, "message": "Payment verified", "order": public_order(order)}


# ----------------------- Trade accounts -----------------------
@app.post("/api/trades", status_code=201)
def apply_for_trade(body: TradeApplyBody, user=Depends(get_current_user), db=Depends(get_db)):
    if user.get("role") in (Role.TRADER.value, Role.ADMIN.value):
        raise HTTPException(status_code=400, detail="Account already has trade pricing")
    if db["trade"].find_one({"user_id": str(user["_id"]), "status": "pending"}):
        raise HTTPException(status_code=400, detail="Trade application already pending")
    trade = TradeSchema(user_id=str(user["_id"]), **body.model_dump())
    return {"message": "Trade access request submitted successfully", "id": create_document(db, "trade", trade)}


@app.get("/api/trades")
def list_trades(user=Depends(require_admin), db=Depends(get_db)):
    return [serialize_doc(t) for t in db["trade"].find({}).sort("created_at", -1)]


@app.get("/api/trades/{trade_id}")
def get_trade(trade_id: str, user=Depends(require_admin), db=Depends(get_db)):
    trade = db["trade"].find_one({"_id": ensure_object_id(trade_id)})
    if not trade:
        raise HTTPException(status_code=404, detail="Trade application not found")
    return serialize_doc(trade)


def review_trade(db, trade_id: str, status: str) -> dict:
    now = datetime.now(timezone.utc)
    trade = db["trade"].find_one_and_update(
        {"_id": ensure_object_id(trade_id)},
        {"$set": {"status": status, "reviewed_at": now, "updated_at": now}},
        return_document=ReturnDocument.AFTER,
    )
    if not trade:
        raise HTTPException(status_code=404, detail="Trade application not found")
    return trade


@app.put("/api/trades/{trade_id}/approve")
def approve_trade(trade_id: str, user=Depends(require_admin), db=Depends(get_db)):
    trade = review_trade(db, trade_id, "approved")
    db["user"].update_one(
        {"_id": ObjectId(trade["user_id"]), "role": {"$ne": Role.ADMIN.value}},
        {"$set": {"role": Role.TRADER.value, "updated_at": datetime.now(timezone.utc)}},
    )
    logger.info("Trade application %s approved by %s", trade_id, user["_id"])
    return {"message": "Trade user approved", "trade": serialize_doc(trade)}


@app.put("/api/trades/{trade_id}/reject")
def reject_trade(trade_id: str, user=Depends(require_admin), db=Depends(get_db)):
    trade = review_trade(db, trade_id, "rejected")
    db["user"].update_one(
        {"_id": ObjectId(trade["user_id"]), "role": Role.TRADER.value},
        {"$set": {"role": Role.USER.value, "updated_at": datetime.now(timezone.utc)}},
    )
    logger.info("Trade application %s rejected by %s", trade_id, user["_id"])
    return {"message": "Trade user rejected", "trade": serialize_doc(trade)}


# ----------------------- Admin -----------------------
@app.get("/api/admin/stats")
def admin_stats(user=Depends(require_admin), db=Depends(get_db)):
    return {
        "users": db["user"].count_documents({}),
        "traders": db["user"].count_documents({"role": Role.TRADER.value}),
        "products": db["product"].count_documents({}),
        "orders": db["order"].count_documents({}),
        "paid_orders": db["order"].count_documents({"is_paid": True}),
    }


# ----------------------- Seed Demo Data -----------------------
def demo_sizes(base: int, stock: int = 5):
    multipliers = {"2x3": 1, "3x5": 2, "4x6": 3, "5x8": 5, "6x9": 7}
    return [{"label": label, "price": Decimal(base * m), "stock": stock} for label, m in multipliers.items()]


DEMO_PRODUCTS = [
    {
        "name": "Kashan Heritage",
        "description": "Hand-knotted wool with a classic medallion.",
        "images": ["https://images.unsplash.com/photo-1600166898405-da9535204843"],
        "category": "Hand Knotted",
        "sizes": demo_sizes(4500),
        "colors": [{"label": "Red"}, {"label": "Ivory"}],
        "by_type": "Traditional",
        "by_room": "Living Room",
        "style": "Persian",
        "material": "New Zealand wool",
    },
    {
        "name": "Jaipur Flatweave",
        "description": "Reversible cotton dhurrie in muted stripes.",
        "images": ["https://images.unsplash.com/photo-1575414003591-ece8d0416c7a"],
        "category": "Flatweave",
        "sizes": demo_sizes(1500, stock=10),
        "colors": [{"label": "Blue"}, {"label": "Grey"}],
        "by_type": "Modern",
        "by_room": "Bedroom",
        "style": "Striped",
        "material": "Cotton",
    },
    {
        "name": "Himalaya Shag",
        "description": "Deep pile shag, soft underfoot.",
        "images": ["https://images.unsplash.com/photo-1531835551805-16d864c8d311"],
        "category": "Shag",
        "sizes": demo_sizes(3000, stock=3),
        "colors": [{"label": "Beige"}],
        "by_type": "Contemporary",
        "by_room": "Living Room",
        "style": "Solid",
        "material": "Polyester",
    },
]


@app.post("/seed")
def seed(db=Depends(get_db)):
    if db["product"].count_documents({}) > 0:
        return {"seeded": False, "message": "Products already exist"}
    for p in DEMO_PRODUCTS:
        prod = ProductSchema(**p).model_dump()
        prod["min_price"] = lowest_price(prod["sizes"])
        create_document(db, "product", prod)
    for name in sorted({p["category"] for p in DEMO_PRODUCTS}):
        if not db["category"].find_one({"name": name}):
            create_document(db, "category", CategorySchema(name=name))
    if db["user"].count_documents({"role": Role.ADMIN.value}) == 0:
        admin = UserSchema(name="Admin", email="admin@shop.com", password_hash=hash_password("admin123"), role=Role.ADMIN)
        create_document(db, "user", admin)
    return {"seeded": True, "products": db["product"].count_documents({})}


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
