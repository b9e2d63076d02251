"""
Database Schemas for the rug store

Each top-level Pydantic model corresponds to one MongoDB collection.
Collection name is the lowercase of the class name. Money is Decimal and
is stored as Decimal128 (see database.to_mongo).
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Literal
from pydantic import BaseModel, Field, EmailStr

SIZE_LABELS = ("2x3", "3x5", "4x6", "5x8", "6x9")
SizeLabel = Literal["2x3", "3x5", "4x6", "5x8", "6x9"]


class Role(str, Enum):
    USER = "user"
    TRADER = "trader"
    ADMIN = "admin"


# Embedded models (not collections on their own)
class SizeOption(BaseModel):
    label: SizeLabel
    price: Decimal = Field(..., ge=0)
    stock: int = Field(0, ge=0)


class ColorOption(BaseModel):
    label: str


class CartLine(BaseModel):
    product_id: str
    name: str
    size: SizeLabel
    color: Optional[str] = None
    quantity: int = Field(1, ge=1)
    price: Decimal = Field(..., ge=0, description="Unit price resolved when the line was added")
    image: Optional[str] = None


class ShippingAddress(BaseModel):
    address: str
    city: str
    postal_code: str
    country: str


class OrderItem(BaseModel):
    product_id: str
    name: str
    size: SizeLabel
    color: Optional[str] = None
    quantity: int = Field(..., ge=1)
    price: Decimal = Field(..., ge=0)
    image: Optional[str] = None


class PaymentResult(BaseModel):
    id: str
    status: str
    update_time: str


# Collections
class User(BaseModel):
    name: str = Field(..., description="Full name")
    email: EmailStr
    password_hash: str = Field(..., description="Salted password hash")
    role: Role = Role.USER
    cart: List[CartLine] = []
    wishlist: List[str] = []


class Product(BaseModel):
    name: str
    description: str = ""
    images: List[str] = []
    category: Optional[str] = None
    sizes: List[SizeOption] = Field(..., min_length=1)
    colors: List[ColorOption] = []
    by_type: Optional[str] = None
    by_room: Optional[str] = None
    style: Optional[str] = None
    dimensions: str = ""
    material: str = ""
    care_information: str = ""
    additional_details: str = ""
    shipping_returns: str = ""


class Category(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None


class Discount(BaseModel):
    value: Decimal = Field(..., ge=0, le=100, description="Trader discount percent")


class Order(BaseModel):
    user: Optional[str] = None
    admin: Optional[str] = None
    items: List[OrderItem] = Field(..., min_length=1)
    shipping_address: ShippingAddress
    mobile_number: str
    payment_method: str = "Razorpay"
    items_price: Decimal
    tax_price: Decimal = Decimal("0.00")
    shipping_price: Decimal = Decimal("0.00")
    total_price: Decimal
    is_paid: bool = False
    paid_at: Optional[datetime] = None
    is_delivered: bool = False
    delivered_at: Optional[datetime] = None
    payment_session_id: Optional[str] = None
    payment_result: Optional[PaymentResult] = None


class Trade(BaseModel):
    user_id: str
    company_name: str = Field(..., max_length=100)
    phone_number: str = Field(..., max_length=20)
    country: str = Field(..., max_length=50)
    status: Literal["pending", "approved", "rejected"] = "pending"
    reviewed_at: Optional[datetime] = None
