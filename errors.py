"""
Store errors raised by pricing, cart and order code.

Each carries the HTTP status the API answers with; the mapping is installed
as an exception handler in main.py.
"""
from typing import Optional


class StoreError(Exception):
    status_code = 400
    message = "Request could not be processed"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class InvalidVariant(StoreError):
    message = "Invalid size selected"


class InsufficientStock(StoreError):
    status_code = 409
    message = "Not enough stock"


class EmptyOrder(StoreError):
    message = "No order items"


class UnauthenticatedActor(StoreError):
    status_code = 401
    message = "Not authenticated"


class GatewayUnavailable(StoreError):
    status_code = 502
    message = "Payment gateway unavailable"


class SignatureMismatch(StoreError):
    message = "Invalid signature"


class OrderNotFound(StoreError):
    status_code = 404
    message = "Order not found"


class OrderAlreadyPaid(StoreError):
    status_code = 409
    message = "Order is already paid"


class ProductNotFound(StoreError):
    status_code = 404
    message = "Product not found"


class CartLineNotFound(StoreError):
    status_code = 404
    message = "Item not found in cart"
