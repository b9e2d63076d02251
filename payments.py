"""
Razorpay gateway client.

Only the two calls checkout needs: creating a gateway order for an amount in
paise, and signing `order_id|payment_id` with the key secret so the payment
callback can be checked.
"""
import hashlib
import hmac
import logging
import os
import time
from decimal import Decimal
from typing import Optional

import httpx
from pydantic import BaseModel

from errors import GatewayUnavailable

logger = logging.getLogger(__name__)

RAZORPAY_KEY_ID = os.getenv("RAZORPAY_KEY_ID", "")
RAZORPAY_KEY_SECRET = os.getenv("RAZORPAY_KEY_SECRET", "")
RAZORPAY_API_URL = os.getenv("RAZORPAY_API_URL", "https://api.razorpay.com/v1")
PAYMENT_TIMEOUT_SECONDS = float(os.getenv("PAYMENT_TIMEOUT_SECONDS", "10"))

CURRENCY = "INR"


class PaymentSession(BaseModel):
    gateway_order_id: str
    amount: int
    currency: str
    receipt: str


def to_minor_units(amount: Decimal) -> int:
    """Rupees to paise. Amounts are already 2-place Decimals, so this is exact."""
    paise = amount * 100
    if paise != paise.to_integral_value():
        raise ValueError(f"{amount} has more than two decimal places")
    return int(paise)


def new_receipt(order_id: str) -> str:
    return f"receipt_{order_id}_{int(time.time() * 1000)}"


class RazorpayGateway:
    def __init__(
        self,
        key_id: str = RAZORPAY_KEY_ID,
        key_secret: str = RAZORPAY_KEY_SECRET,
        base_url: str = RAZORPAY_API_URL,
        timeout: float = PAYMENT_TIMEOUT_SECONDS,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.key_id = key_id
        self.key_secret = key_secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def create_order(self, amount: int, currency: str, receipt: str) -> PaymentSession:
        payload = {"amount": amount, "currency": currency, "receipt": receipt}
        try:
            with httpx.Client(
                auth=(self.key_id, self.key_secret),
                timeout=self.timeout,
                transport=self.transport,
            ) as client:
                response = client.post(f"{self.base_url}/orders", json=payload)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.exception("Gateway order creation failed for receipt %s", receipt)
            raise GatewayUnavailable(f"Payment gateway error: {str(e)[:80]}") from e

        gateway_order_id = data.get("id")
        if not gateway_order_id:
            raise GatewayUnavailable("Payment gateway returned no order id")
        return PaymentSession(
            gateway_order_id=gateway_order_id,
            amount=int(data.get("amount", amount)),
            currency=data.get("currency", currency),
            receipt=data.get("receipt", receipt),
        )

    def signature(self, gateway_order_id: str, gateway_payment_id: str) -> str:
        body = f"{gateway_order_id}|{gateway_payment_id}".encode()
        return hmac.new(self.key_secret.encode(), body, hashlib.sha256).hexdigest()

    def signature_matches(self, gateway_order_id: str, gateway_payment_id: str, signature: str) -> bool:
        expected = self.signature(gateway_order_id, gateway_payment_id)
        return hmac.compare_digest(expected.encode(), (signature or "").encode())
