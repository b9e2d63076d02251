import json
from decimal import Decimal

import httpx
import mongomock
import pytest
from fastapi.testclient import TestClient

from database import create_document
from main import app, create_token, get_db, get_gateway, hash_password
from payments import RazorpayGateway

GATEWAY_ORDER_ID = "order_TEST123"


@pytest.fixture
def db():
    return mongomock.MongoClient()["rugstore_test"]


@pytest.fixture
def gateway_calls():
    return []


@pytest.fixture
def gateway(gateway_calls):
    def handler(request: httpx.Request) -> httpx.Response:
        gateway_calls.append(request)
        body = json.loads(request.content)
        return httpx.Response(200, json={"id": GATEWAY_ORDER_ID, "status": "created", **body})

    return RazorpayGateway(
        key_id="rzp_test_key",
        key_secret="test_secret",
        base_url="https://gateway.test/v1",
        transport=httpx.MockTransport(handler),
    )


@pytest.fixture
def broken_gateway():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    return RazorpayGateway(
        key_id="rzp_test_key",
        key_secret="test_secret",
        base_url="https://gateway.test/v1",
        transport=httpx.MockTransport(handler),
    )


@pytest.fixture
def make_product(db):
    def _make(name="Kashan Heritage", sizes=None, colors=("Red", "Ivory"), **extra):
        if sizes is None:
            sizes = [
                {"label": "5x8", "price": Decimal("500"), "stock": 5},
                {"label": "6x9", "price": Decimal("999"), "stock": 2},
            ]
        data = {
            "name": name,
            "description": "Hand-knotted wool",
            "images": ["https://img.test/rug.jpg"],
            "sizes": sizes,
            "colors": [{"label": c} for c in colors],
            **extra,
        }
        return create_document(db, "product", data)

    return _make


@pytest.fixture
def make_user(db):
    def _make(role="user", email=None, name="Riya"):
        user_id = create_document(db, "user", {
            "name": name,
            "email": email or f"{role}-{name.lower()}@rugs.in",
            "password_hash": hash_password("secret123"),
            "role": role,
            "cart": [],
        })
        headers = {"Authorization": f"Bearer {create_token({'id': user_id, 'role': role})}"}
        return user_id, headers

    return _make


@pytest.fixture
def client(db, gateway):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_gateway] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()
