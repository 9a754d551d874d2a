import hashlib
import hmac
import json
from http.cookies import SimpleCookie
from typing import Any, Callable, Dict, List, Optional, Tuple, Union
from urllib.parse import quote, unquote

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from config.settings import Settings
from core.tripay import TripayClient
from main import create_app

API_KEY = "test-api-key"
PRIVATE_KEY = "test-private-key"
MERCHANT_CODE = "T12345"

Handler = Union[Callable[[httpx.Request], httpx.Response], Tuple[int, Any]]


class FakeTripay:
    """Stands in for the Tripay API behind httpx.MockTransport."""

    def __init__(self):
        self.calls: List[httpx.Request] = []
        self.routes: Dict[Tuple[str, str], Handler] = {}

    def on(self, method: str, path: str, handler: Handler):
        self.routes[(method, path)] = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        path = request.url.path
        for prefix in ("/api-sandbox", "/api"):
            if path.startswith(prefix + "/"):
                path = path[len(prefix):]
                break
        handler = self.routes.get((request.method, path))
        if handler is None:
            return httpx.Response(404, json={"success": False, "message": "Not mocked"})
        if callable(handler):
            return handler(request)
        status_code, body = handler
        return httpx.Response(status_code, json=body)


def echo_create_transaction(reference: str = "DEV-T1234500000001"):
    """Tripay create handler that echoes the posted payload like the real API"""
    def handler(request: httpx.Request) -> httpx.Response:
        sent = json.loads(request.content)
        return httpx.Response(200, json={
            "success": True,
            "message": "",
            "data": {
                "reference": reference,
                "merchant_ref": sent["merchant_ref"],
                "payment_method": sent["method"],
                "amount": sent["amount"],
                "status": "UNPAID",
                "pay_code": None,
                "checkout_url": f"https://tripay.co.id/checkout/{reference}",
                "order_items": sent["order_items"],
            },
        })
    return handler


def transaction_body(**overrides) -> Dict[str, Any]:
    body = {
        "method": "QRIS",
        "amount": 7000,
        "customerPhone": "628123456789",
        "orderItems": [{"name": "Test", "price": 7000, "quantity": 1}],
    }
    body.update(overrides)
    return body


def history_record(reference: str, merchant_ref: Optional[str] = None, status: str = "UNPAID") -> Dict[str, Any]:
    return {
        "reference": reference,
        "merchantRef": merchant_ref or f"PREMIUM-1700000000000-{reference.lower()}",
        "method": "QRIS",
        "amount": 7000,
        "status": status,
        "createdAt": "2024-01-01T00:00:00+00:00",
        "orderItems": [{"name": "Test", "price": 7000, "quantity": 1}],
    }


def cookie_header(**cookies: Any) -> Dict[str, str]:
    """Build a Cookie header with URL-encoded JSON values (raw strings are sent as-is)"""
    parts = []
    for name, value in cookies.items():
        encoded = value if isinstance(value, str) else quote(json.dumps(value), safe="")
        parts.append(f"{name}={encoded}")
    return {"Cookie": "; ".join(parts)}


def set_cookie(response, name: str):
    """Return the Set-Cookie morsel for ``name`` or None (httpx or Starlette response)"""
    if isinstance(response, httpx.Response):
        headers = response.headers.get_list("set-cookie")
    else:
        headers = [value.decode("latin-1") for key, value in response.raw_headers if key == b"set-cookie"]
    for header in headers:
        jar = SimpleCookie()
        jar.load(header)
        if name in jar:
            return jar[name]
    return None


def set_cookie_json(response: httpx.Response, name: str) -> Any:
    morsel = set_cookie(response, name)
    return None if morsel is None else json.loads(unquote(morsel.value))


def sign(body: bytes, key: str = PRIVATE_KEY) -> str:
    return hmac.new(key.encode(), body, hashlib.sha256).hexdigest()


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings_factory(tmp_path):
    def factory(**overrides) -> Settings:
        values = {
            "TRIPAY_API_KEY": API_KEY,
            "TRIPAY_PRIVATE_KEY": PRIVATE_KEY,
            "TRIPAY_MERCHANT_CODE": MERCHANT_CODE,
            "TRIPAY_MODE": "sandbox",
            "NODE_ENV": "test",
            "DOMAIN": None,
            "FRONTEND_URL": "",
            "DATABASE_URL": f"sqlite:///{tmp_path / 'ledger.db'}",
            "RATE_LIMIT_ENABLED": False,
            "LOG_DIR": "",
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)
    return factory


@pytest.fixture
def settings(settings_factory):
    return settings_factory()


@pytest.fixture
def tripay():
    return FakeTripay()


@pytest.fixture
def app_factory(tripay):
    def factory(settings: Settings):
        gateway = TripayClient(settings, transport=httpx.MockTransport(tripay))
        return create_app(settings, gateway=gateway)
    return factory


@pytest.fixture
def app(app_factory, settings):
    return app_factory(settings)


@pytest.fixture
async def client(app):
    """Create test client."""
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac
