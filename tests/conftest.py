import json
from typing import Dict, List

import httpx
import pytest

from payment_api.config import Settings
from payment_api.ledger import InMemoryTransactionStore


class ProviderStub:
    """
    httpx MockTransport that routes by URL path and records every request.

    A route value may be an httpx.Response, a dict (sent as 200 JSON), an
    exception instance (raised as a transport failure), or a callable taking
    the request.
    """

    def __init__(self, routes: Dict[str, object] = None):
        self.routes = dict(routes or {})
        self.requests: List[httpx.Request] = []
        self.transport = httpx.MockTransport(self.handle)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for path, route in self.routes.items():
            if request.url.path.endswith(path):
                if isinstance(route, Exception):
                    raise route
                if isinstance(route, httpx.Response):
                    return httpx.Response(route.status_code, headers=route.headers, content=route.content)
                if callable(route):
                    return route(request)
                return httpx.Response(200, json=route)
        return httpx.Response(404, json={"message": f"no stub for {request.url.path}"})

    def calls(self, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith(path)]


def json_body(request: httpx.Request) -> dict:
    return json.loads(request.content.decode("utf-8"))


def phonepe_pay_ok(url: str = "https://mercury.phonepe.test/pay/abc") -> dict:
    return {
        "success": True,
        "code": "PAYMENT_INITIATED",
        "message": "Payment initiated",
        "data": {
            "merchantId": "MERCHANT1",
            "merchantTransactionId": "ignored",
            "instrumentResponse": {"type": "PAY_PAGE", "redirectInfo": {"url": url, "method": "GET"}},
        },
    }


def make_settings(**overrides) -> Settings:
    values = dict(
        ENVIRONMENT="test",
        FRONTEND_URL="https://shop.example.com, https://admin.example.com",
        PHONEPE_BASE_URL="https://phonepe.test/apis/pg-sandbox",
        PHONEPE_MERCHANT_ID="MERCHANT1",
        PHONEPE_MERCHANT_KEY="salt-key-123",
        PHONEPE_SALT_INDEX="1",
        PHONEPE_AUTH_URL="https://phonepe.test/apis/identity-manager/v1/oauth/token",
        PHONEPE_CLIENT_ID="client-1",
        PHONEPE_CLIENT_SECRET="client-secret",
        PHONEPE_MOCK_FALLBACK=False,
        PAYPAL_BASE_URL="https://paypal.test",
        PAYPAL_CLIENT_ID="pp-client",
        PAYPAL_SECRET_KEY="pp-secret",
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def store():
    return InMemoryTransactionStore()


@pytest.fixture
def settings():
    return make_settings()
