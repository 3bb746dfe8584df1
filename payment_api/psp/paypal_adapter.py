"""PayPal PSP Adapter Implementation."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
import structlog

from payment_api.errors import ConfigurationError, ProtocolError
from payment_api.ledger import PlanSelection
from payment_api.schemas import PayPalInitiateRequest
from payment_api.services.validation import format_minor_units, require, to_minor_units, validate_order_id
from .adapter import PSPAdapter, PSPProvider

logger = structlog.get_logger(__name__)

TOKEN_PATH = "/v1/oauth2/token"
ORDERS_PATH = "/v2/checkout/orders"


@dataclass(frozen=True)
class PayPalOrder:
    order_id: str
    redirect_url: str
    raw: Dict[str, Any]


class PayPalAdapter(PSPAdapter):
    """
    PayPal processor adapter.

    Stateless: every call (including capture) performs its own
    client-credentials token exchange; tokens are never cached.
    """

    provider = PSPProvider.PAYPAL

    def __init__(
        self,
        client_id: Optional[str],
        secret_key: Optional[str],
        *,
        base_url: str,
        timeout: float,
        frontend_url: str,
        currency: str = "USD",
        brand_name: str = "",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(base_url, timeout, transport=transport)
        self.client_id = client_id
        self.secret_key = secret_key
        self.frontend_url = frontend_url.rstrip("/")
        self.currency = currency
        self.brand_name = brand_name

    async def get_access_token(self) -> str:
        if not self.client_id or not self.secret_key:
            raise ConfigurationError("PayPal is not configured")
        body = await self._request(
            "POST",
            TOKEN_PATH,
            data={"grant_type": "client_credentials"},
            auth=(self.client_id, self.secret_key),
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        token = body.get("access_token")
        if not token:
            raise ProtocolError("PayPal token response is missing access_token")
        return token

    def build_order(self, amount_minor_units: int, plans: PlanSelection) -> Dict[str, Any]:
        return {
            "intent": "CAPTURE",
            "purchase_units": [{
                "amount": {
                    "currency_code": self.currency,
                    "value": format_minor_units(amount_minor_units),
                },
                "description": plans.describe(self.brand_name),
            }],
            "application_context": {
                "return_url": f"{self.frontend_url}/payment-success",
                "cancel_url": f"{self.frontend_url}/payment-cancel",
            },
        }

    async def initiate(self, request: PayPalInitiateRequest) -> PayPalOrder:
        require(request.amount)
        require(request.customer_email)
        amount_minor_units = to_minor_units(request.amount)
        plans = PlanSelection(request.ecomm_plan, request.hosting_plan)

        token = await self.get_access_token()
        body = await self._request(
            "POST",
            ORDERS_PATH,
            json=self.build_order(amount_minor_units, plans),
            headers={"Content-Type": "application/json", "Authorization": f"Bearer {token}"},
        )

        order_id = body.get("id")
        approve = next(
            (link.get("href") for link in body.get("links") or [] if isinstance(link, dict) and link.get("rel") == "approve"),
            None,
        )
        if not order_id or not approve:
            raise ProtocolError("PayPal order response has no approve link", details=body)

        logger.info("paypal_order_created", order_id=order_id, amount_minor_units=amount_minor_units)
        return PayPalOrder(order_id=order_id, redirect_url=approve, raw=body)

    async def capture(self, order_id: Optional[str]) -> Dict[str, Any]:
        """Capture an approved order and return PayPal's payload unmodified."""
        order_id = validate_order_id(order_id)
        token = await self.get_access_token()
        body = await self._request(
            "POST",
            f"{ORDERS_PATH}/{order_id}/capture",
            json={},
            headers={"Content-Type": "application/json", "Authorization": f"Bearer {token}"},
        )
        logger.info("paypal_order_captured", order_id=order_id, status=body.get("status"))
        return body
