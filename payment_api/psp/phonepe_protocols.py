"""
PhonePe protocol spellings.

The aggregator has been integrated two ways over time:

* ``ChecksumProtocol``: the PG v1 REST API. The pay request is base64 JSON
  signed with the X-VERIFY checksum; status responses carry ``code`` and
  ``data.state``.
* ``StandardCheckoutProtocol``: the standard checkout v2 API the PhonePe SDKs
  wrap. Calls carry an ``O-Bearer`` token from a client-credentials exchange;
  status responses carry a top-level ``state`` and ``paymentDetails``.

Both are driven by PhonePeAdapter through the same two calls, ``pay`` and
``status``; classification of the raw status payload is shared.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from payment_api.errors import ConfigurationError, ProtocolError, ProviderError
from payment_api.psp.checksum import encode_payload, pay_checksum, status_checksum

PAY_PATH = "/pg/v1/pay"
STATUS_PATH = "/pg/v1/status/{merchant_id}/{transaction_id}"
CHECKOUT_PAY_PATH = "/checkout/v2/pay"
CHECKOUT_STATUS_PATH = "/checkout/v2/order/{transaction_id}/status"

Requester = Callable[..., Awaitable[Dict[str, Any]]]


@dataclass(frozen=True)
class PayRequest:
    transaction_id: str
    merchant_user_id: str
    amount_minor_units: int
    phone: str
    redirect_url: str
    callback_url: str
    description: Optional[str] = None


@dataclass(frozen=True)
class PayResponse:
    redirect_url: str
    provider_order_id: str
    raw: Dict[str, Any]


class PhonePeProtocol(ABC):
    name: str

    @abstractmethod
    async def pay(self, request: Requester, pay_request: PayRequest) -> PayResponse:
        ...

    @abstractmethod
    async def status(self, request: Requester, transaction_id: str) -> Dict[str, Any]:
        ...


class ChecksumProtocol(PhonePeProtocol):
    """PG v1: base64 payload + X-VERIFY checksum header."""

    name = "checksum"

    def __init__(self, merchant_id: Optional[str], merchant_key: Optional[str], salt_index: str):
        self.merchant_id = merchant_id
        self.merchant_key = merchant_key
        self.salt_index = salt_index

    def _credentials(self):
        if not self.merchant_id or not self.merchant_key:
            raise ConfigurationError("PhonePe is not configured")
        return self.merchant_id, self.merchant_key

    def build_payload(self, pay_request: PayRequest) -> Dict[str, Any]:
        merchant_id, _ = self._credentials()
        return {
            "merchantId": merchant_id,
            "merchantTransactionId": pay_request.transaction_id,
            "merchantUserId": pay_request.merchant_user_id,
            "amount": pay_request.amount_minor_units,
            "redirectUrl": pay_request.redirect_url,
            "redirectMode": "REDIRECT",
            "callbackUrl": pay_request.callback_url,
            "mobileNumber": pay_request.phone,
            "paymentInstrument": {"type": "PAY_PAGE"},
        }

    async def pay(self, request: Requester, pay_request: PayRequest) -> PayResponse:
        _, merchant_key = self._credentials()
        payload_b64 = encode_payload(self.build_payload(pay_request))
        headers = {
            "Content-Type": "application/json",
            "X-VERIFY": pay_checksum(payload_b64, PAY_PATH, merchant_key, self.salt_index),
            "accept": "application/json",
        }
        body = await request("POST", PAY_PATH, json={"request": payload_b64}, headers=headers)

        if body.get("success") is not True:
            raise ProviderError(body.get("message") or "Payment initiation failed", details={"code": body.get("code")})

        data = body.get("data") or {}
        try:
            redirect_url = data["instrumentResponse"]["redirectInfo"]["url"]
        except (KeyError, TypeError):
            raise ProtocolError("PhonePe response is missing the redirect URL", details=body)
        provider_order_id = data.get("transactionId") or data.get("merchantTransactionId") or pay_request.transaction_id
        return PayResponse(redirect_url=redirect_url, provider_order_id=provider_order_id, raw=body)

    async def status(self, request: Requester, transaction_id: str) -> Dict[str, Any]:
        merchant_id, merchant_key = self._credentials()
        path = STATUS_PATH.format(merchant_id=merchant_id, transaction_id=transaction_id)
        headers = {
            "Content-Type": "application/json",
            "X-VERIFY": status_checksum(path, merchant_key, self.salt_index),
            "X-MERCHANT-ID": merchant_id,
            "accept": "application/json",
        }
        return await request("GET", path, headers=headers)


class StandardCheckoutProtocol(PhonePeProtocol):
    """Checkout v2: OAuth client-credentials token + O-Bearer calls."""

    name = "standard"

    def __init__(self, client_id: Optional[str], client_secret: Optional[str], client_version: str, auth_url: str):
        self.client_id = client_id
        self.client_secret = client_secret
        self.client_version = client_version
        self.auth_url = auth_url

    async def _authorization(self, request: Requester) -> str:
        if not self.client_id or not self.client_secret:
            raise ConfigurationError("PhonePe is not configured")
        body = await request(
            "POST",
            self.auth_url,
            data={
                "client_id": self.client_id,
                "client_version": self.client_version,
                "client_secret": self.client_secret,
                "grant_type": "client_credentials",
            },
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        token = body.get("access_token")
        if not token:
            raise ProtocolError("PhonePe token response is missing access_token")
        return f"{body.get('token_type') or 'O-Bearer'} {token}"

    def build_payload(self, pay_request: PayRequest) -> Dict[str, Any]:
        return {
            "merchantOrderId": pay_request.transaction_id,
            "amount": pay_request.amount_minor_units,
            "metaInfo": {"udf1": pay_request.merchant_user_id, "udf2": pay_request.phone},
            "paymentFlow": {
                "type": "PG_CHECKOUT",
                "message": pay_request.description or "",
                "merchantUrls": {"redirectUrl": pay_request.redirect_url},
            },
        }

    async def pay(self, request: Requester, pay_request: PayRequest) -> PayResponse:
        authorization = await self._authorization(request)
        body = await request(
            "POST",
            CHECKOUT_PAY_PATH,
            json=self.build_payload(pay_request),
            headers={"Content-Type": "application/json", "Authorization": authorization},
        )
        redirect_url = body.get("redirectUrl")
        provider_order_id = body.get("orderId")
        if not redirect_url or not provider_order_id:
            raise ProtocolError("PhonePe response is missing redirectUrl or orderId", details=body)
        return PayResponse(redirect_url=redirect_url, provider_order_id=provider_order_id, raw=body)

    async def status(self, request: Requester, transaction_id: str) -> Dict[str, Any]:
        authorization = await self._authorization(request)
        return await request(
            "GET",
            CHECKOUT_STATUS_PATH.format(transaction_id=transaction_id),
            params={"details": "false"},
            headers={"Content-Type": "application/json", "Authorization": authorization},
        )
