import base64
import hashlib
import json
from decimal import Decimal
from urllib.parse import parse_qs, urlparse

import anyio
import httpx
import pytest

from conftest import ProviderStub, json_body, make_settings, phonepe_pay_ok
from payment_api.errors import NetworkError, NotFound, ProtocolError, ProviderError, ValidationError
from payment_api.ledger import Customer, TransactionRecord, TransactionStatus
from payment_api.psp import PaymentStatus, PSPDispatcher
from payment_api.psp.phonepe_adapter import LiveFailure, LiveSuccess, Simulated
from payment_api.schemas import PhonePeInitiateRequest


def initiate_request(**overrides):
    body = {
        "amount": 20,
        "customerName": "A",
        "customerEmail": "a@b.com",
        "customerPhone": "9876543210",
        "ecommPlan": "Starter",
        "hostingPlan": "Basic",
    }
    body.update(overrides)
    return PhonePeInitiateRequest(**body)


def phonepe(stub, store, **overrides):
    return PSPDispatcher(make_settings(**overrides), store, transport=stub.transport).phonepe


def test_initiate_signs_pay_request(store):
    stub = ProviderStub({"/pg/v1/pay": phonepe_pay_ok()})
    adapter = phonepe(stub, store)

    decision = anyio.run(adapter.initiate, initiate_request())

    assert isinstance(decision, LiveSuccess)
    assert decision.result.redirect_url == "https://mercury.phonepe.test/pay/abc"

    (call,) = stub.calls("/pg/v1/pay")
    assert str(call.url) == "https://phonepe.test/apis/pg-sandbox/pg/v1/pay"
    payload_b64 = json_body(call)["request"]
    expected = hashlib.sha256((payload_b64 + "/pg/v1/pay" + "salt-key-123").encode()).hexdigest() + "###1"
    assert call.headers["X-VERIFY"] == expected

    payload = json.loads(base64.b64decode(payload_b64))
    assert payload["merchantId"] == "MERCHANT1"
    assert payload["merchantTransactionId"] == decision.result.transaction_id
    assert payload["amount"] == 2000
    assert payload["mobileNumber"] == "9876543210"
    assert payload["redirectMode"] == "REDIRECT"
    assert payload["paymentInstrument"] == {"type": "PAY_PAGE"}
    assert payload["callbackUrl"] == "https://shop.example.com/api/payment/phonepe-callback"
    assert payload["merchantUserId"].startswith("MUID_")

    redirect = urlparse(payload["redirectUrl"])
    assert redirect.path == "/payment-status"
    assert parse_qs(redirect.query)["merchantTransactionId"] == [decision.result.transaction_id]


def test_initiate_records_initiated_transaction(store):
    stub = ProviderStub({"/pg/v1/pay": phonepe_pay_ok()})
    decision = anyio.run(phonepe(stub, store).initiate, initiate_request(amount=Decimal("19.99")))

    record = store.get(decision.result.transaction_id)
    assert record.status == TransactionStatus.INITIATED
    assert record.amount_minor_units == 1999
    assert record.provider_order_id
    assert record.simulated is False
    assert record.plan_selection.ecomm_plan == "Starter"


@pytest.mark.parametrize("overrides", [
    {"amount": 0},
    {"amount": -5},
    {"customerPhone": "123456789"},
    {"customerPhone": "12345abcde"},
    {"customerEmail": None},
    {"customerName": ""},
])
def test_invalid_input_never_reaches_provider(store, overrides):
    stub = ProviderStub({"/pg/v1/pay": phonepe_pay_ok()})
    with pytest.raises(ValidationError):
        anyio.run(phonepe(stub, store).initiate, initiate_request(**overrides))
    assert stub.requests == []
    assert len(store) == 0


def test_provider_failure_message_is_passed_through(store):
    stub = ProviderStub({"/pg/v1/pay": {"success": False, "code": "BAD_REQUEST", "message": "Please check the inputs"}})
    decision = anyio.run(phonepe(stub, store).initiate, initiate_request())

    assert isinstance(decision, LiveFailure)
    assert isinstance(decision.error, ProviderError)
    assert decision.error.message == "Please check the inputs"
    assert store.get(decision.transaction_id).status == TransactionStatus.FAILED


def test_http_error_is_provider_error(store):
    stub = ProviderStub({"/pg/v1/pay": httpx.Response(401, json={"success": False, "code": "401", "message": "Key not found"})})
    decision = anyio.run(phonepe(stub, store).initiate, initiate_request())

    assert isinstance(decision.error, ProviderError)
    assert decision.error.provider_status == 401
    assert decision.error.message == "Key not found"


def test_missing_redirect_is_protocol_error(store):
    stub = ProviderStub({"/pg/v1/pay": {"success": True, "data": {}}})
    decision = anyio.run(phonepe(stub, store).initiate, initiate_request())
    assert isinstance(decision.error, ProtocolError)


def test_network_failure_without_fallback(store):
    stub = ProviderStub({"/pg/v1/pay": httpx.ConnectError("connection refused")})
    decision = anyio.run(phonepe(stub, store).initiate, initiate_request())

    assert isinstance(decision, LiveFailure)
    assert isinstance(decision.error, NetworkError)


def test_timeout_is_network_failure(store):
    stub = ProviderStub({"/pg/v1/pay": httpx.ReadTimeout("timed out")})
    decision = anyio.run(phonepe(stub, store).initiate, initiate_request())
    assert isinstance(decision.error, NetworkError)
    assert "timed out" in decision.error.message


def test_network_failure_with_fallback_is_simulated(store):
    stub = ProviderStub({"/pg/v1/pay": httpx.ConnectError("connection refused")})
    adapter = phonepe(stub, store, PHONEPE_MOCK_FALLBACK=True)

    decision = anyio.run(adapter.initiate, initiate_request())

    assert isinstance(decision, Simulated)
    record = store.get(decision.result.transaction_id)
    assert record.simulated is True
    assert record.status == TransactionStatus.INITIATED
    assert decision.result.redirect_url.startswith("https://shop.example.com/payment-status?")

    result = anyio.run(adapter.verify, decision.result.transaction_id)
    assert result.status == PaymentStatus.SUCCESS
    assert result.simulated is True
    assert result.data["amount"] == 2000
    # simulated verification never calls the provider
    assert stub.calls("/status/MERCHANT1/" + decision.result.transaction_id) == []


def _seed(store, txn_id="CMS_1_ABCDEF", provider_order_id="OMO1", status=TransactionStatus.INITIATED):
    record = TransactionRecord(
        transaction_id=txn_id,
        amount_minor_units=2000,
        customer=Customer("A", "a@b.com", "9876543210"),
        status=status,
        provider_order_id=provider_order_id,
    )
    store.set(record)
    return record


def test_verify_signs_status_request(store):
    _seed(store)
    stub = ProviderStub({"/pg/v1/status/MERCHANT1/CMS_1_ABCDEF": {
        "success": True, "code": "PAYMENT_SUCCESS", "data": {"state": "COMPLETED", "amount": 2000},
    }})

    result = anyio.run(phonepe(stub, store).verify, "CMS_1_ABCDEF")

    assert result.status == PaymentStatus.SUCCESS
    (call,) = stub.requests
    path = "/pg/v1/status/MERCHANT1/CMS_1_ABCDEF"
    assert call.method == "GET"
    assert call.headers["X-VERIFY"] == hashlib.sha256((path + "salt-key-123").encode()).hexdigest() + "###1"
    assert call.headers["X-MERCHANT-ID"] == "MERCHANT1"

    record = store.get("CMS_1_ABCDEF")
    assert record.status == TransactionStatus.SUCCESS
    assert record.verified_at is not None
    assert record.raw_provider_payload["code"] == "PAYMENT_SUCCESS"


def test_verify_pending(store):
    _seed(store)
    stub = ProviderStub({"/CMS_1_ABCDEF": {"success": True, "code": "PAYMENT_PENDING", "data": {"state": "PENDING"}}})
    result = anyio.run(phonepe(stub, store).verify, "CMS_1_ABCDEF")
    assert result.status == PaymentStatus.PENDING
    assert store.get("CMS_1_ABCDEF").status == TransactionStatus.PENDING


def test_verify_provider_error_collapses_to_failed(store):
    _seed(store)
    stub = ProviderStub({"/CMS_1_ABCDEF": httpx.Response(500, json={"message": "Internal error"})})

    result = anyio.run(phonepe(stub, store).verify, "CMS_1_ABCDEF")

    assert result.status == PaymentStatus.FAILED
    assert "Internal error" in result.message
    # a failed poll leaves the stored status alone
    assert store.get("CMS_1_ABCDEF").status == TransactionStatus.INITIATED


def test_verify_keeps_finished_status(store):
    _seed(store, status=TransactionStatus.SUCCESS)
    stub = ProviderStub({"/CMS_1_ABCDEF": {"success": True, "code": "PAYMENT_PENDING", "data": {"state": "PENDING"}}})

    result = anyio.run(phonepe(stub, store).verify, "CMS_1_ABCDEF")

    assert result.status == PaymentStatus.PENDING
    record = store.get("CMS_1_ABCDEF")
    assert record.status == TransactionStatus.SUCCESS
    assert record.verified_at is not None
    assert record.raw_provider_payload["code"] == "PAYMENT_PENDING"


def test_verify_failed_payment_is_not_reopened(store):
    _seed(store, status=TransactionStatus.FAILED)
    stub = ProviderStub({"/CMS_1_ABCDEF": {"success": True, "code": "PAYMENT_SUCCESS", "data": {"state": "COMPLETED"}}})
    anyio.run(phonepe(stub, store).verify, "CMS_1_ABCDEF")
    assert store.get("CMS_1_ABCDEF").status == TransactionStatus.FAILED


def test_verify_undecodable_response_collapses_to_failed(store):
    _seed(store)
    stub = ProviderStub({"/CMS_1_ABCDEF": httpx.DecodingError("bad gzip")})

    result = anyio.run(phonepe(stub, store).verify, "CMS_1_ABCDEF")

    assert result.status == PaymentStatus.FAILED
    assert result.data["error"]["type"] == "protocol_error"
    assert store.get("CMS_1_ABCDEF").status == TransactionStatus.INITIATED


def test_redirect_loop_is_network_failure(store):
    stub = ProviderStub({"/pg/v1/pay": httpx.TooManyRedirects("Exceeded maximum allowed redirects.")})
    decision = anyio.run(phonepe(stub, store).initiate, initiate_request())
    assert isinstance(decision, LiveFailure)
    assert isinstance(decision.error, NetworkError)


def test_verify_unknown_transaction(store):
    stub = ProviderStub()
    with pytest.raises(NotFound):
        anyio.run(phonepe(stub, store).verify, "CMS_404")
    assert stub.requests == []


def test_verify_without_provider_order_id(store):
    _seed(store, provider_order_id=None)
    stub = ProviderStub()
    with pytest.raises(NotFound, match="order id missing"):
        anyio.run(phonepe(stub, store).verify, "CMS_1_ABCDEF")


def test_callback_updates_known_transaction(store):
    _seed(store)
    adapter = phonepe(ProviderStub(), store)

    updated = anyio.run(adapter.callback, "CMS_1_ABCDEF", "failed")
    assert updated.status == TransactionStatus.FAILED

    updated = anyio.run(adapter.callback, "CMS_1_ABCDEF", None)
    assert updated.status == TransactionStatus.COMPLETED
    assert store.get("CMS_1_ABCDEF").updated_at is not None


def test_callback_unknown_transaction_is_noop(store):
    adapter = phonepe(ProviderStub(), store)
    assert anyio.run(adapter.callback, "CMS_UNKNOWN", "COMPLETED") is None
    assert anyio.run(adapter.callback, None, None) is None
    assert len(store) == 0


class TestStandardCheckout:
    def routes(self, status=None):
        return {
            "/oauth/token": {"access_token": "tok-1", "token_type": "O-Bearer", "expires_at": 1700000000},
            "/checkout/v2/pay": {"orderId": "OMO123", "state": "PENDING", "redirectUrl": "https://mercury.phonepe.test/checkout"},
            "/status": status or {"orderId": "OMO123", "state": "PENDING", "paymentDetails": [{"state": "COMPLETED"}]},
        }

    def test_initiate_and_verify(self, store):
        stub = ProviderStub(self.routes())
        adapter = phonepe(stub, store, PHONEPE_PROTOCOL="standard")

        decision = anyio.run(adapter.initiate, initiate_request())

        assert isinstance(decision, LiveSuccess)
        assert decision.result.provider_order_id == "OMO123"
        (token_call,) = stub.calls("/oauth/token")
        form = parse_qs(token_call.content.decode())
        assert form["grant_type"] == ["client_credentials"]
        assert form["client_id"] == ["client-1"]
        assert form["client_version"] == ["1"]

        (pay_call,) = stub.calls("/checkout/v2/pay")
        assert pay_call.headers["Authorization"] == "O-Bearer tok-1"
        body = json_body(pay_call)
        assert body["merchantOrderId"] == decision.result.transaction_id
        assert body["amount"] == 2000
        assert body["paymentFlow"]["type"] == "PG_CHECKOUT"
        assert body["paymentFlow"]["message"] == "CraftMyStore - Starter + Basic"

        result = anyio.run(adapter.verify, decision.result.transaction_id)
        assert result.status == PaymentStatus.SUCCESS
        (status_call,) = stub.calls("/status")
        assert status_call.url.path.endswith(f"/checkout/v2/order/{decision.result.transaction_id}/status")

    def test_missing_order_id_is_protocol_error(self, store):
        routes = self.routes()
        routes["/checkout/v2/pay"] = {"state": "PENDING", "redirectUrl": "https://x"}
        adapter = phonepe(ProviderStub(routes), store, PHONEPE_PROTOCOL="standard")
        decision = anyio.run(adapter.initiate, initiate_request())
        assert isinstance(decision.error, ProtocolError)
