"""PhonePe PSP Adapter Implementation."""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union
from urllib.parse import quote, urlencode

import httpx
import structlog

from payment_api.errors import ConfigurationError, NetworkError, NotFound, PaymentError
from payment_api.ledger import (
    Customer,
    PlanSelection,
    TransactionRecord,
    TransactionStatus,
    TransactionStore,
    utcnow,
)
from payment_api.schemas import PhonePeInitiateRequest
from payment_api.services.validation import (
    format_minor_units,
    generate_transaction_id,
    require,
    to_minor_units,
    validate_phone,
)
from .adapter import PaymentStatus, PSPAdapter, PSPProvider
from .phonepe_protocols import PayRequest, PayResponse, PhonePeProtocol

logger = structlog.get_logger(__name__)

SUCCESS_CODES = {"PAYMENT_SUCCESS"}
SUCCESS_STATES = {"COMPLETED"}
PENDING_CODES = {"PAYMENT_PENDING"}
PENDING_STATES = {"PENDING", "INITIATED"}

# Live failures that may be answered with a simulated success when fallback is on.
FALLBACK_ERRORS = (NetworkError, ConfigurationError)


@dataclass(frozen=True)
class InitiationResult:
    transaction_id: str
    redirect_url: str
    provider_order_id: str


@dataclass(frozen=True)
class LiveSuccess:
    result: InitiationResult


@dataclass(frozen=True)
class LiveFailure:
    transaction_id: str
    error: PaymentError


@dataclass(frozen=True)
class Simulated:
    result: InitiationResult
    reason: PaymentError


InitiationOutcome = Union[LiveSuccess, LiveFailure, Simulated]


@dataclass(frozen=True)
class VerificationResult:
    transaction_id: str
    status: PaymentStatus
    message: str
    data: Dict[str, Any] = field(default_factory=dict)
    simulated: bool = False


def decide_initiation(
    transaction_id: str,
    outcome: Union[PayResponse, PaymentError],
    fallback_enabled: bool,
    simulated_redirect_url: str,
) -> InitiationOutcome:
    """
    Turn the live pay call outcome into a tagged result.

    Simulated is only chosen when fallback is enabled and the live call never
    got an answer (or could not be signed); provider rejections stay failures.
    """
    if isinstance(outcome, PayResponse):
        return LiveSuccess(InitiationResult(transaction_id, outcome.redirect_url, outcome.provider_order_id))
    if fallback_enabled and isinstance(outcome, FALLBACK_ERRORS):
        return Simulated(
            InitiationResult(transaction_id, simulated_redirect_url, f"MOCK_{transaction_id}"),
            reason=outcome,
        )
    return LiveFailure(transaction_id, outcome)


def _observed(raw: Dict[str, Any], key: str) -> list:
    data = raw.get("data") if isinstance(raw.get("data"), dict) else {}
    values = [raw.get(key), data.get(key)]
    if key == "state":
        for container in (raw, data):
            details = container.get("paymentDetails")
            if isinstance(details, list) and details and isinstance(details[0], dict):
                values.append(details[0].get("state"))
    return [v.upper() for v in values if isinstance(v, str)]


def classify_status(raw: Dict[str, Any]) -> Tuple[PaymentStatus, str]:
    """
    Classify a raw status payload from either protocol spelling.

    Precedence: any success code/state, then pending/initiated, then FAILED.
    A success signal anywhere wins over conflicting ones.
    """
    states = _observed(raw, "state")
    codes = _observed(raw, "code")

    if SUCCESS_CODES.intersection(codes) or SUCCESS_STATES.intersection(states):
        return PaymentStatus.SUCCESS, "Payment successful"
    if PENDING_CODES.intersection(codes) or PENDING_STATES.intersection(states):
        return PaymentStatus.PENDING, "Payment is still processing"

    reason = raw.get("message") or (states[0] if states else None) or (codes[0] if codes else None) or "unknown state"
    return PaymentStatus.FAILED, f"Payment failed: {reason}"


class PhonePeAdapter(PSPAdapter):
    """
    PhonePe aggregator adapter: initiate, callback and verify.

    The wire protocol (checksum-signed v1 or standard checkout v2) is the
    injected `protocol`; ledger bookkeeping is the same for both.
    """

    provider = PSPProvider.PHONEPE

    def __init__(
        self,
        store: TransactionStore,
        protocol: PhonePeProtocol,
        *,
        base_url: str,
        timeout: float,
        frontend_url: str,
        callback_url: Optional[str] = None,
        transaction_prefix: str = "CMS",
        brand_name: str = "",
        fallback_enabled: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(base_url, timeout, transport=transport)
        self.store = store
        self.protocol = protocol
        self.frontend_url = frontend_url.rstrip("/")
        self.callback_url = callback_url or f"{self.frontend_url}/api/payment/phonepe-callback"
        self.transaction_prefix = transaction_prefix
        self.brand_name = brand_name
        self.fallback_enabled = fallback_enabled

    def status_page_url(self, transaction_id: str, amount_minor_units: int, customer_name: str) -> str:
        params = {
            "merchantTransactionId": transaction_id,
            "status": "success",
            "amount": format_minor_units(amount_minor_units),
            "method": "phonepe",
            "customer": customer_name,
        }
        return f"{self.frontend_url}/payment-status?{urlencode(params, quote_via=quote)}"

    async def initiate(self, request: PhonePeInitiateRequest) -> InitiationOutcome:
        for value in (request.amount, request.customer_phone, request.customer_email, request.customer_name):
            require(value)
        phone = validate_phone(request.customer_phone)
        amount_minor_units = to_minor_units(request.amount)

        transaction_id = generate_transaction_id(self.transaction_prefix)
        plans = PlanSelection(request.ecomm_plan, request.hosting_plan)
        record = TransactionRecord(
            transaction_id=transaction_id,
            amount_minor_units=amount_minor_units,
            customer=Customer(request.customer_name, request.customer_email, phone),
            plan_selection=plans,
        )
        self.store.set(record)

        status_page = self.status_page_url(transaction_id, amount_minor_units, request.customer_name)
        pay_request = PayRequest(
            transaction_id=transaction_id,
            merchant_user_id=f"MUID_{time.time_ns() // 1_000_000}",
            amount_minor_units=amount_minor_units,
            phone=phone,
            redirect_url=status_page,
            callback_url=self.callback_url,
            description=plans.describe(self.brand_name),
        )

        try:
            outcome: Union[PayResponse, PaymentError] = await self.protocol.pay(self._request, pay_request)
        except PaymentError as exc:
            outcome = exc

        decision = decide_initiation(transaction_id, outcome, self.fallback_enabled, status_page)

        if isinstance(decision, LiveFailure):
            self.store.set(record.evolve(status=TransactionStatus.FAILED))
            logger.warning(
                "phonepe_initiate_failed",
                transaction_id=transaction_id,
                protocol=self.protocol.name,
                error_type=decision.error.kind,
                error=decision.error.message,
            )
        else:
            self.store.set(record.evolve(
                status=TransactionStatus.INITIATED,
                provider_order_id=decision.result.provider_order_id,
                redirect_url=decision.result.redirect_url,
                simulated=isinstance(decision, Simulated),
            ))
            logger.info(
                "phonepe_initiated",
                transaction_id=transaction_id,
                protocol=self.protocol.name,
                amount_minor_units=amount_minor_units,
                simulated=isinstance(decision, Simulated),
            )
        return decision

    async def callback(self, transaction_id: Optional[str], status: Optional[str]) -> Optional[TransactionRecord]:
        """Best-effort status update from the provider. Unknown ids are ignored."""
        record = self.store.get(transaction_id) if transaction_id else None
        if record is None:
            logger.info("phonepe_callback_ignored", transaction_id=transaction_id)
            return None
        new_status = TransactionStatus.parse(status) if status else TransactionStatus.COMPLETED
        updated = record.evolve(status=new_status)
        self.store.set(updated)
        logger.info("phonepe_callback_applied", transaction_id=transaction_id, status=new_status.value)
        return updated

    def _simulated_status(self, record: TransactionRecord) -> Dict[str, Any]:
        return {
            "merchantId": getattr(self.protocol, "merchant_id", None),
            "merchantTransactionId": record.transaction_id,
            "transactionId": f"T{time.time_ns() // 1_000_000}",
            "amount": record.amount_minor_units,
            "state": "COMPLETED",
            "responseCode": "SUCCESS",
            "code": "PAYMENT_SUCCESS",
            "paymentInstrument": {"type": "UPI"},
        }

    async def verify(self, transaction_id: str) -> VerificationResult:
        """
        Query the provider for the transaction and record the classified status.

        Provider or network errors are reported as FAILED without touching the
        stored status, and a record already COMPLETED, SUCCESS or FAILED keeps
        its status. The record is re-written from the copy read before the
        remote call, so a callback landing meanwhile is overwritten.
        """
        record = self.store.get(transaction_id)
        if record is None:
            raise NotFound(f"Transaction {transaction_id} not found")
        if not record.provider_order_id:
            raise NotFound(f"Provider order id missing for transaction {transaction_id}")

        if record.simulated:
            raw = self._simulated_status(record)
        else:
            try:
                raw = await self.protocol.status(self._request, transaction_id)
            except PaymentError as exc:
                logger.warning(
                    "phonepe_verify_failed",
                    transaction_id=transaction_id,
                    error_type=exc.kind,
                    error=exc.message,
                )
                return VerificationResult(
                    transaction_id,
                    PaymentStatus.FAILED,
                    f"Verification failed: {exc.message}",
                    data={"error": exc.to_error()},
                )

        status, message = classify_status(raw)
        # A finished payment keeps its stored status; later polls are only reported.
        stored_status = record.status if record.status.is_terminal else TransactionStatus(status.value)
        self.store.set(record.evolve(
            status=stored_status,
            verified_at=utcnow(),
            raw_provider_payload=raw,
        ))
        logger.info(
            "phonepe_verified",
            transaction_id=transaction_id,
            status=status.value,
            stored_status=stored_status.value,
            simulated=record.simulated,
        )
        return VerificationResult(transaction_id, status, message, data=raw, simulated=record.simulated)
