"""
Payment orchestration.

Maps the five payment operations onto the provider adapters and turns every
outcome into the uniform envelope {success, message, data?, error?}. Adapter
exceptions never escape from here.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional

import structlog
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from payment_api.errors import PaymentError
from payment_api.psp import PaymentStatus, PSPDispatcher
from payment_api.psp.phonepe_adapter import LiveFailure, Simulated
from payment_api.schemas import PayPalCaptureRequest, PayPalInitiateRequest, PhonePeInitiateRequest

logger = structlog.get_logger(__name__)


@dataclass
class Envelope:
    status_code: int
    body: Dict[str, Any]

    def to_response(self) -> JSONResponse:
        return JSONResponse(status_code=self.status_code, content=jsonable_encoder(self.body))


def success(message: str, status_code: int = 200, **fields) -> Envelope:
    return Envelope(status_code, {"success": True, "message": message, **fields})


def failure(exc: PaymentError, prefix: Optional[str] = None) -> Envelope:
    # Validation and lookup errors speak for themselves; provider-side ones get
    # the operation prefix, with the provider's text kept verbatim in `error`.
    if prefix and exc.status_code >= 500:
        message = f"{prefix}: {exc.message}"
    else:
        message = exc.message
    return Envelope(exc.status_code, {"success": False, "message": message, "error": exc.to_error()})


def unexpected(exc: Exception, message: str) -> Envelope:
    return Envelope(500, {"success": False, "message": message, "error": {"type": "internal_error", "message": str(exc)}})


class PaymentService:
    def __init__(self, dispatcher: PSPDispatcher):
        self.phonepe = dispatcher.phonepe
        self.paypal = dispatcher.paypal

    async def initiate_phonepe(self, request: PhonePeInitiateRequest) -> Envelope:
        try:
            decision = await self.phonepe.initiate(request)
        except PaymentError as exc:
            return failure(exc, "Payment initiation failed")
        except Exception as exc:
            logger.exception("phonepe_initiate_crashed")
            return unexpected(exc, "Payment initiation failed")

        if isinstance(decision, LiveFailure):
            env = failure(decision.error, "Payment initiation failed")
            env.body["merchantTransactionId"] = decision.transaction_id
            return env

        env = success(
            "Payment initiated successfully",
            redirectUrl=decision.result.redirect_url,
            merchantTransactionId=decision.result.transaction_id,
        )
        if isinstance(decision, Simulated):
            env.body["mock"] = True
            env.body["mockReason"] = decision.reason.message
        return env

    async def phonepe_callback(self, transaction_id: Optional[str], status: Optional[str]) -> Envelope:
        try:
            await self.phonepe.callback(transaction_id, status)
        except Exception:
            # The provider only needs an acknowledgement.
            logger.exception("phonepe_callback_crashed", transaction_id=transaction_id)
        return success("Callback processed")

    async def verify_phonepe(self, transaction_id: str) -> Envelope:
        try:
            result = await self.phonepe.verify(transaction_id)
        except PaymentError as exc:
            return failure(exc, "Verification failed")
        except Exception as exc:
            logger.exception("phonepe_verify_crashed", transaction_id=transaction_id)
            return unexpected(exc, "Verification failed")

        body: Dict[str, Any] = {
            "success": result.status != PaymentStatus.FAILED,
            "message": result.message,
            "status": result.status.value,
            "merchantTransactionId": result.transaction_id,
            "data": result.data,
        }
        if result.simulated:
            body["mock"] = True
        return Envelope(200, body)

    async def initiate_paypal(self, request: PayPalInitiateRequest) -> Envelope:
        try:
            order = await self.paypal.initiate(request)
        except PaymentError as exc:
            return failure(exc, "PayPal payment failed")
        except Exception as exc:
            logger.exception("paypal_initiate_crashed")
            return unexpected(exc, "PayPal payment failed")
        return success("PayPal order created", orderId=order.order_id, redirectUrl=order.redirect_url)

    async def capture_paypal(self, request: PayPalCaptureRequest) -> Envelope:
        try:
            data = await self.paypal.capture(request.order_id)
        except PaymentError as exc:
            return failure(exc, "Capture failed")
        except Exception as exc:
            logger.exception("paypal_capture_crashed", order_id=request.order_id)
            return unexpected(exc, "Capture failed")
        return success("Payment captured", data=data)
