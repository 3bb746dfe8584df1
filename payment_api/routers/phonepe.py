"""
PhonePe payment endpoints: initiate, provider callback, and verification.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from structlog.contextvars import bind_contextvars

from payment_api.deps import get_payment_service
from payment_api.schemas import PhonePeInitiateRequest
from payment_api.services.payment_service import PaymentService

router = APIRouter(tags=["PhonePe"])


@router.post("/initiate-phonepe")
async def initiate_phonepe(body: PhonePeInitiateRequest, service: PaymentService = Depends(get_payment_service)):
    return (await service.initiate_phonepe(body)).to_response()


@router.post("/phonepe-callback")
async def phonepe_callback(
    merchant_transaction_id: Optional[str] = Query(None, alias="merchantTransactionId"),
    status: Optional[str] = Query(None),
    service: PaymentService = Depends(get_payment_service),
):
    """Unauthenticated provider notification; always acknowledged."""
    return (await service.phonepe_callback(merchant_transaction_id, status)).to_response()


@router.get("/verify-phonepe/{merchant_transaction_id}")
async def verify_phonepe(merchant_transaction_id: str, service: PaymentService = Depends(get_payment_service)):
    bind_contextvars(merchant_transaction_id=merchant_transaction_id)
    return (await service.verify_phonepe(merchant_transaction_id)).to_response()
