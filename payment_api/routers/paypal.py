"""
PayPal payment endpoints: order creation and capture.
"""
from fastapi import APIRouter, Depends

from payment_api.deps import get_payment_service
from payment_api.schemas import PayPalCaptureRequest, PayPalInitiateRequest
from payment_api.services.payment_service import PaymentService

router = APIRouter(tags=["PayPal"])


@router.post("/initiate-paypal")
async def initiate_paypal(body: PayPalInitiateRequest, service: PaymentService = Depends(get_payment_service)):
    return (await service.initiate_paypal(body)).to_response()


@router.post("/capture-paypal")
async def capture_paypal(body: PayPalCaptureRequest, service: PaymentService = Depends(get_payment_service)):
    return (await service.capture_paypal(body)).to_response()
