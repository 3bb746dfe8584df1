from fastapi import Request

from .services.payment_service import PaymentService


def get_payment_service(request: Request) -> PaymentService:
    """The orchestrator built by create_app()."""
    return request.app.state.payment_service
