"""PSP Adapter Dispatcher - Builds the adapters from settings."""
from typing import Optional

import httpx

from payment_api.config import Settings
from payment_api.ledger import TransactionStore
from .paypal_adapter import PayPalAdapter
from .phonepe_adapter import PhonePeAdapter
from .phonepe_protocols import ChecksumProtocol, PhonePeProtocol, StandardCheckoutProtocol


def build_phonepe_protocol(settings: Settings) -> PhonePeProtocol:
    """Pick the PhonePe wire protocol named by PHONEPE_PROTOCOL."""
    if settings.PHONEPE_PROTOCOL == "standard":
        return StandardCheckoutProtocol(
            client_id=settings.PHONEPE_CLIENT_ID,
            client_secret=settings.PHONEPE_CLIENT_SECRET,
            client_version=settings.PHONEPE_CLIENT_VERSION,
            auth_url=settings.PHONEPE_AUTH_URL,
        )
    return ChecksumProtocol(
        merchant_id=settings.PHONEPE_MERCHANT_ID,
        merchant_key=settings.PHONEPE_MERCHANT_KEY,
        salt_index=settings.PHONEPE_SALT_INDEX,
    )


class PSPDispatcher:
    """
    Holds one adapter per provider for the lifetime of the app.
    Created once by the app factory; adapters share the injected store.
    """

    def __init__(
        self,
        settings: Settings,
        store: TransactionStore,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.phonepe = PhonePeAdapter(
            store,
            build_phonepe_protocol(settings),
            base_url=settings.PHONEPE_BASE_URL,
            timeout=settings.PHONEPE_TIMEOUT_SECONDS,
            frontend_url=settings.frontend_base_url,
            callback_url=settings.PHONEPE_CALLBACK_URL,
            transaction_prefix=settings.TRANSACTION_PREFIX,
            brand_name=settings.BRAND_NAME,
            fallback_enabled=settings.PHONEPE_MOCK_FALLBACK,
            transport=transport,
        )
        self.paypal = PayPalAdapter(
            settings.PAYPAL_CLIENT_ID,
            settings.PAYPAL_SECRET_KEY,
            base_url=settings.PAYPAL_BASE_URL,
            timeout=settings.PAYPAL_TIMEOUT_SECONDS,
            frontend_url=settings.frontend_base_url,
            currency=settings.PAYPAL_CURRENCY,
            brand_name=settings.BRAND_NAME,
            transport=transport,
        )
