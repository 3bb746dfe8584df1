from .adapter import PaymentStatus, PSPAdapter, PSPProvider
from .dispatcher import PSPDispatcher
from .paypal_adapter import PayPalAdapter
from .phonepe_adapter import PhonePeAdapter, classify_status, decide_initiation

__all__ = [
    "PaymentStatus",
    "PSPAdapter",
    "PSPProvider",
    "PSPDispatcher",
    "PayPalAdapter",
    "PhonePeAdapter",
    "classify_status",
    "decide_initiation",
]
