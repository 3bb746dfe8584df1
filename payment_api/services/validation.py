"""Input checks and identifier helpers shared by the provider adapters."""
import re
import secrets
import string
import time
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

from payment_api.errors import ValidationError

PHONE_RE = re.compile(r"^\d{10}$")
ORDER_ID_RE = re.compile(r"^[A-Za-z0-9-]+$")
_SUFFIX_ALPHABET = string.digits + string.ascii_uppercase


def require(value: Any, message: str = "Missing required fields") -> Any:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(message)
    return value


def validate_phone(phone: Any) -> str:
    """Phone numbers must be exactly 10 digits."""
    phone = "" if phone is None else str(phone)
    if not PHONE_RE.fullmatch(phone):
        raise ValidationError("Phone number must be exactly 10 digits")
    return phone


def validate_order_id(order_id: Any) -> str:
    """Processor order ids are letters, digits and dashes; they end up in a URL path."""
    order_id = require(order_id, "Missing order ID")
    if not isinstance(order_id, str) or not ORDER_ID_RE.fullmatch(order_id):
        raise ValidationError("Invalid order ID")
    return order_id


def to_minor_units(amount: Any) -> int:
    """
    Convert a decimal amount to integer minor units (x100, rounded half-up).

    Raises ValidationError for missing, non-numeric, zero or negative amounts.
    """
    if amount is None or isinstance(amount, bool):
        raise ValidationError("Amount is required")
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise ValidationError("Amount must be a number")
    if not value.is_finite() or value <= 0:
        raise ValidationError("Amount must be greater than zero")
    minor = int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    if minor <= 0:
        raise ValidationError("Amount must be greater than zero")
    return minor


def format_minor_units(minor: int) -> str:
    """1999 -> '19.99'"""
    return str((Decimal(minor) / 100).quantize(Decimal("0.01")))


def generate_transaction_id(prefix: str, now_ms: Optional[int] = None) -> str:
    """<prefix>_<ms timestamp>_<6 random uppercase base36 chars>"""
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(6))
    return f"{prefix}_{now_ms}_{suffix}"
