"""
Error taxonomy shared by the provider adapters and the orchestrator.

Every error carries the HTTP status it maps to, so the orchestrator can turn
any adapter failure into the uniform response envelope.
"""
from typing import Any, Optional


class PaymentError(Exception):
    """Base class for all payment façade errors."""

    status_code: int = 500
    kind: str = "payment_error"

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_error(self) -> dict:
        error = {"type": self.kind, "message": self.message}
        if self.details is not None:
            error["details"] = self.details
        return error


class ValidationError(PaymentError):
    """Bad or missing input. Raised before any network call."""

    status_code = 400
    kind = "validation_error"


class NotFound(PaymentError):
    """Unknown transaction, or a transaction without a provider order id."""

    status_code = 404
    kind = "not_found"


class ProviderError(PaymentError):
    """The provider responded but signaled failure. Message is the provider's own."""

    status_code = 502
    kind = "provider_error"

    def __init__(self, message: str, details: Optional[Any] = None, provider_status: Optional[int] = None):
        super().__init__(message, details)
        self.provider_status = provider_status

    def to_error(self) -> dict:
        error = super().to_error()
        if self.provider_status is not None:
            error["provider_status"] = self.provider_status
        return error


class NetworkError(PaymentError):
    """No response received (connection failure or timeout)."""

    status_code = 504
    kind = "network_error"


class ProtocolError(PaymentError):
    """The provider answered with a shape we cannot use (missing link/field)."""

    status_code = 502
    kind = "protocol_error"


class ConfigurationError(PaymentError):
    """Provider credentials are missing, so the call cannot be signed."""

    status_code = 503
    kind = "configuration_error"
