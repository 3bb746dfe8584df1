"""
PSP Adapter Base Class and Interface.
Provides the shared HTTP plumbing for the payment gateways (PhonePe, PayPal).
"""
from abc import ABC
from enum import Enum
from typing import Any, Dict, Optional

import httpx
import structlog

from payment_api.errors import NetworkError, ProtocolError, ProviderError

logger = structlog.get_logger(__name__)


class PSPProvider(str, Enum):
    """Supported PSP providers."""
    PHONEPE = "phonepe"
    PAYPAL = "paypal"


class PaymentStatus(str, Enum):
    """Normalized outcome of a verification query."""
    SUCCESS = "SUCCESS"
    PENDING = "PENDING"
    FAILED = "FAILED"


def provider_message(body: Any, default: str) -> str:
    """Pick the human-readable message out of a provider error body."""
    if isinstance(body, dict):
        for key in ("message", "error_description", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    if isinstance(body, str) and body:
        return body
    return default


class PSPAdapter(ABC):
    """
    Base adapter for Payment Service Providers.

    Every outbound call goes through `_request`, which bounds it by the
    adapter timeout. Transport failures become NetworkError, undecodable
    bodies ProtocolError, and 4xx/5xx answers ProviderError. Nothing is retried.
    """

    provider: PSPProvider

    def __init__(self, base_url: str, timeout: float, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Args:
            base_url: Provider API root, without trailing slash
            timeout: Per-call timeout in seconds
            transport: Optional httpx transport (tests pass a MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        """Perform one HTTP call and return the decoded JSON body."""
        if not url.startswith("http"):
            url = f"{self.base_url}{url}"
        try:
            async with self._client() as client:
                r = await client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            logger.warning("psp_request_timeout", provider=self.provider.value, method=method, url=url)
            raise NetworkError(f"No response from {self.provider.value}: request timed out") from exc
        except httpx.TransportError as exc:
            logger.warning("psp_request_unreachable", provider=self.provider.value, method=method, url=url, error=str(exc))
            raise NetworkError(f"No response from {self.provider.value}: {exc}") from exc
        except httpx.DecodingError as exc:
            logger.warning("psp_response_undecodable", provider=self.provider.value, method=method, url=url, error=str(exc))
            raise ProtocolError(f"Undecodable response from {self.provider.value}: {exc}") from exc
        except httpx.RequestError as exc:
            logger.warning("psp_request_failed", provider=self.provider.value, method=method, url=url, error=str(exc))
            raise NetworkError(f"Request to {self.provider.value} failed: {exc}") from exc

        try:
            body = r.json()
        except ValueError:
            body = None

        if r.status_code >= 400:
            logger.warning(
                "psp_request_rejected",
                provider=self.provider.value,
                method=method,
                url=url,
                status_code=r.status_code,
            )
            raise ProviderError(
                provider_message(body if body is not None else r.text, f"{self.provider.value} returned HTTP {r.status_code}"),
                details=body,
                provider_status=r.status_code,
            )

        if not isinstance(body, dict):
            raise ProtocolError(f"Unexpected response body from {self.provider.value}", details=r.text[:500])

        logger.info("psp_request_ok", provider=self.provider.value, method=method, url=url, status_code=r.status_code)
        return body

    def __repr__(self):
        return f"<{self.__class__.__name__}(provider={getattr(self, 'provider', 'unknown')})>"
