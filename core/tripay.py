import httpx
import logging
import time
from typing import Any, Dict, List, Optional

from config.settings import Settings
from core.signature import generate_signature
from utilities.merchant_ref import generate_merchant_ref

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    """Upstream gateway failure, relayed to the caller"""

    def __init__(self, message: str, status_code: int = 500, error: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error = error


class GatewayNotConfigured(GatewayError):
    def __init__(self, message: str = "Payment gateway not configured"):
        super().__init__(message, status_code=500)


class TripayClient:
    """Thin async client for the Tripay merchant API"""

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self._client = httpx.AsyncClient(
            base_url=settings.TRIPAY_API_URL,
            timeout=settings.GATEWAY_TIMEOUT,
            transport=transport,
        )

    @property
    def mode(self) -> str:
        return self.settings.TRIPAY_MODE

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.settings.TRIPAY_API_KEY}"}

    async def _request(self, method: str, path: str, failure_message: str, **kwargs) -> Dict[str, Any]:
        try:
            response = await self._client.request(method, path, headers=self._headers(), **kwargs)
        except httpx.RequestError as e:
            logger.error(f"{failure_message}: {e}")
            raise GatewayError(failure_message, status_code=500, error=str(e))

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.is_error:
            upstream_message = body.get("message") if isinstance(body, dict) else None
            logger.error(f"{failure_message}: {response.status_code} {response.text[:500]}")
            raise GatewayError(
                failure_message,
                status_code=response.status_code,
                error=upstream_message or response.reason_phrase,
            )

        if not isinstance(body, dict):
            raise GatewayError(failure_message, status_code=500, error="Invalid response from payment gateway")
        return body

    async def get_payment_channels(self) -> List[Dict[str, Any]]:
        """Fetch payment channels and keep only the active ones"""
        if not self.settings.TRIPAY_API_KEY:
            raise GatewayNotConfigured()

        failure_message = "Failed to fetch payment channels"
        body = await self._request("GET", "/merchant/payment-channel", failure_message)
        channels = body.get("data")
        if not body.get("success") or not isinstance(channels, list):
            logger.error(f"{failure_message}: {body.get('message')}")
            raise GatewayError(failure_message, status_code=500, error=body.get("message"))
        return [channel for channel in channels if isinstance(channel, dict) and channel.get("active")]

    def build_transaction_payload(
        self,
        *,
        method: str,
        amount: int,
        customer_phone: str,
        order_items: List[Dict[str, Any]],
        customer_name: Optional[str] = None,
        return_url: Optional[str] = None,
        merchant_ref: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Compose the signed create-transaction payload"""
        merchant_ref = merchant_ref or generate_merchant_ref()
        domain = self.settings.EFFECTIVE_DOMAIN
        expiry = self.settings.TRANSACTION_EXPIRY_HOURS * 60 * 60

        return {
            "method": method,
            "merchant_ref": merchant_ref,
            "amount": amount,
            "customer_name": customer_name or f"Customer-{customer_phone}",
            "customer_email": f"noreply@{domain}",
            "customer_phone": customer_phone,
            "order_items": order_items,
            "return_url": return_url or f"https://{domain}/pricing",
            "expired_time": int(time.time()) + expiry,
            "signature": generate_signature(
                self.settings.TRIPAY_PRIVATE_KEY,
                self.settings.TRIPAY_MERCHANT_CODE,
                merchant_ref,
                amount,
            ),
        }

    async def create_transaction(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Post a signed payload to Tripay; returns the raw envelope ({success, message, data})"""
        if not self.settings.gateway_configured:
            raise GatewayNotConfigured("Payment gateway not configured properly")

        return await self._request("POST", "/transaction/create", "Failed to create transaction", json=payload)

    async def get_transaction_detail(self, reference: str) -> Dict[str, Any]:
        """Returns the raw envelope of the transaction detail endpoint"""
        if not self.settings.TRIPAY_API_KEY:
            raise GatewayNotConfigured()

        return await self._request(
            "GET",
            "/transaction/detail",
            "Failed to fetch transaction status",
            params={"reference": reference},
        )
