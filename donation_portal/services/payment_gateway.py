"""
HTTP client for the Razorpay payment gateway
"""
from typing import Any, Dict, Optional
import hashlib
import hmac
import time

import httpx
import structlog

from donation_portal.core.config import Settings
from donation_portal.core.errors import BadGatewayError, ServiceUnavailableError

logger = structlog.get_logger(__name__)


def compute_signature(order_id: str, payment_id: str, secret: str) -> str:
    """HMAC-SHA256 hex digest of "order_id|payment_id", as Razorpay signs checkout callbacks"""
    message = f"{order_id}|{payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


class RazorpayGateway:
    """Creates gateway orders and verifies checkout signatures"""

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        api_url: str = "https://api.razorpay.com/v1",
        currency: str = "INR",
        mock: bool = False,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.key_id = key_id
        self.key_secret = key_secret
        self.api_url = api_url.rstrip("/")
        self.currency = currency
        self.mock = mock
        self.timeout = httpx.Timeout(timeout, connect=5.0)
        self.transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "RazorpayGateway":
        return cls(
            key_id=settings.razorpay_key_id,
            key_secret=settings.razorpay_key_secret,
            api_url=settings.razorpay_api_url,
            currency=settings.currency,
            mock=settings.mock_payments,
            timeout=settings.razorpay_timeout_seconds,
        )

    @property
    def public_key(self) -> Optional[str]:
        """Key id handed to the checkout widget; None in mock mode"""
        if self.mock:
            return None
        return self.key_id or None

    async def create_order(self, amount: int, user_id: str) -> Dict[str, Any]:
        """
        Create a gateway order for `amount` rupees.

        Returns the gateway order payload: {"id", "amount" (paise), "currency", ...}
        """
        now_ms = int(time.time() * 1000)

        if self.mock:
            order_id = f"order_{now_ms}_{user_id}"
            logger.info("Created mock payment order", order_id=order_id, amount=amount)
            return {"id": order_id, "amount": amount * 100, "currency": self.currency}

        if not self.key_id or not self.key_secret:
            logger.error("Payment gateway credentials missing")
            raise ServiceUnavailableError("Payment gateway not configured")

        payload = {
            "amount": amount * 100,
            "currency": self.currency,
            "receipt": f"rcpt_{now_ms}",
            "payment_capture": 1,
        }

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                auth=(self.key_id, self.key_secret),
                transport=self.transport,
            ) as client:
                response = await client.post(f"{self.api_url}/orders", json=payload)
        except httpx.HTTPError as e:
            logger.error("Payment gateway unreachable", error=str(e))
            raise BadGatewayError("Failed to create payment order: gateway unreachable")

        if response.status_code >= 400:
            try:
                description = response.json().get("error", {}).get("description", response.text)
            except ValueError:
                description = response.text
            logger.error(
                "Payment gateway rejected order",
                status_code=response.status_code,
                error=description,
            )
            raise BadGatewayError(f"Failed to create payment order: {description}")

        order = response.json()
        logger.info("Payment order created", order_id=order.get("id"), amount=amount)
        return order

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        if self.mock:
            return True

        if not self.key_secret:
            logger.error("Payment gateway secret missing for verification")
            return False

        expected = compute_signature(order_id, payment_id, self.key_secret)
        return hmac.compare_digest(expected, signature)
