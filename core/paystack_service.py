# Paystack Transfer Service for Kenya
# Thin client over the Paystack transfer API used to pay out influencers
import requests
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Dict, Any
import logging

from config.app_config import PAYSTACK_SECRET_KEY, PAYSTACK_BASE_URL

logger = logging.getLogger(__name__)


class PaystackConfig:
    """Paystack configuration for Kenya"""
    BASE_URL = PAYSTACK_BASE_URL
    SECRET_KEY = PAYSTACK_SECRET_KEY
    CURRENCY = "KES"  # Kenyan Shillings
    DEFAULT_TIMEOUT = 30.0


class PaystackAPIError(Exception):
    """Paystack answered, but refused the request."""

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Optional[Dict] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload or {}


class PaystackService:
    """Service for handling Paystack transfers in Kenya"""

    def __init__(self, secret_key: Optional[str] = None, base_url: Optional[str] = None):
        self.base_url = base_url or PaystackConfig.BASE_URL
        self.secret_key = secret_key or PaystackConfig.SECRET_KEY
        self.headers = {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json"
        }

    def _make_request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Dict] = None,
        timeout: float = PaystackConfig.DEFAULT_TIMEOUT,
    ) -> Dict[str, Any]:
        """
        Make a request to Paystack API.

        Timeouts and connection errors propagate as `requests` exceptions so
        the caller can tell "no answer" apart from "refused".
        """
        url = f"{self.base_url}{endpoint}"
        if method == "GET":
            response = requests.get(url, headers=self.headers, timeout=timeout)
        elif method == "POST":
            response = requests.post(url, headers=self.headers, json=data, timeout=timeout)
        else:
            raise ValueError(f"Unsupported method: {method}")

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code >= 500:
            # Provider side trouble; outcome unknown
            response.raise_for_status()

        if response.status_code >= 400 or not body.get("status"):
            message = body.get("message") or f"HTTP {response.status_code}"
            logger.error(f"Paystack API error on {endpoint}: {message}")
            raise PaystackAPIError(message, status_code=response.status_code, payload=body)

        return body

    def initiate_transfer(
        self,
        amount: int,
        recipient: str,
        reference: str,
        reason: str,
        timeout: float = PaystackConfig.DEFAULT_TIMEOUT,
    ) -> Dict[str, Any]:
        """
        Initiate a transfer from the platform balance.

        Args:
            amount: Amount in cents
            recipient: Paystack transfer recipient code
            reference: Idempotency reference (we use the payment id)
            reason: Free text shown on the transfer

        Returns:
            The `data` block of the response (transfer_code, reference, status)
        """
        payload = {
            "source": "balance",
            "amount": amount,
            "currency": PaystackConfig.CURRENCY,
            "recipient": recipient,
            "reference": reference,
            "reason": reason,
        }
        return self._make_request("POST", "/transfer", payload, timeout=timeout).get("data") or {}

    def verify_transfer(self, reference: str, timeout: float = PaystackConfig.DEFAULT_TIMEOUT) -> Dict[str, Any]:
        """
        Verify a transfer by reference.

        Returns:
            The `data` block of the response; `status` is one of
            success, failed, reversed, pending, otp
        """
        return self._make_request("GET", f"/transfer/verify/{reference}", timeout=timeout).get("data") or {}

    @staticmethod
    def to_subunits(amount: Decimal) -> int:
        """Convert a KES amount to cents, rounding half up."""
        return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
