import logging
import secrets
import string
import time

import httpx

from app.core.config import get_settings

logger = logging.getLogger(__name__)

_REFERENCE_ALPHABET = string.ascii_lowercase + string.digits


class PaystackError(Exception):
    """Raised when Paystack rejects a request or is not configured."""


def generate_reference() -> str:
    """Generate a unique transaction reference: txn_<epoch millis>_<9 random chars>."""
    suffix = "".join(secrets.choice(_REFERENCE_ALPHABET) for _ in range(9))
    return f"txn_{int(time.time() * 1000)}_{suffix}"


class PaystackClient:
    """Server-to-server Paystack API client.

    The secret key stays on the server; the browser only ever sees the
    authorization URL and the reference.
    """

    def __init__(self, secret_key: str, base_url: str, timeout: float = 30.0):
        self.secret_key = secret_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _headers(self) -> dict:
        if not self.secret_key:
            raise PaystackError("PAYSTACK_SECRET_KEY not configured")
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

    def _request(self, method: str, path: str, json: dict | None = None) -> dict:
        headers = self._headers()
        with httpx.Client(base_url=self.base_url, timeout=self.timeout) as client:
            response = client.request(method, path, headers=headers, json=json)

        try:
            data = response.json()
        except ValueError:
            data = {"status": False, "message": response.text}

        if response.is_error:
            logger.error(f"Paystack {method} {path} failed ({response.status_code}): {data}")
            raise PaystackError(data.get("message") or f"Paystack request failed with {response.status_code}")
        return data

    def verify_transaction(self, reference: str) -> dict:
        """GET /transaction/verify/{reference}"""
        return self._request("GET", f"/transaction/verify/{reference}")

    def initialize_transaction(
        self,
        email: str,
        amount: int,
        reference: str,
        metadata: dict,
        callback_url: str | None = None,
    ) -> dict:
        """POST /transaction/initialize. ``amount`` is in kobo."""
        body = {
            "email": email,
            "amount": amount,
            "reference": reference,
            "metadata": metadata,
        }
        if callback_url:
            body["callback_url"] = callback_url
        return self._request("POST", "/transaction/initialize", json=body)

    def disable_subscription(self, code: str, token: str) -> dict:
        """POST /subscription/disable"""
        return self._request("POST", "/subscription/disable", json={"code": code, "token": token})


_paystack_client: PaystackClient | None = None


def get_paystack_client() -> PaystackClient:
    """Get the Paystack client singleton."""
    global _paystack_client
    if _paystack_client is None:
        settings = get_settings()
        _paystack_client = PaystackClient(
            secret_key=settings.paystack_secret_key,
            base_url=settings.paystack_base_url,
            timeout=settings.paystack_timeout,
        )
    return _paystack_client
