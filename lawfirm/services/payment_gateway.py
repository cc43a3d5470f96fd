"""SSLCommerz session API client.

Only the session-initiation call lives here. The gateway redirects the
customer back to our callback URLs, echoing ``value_a`` (case id) and
``value_b`` (stage) untouched.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional
import logging

import requests
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from lawfirm import config
from lawfirm.exceptions import GatewayFailure

logger = logging.getLogger(__name__)

SANDBOX_URL = "https://sandbox.sslcommerz.com/gwprocess/v4/api.php"
LIVE_URL = "https://securepay.sslcommerz.com/gwprocess/v4/api.php"


@dataclass
class Customer:
    name: str
    email: str
    phone: Optional[str] = None
    address: Optional[str] = None
    city: str = "Dhaka"
    country: str = "Bangladesh"


class SSLCommerzGateway:
    def __init__(
        self,
        store_id: str = config.SSLCOMMERZ_STORE_ID,
        store_pass: str = config.SSLCOMMERZ_STORE_PASS,
        is_sandbox: bool = config.SSLCOMMERZ_IS_SANDBOX,
        return_base_url: str = config.PAYMENT_RETURN_BASE_URL,
        currency: str = config.PAYMENT_CURRENCY,
        timeout: int = config.GATEWAY_TIMEOUT_SECONDS,
    ):
        self.store_id = store_id
        self.store_pass = store_pass
        self.endpoint = SANDBOX_URL if is_sandbox else LIVE_URL
        self.return_base_url = return_base_url.rstrip("/")
        self.currency = currency
        self.timeout = timeout

    def build_request(
        self,
        amount: Decimal,
        transaction_id: str,
        customer: Customer,
        case_id: str,
        stage: str,
    ) -> dict:
        return {
            "store_id": self.store_id,
            "store_passwd": self.store_pass,
            "total_amount": f"{amount:.2f}",
            "currency": self.currency,
            "tran_id": transaction_id,
            # Where the gateway sends the customer back
            "success_url": f"{self.return_base_url}/payments/callback/success",
            "fail_url": f"{self.return_base_url}/payments/callback/fail",
            "cancel_url": f"{self.return_base_url}/payments/callback/cancel",
            # Echoed back untouched on the callback
            "value_a": case_id,
            "value_b": stage,
            "cus_name": customer.name,
            "cus_email": customer.email,
            "cus_phone": customer.phone or "01700000000",
            "cus_add1": customer.address or customer.city,
            "cus_city": customer.city,
            "cus_country": customer.country,
            "shipping_method": "NO",
            "product_name": "Legal Fees",
            "product_category": "Service",
            "product_profile": "general",
        }

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=4),
        retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
        reraise=True,
    )
    def _post(self, payload: dict) -> requests.Response:
        return requests.post(self.endpoint, data=payload, timeout=self.timeout)

    def initiate_session(
        self,
        amount: Decimal,
        transaction_id: str,
        customer: Customer,
        case_id: str,
        stage: str,
    ) -> str:
        """Return the gateway page URL the customer should be redirected to."""
        payload = self.build_request(amount, transaction_id, customer, case_id, stage)
        try:
            response = self._post(payload)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            logger.exception(f"Gateway request for {transaction_id} failed")
            raise GatewayFailure("Payment gateway is unavailable. Please try again later.") from e
        except ValueError as e:
            logger.exception(f"Gateway returned a non-JSON response for {transaction_id}")
            raise GatewayFailure("Payment gateway returned an invalid response.") from e

        if not isinstance(data, dict):
            raise GatewayFailure("Payment gateway returned an invalid response.")
        url = data.get("GatewayPageURL")
        if data.get("status") != "SUCCESS" or not url:
            reason = data.get("failedreason") or data.get("status") or "unknown error"
            logger.error(f"Gateway refused session {transaction_id}: {reason}")
            raise GatewayFailure("Could not start the payment. Please try again later.")
        return url


def get_payment_gateway() -> SSLCommerzGateway:
    return SSLCommerzGateway()
