"""
Square Payments API client for charging stored cards.

Uses the Square REST API (POST /v2/payments) with a card on file and
the customer it belongs to.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, ValidationError

from compliance.config import settings
from compliance.config.pricing import CURRENCY
from compliance.integrations.payments.gateway import ChargeResult, PaymentGateway
from compliance.platform.errors import PaymentGatewayError

logger = logging.getLogger(__name__)

SQUARE_BASE_URLS = {
    "production": "https://connect.squareup.com",
    "sandbox": "https://connect.squareupsandbox.com",
}


class SquareError(BaseModel):
    category: Optional[str] = None
    code: Optional[str] = None
    detail: Optional[str] = None


class SquarePayment(BaseModel):
    id: str
    status: Optional[str] = None


class SquarePaymentResponse(BaseModel):
    payment: Optional[SquarePayment] = None
    errors: List[SquareError] = []

    def error_message(self) -> Optional[str]:
        if not self.errors:
            return None
        first = self.errors[0]
        return first.detail or first.code or "Payment processing failed"


class SquareGateway(PaymentGateway):
    """
    Live gateway backed by Square.

    Handles:
    - Building the create-payment request
    - Mapping COMPLETED payments to success
    - Mapping declines, HTTP and transport errors to failed results
    """

    name = "square"

    def __init__(
        self,
        access_token: str,
        location_id: str,
        environment: str = "sandbox",
        api_version: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.location_id = location_id
        self.environment = "production" if environment == "production" else "sandbox"
        self.base_url = SQUARE_BASE_URLS[self.environment]

        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Square-Version": api_version or settings.SQUARE_API_VERSION,
                "Content-Type": "application/json",
            },
            timeout=settings.SQUARE_TIMEOUT_SECONDS,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _create_payment(self, payload: Dict[str, Any]) -> SquarePaymentResponse:
        """
        POST a payment to Square.

        Raises:
            PaymentGatewayError: On transport errors, HTTP errors or unparseable responses
        """
        try:
            response = await self._client.post("/v2/payments", json=payload)
        except httpx.RequestError as e:
            logger.error("Square API request error", extra={"error": str(e)})
            raise PaymentGatewayError(f"Request failed: {str(e)}")

        try:
            parsed = SquarePaymentResponse.model_validate(response.json())
        except (ValueError, ValidationError):
            parsed = None

        if response.is_error:
            message = parsed.error_message() if parsed else None
            logger.error("Square API HTTP error", extra={
                "status_code": response.status_code,
                "response": response.text[:500],
            })
            raise PaymentGatewayError(
                message or f"Square API error: {response.status_code}",
                status_code=response.status_code,
                details={"errors": [e.model_dump() for e in parsed.errors] if parsed else []},
            )

        if parsed is None:
            raise PaymentGatewayError("Unreadable response from Square")
        return parsed

    async def charge(
        self,
        customer_ref: Optional[str],
        card_ref: str,
        amount_minor_units: int,
        memo: str,
        idempotency_key: str,
    ) -> ChargeResult:
        payload = {
            "source_id": card_ref,
            "customer_id": customer_ref,
            "idempotency_key": idempotency_key,
            "amount_money": {"amount": amount_minor_units, "currency": CURRENCY},
            "autocomplete": True,
            "note": memo,
            "location_id": self.location_id,
        }

        try:
            result = await self._create_payment(payload)
        except PaymentGatewayError as e:
            logger.warning("Square payment error", extra={"error": e.message, "idempotency_key": idempotency_key})
            return ChargeResult.failed(e.message or "Payment processing failed")

        payment = result.payment
        if payment and payment.status == "COMPLETED":
            return ChargeResult.ok(payment.id)

        return ChargeResult.failed(f"Payment status: {payment.status if payment and payment.status else 'FAILED'}")
