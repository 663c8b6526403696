"""
Payment gateway interface.

The renewer only ever charges a stored card for a fixed amount. A declined
or failed charge is reported through ChargeResult, not raised.

Which implementation runs is decided once at process start by
build_payment_gateway(): live Square charging when credentials are present,
otherwise simulation (every charge succeeds with a synthetic reference).
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from compliance.config import settings

logger = logging.getLogger(__name__)


@dataclass
class ChargeResult:
    """Outcome of a charge attempt."""
    success: bool
    payment_ref: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, payment_ref: str) -> "ChargeResult":
        return cls(success=True, payment_ref=payment_ref)

    @classmethod
    def failed(cls, error: str) -> "ChargeResult":
        return cls(success=False, error=error or "Payment failed")


class PaymentGateway(ABC):
    """Charges a stored card on file."""

    name = "gateway"

    @abstractmethod
    async def charge(
        self,
        customer_ref: Optional[str],
        card_ref: str,
        amount_minor_units: int,
        memo: str,
        idempotency_key: str,
    ) -> ChargeResult:
        """
        Charge a stored card.

        Args:
            customer_ref: Gateway customer the card belongs to
            card_ref: Stored card id
            amount_minor_units: Amount in cents
            memo: Statement note
            idempotency_key: Unique per attempt

        Returns:
            ChargeResult; never raises for a declined charge
        """

    async def close(self) -> None:
        """Release any held connections."""


class SimulatedGateway(PaymentGateway):
    """
    Gateway used when no payment credentials are configured.

    Every charge succeeds, so the lifecycle can run end to end without a
    live payment account.
    """

    name = "simulated"

    async def charge(
        self,
        customer_ref: Optional[str],
        card_ref: str,
        amount_minor_units: int,
        memo: str,
        idempotency_key: str,
    ) -> ChargeResult:
        payment_ref = f"autopay_sim_{int(time.time() * 1000)}"
        logger.info(
            "Payment gateway not configured, simulating payment",
            extra={
                "amount_cents": amount_minor_units,
                "payment_ref": payment_ref,
                "idempotency_key": idempotency_key,
            },
        )
        return ChargeResult.ok(payment_ref)


def build_payment_gateway() -> PaymentGateway:
    """Select the gateway implementation from configuration."""
    if settings.square_configured():
        from compliance.integrations.payments.square_gateway import SquareGateway

        logger.info("Using Square payment gateway", extra={"environment": settings.SQUARE_ENVIRONMENT})
        return SquareGateway(
            access_token=settings.SQUARE_ACCESS_TOKEN,
            location_id=settings.SQUARE_LOCATION_ID,
            environment=settings.SQUARE_ENVIRONMENT,
        )

    logger.warning("Square not configured - autopay will run in simulation mode")
    return SimulatedGateway()
