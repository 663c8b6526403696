"""Payment gateway strategies used by the autopay renewer."""

from compliance.integrations.payments.gateway import (
    ChargeResult,
    PaymentGateway,
    SimulatedGateway,
    build_payment_gateway,
)
from compliance.integrations.payments.square_gateway import SquareGateway

__all__ = [
    "ChargeResult",
    "PaymentGateway",
    "SimulatedGateway",
    "SquareGateway",
    "build_payment_gateway",
]
