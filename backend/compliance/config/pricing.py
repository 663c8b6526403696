"""
Renewal pricing for autopay.

All amounts are in minor units (cents, USD). Individual services renew at
full price; bundles renew at a discounted rate that differs from the
first-purchase bundle price.
"""

import os
from typing import Dict, Union
from enum import Enum

CURRENCY = os.getenv("BILLING_CURRENCY", "USD")

# Individual service renewal prices (cents)
RENEWAL_PRICES: Dict[str, int] = {
    "arbitration": 14999,  # $149.99
    "tariff": 34999,  # $349.99
    "boc3": 10999,  # $109.99
}

# Bundle renewal prices (cents), discounted from first-year rates
BUNDLE_RENEWAL_PRICES: Dict[str, int] = {
    "startup": 29999,  # $299.99
    "essentials": 17900,  # $179.00
}

# Bundles without a recognised type renew as essentials
DEFAULT_BUNDLE_TYPE = "essentials"

SERVICE_NAMES: Dict[str, str] = {
    "arbitration": "Arbitration Program",
    "tariff": "Tariff Publishing",
    "boc3": "BOC-3 Process Agent",
    "bundle": "Compliance Bundle",
}

BUNDLE_NAMES: Dict[str, str] = {
    "startup": "Startup Bundle",
    "essentials": "Essentials Bundle",
}


def _key(value: Union[str, Enum, None]) -> str:
    return value.value if isinstance(value, Enum) else (value or "")


def get_renewal_price(service_type: Union[str, Enum]) -> int:
    """
    Get the autopay renewal price for an individual service type.

    Args:
        service_type: arbitration, tariff or boc3

    Returns:
        Price in cents

    Raises:
        KeyError: If the service type has no renewal price
    """
    return RENEWAL_PRICES[_key(service_type)]


def get_bundle_renewal_price(bundle_type: Union[str, None]) -> int:
    """Get the renewal price for a bundle type, falling back to essentials."""
    return BUNDLE_RENEWAL_PRICES.get(_key(bundle_type), BUNDLE_RENEWAL_PRICES[DEFAULT_BUNDLE_TYPE])


def get_service_name(service_type: Union[str, Enum]) -> str:
    """Human readable service name used in emails and notifications."""
    return SERVICE_NAMES.get(_key(service_type), SERVICE_NAMES["bundle"])


def get_bundle_name(bundle_type: Union[str, None]) -> str:
    """Human readable bundle name; unknown bundle types read as 'Compliance Bundle'."""
    return BUNDLE_NAMES.get(_key(bundle_type), SERVICE_NAMES["bundle"])


def format_amount(amount_cents: int) -> str:
    """Format a minor-unit amount as dollars, e.g. 14999 -> '$149.99'."""
    return f"${amount_cents / 100:.2f}"
