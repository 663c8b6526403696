"""Configuration module for the lifecycle jobs."""

from compliance.config.pricing import (
    BUNDLE_RENEWAL_PRICES,
    RENEWAL_PRICES,
    get_bundle_name,
    get_bundle_renewal_price,
    get_renewal_price,
    get_service_name,
)
from compliance.config.lifecycle import (
    AUTOPAY_WINDOW_DAYS,
    EXPIRY_THRESHOLDS,
    JOB_SCHEDULE,
)

__all__ = [
    "BUNDLE_RENEWAL_PRICES",
    "RENEWAL_PRICES",
    "get_bundle_name",
    "get_bundle_renewal_price",
    "get_renewal_price",
    "get_service_name",
    "AUTOPAY_WINDOW_DAYS",
    "EXPIRY_THRESHOLDS",
    "JOB_SCHEDULE",
]
