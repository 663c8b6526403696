"""
Database models for the compliance service ledger.

Service tables share lifecycle columns via ServiceMixin; bundles own the
expiry date of their linked services.
"""

from compliance.models.base import (
    DOCUMENT_SERVICE_TYPES,
    INDIVIDUAL_SERVICE_TYPES,
    TERMINAL_STATUSES,
    ServiceMixin,
    ServiceStatus,
    ServiceType,
    TimestampMixin,
)
from compliance.models.user import User
from compliance.models.bundle_order import BundleOrder
from compliance.models.arbitration_enrollment import ArbitrationEnrollment
from compliance.models.tariff_order import TariffOrder
from compliance.models.boc3_order import Boc3Order
from compliance.models.notification import Notification, NotificationType

SERVICE_MODELS = {
    ServiceType.ARBITRATION: ArbitrationEnrollment,
    ServiceType.TARIFF: TariffOrder,
    ServiceType.BOC3: Boc3Order,
    ServiceType.BUNDLE: BundleOrder,
}

__all__ = [
    "DOCUMENT_SERVICE_TYPES",
    "INDIVIDUAL_SERVICE_TYPES",
    "TERMINAL_STATUSES",
    "ServiceMixin",
    "ServiceStatus",
    "ServiceType",
    "TimestampMixin",
    "User",
    "BundleOrder",
    "ArbitrationEnrollment",
    "TariffOrder",
    "Boc3Order",
    "Notification",
    "NotificationType",
    "SERVICE_MODELS",
]
