"""
Shared model mixins and enums for the service ledger.

Every purchasable filing (arbitration enrollment, tariff order, BOC-3 order)
shares the same lifecycle columns through ServiceMixin.
"""

from enum import Enum

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, func
from sqlalchemy.orm import declared_attr, relationship


class ServiceStatus(str, Enum):
    """Lifecycle status of a service or bundle."""
    PENDING = "pending"
    ACTIVE = "active"
    FILED = "filed"
    COMPLETED = "completed"
    EXPIRED = "expired"  # Terminal, set by the expiration sweep
    CANCELLED = "cancelled"  # Terminal, set by admins


TERMINAL_STATUSES = (ServiceStatus.EXPIRED.value, ServiceStatus.CANCELLED.value)


class ServiceType(str, Enum):
    """Service type keys, as stored in notifications.service_type."""
    ARBITRATION = "arbitration"
    TARIFF = "tariff"
    BOC3 = "boc3"
    BUNDLE = "bundle"


# Individual service types, in processing order
INDIVIDUAL_SERVICE_TYPES = (ServiceType.ARBITRATION, ServiceType.TARIFF, ServiceType.BOC3)

# Service types whose documents are regenerated on renewal
DOCUMENT_SERVICE_TYPES = (ServiceType.ARBITRATION, ServiceType.TARIFF)


class TimestampMixin:
    """Adds created_at / updated_at columns."""

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


class ServiceMixin(TimestampMixin):
    """
    Lifecycle columns common to every purchased filing.

    A null expiry_date keeps the row out of every lifecycle job.
    """

    id = Column(Integer, primary_key=True, autoincrement=True)
    status = Column(String(20), nullable=False, default=ServiceStatus.PENDING.value, index=True)
    enrolled_date = Column(Date, nullable=True)
    expiry_date = Column(Date, nullable=True, index=True)
    payment_id = Column(String(100), nullable=True)
    amount_paid = Column(Numeric(10, 2), nullable=True)
    document_url = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    @declared_attr
    def user_id(cls):
        return Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    @declared_attr
    def user(cls):
        return relationship("User")

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__}(id={self.id}, user_id={self.user_id}, "
            f"status={self.status}, expiry_date={self.expiry_date})>"
        )


class BundledServiceMixin(ServiceMixin):
    """Service that may have been sold as part of a bundle."""

    @declared_attr
    def bundle_id(cls):
        return Column(
            Integer,
            ForeignKey("bundle_orders.id", ondelete="SET NULL"),
            nullable=True,
            index=True,
        )
