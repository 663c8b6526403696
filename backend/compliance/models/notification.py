"""
Notification model.

Doubles as the user's notification inbox and as the idempotency log of the
lifecycle jobs: one row per (service_type, service_id, type) and billing
cycle, enforced by a unique constraint.
"""

from enum import Enum as PyEnum

from sqlalchemy import (
    Boolean, Column, Date, DateTime, Enum, ForeignKey, Index, Integer,
    String, Text, UniqueConstraint, func,
)

from compliance.db_base import Base


class NotificationType(str, PyEnum):
    """Lifecycle events that produce a notification."""
    EXPIRY_30DAY = "expiry_30day"
    EXPIRY_5DAY = "expiry_5day"
    AUTOPAY_10DAY = "autopay_10day"
    AUTOPAY_PROCESSED = "autopay_processed"
    AUTOPAY_FAILED = "autopay_failed"


NOTIFICATION_TYPE_ENUM = Enum(
    NotificationType,
    name="notification_type",
    native_enum=False,
    length=50,
    validate_strings=True,
    values_callable=lambda enum_cls: [e.value for e in enum_cls],
)


class Notification(Base):
    """Immutable lifecycle notification (only ``read`` changes after insert)."""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = Column(NOTIFICATION_TYPE_ENUM, nullable=False)
    service_type = Column(String(20), nullable=False)
    service_id = Column(Integer, nullable=False)
    # Expiry date the event refers to; scopes the idempotency key to one cycle
    cycle_expiry_date = Column(Date, nullable=False)
    message = Column(Text, nullable=True)
    payment_id = Column(String(100), nullable=True)
    read = Column(Boolean, nullable=False, default=False)
    email_sent = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint(
            "service_type", "service_id", "type", "cycle_expiry_date",
            name="uq_notifications_service_event_cycle",
        ),
        Index("ix_notifications_user_id", "user_id"),
        Index("ix_notifications_user_read", "user_id", "read"),
    )

    def __repr__(self) -> str:
        return (
            f"<Notification(id={self.id}, type={self.type.value if self.type else None}, "
            f"service={self.service_type}#{self.service_id}, cycle={self.cycle_expiry_date})>"
        )
