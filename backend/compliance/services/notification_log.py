"""
Notification log.

Lifecycle jobs use this as their idempotency guard: an event for a service
fires only if its (service_type, service_id, type, cycle) key could be
inserted. The insert is a single conditional statement, so two overlapping
runs cannot both claim the same event.

The same rows back the user's notification inbox.
"""

import logging
from datetime import date
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from compliance.models import Notification, NotificationType, ServiceType

logger = logging.getLogger(__name__)

IDEMPOTENCY_KEY_COLUMNS = ["service_type", "service_id", "type", "cycle_expiry_date"]


def _type_value(value) -> str:
    return value.value if hasattr(value, "value") else value


class NotificationLog:
    """
    Idempotency log and inbox for lifecycle notifications.

    Callers own the transaction: record() flushes but does not commit.
    """

    def __init__(self, db_session: Session):
        self.db = db_session

    def exists(
        self,
        service_type: ServiceType,
        service_id: int,
        notification_type: NotificationType,
        cycle_expiry_date: date,
    ) -> bool:
        """Check whether the event key has already been recorded."""
        return self._find(service_type, service_id, notification_type, cycle_expiry_date) is not None

    def _find(self, service_type, service_id, notification_type, cycle_expiry_date) -> Optional[Notification]:
        return (
            self.db.query(Notification)
            .filter(
                Notification.service_type == _type_value(service_type),
                Notification.service_id == service_id,
                Notification.type == NotificationType(notification_type),
                Notification.cycle_expiry_date == cycle_expiry_date,
            )
            .first()
        )

    def record(
        self,
        user_id: int,
        notification_type: NotificationType,
        service_type: ServiceType,
        service_id: int,
        cycle_expiry_date: date,
        message: str,
        email_sent: bool = True,
    ) -> Optional[Notification]:
        """
        Insert the notification unless its key already exists.

        Args:
            user_id: Owner of the service
            notification_type: Lifecycle event
            service_type: Service type key
            service_id: Service row id
            cycle_expiry_date: Expiry date the event refers to
            message: Inbox message
            email_sent: Whether the event is delivered by email too

        Returns:
            The new Notification, or None if the key was already recorded
        """
        values = {
            "user_id": user_id,
            "type": NotificationType(notification_type),
            "service_type": _type_value(service_type),
            "service_id": service_id,
            "cycle_expiry_date": cycle_expiry_date,
            "message": message,
            "email_sent": email_sent,
            "read": False,
        }

        dialect = self.db.get_bind().dialect.name
        if dialect in ("postgresql", "sqlite"):
            inserted = self._insert_on_conflict_do_nothing(dialect, values)
        else:
            inserted = self._insert_with_savepoint(values)

        if not inserted:
            logger.info(
                "Notification already recorded",
                extra={
                    "service_type": values["service_type"],
                    "service_id": service_id,
                    "type": values["type"].value,
                    "cycle_expiry_date": cycle_expiry_date.isoformat(),
                },
            )
            return None

        return self._find(service_type, service_id, notification_type, cycle_expiry_date)

    def _insert_on_conflict_do_nothing(self, dialect: str, values: dict) -> bool:
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        else:
            from sqlalchemy.dialects.sqlite import insert

        stmt = (
            insert(Notification.__table__)
            .values(**values)
            .on_conflict_do_nothing(index_elements=IDEMPOTENCY_KEY_COLUMNS)
        )
        result = self.db.execute(stmt)
        return result.rowcount == 1

    def _insert_with_savepoint(self, values: dict) -> bool:
        notification = Notification(**values)
        try:
            with self.db.begin_nested():
                self.db.add(notification)
                self.db.flush()
        except IntegrityError:
            return False
        return True

    def discard(self, notification: Notification) -> None:
        """Remove a previously recorded notification (releases its key)."""
        self.db.delete(notification)
        self.db.flush()

    def finalize(self, notification: Notification, message: str, payment_id: Optional[str] = None) -> None:
        """Update the inbox message of a claimed notification once the outcome is known."""
        notification.message = message
        if payment_id:
            notification.payment_id = payment_id
        self.db.flush()

    # Inbox

    def list_for_user(self, user_id: int, unread_only: bool = False, limit: int = 50) -> List[Notification]:
        """Most recent notifications for a user."""
        query = self.db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.read.is_(False))
        return query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()

    def unread_count(self, user_id: int) -> int:
        return (
            self.db.query(func.count(Notification.id))
            .filter(Notification.user_id == user_id, Notification.read.is_(False))
            .scalar()
            or 0
        )

    def mark_read(self, user_id: int, notification_id: int) -> bool:
        """Mark one of the user's notifications read. Returns False if it is not theirs."""
        updated = (
            self.db.query(Notification)
            .filter(Notification.id == notification_id, Notification.user_id == user_id)
            .update({Notification.read: True}, synchronize_session="fetch")
        )
        self.db.commit()
        return updated == 1

    def mark_all_read(self, user_id: int) -> int:
        updated = (
            self.db.query(Notification)
            .filter(Notification.user_id == user_id, Notification.read.is_(False))
            .update({Notification.read: True}, synchronize_session="fetch")
        )
        self.db.commit()
        return updated
