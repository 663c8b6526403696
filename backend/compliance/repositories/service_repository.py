"""
Service ledger repositories.

Each service table (arbitration enrollments, tariff orders, BOC-3 orders,
bundles) gets a repository exposing the same lifecycle queries, so jobs
iterate over service types instead of interpolating table names into SQL.

Every lifecycle query excludes terminal rows (expired, cancelled) and rows
without an expiry date.
"""

import logging
from datetime import date
from typing import Dict, List, Optional, Tuple, Type

from sqlalchemy.orm import Session

from compliance.models import (
    INDIVIDUAL_SERVICE_TYPES,
    SERVICE_MODELS,
    TERMINAL_STATUSES,
    BundleOrder,
    ServiceMixin,
    ServiceStatus,
    ServiceType,
    User,
)

logger = logging.getLogger(__name__)

ServiceRow = Tuple[ServiceMixin, User]


class ServiceRepository:
    """
    Lifecycle queries for one service table.

    Args:
        db_session: Database session
        model: Mapped service model (ArbitrationEnrollment, TariffOrder, ...)
    """

    def __init__(self, db_session: Session, model: Type[ServiceMixin]):
        self.db = db_session
        self.model = model

    @property
    def service_type(self) -> ServiceType:
        return self.model.service_type

    def _live_rows(self):
        """Non-terminal rows joined with their owner."""
        return (
            self.db.query(self.model, User)
            .join(User, self.model.user_id == User.id)
            .filter(
                self.model.expiry_date.isnot(None),
                self.model.status.notin_(TERMINAL_STATUSES),
            )
        )

    def get(self, service_id: int) -> Optional[ServiceMixin]:
        return self.db.get(self.model, service_id)

    def find_expiring_on(self, day: date) -> List[ServiceRow]:
        """Rows whose expiry_date is exactly ``day``."""
        return (
            self._live_rows()
            .filter(self.model.expiry_date == day)
            .order_by(self.model.id)
            .all()
        )

    def find_expiring_between(self, start: date, end: date) -> List[ServiceRow]:
        """Rows expiring within ``[start, end]`` (inclusive)."""
        return (
            self._live_rows()
            .filter(self.model.expiry_date.between(start, end))
            .order_by(self.model.expiry_date, self.model.id)
            .all()
        )

    def find_autopay_candidates(self, start: date, end: date) -> List[ServiceRow]:
        """
        Rows expiring within ``[start, end]`` whose owner can be charged.

        Services sold in a bundle are renewed through the bundle and are
        never returned here.
        """
        query = (
            self._live_rows()
            .filter(
                self.model.expiry_date.between(start, end),
                User.autopay_enabled.is_(True),
                User.autopay_card_id.isnot(None),
            )
        )
        if hasattr(self.model, "bundle_id"):
            query = query.filter(self.model.bundle_id.is_(None))
        return query.order_by(self.model.expiry_date, self.model.id).all()

    def mark_expired(self, before: date) -> int:
        """
        Flip every non-terminal row with ``expiry_date < before`` to expired.

        Returns:
            Number of rows updated
        """
        return (
            self.db.query(self.model)
            .filter(
                self.model.expiry_date < before,
                self.model.status.notin_(TERMINAL_STATUSES),
            )
            .update(
                {self.model.status: ServiceStatus.EXPIRED.value},
                synchronize_session=False,
            )
        )

    def update_expiry(
        self,
        service_id: int,
        new_expiry: date,
        enrolled_date: Optional[date] = None,
    ) -> int:
        """Set a new expiry date (and optionally enrolled_date) on one row."""
        values = {self.model.expiry_date: new_expiry}
        if enrolled_date is not None:
            values[self.model.enrolled_date] = enrolled_date
        return (
            self.db.query(self.model)
            .filter(self.model.id == service_id)
            .update(values, synchronize_session="fetch")
        )

    def update_document_url(self, service_id: int, document_url: str) -> int:
        return (
            self.db.query(self.model)
            .filter(self.model.id == service_id)
            .update({self.model.document_url: document_url}, synchronize_session="fetch")
        )

    def find_by_bundle(self, bundle_id: int) -> List[ServiceMixin]:
        """Services linked to a bundle, whatever their status."""
        if not hasattr(self.model, "bundle_id"):
            return []
        return (
            self.db.query(self.model)
            .filter(self.model.bundle_id == bundle_id)
            .order_by(self.model.id)
            .all()
        )

    def update_expiry_for_bundle(self, bundle_id: int, new_expiry: date) -> int:
        """Copy a bundle's new expiry onto every service linked to it."""
        if not hasattr(self.model, "bundle_id"):
            return 0
        return (
            self.db.query(self.model)
            .filter(self.model.bundle_id == bundle_id)
            .update({self.model.expiry_date: new_expiry}, synchronize_session="fetch")
        )


class BundleRepository(ServiceRepository):
    """Repository for bundle orders."""

    def __init__(self, db_session: Session):
        super().__init__(db_session, BundleOrder)


def get_repository(db_session: Session, service_type: ServiceType) -> ServiceRepository:
    """
    Get the repository for a service type.

    Raises:
        ValueError: If the value is not a known service type
    """
    service_type = ServiceType(service_type)
    if service_type == ServiceType.BUNDLE:
        return BundleRepository(db_session)
    return ServiceRepository(db_session, SERVICE_MODELS[service_type])


def service_repositories(db_session: Session) -> Dict[ServiceType, ServiceRepository]:
    """Repositories for the individual service types, in processing order."""
    return {
        service_type: get_repository(db_session, service_type)
        for service_type in INDIVIDUAL_SERVICE_TYPES
    }
