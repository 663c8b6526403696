"""Bundle order model."""

from sqlalchemy import Column, String

from compliance.db_base import Base
from compliance.models.base import ServiceMixin, ServiceType


class BundleOrder(Base, ServiceMixin):
    """
    Group of services bought together.

    The bundle is the renewal unit: its expiry_date is copied onto every
    service whose bundle_id points at it.
    """

    __tablename__ = "bundle_orders"

    service_type = ServiceType.BUNDLE

    bundle_type = Column(String(50), nullable=True)
