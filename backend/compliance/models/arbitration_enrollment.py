"""Arbitration program enrollment model."""

from compliance.db_base import Base
from compliance.models.base import BundledServiceMixin, ServiceType


class ArbitrationEnrollment(Base, BundledServiceMixin):
    """Enrollment in the household-goods arbitration program."""

    __tablename__ = "arbitration_enrollments"

    service_type = ServiceType.ARBITRATION
