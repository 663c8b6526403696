"""BOC-3 process agent filing model."""

from sqlalchemy import Column, Date, String

from compliance.db_base import Base
from compliance.models.base import BundledServiceMixin, ServiceType


class Boc3Order(Base, BundledServiceMixin):
    """BOC-3 designation of process agents. Has no regenerated document."""

    __tablename__ = "boc3_orders"

    service_type = ServiceType.BOC3

    filing_type = Column(String(50), nullable=True)
    filed_date = Column(Date, nullable=True)
