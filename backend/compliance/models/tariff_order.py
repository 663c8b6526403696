"""Tariff publishing order model."""

from sqlalchemy import JSON, Column, String, Text

from compliance.db_base import Base
from compliance.models.base import BundledServiceMixin, ServiceType


class TariffOrder(Base, BundledServiceMixin):
    """
    Published tariff for a carrier.

    The rendered tariff document reflects the current enrollment window,
    so it is regenerated whenever the order renews.
    """

    __tablename__ = "tariff_orders"

    service_type = ServiceType.TARIFF

    pricing_method = Column(String(50), nullable=True)
    service_territory = Column(Text, nullable=True)
    accessorials = Column(JSON, nullable=True)
    rates = Column(JSON, nullable=True)
    special_notes = Column(Text, nullable=True)
