"""
User (payer) model.

Carries the carrier's identity details printed on documents and the
stored-card autopay configuration.
"""

from sqlalchemy import Boolean, Column, Integer, String, Text

from compliance.db_base import Base
from compliance.models.base import TimestampMixin


class User(Base, TimestampMixin):
    """Motor carrier account."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    company_name = Column(String(255), nullable=False)
    contact_name = Column(String(255), nullable=True)
    mc_number = Column(String(20), nullable=True, index=True)
    usdot_number = Column(String(20), nullable=True)
    phone = Column(String(20), nullable=True)
    address = Column(Text, nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(2), nullable=True)
    zip = Column(String(10), nullable=True)

    # Autopay
    square_customer_id = Column(String(100), nullable=True)
    autopay_enabled = Column(Boolean, nullable=False, default=False)
    autopay_card_id = Column(String(100), nullable=True)
    autopay_card_last4 = Column(String(4), nullable=True)
    autopay_card_brand = Column(String(20), nullable=True)

    @property
    def is_autopay_eligible(self) -> bool:
        """Autopay charges need the flag AND a stored card."""
        return bool(self.autopay_enabled and self.autopay_card_id)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, autopay_enabled={self.autopay_enabled})>"
