"""
Shared fixtures for the lifecycle tests.

Each test gets a fresh in-memory SQLite ledger and fake collaborators, so
jobs run end to end without a payment account, SMTP server or bucket.
"""

from datetime import date
from typing import List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from compliance.db_base import Base
from compliance.integrations.payments import ChargeResult, PaymentGateway
from compliance.models import (
    ArbitrationEnrollment,
    Boc3Order,
    BundleOrder,
    ServiceStatus,
    TariffOrder,
    User,
)


# =============================================================================
# Database
# =============================================================================

@pytest.fixture
def db_engine():
    """In-memory SQLite engine with every ledger table created."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    import compliance.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.rollback()
    session.close()


# =============================================================================
# Factories
# =============================================================================

@pytest.fixture
def make_user(db_session):
    """Create a committed user; autopay users get a card unless card_id=None."""
    counter = {"n": 0}

    def _make(autopay: bool = False, card_id: Optional[str] = "card_123", **overrides) -> User:
        counter["n"] += 1
        n = counter["n"]
        values = {
            "email": f"carrier{n}@example.com",
            "company_name": f"Carrier {n} Moving LLC",
            "contact_name": f"Dispatcher {n}",
            "mc_number": f"MC-10{n:04d}",
            "usdot_number": f"30{n:05d}",
            "city": "Dallas",
            "state": "TX",
            "autopay_enabled": autopay,
        }
        if autopay:
            values.update({
                "square_customer_id": f"cust_{n}",
                "autopay_card_id": card_id,
                "autopay_card_last4": "4242" if card_id else None,
                "autopay_card_brand": "VISA" if card_id else None,
            })
        values.update(overrides)
        user = User(**values)
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture
def make_service(db_session):
    """Create a committed service or bundle row for a user."""

    def _make(model, user: User, expiry_date: Optional[date], status: str = ServiceStatus.ACTIVE.value, **overrides):
        record = model(user_id=user.id, expiry_date=expiry_date, status=status, **overrides)
        db_session.add(record)
        db_session.commit()
        return record

    return _make


@pytest.fixture
def make_bundle(db_session, make_service):
    """Create a bundle with one service of each type linked to it."""

    def _make(user: User, expiry_date: date, bundle_type: str = "startup"):
        bundle = make_service(BundleOrder, user, expiry_date, bundle_type=bundle_type)
        services = [
            make_service(model, user, expiry_date, bundle_id=bundle.id)
            for model in (ArbitrationEnrollment, TariffOrder, Boc3Order)
        ]
        return bundle, services

    return _make


# =============================================================================
# Collaborators
# =============================================================================

class FakeGateway(PaymentGateway):
    """Gateway returning scripted results and recording every charge."""

    name = "fake"

    def __init__(self, results: Optional[List[ChargeResult]] = None):
        self.results = list(results or [])
        self.charges = []

    async def charge(self, customer_ref, card_ref, amount_minor_units, memo, idempotency_key):
        self.charges.append({
            "customer_ref": customer_ref,
            "card_ref": card_ref,
            "amount": amount_minor_units,
            "memo": memo,
            "idempotency_key": idempotency_key,
        })
        if self.results:
            return self.results.pop(0)
        return ChargeResult.ok(f"pay_{len(self.charges)}")


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def dispatcher():
    """Dispatcher double; send() reports success."""
    mock = MagicMock()
    mock.send = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def documents():
    """Document generator double returning fixed URLs."""
    mock = MagicMock()
    mock.render_tariff_document = AsyncMock(return_value="/temp/tariff-new.pdf")
    mock.render_arbitration_document = AsyncMock(return_value="/temp/arbitration-certificate-new.pdf")
    return mock
