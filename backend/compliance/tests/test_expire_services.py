"""
Tests for the expiration sweep.

Covers:
- Past-due, non-terminal services and bundles flip to expired
- Rows expiring today or later, terminal rows and rows without expiry are untouched
- Re-running on the same day changes nothing
- Expired rows drop out of the notifier and the renewer
"""

from datetime import date, timedelta
from unittest.mock import MagicMock

import pytest

from compliance.jobs.autopay_processor import AutopayRenewalJob
from compliance.jobs.expiration_checker import ExpirationNotifierJob
from compliance.jobs.expire_services import ExpirationSweepJob, run_expire_services
from compliance.models import (
    ArbitrationEnrollment,
    Boc3Order,
    Notification,
    ServiceStatus,
    TariffOrder,
)

TODAY = date(2025, 3, 15)
YESTERDAY = TODAY - timedelta(days=1)


class TestExpirationSweep:
    """Tests for ExpirationSweepJob.run()."""

    @pytest.mark.asyncio
    async def test_expires_past_due_services(self, db_session, make_user, make_service):
        user = make_user()
        arbitration = make_service(ArbitrationEnrollment, user, YESTERDAY)
        tariff = make_service(TariffOrder, user, TODAY - timedelta(days=200), status=ServiceStatus.COMPLETED.value)
        boc3 = make_service(Boc3Order, user, YESTERDAY, status=ServiceStatus.FILED.value)

        results = await ExpirationSweepJob(db_session).run(today=TODAY)

        assert results["errors"] == []
        assert results["expired"] == {"arbitration": 1, "tariff": 1, "boc3": 1, "bundle": 0}
        db_session.expire_all()
        for record in (arbitration, tariff, boc3):
            assert record.status == ServiceStatus.EXPIRED.value

    @pytest.mark.asyncio
    async def test_expiry_today_stays_active(self, db_session, make_user, make_service):
        user = make_user()
        service = make_service(ArbitrationEnrollment, user, TODAY)

        await ExpirationSweepJob(db_session).run(today=TODAY)

        db_session.expire_all()
        assert service.status == ServiceStatus.ACTIVE.value

    @pytest.mark.asyncio
    async def test_terminal_and_undated_rows_untouched(self, db_session, make_user, make_service):
        user = make_user()
        cancelled = make_service(TariffOrder, user, YESTERDAY, status=ServiceStatus.CANCELLED.value)
        undated = make_service(Boc3Order, user, None, status=ServiceStatus.PENDING.value)

        results = await ExpirationSweepJob(db_session).run(today=TODAY)

        db_session.expire_all()
        assert cancelled.status == ServiceStatus.CANCELLED.value
        assert undated.status == ServiceStatus.PENDING.value
        assert sum(results["expired"].values()) == 0

    @pytest.mark.asyncio
    async def test_sweeps_bundles(self, db_session, make_user, make_bundle):
        user = make_user()
        bundle, services = make_bundle(user, YESTERDAY)

        results = await ExpirationSweepJob(db_session).run(today=TODAY)

        assert results["expired"]["bundle"] == 1
        db_session.expire_all()
        assert bundle.status == ServiceStatus.EXPIRED.value
        assert all(s.status == ServiceStatus.EXPIRED.value for s in services)

    @pytest.mark.asyncio
    async def test_second_run_same_day_changes_nothing(self, db_session, make_user, make_service):
        user = make_user()
        make_service(ArbitrationEnrollment, user, YESTERDAY)
        make_service(TariffOrder, user, YESTERDAY)

        first = await run_expire_services(db_session, today=TODAY)
        second = await run_expire_services(db_session, today=TODAY)

        assert sum(first["expired"].values()) == 2
        assert sum(second["expired"].values()) == 0

    @pytest.mark.asyncio
    async def test_database_failure_is_reported_not_raised(self):
        session = MagicMock()
        session.query.side_effect = RuntimeError("connection lost")

        results = await ExpirationSweepJob(session).run(today=TODAY)

        assert results["errors"] == ["connection lost"]
        assert "completed_at" not in results
        session.rollback.assert_called_once()


class TestExpiredRowsIgnoredDownstream:
    """Expired services are invisible to the notifier and the renewer."""

    @pytest.mark.asyncio
    async def test_notifier_and_renewer_skip_expired(
        self, db_session, make_user, make_service, gateway, documents, dispatcher
    ):
        user = make_user(autopay=True)
        service = make_service(ArbitrationEnrollment, user, YESTERDAY)

        await ExpirationSweepJob(db_session).run(today=TODAY)
        db_session.expire_all()
        assert service.status == ServiceStatus.EXPIRED.value

        # Expiry would sit inside the renewal window and on the 10 day threshold
        notifier_today = YESTERDAY - timedelta(days=10)
        await ExpirationNotifierJob(db_session, dispatcher).run(today=notifier_today)
        await AutopayRenewalJob(db_session, gateway, documents, dispatcher).run(today=YESTERDAY)

        assert gateway.charges == []
        dispatcher.send.assert_not_called()
        assert db_session.query(Notification).count() == 0
