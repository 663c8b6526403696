"""
Tests for the expiration notifier.

Covers:
- 30 / 5 day warnings for users autopay cannot charge
- 10 day autopay reminder for autopay users, with or without a card
- Exactly-once delivery across re-runs on the same day
- No catch-up for thresholds missed on earlier days
- Per-row isolation when a row fails
"""

from datetime import date, timedelta
from unittest.mock import patch

import pytest

from compliance.jobs.expiration_checker import ExpirationNotifierJob, run_expiration_check
from compliance.models import (
    ArbitrationEnrollment,
    Boc3Order,
    Notification,
    NotificationType,
    TariffOrder,
)

EXPIRY = date(2025, 1, 10)


def _types(db_session):
    return sorted(n.type.value for n in db_session.query(Notification).all())


class TestThirtyDayWarning:
    """Standard 30 day warning."""

    @pytest.mark.asyncio
    async def test_warns_non_autopay_user_once(self, db_session, make_user, make_service, dispatcher):
        user = make_user()
        service = make_service(ArbitrationEnrollment, user, EXPIRY)
        today = EXPIRY - timedelta(days=30)

        results = await run_expiration_check(db_session, dispatcher, today=today)

        assert results["errors"] == []
        assert results["sent"]["expiry_30day"] == 1
        notification = db_session.query(Notification).one()
        assert notification.type == NotificationType.EXPIRY_30DAY
        assert notification.service_type == "arbitration"
        assert notification.service_id == service.id
        assert notification.cycle_expiry_date == EXPIRY
        assert notification.message == "Your Arbitration Program expires in 30 days on 01/10/2025"

        dispatcher.send.assert_awaited_once()
        to_address, template, data = dispatcher.send.await_args.args
        assert to_address == user.email
        assert template == "expiry_30day"
        assert data["expiry_date"] == "01/10/2025"
        assert data["service_name"] == "Arbitration Program"
        assert data["company"] == user.company_name

        again = await run_expiration_check(db_session, dispatcher, today=today)

        assert again["sent"]["expiry_30day"] == 0
        assert again["skipped_duplicates"] == 1
        assert db_session.query(Notification).count() == 1
        assert dispatcher.send.await_count == 1

    @pytest.mark.asyncio
    async def test_chargeable_autopay_user_skipped(self, db_session, make_user, make_service, dispatcher):
        user = make_user(autopay=True)
        make_service(TariffOrder, user, EXPIRY)

        await run_expiration_check(db_session, dispatcher, today=EXPIRY - timedelta(days=30))

        assert db_session.query(Notification).count() == 0
        dispatcher.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_only_exact_threshold_day_matches(self, db_session, make_user, make_service, dispatcher):
        user = make_user()
        make_service(Boc3Order, user, EXPIRY)

        await run_expiration_check(db_session, dispatcher, today=EXPIRY - timedelta(days=29))

        assert db_session.query(Notification).count() == 0


class TestAutopayReminder:
    """10 day autopay reminder."""

    @pytest.mark.asyncio
    async def test_reminder_quotes_renewal_price(self, db_session, make_user, make_service, dispatcher):
        user = make_user(autopay=True)
        make_service(TariffOrder, user, EXPIRY)

        results = await run_expiration_check(db_session, dispatcher, today=EXPIRY - timedelta(days=10))

        assert results["sent"]["autopay_10day"] == 1
        notification = db_session.query(Notification).one()
        assert notification.type == NotificationType.AUTOPAY_10DAY
        assert notification.message == "Autopay: Your Tariff Publishing will be renewed in 10 days for $349.99"

        _, template, data = dispatcher.send.await_args.args
        assert template == "autopay_reminder"
        assert data["amount"] == "$349.99"
        assert data["card_last4"] == "4242"
        assert data["card_brand"] == "VISA"

    @pytest.mark.asyncio
    async def test_bundled_service_reminder_quotes_bundle_price(
        self, db_session, make_user, make_bundle, dispatcher
    ):
        user = make_user(autopay=True)
        _, (_, tariff, _) = make_bundle(user, EXPIRY, bundle_type="startup")

        results = await run_expiration_check(db_session, dispatcher, today=EXPIRY - timedelta(days=10))

        assert results["sent"]["autopay_10day"] == 3
        notification = db_session.query(Notification).filter(Notification.service_type == "tariff").one()
        assert notification.service_id == tariff.id
        assert notification.message == (
            "Autopay: Your Tariff Publishing will be renewed in 10 days with your Startup Bundle for $299.99"
        )
        amounts = {call.args[2]["amount"] for call in dispatcher.send.await_args_list}
        assert amounts == {"$299.99"}
        assert all(call.args[2]["bundle_name"] == "Startup Bundle" for call in dispatcher.send.await_args_list)

    @pytest.mark.asyncio
    async def test_reminder_sent_without_card(self, db_session, make_user, make_service, dispatcher):
        user = make_user(autopay=True, card_id=None)
        make_service(Boc3Order, user, EXPIRY)

        await run_expiration_check(db_session, dispatcher, today=EXPIRY - timedelta(days=10))

        assert _types(db_session) == ["autopay_10day"]

    @pytest.mark.asyncio
    async def test_non_autopay_user_gets_no_reminder(self, db_session, make_user, make_service, dispatcher):
        user = make_user()
        make_service(Boc3Order, user, EXPIRY)

        await run_expiration_check(db_session, dispatcher, today=EXPIRY - timedelta(days=10))

        assert db_session.query(Notification).count() == 0


class TestFiveDayWarning:
    """Urgent 5 day warning."""

    @pytest.mark.asyncio
    async def test_urgent_warning(self, db_session, make_user, make_service, dispatcher):
        user = make_user()
        make_service(ArbitrationEnrollment, user, EXPIRY)

        await run_expiration_check(db_session, dispatcher, today=EXPIRY - timedelta(days=5))

        notification = db_session.query(Notification).one()
        assert notification.type == NotificationType.EXPIRY_5DAY
        assert notification.message.startswith("URGENT: Your Arbitration Program expires in 5 days")
        assert dispatcher.send.await_args.args[1] == "expiry_5day"

    @pytest.mark.asyncio
    async def test_autopay_without_card_still_warned(self, db_session, make_user, make_service, dispatcher):
        user = make_user(autopay=True, card_id=None)
        make_service(ArbitrationEnrollment, user, EXPIRY)

        await run_expiration_check(db_session, dispatcher, today=EXPIRY - timedelta(days=30))
        await run_expiration_check(db_session, dispatcher, today=EXPIRY - timedelta(days=5))

        assert _types(db_session) == ["expiry_30day", "expiry_5day"]


class TestNotifierLifecycle:
    """Full warning sequence and isolation."""

    @pytest.mark.asyncio
    async def test_each_threshold_fires_once_per_cycle(self, db_session, make_user, make_service, dispatcher):
        user = make_user()
        make_service(TariffOrder, user, EXPIRY)
        job = ExpirationNotifierJob(db_session, dispatcher)

        day = EXPIRY - timedelta(days=31)
        while day <= EXPIRY:
            await job.run(today=day)
            await job.run(today=day)
            day += timedelta(days=1)

        assert _types(db_session) == ["expiry_30day", "expiry_5day"]
        assert dispatcher.send.await_count == 2

    @pytest.mark.asyncio
    async def test_new_cycle_warns_again(self, db_session, make_user, make_service, dispatcher):
        user = make_user()
        service = make_service(TariffOrder, user, EXPIRY)
        await run_expiration_check(db_session, dispatcher, today=EXPIRY - timedelta(days=30))

        next_expiry = date(2026, 1, 10)
        service.expiry_date = next_expiry
        db_session.commit()
        await run_expiration_check(db_session, dispatcher, today=next_expiry - timedelta(days=30))

        cycles = sorted(n.cycle_expiry_date for n in db_session.query(Notification).all())
        assert cycles == [EXPIRY, next_expiry]

    @pytest.mark.asyncio
    async def test_failing_row_does_not_stop_others(self, db_session, make_user, make_service, dispatcher):
        first = make_user()
        second = make_user()
        make_service(ArbitrationEnrollment, first, EXPIRY)
        make_service(ArbitrationEnrollment, second, EXPIRY)
        job = ExpirationNotifierJob(db_session, dispatcher)
        original_record = job.notification_log.record
        calls = {"n": 0}

        def flaky_record(**kwargs):
            calls["n"] += 1
            if calls["n"] == 1:
                raise RuntimeError("deadlock detected")
            return original_record(**kwargs)

        with patch.object(job.notification_log, "record", side_effect=flaky_record):
            results = await job.run(today=EXPIRY - timedelta(days=30))

        assert len(results["errors"]) == 1
        assert "deadlock detected" in results["errors"][0]
        assert results["sent"]["expiry_30day"] == 1
        assert db_session.query(Notification).one().user_id == second.id

    @pytest.mark.asyncio
    async def test_email_failure_keeps_notification(self, db_session, make_user, make_service, dispatcher):
        user = make_user()
        make_service(ArbitrationEnrollment, user, EXPIRY)
        dispatcher.send.return_value = False

        results = await run_expiration_check(db_session, dispatcher, today=EXPIRY - timedelta(days=30))

        assert results["errors"] == []
        assert db_session.query(Notification).count() == 1
