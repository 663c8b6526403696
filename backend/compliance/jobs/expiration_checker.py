"""
Expiration notifier job.

Runs daily (08:00) and warns owners of services approaching expiry:

- 30 days out: standard warning, users who cannot be charged by autopay
- 10 days out: autopay reminder quoting the renewal price, autopay users only
  (services sold in a bundle quote the bundle price, which is what autopay charges)
- 5 days out: urgent warning, users who cannot be charged by autopay

Autopay switched on without a card on file does not count as autopay for
the warnings: nothing will renew the service, so the owner is warned.

A service is matched only on the day its expiry_date equals the threshold
date; there is no catch-up for missed days. Each event is recorded in the
notification log before its email goes out, and an event that is already
recorded is skipped, so re-running on the same day sends nothing twice.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional

from sqlalchemy.orm import Session

from compliance.config.lifecycle import AUTOPAY_REMINDER_DAYS, EXPIRY_URGENT_DAYS, EXPIRY_WARNING_DAYS
from compliance.config.pricing import (
    format_amount,
    get_bundle_name,
    get_bundle_renewal_price,
    get_renewal_price,
    get_service_name,
)
from compliance.integrations.mail import NotificationDispatcher
from compliance.jobs.lifecycle_dates import display_date, email_context, utc_today
from compliance.models import NotificationType, ServiceMixin, User
from compliance.repositories import BundleRepository, ServiceRepository, service_repositories
from compliance.services.notification_log import NotificationLog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExpiryThreshold:
    """One notifier threshold."""
    days: int
    notification_type: NotificationType
    template_name: str
    applies_to: Callable[[User], bool]


THRESHOLDS = (
    ExpiryThreshold(
        days=EXPIRY_WARNING_DAYS,
        notification_type=NotificationType.EXPIRY_30DAY,
        template_name="expiry_30day",
        # Chargeable autopay users get the 10-day reminder instead
        applies_to=lambda user: not user.is_autopay_eligible,
    ),
    ExpiryThreshold(
        days=AUTOPAY_REMINDER_DAYS,
        notification_type=NotificationType.AUTOPAY_10DAY,
        template_name="autopay_reminder",
        # Sent whether or not a card is on file
        applies_to=lambda user: bool(user.autopay_enabled),
    ),
    ExpiryThreshold(
        days=EXPIRY_URGENT_DAYS,
        notification_type=NotificationType.EXPIRY_5DAY,
        template_name="expiry_5day",
        applies_to=lambda user: not user.is_autopay_eligible,
    ),
)


class ExpirationNotifierJob:
    """
    Sends threshold-based expiration warnings and autopay reminders.

    Args:
        db_session: Database session
        dispatcher: Email dispatcher
    """

    def __init__(self, db_session: Session, dispatcher: NotificationDispatcher):
        self.db_session = db_session
        self.dispatcher = dispatcher
        self.notification_log = NotificationLog(db_session)
        self.bundle_repository = BundleRepository(db_session)

    async def run(self, today: Optional[date] = None) -> dict:
        """
        Execute the notifier.

        Args:
            today: Date to evaluate thresholds from (defaults to the UTC date)

        Returns:
            Counts of notifications sent per type
        """
        today = today or utc_today()
        logger.info("Starting expiration check", extra={"as_of": today.isoformat()})

        results = {
            "started_at": datetime.now(timezone.utc).isoformat(),
            "as_of": today.isoformat(),
            "sent": {threshold.notification_type.value: 0 for threshold in THRESHOLDS},
            "skipped_duplicates": 0,
            "errors": [],
        }

        try:
            for repository in service_repositories(self.db_session).values():
                for threshold in THRESHOLDS:
                    await self._check_threshold(repository, threshold, today, results)

            results["completed_at"] = datetime.now(timezone.utc).isoformat()
            logger.info("Expiration check completed", extra=results)

        except Exception as e:
            self.db_session.rollback()
            logger.exception("Expiration check failed", extra={"error": str(e)})
            results["errors"].append(str(e))

        return results

    async def _check_threshold(
        self,
        repository: ServiceRepository,
        threshold: ExpiryThreshold,
        today: date,
        results: dict,
    ) -> None:
        target = today + timedelta(days=threshold.days)
        rows = repository.find_expiring_on(target)

        for service, user in rows:
            if not threshold.applies_to(user):
                continue
            try:
                await self._notify(repository, threshold, service, user, results)
            except Exception as e:
                self.db_session.rollback()
                error_msg = (
                    f"Failed to notify {repository.service_type.value} #{service.id} "
                    f"({threshold.notification_type.value}): {str(e)}"
                )
                logger.exception(error_msg, extra={
                    "service_type": repository.service_type.value,
                    "service_id": service.id,
                    "user_id": user.id,
                })
                results["errors"].append(error_msg)

    async def _notify(
        self,
        repository: ServiceRepository,
        threshold: ExpiryThreshold,
        service: ServiceMixin,
        user: User,
        results: dict,
    ) -> None:
        service_type = repository.service_type
        service_name = get_service_name(service_type)
        expiry_date = service.expiry_date
        template_data = {
            **email_context(user),
            "service_name": service_name,
            "expiry_date": display_date(expiry_date),
        }

        if threshold.notification_type == NotificationType.AUTOPAY_10DAY:
            bundle = self._linked_bundle(service)
            if bundle is None:
                amount = format_amount(get_renewal_price(service_type))
                message = f"Autopay: Your {service_name} will be renewed in 10 days for {amount}"
            else:
                # Bundled services are charged once, at the bundle rate
                bundle_name = get_bundle_name(bundle.bundle_type)
                amount = format_amount(get_bundle_renewal_price(bundle.bundle_type))
                message = (
                    f"Autopay: Your {service_name} will be renewed in 10 days "
                    f"with your {bundle_name} for {amount}"
                )
                template_data["bundle_name"] = bundle_name
            template_data.update({
                "amount": amount,
                "card_last4": user.autopay_card_last4,
                "card_brand": user.autopay_card_brand,
            })
        elif threshold.notification_type == NotificationType.EXPIRY_5DAY:
            message = f"URGENT: Your {service_name} expires in 5 days on {display_date(expiry_date)}"
        else:
            message = f"Your {service_name} expires in 30 days on {display_date(expiry_date)}"

        notification = self.notification_log.record(
            user_id=user.id,
            notification_type=threshold.notification_type,
            service_type=service_type,
            service_id=service.id,
            cycle_expiry_date=expiry_date,
            message=message,
        )
        if notification is None:
            results["skipped_duplicates"] += 1
            return
        self.db_session.commit()

        await self.dispatcher.send(user.email, threshold.template_name, template_data)
        results["sent"][threshold.notification_type.value] += 1

        logger.info(
            "Expiration notification sent",
            extra={
                "service_type": service_type.value,
                "service_id": service.id,
                "type": threshold.notification_type.value,
            },
        )

    def _linked_bundle(self, service: ServiceMixin):
        bundle_id = getattr(service, "bundle_id", None)
        return self.bundle_repository.get(bundle_id) if bundle_id else None


async def run_expiration_check(
    db_session: Session,
    dispatcher: NotificationDispatcher,
    today: Optional[date] = None,
) -> dict:
    """Convenience function to run the notifier."""
    return await ExpirationNotifierJob(db_session, dispatcher).run(today=today)
