"""
Autopay renewal job.

Runs daily (09:00) and charges the stored card of autopay users whose
bundles or services expire within the next AUTOPAY_WINDOW_DAYS days.

Processing order:
1. Bundles, at their discounted renewal price. A successful renewal moves
   the bundle and every linked service to the same new expiry date.
2. Individual arbitration, tariff and BOC-3 services that are not part of a
   bundle, at their full renewal price.

Each renewal is claimed in the notification log (autopay_processed) before
the card is charged, so overlapping runs cannot charge twice. A failed charge
releases the claim and the row is retried on the next run while it is still
inside the window. A successful charge is written to the claim (payment id)
before the expiry changes, so a later error leaves a reconcilable record
and the claim keeps the card from being charged again.

Usage:
    python -m compliance.workers.scheduler run autopay
"""

import logging
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from compliance.config.lifecycle import AUTOPAY_WINDOW_DAYS, RENEWAL_TERM_YEARS
from compliance.config.pricing import (
    format_amount,
    get_bundle_name,
    get_bundle_renewal_price,
    get_renewal_price,
    get_service_name,
)
from compliance.integrations.documents import DocumentGenerator
from compliance.integrations.mail import NotificationDispatcher
from compliance.integrations.payments import ChargeResult, PaymentGateway
from compliance.jobs.lifecycle_dates import add_years, display_date, email_context, utc_today
from compliance.models import (
    DOCUMENT_SERVICE_TYPES,
    NotificationType,
    ServiceMixin,
    ServiceType,
    User,
)
from compliance.repositories import BundleRepository, ServiceRepository, service_repositories
from compliance.services.notification_log import NotificationLog

logger = logging.getLogger(__name__)


def _empty_counts() -> dict:
    return {"renewed": 0, "failed": 0, "skipped": 0}


class AutopayRenewalJob:
    """
    Charges stored cards for expiring services and extends their expiry.

    Args:
        db_session: Database session
        gateway: Payment gateway selected at startup
        documents: Document generator for tariff / arbitration documents
        dispatcher: Email dispatcher
        window_days: Look-ahead window in days
    """

    def __init__(
        self,
        db_session: Session,
        gateway: PaymentGateway,
        documents: DocumentGenerator,
        dispatcher: NotificationDispatcher,
        window_days: int = AUTOPAY_WINDOW_DAYS,
    ):
        self.db_session = db_session
        self.gateway = gateway
        self.documents = documents
        self.dispatcher = dispatcher
        self.window_days = window_days
        self.notification_log = NotificationLog(db_session)
        self.repositories = service_repositories(db_session)
        self.bundle_repository = BundleRepository(db_session)

    async def run(self, today: Optional[date] = None) -> dict:
        """
        Execute the renewer.

        Args:
            today: First day of the window (defaults to the UTC date)

        Returns:
            Renewal counts per service type
        """
        today = today or utc_today()
        window_end = today + timedelta(days=self.window_days)
        logger.info("Starting autopay processor", extra={
            "window_start": today.isoformat(),
            "window_end": window_end.isoformat(),
            "gateway": self.gateway.name,
        })

        results = {
            "started_at": datetime.now(timezone.utc).isoformat(),
            "window_start": today.isoformat(),
            "window_end": window_end.isoformat(),
            "bundle": _empty_counts(),
            **{service_type.value: _empty_counts() for service_type in self.repositories},
            "errors": [],
        }

        try:
            # Bundles first: their services are excluded from individual renewal
            await self._process_repository(self.bundle_repository, today, window_end, results)

            for repository in self.repositories.values():
                await self._process_repository(repository, today, window_end, results)

            results["completed_at"] = datetime.now(timezone.utc).isoformat()
            logger.info("Autopay processing completed", extra=results)

        except Exception as e:
            self.db_session.rollback()
            logger.exception("Autopay processing failed", extra={"error": str(e)})
            results["errors"].append(str(e))

        return results

    async def _process_repository(
        self,
        repository: ServiceRepository,
        today: date,
        window_end: date,
        results: dict,
    ) -> None:
        candidates = repository.find_autopay_candidates(today, window_end)
        logger.info("Autopay candidates", extra={
            "service_type": repository.service_type.value,
            "count": len(candidates),
        })

        for record, user in candidates:
            attempt = {}
            try:
                await self._renew(repository, record, user, today, results, attempt)
            except Exception as e:
                self.db_session.rollback()
                error_msg = f"Failed to process {repository.service_type.value} #{record.id}: {str(e)}"
                logger.exception(error_msg, extra={
                    "service_type": repository.service_type.value,
                    "service_id": record.id,
                    "user_id": user.id,
                    "payment_ref": attempt.get("payment_ref"),
                })
                results["errors"].append(error_msg)

    def _pricing(self, repository: ServiceRepository, record: ServiceMixin):
        if repository.service_type == ServiceType.BUNDLE:
            return get_bundle_renewal_price(record.bundle_type), get_bundle_name(record.bundle_type)
        return get_renewal_price(repository.service_type), get_service_name(repository.service_type)

    async def _charge(self, user: User, amount: int, memo: str) -> ChargeResult:
        try:
            return await self.gateway.charge(
                customer_ref=user.square_customer_id,
                card_ref=user.autopay_card_id,
                amount_minor_units=amount,
                memo=memo,
                idempotency_key=str(uuid.uuid4()),
            )
        except Exception as e:
            logger.exception("Payment gateway raised during charge", extra={"user_id": user.id})
            return ChargeResult.failed(str(e) or "Payment processing failed")

    async def _renew(
        self,
        repository: ServiceRepository,
        record: ServiceMixin,
        user: User,
        today: date,
        results: dict,
        attempt: dict,
    ) -> None:
        service_type = repository.service_type
        counts = results[service_type.value]
        record_id = record.id
        previous_expiry = record.expiry_date
        price, name = self._pricing(repository, record)

        claim = self.notification_log.record(
            user_id=user.id,
            notification_type=NotificationType.AUTOPAY_PROCESSED,
            service_type=service_type,
            service_id=record_id,
            cycle_expiry_date=previous_expiry,
            message=f"Renewing your {name}",
        )
        if claim is None:
            counts["skipped"] += 1
            return
        self.db_session.commit()

        logger.info("Processing autopay renewal", extra={
            "service_type": service_type.value,
            "service_id": record_id,
            "user_id": user.id,
            "amount_cents": price,
        })

        result = await self._charge(user, price, f"{name} renewal for {user.company_name}")

        if not result.success:
            await self._handle_failure(service_type, record_id, previous_expiry, user, name, claim, result)
            counts["failed"] += 1
            return

        # The card is charged: persist the payment reference before any expiry change
        attempt["payment_ref"] = result.payment_ref
        self.notification_log.finalize(
            claim,
            message=f"Payment received for your {name} renewal (ref {result.payment_ref})",
            payment_id=result.payment_ref,
        )
        self.db_session.commit()

        new_expiry = add_years(previous_expiry, RENEWAL_TERM_YEARS)
        if service_type == ServiceType.BUNDLE:
            repository.update_expiry(record_id, new_expiry)
            for service_repository in self.repositories.values():
                service_repository.update_expiry_for_bundle(record_id, new_expiry)
        else:
            repository.update_expiry(record_id, new_expiry, enrolled_date=today)

        self.notification_log.finalize(
            claim,
            message=f"Your {name} has been renewed. New expiration: {display_date(new_expiry)}",
            payment_id=result.payment_ref,
        )
        self.db_session.commit()
        counts["renewed"] += 1

        logger.info("Autopay renewal succeeded", extra={
            "service_type": service_type.value,
            "service_id": record_id,
            "payment_ref": result.payment_ref,
            "new_expiry_date": new_expiry.isoformat(),
        })

        await self._regenerate_documents(service_type, record_id, user)

        await self.dispatcher.send(user.email, "autopay_success", {
            **email_context(user),
            "service_name": name,
            "amount": format_amount(price),
            "new_expiry_date": display_date(new_expiry),
            "card_last4": user.autopay_card_last4,
        })

    async def _handle_failure(
        self,
        service_type: ServiceType,
        record_id: int,
        previous_expiry: date,
        user: User,
        name: str,
        claim,
        result: ChargeResult,
    ) -> None:
        logger.warning("Autopay charge failed", extra={
            "service_type": service_type.value,
            "service_id": record_id,
            "user_id": user.id,
            "error": result.error,
        })

        # Release the claim so the next run inside the window retries the charge
        self.notification_log.discard(claim)
        failure = self.notification_log.record(
            user_id=user.id,
            notification_type=NotificationType.AUTOPAY_FAILED,
            service_type=service_type,
            service_id=record_id,
            cycle_expiry_date=previous_expiry,
            message=f"Failed to renew {name}: {result.error}",
        )
        self.db_session.commit()

        if failure is None:
            logger.info("Repeat autopay failure, user already notified", extra={
                "service_type": service_type.value,
                "service_id": record_id,
            })
            return

        await self.dispatcher.send(user.email, "autopay_failed", {
            **email_context(user),
            "service_name": name,
            "reason": result.error,
            "expiry_date": display_date(previous_expiry),
        })

    async def _regenerate_documents(self, service_type: ServiceType, record_id: int, user: User) -> None:
        """Re-render tariff / arbitration documents after a renewal (best effort)."""
        if service_type == ServiceType.BUNDLE:
            targets = [
                (linked_type, service)
                for linked_type in DOCUMENT_SERVICE_TYPES
                for service in self.repositories[linked_type].find_by_bundle(record_id)
            ]
        elif service_type in DOCUMENT_SERVICE_TYPES:
            targets = [(service_type, self.repositories[service_type].get(record_id))]
        else:
            return

        for target_type, service in targets:
            if service is None:
                continue
            try:
                if target_type == ServiceType.TARIFF:
                    url = await self.documents.render_tariff_document(user, service)
                else:
                    url = await self.documents.render_arbitration_document(user, service)
                self.repositories[target_type].update_document_url(service.id, url)
                self.db_session.commit()
            except Exception as e:
                self.db_session.rollback()
                logger.error("Failed to regenerate document", extra={
                    "service_type": target_type.value,
                    "service_id": service.id,
                    "error": str(e),
                })


async def run_autopay(
    db_session: Session,
    gateway: PaymentGateway,
    documents: DocumentGenerator,
    dispatcher: NotificationDispatcher,
    today: Optional[date] = None,
) -> dict:
    """Convenience function to run the renewer."""
    return await AutopayRenewalJob(db_session, gateway, documents, dispatcher).run(today=today)
