"""
Expiration sweep job.

Runs daily (midnight) to flip services past their expiry date into the
terminal ``expired`` status. Re-running on the same day changes nothing:
only rows that are still non-terminal match.

Usage:
    python -m compliance.workers.scheduler run expire-services
"""

import logging
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from compliance.jobs.lifecycle_dates import utc_today
from compliance.models import ServiceType
from compliance.repositories import get_repository, service_repositories

logger = logging.getLogger(__name__)


class ExpirationSweepJob:
    """
    Marks services and bundles whose expiry_date has passed as expired.

    Does not touch the notification log.
    """

    def __init__(self, db_session: Session):
        self.db_session = db_session

    async def run(self, today: Optional[date] = None) -> dict:
        """
        Execute the sweep.

        Args:
            today: Date to sweep as of (defaults to the UTC date)

        Returns:
            Summary of expired rows per service type
        """
        today = today or utc_today()
        logger.info("Starting expiration sweep", extra={"as_of": today.isoformat()})

        results = {
            "started_at": datetime.now(timezone.utc).isoformat(),
            "as_of": today.isoformat(),
            "expired": {},
            "errors": [],
        }

        repositories = list(service_repositories(self.db_session).values())
        repositories.append(get_repository(self.db_session, ServiceType.BUNDLE))

        try:
            for repository in repositories:
                count = repository.mark_expired(today)
                self.db_session.commit()
                results["expired"][repository.service_type.value] = count
                logger.info(
                    "Expired services",
                    extra={"service_type": repository.service_type.value, "count": count},
                )

            results["completed_at"] = datetime.now(timezone.utc).isoformat()
            logger.info("Expiration sweep completed", extra=results)

        except Exception as e:
            self.db_session.rollback()
            logger.exception("Expiration sweep failed", extra={"error": str(e)})
            results["errors"].append(str(e))

        return results


async def run_expire_services(db_session: Session, today: Optional[date] = None) -> dict:
    """Convenience function to run the sweep."""
    return await ExpirationSweepJob(db_session).run(today=today)
