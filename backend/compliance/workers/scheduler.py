"""
Daily scheduler and manual trigger for the lifecycle jobs.

Runs the three lifecycle jobs once a day at their configured time:

- expire-services (00:00): mark services past their expiry date as expired
- expiration-check (08:00): 30 / 10 / 5 day warnings and autopay reminders
- autopay (09:00): charge stored cards for services expiring within the window

Triggering is fire-and-forget: a job that fails is logged and the next day's
run happens as usual. Jobs are idempotent, so a manual run on top of the
scheduled one is safe.

Usage:
    python -m compliance.workers.scheduler serve
    python -m compliance.workers.scheduler run autopay
    python -m compliance.workers.scheduler init-db
"""

import argparse
import asyncio
import logging
import sys
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.orm import Session, sessionmaker

from compliance.config.lifecycle import JOB_SCHEDULE, SCHEDULER_TIMEZONE
from compliance.db_base import get_session_factory, init_db
from compliance.integrations.documents import DocumentGenerator
from compliance.integrations.mail import NotificationDispatcher
from compliance.integrations.payments import PaymentGateway, build_payment_gateway
from compliance.jobs.autopay_processor import AutopayRenewalJob
from compliance.jobs.expiration_checker import ExpirationNotifierJob
from compliance.jobs.expire_services import ExpirationSweepJob
from compliance.platform.errors import ConfigurationError, UnknownJobError

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@dataclass
class JobCollaborators:
    """External collaborators shared by every job run in a process."""

    gateway: PaymentGateway
    documents: DocumentGenerator
    dispatcher: NotificationDispatcher

    async def close(self) -> None:
        await self.gateway.close()


def build_collaborators() -> JobCollaborators:
    """Build collaborators from configuration (gateway selected once here)."""
    return JobCollaborators(
        gateway=build_payment_gateway(),
        documents=DocumentGenerator(),
        dispatcher=NotificationDispatcher(),
    )


JOB_REGISTRY: Dict[str, Callable[[Session, JobCollaborators], object]] = {
    "expiration-check": lambda session, c: ExpirationNotifierJob(session, c.dispatcher),
    "autopay": lambda session, c: AutopayRenewalJob(session, c.gateway, c.documents, c.dispatcher),
    "expire-services": lambda session, c: ExpirationSweepJob(session),
}


async def run_job(
    job_name: str,
    collaborators: JobCollaborators,
    session_factory: Optional[sessionmaker] = None,
    today: Optional[date] = None,
) -> dict:
    """
    Run one lifecycle job in its own database session.

    Args:
        job_name: Key of JOB_REGISTRY
        collaborators: Gateway, document generator and dispatcher
        session_factory: Session factory (defaults to DATABASE_URL)
        today: Date to run as of (defaults to the UTC date)

    Returns:
        The job's results dict

    Raises:
        UnknownJobError: If job_name is not registered
    """
    if job_name not in JOB_REGISTRY:
        raise UnknownJobError(job_name, sorted(JOB_REGISTRY))

    session = (session_factory or get_session_factory())()
    try:
        logger.info("scheduler.job_started", extra={"job": job_name})
        results = await JOB_REGISTRY[job_name](session, collaborators).run(today=today)
        logger.info(
            "scheduler.job_completed",
            extra={"job": job_name, "error_count": len(results.get("errors", []))},
        )
        return results
    finally:
        session.close()


def next_run_at(schedule_time: time, now: datetime) -> datetime:
    """
    Next wall-clock occurrence of ``schedule_time`` strictly after ``now``.

    The result carries the tzinfo of ``now``.
    """
    candidate = datetime.combine(now.date(), schedule_time, tzinfo=now.tzinfo)
    if candidate <= now:
        candidate = datetime.combine(now.date() + timedelta(days=1), schedule_time, tzinfo=now.tzinfo)
    return candidate


class LifecycleScheduler:
    """
    In-process daily scheduler.

    One asyncio task per job sleeps until the job's next fire time, runs it,
    and schedules the following day.

    Args:
        collaborators: Shared job collaborators
        session_factory: Session factory for job runs
        schedule: Job name -> daily time (defaults to JOB_SCHEDULE)
        timezone_name: IANA zone the schedule is interpreted in
    """

    def __init__(
        self,
        collaborators: JobCollaborators,
        session_factory: Optional[sessionmaker] = None,
        schedule: Optional[Dict[str, time]] = None,
        timezone_name: str = SCHEDULER_TIMEZONE,
    ):
        self.collaborators = collaborators
        self.session_factory = session_factory
        self.schedule = dict(schedule or JOB_SCHEDULE)
        try:
            self.tz = ZoneInfo(timezone_name)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ConfigurationError(
                f"Unknown scheduler timezone: {timezone_name}",
                details={"timezone": timezone_name},
            ) from e

        unknown = [name for name in self.schedule if name not in JOB_REGISTRY]
        if unknown:
            raise UnknownJobError(unknown[0], sorted(JOB_REGISTRY))

    async def run_once(self, job_name: str) -> Optional[dict]:
        """Run a job now; every exception is logged and swallowed."""
        try:
            return await run_job(job_name, self.collaborators, session_factory=self.session_factory)
        except Exception as e:
            logger.exception("scheduler.job_failed", extra={"job": job_name, "error": str(e)})
            return None

    async def _job_loop(self, job_name: str, schedule_time: time) -> None:
        while True:
            now = datetime.now(self.tz)
            fire_at = next_run_at(schedule_time, now)
            # Compare in UTC so DST transitions do not skew the delay
            delay = (fire_at.astimezone(timezone.utc) - now.astimezone(timezone.utc)).total_seconds()
            logger.info(
                "scheduler.job_scheduled",
                extra={"job": job_name, "next_run_at": fire_at.isoformat()},
            )
            await asyncio.sleep(max(delay, 0))
            await self.run_once(job_name)

    async def serve(self) -> None:
        """Run until cancelled."""
        logger.info("Lifecycle scheduler started", extra={
            "jobs": {name: t.strftime("%H:%M") for name, t in self.schedule.items()},
            "timezone": str(self.tz),
        })
        tasks = [
            asyncio.create_task(self._job_loop(name, schedule_time), name=name)
            for name, schedule_time in self.schedule.items()
        ]
        try:
            await asyncio.gather(*tasks)
        finally:
            for task in tasks:
                task.cancel()
            await self.collaborators.close()


async def _serve() -> None:
    await LifecycleScheduler(build_collaborators()).serve()


async def _run_manual(job_name: str) -> dict:
    collaborators = build_collaborators()
    try:
        return await run_job(job_name, collaborators)
    finally:
        await collaborators.close()


def main(argv=None) -> int:
    """Entry point for running the scheduler from the command line."""
    parser = argparse.ArgumentParser(
        prog="compliance.workers.scheduler",
        description="Renewal lifecycle scheduler",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("serve", help="Run the daily scheduler")
    run_parser = subparsers.add_parser("run", help="Run one job now")
    run_parser.add_argument("job_name", help=", ".join(sorted(JOB_REGISTRY)))
    subparsers.add_parser("init-db", help="Create database tables")
    args = parser.parse_args(argv)

    try:
        if args.command == "init-db":
            init_db()
            return 0

        if args.command == "serve":
            asyncio.run(_serve())
            return 0

        if args.job_name not in JOB_REGISTRY:
            logger.error("Unknown job", extra={"job": args.job_name, "known_jobs": sorted(JOB_REGISTRY)})
            return 1

        results = asyncio.run(_run_manual(args.job_name))
        logger.info("Job finished", extra={"job": args.job_name, "results": results})
        return 1 if results.get("errors") else 0

    except KeyboardInterrupt:
        logger.info("Scheduler stopped")
        return 0
    except Exception as e:
        logger.error("Scheduler failed", extra={"error": str(e)})
        return 1


if __name__ == "__main__":
    sys.exit(main())
