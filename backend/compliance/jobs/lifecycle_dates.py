"""Date helpers shared by the lifecycle jobs."""

from datetime import date, datetime, timezone
from typing import Any, Dict

from compliance.models import User


def utc_today() -> date:
    """Current date in UTC (lifecycle dates carry no time of day)."""
    return datetime.now(timezone.utc).date()


def add_years(day: date, years: int = 1) -> date:
    """
    Same month and day, ``years`` later.

    February 29 rolls forward to March 1 when the target year has no leap day.
    """
    try:
        return day.replace(year=day.year + years)
    except ValueError:
        return date(day.year + years, 3, 1)


def display_date(day: date) -> str:
    """Date as shown to users, e.g. 06/01/2025."""
    return day.strftime("%m/%d/%Y")


def email_context(user: User) -> Dict[str, Any]:
    """Recipient fields every lifecycle email template expects."""
    return {
        "contact_name": user.contact_name,
        "company": user.company_name,
        "email": user.email,
    }
