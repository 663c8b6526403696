"""
Lifecycle job configuration.

Thresholds, the autopay look-ahead window and daily trigger times.

Configuration:
- AUTOPAY_WINDOW_DAYS: Days ahead of expiry autopay starts charging (default: 3)
- EXPIRATION_CHECK_TIME: Daily time for the notifier, HH:MM (default: 08:00)
- AUTOPAY_TIME: Daily time for the renewer, HH:MM (default: 09:00)
- EXPIRE_SERVICES_TIME: Daily time for the sweep, HH:MM (default: 00:00)
- SCHEDULER_TIMEZONE: IANA zone the times are interpreted in (default: UTC)
"""

import os
from datetime import time
from typing import Dict

# Notifier thresholds (days before expiry)
EXPIRY_WARNING_DAYS = 30
AUTOPAY_REMINDER_DAYS = 10
EXPIRY_URGENT_DAYS = 5

EXPIRY_THRESHOLDS = (EXPIRY_WARNING_DAYS, AUTOPAY_REMINDER_DAYS, EXPIRY_URGENT_DAYS)

# Renewer charges anything expiring between today and today + window
AUTOPAY_WINDOW_DAYS = int(os.getenv("AUTOPAY_WINDOW_DAYS", "3"))

# Renewals extend expiry by this many calendar years
RENEWAL_TERM_YEARS = 1

SCHEDULER_TIMEZONE = os.getenv("SCHEDULER_TIMEZONE", "UTC")


def parse_schedule_time(value: str) -> time:
    """
    Parse an ``HH:MM`` string into a time.

    Raises:
        ValueError: If the value is not a valid 24h time
    """
    hours, _, minutes = value.strip().partition(":")
    return time(hour=int(hours), minute=int(minutes or 0))


JOB_SCHEDULE: Dict[str, time] = {
    "expiration-check": parse_schedule_time(os.getenv("EXPIRATION_CHECK_TIME", "08:00")),
    "autopay": parse_schedule_time(os.getenv("AUTOPAY_TIME", "09:00")),
    "expire-services": parse_schedule_time(os.getenv("EXPIRE_SERVICES_TIME", "00:00")),
}
