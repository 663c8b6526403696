"""Daily lifecycle jobs: expiration sweep, expiration notifier, autopay renewer."""
