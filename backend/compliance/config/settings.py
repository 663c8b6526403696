"""
Environment-driven settings for the database and external collaborators.

Values are read once at import time, mirroring the rest of ``compliance.config``.
"""

import os
from typing import Optional

# Payment gateway (Square). Both token and location are required for live charging.
SQUARE_ACCESS_TOKEN = os.getenv("SQUARE_ACCESS_TOKEN", "")
SQUARE_LOCATION_ID = os.getenv("SQUARE_LOCATION_ID", "")
SQUARE_ENVIRONMENT = os.getenv("SQUARE_ENVIRONMENT", "sandbox")
SQUARE_API_VERSION = os.getenv("SQUARE_API_VERSION", "2024-06-04")
SQUARE_TIMEOUT_SECONDS = float(os.getenv("SQUARE_TIMEOUT_SECONDS", "30"))

# Email delivery
SMTP_HOST = os.getenv("SMTP_HOST", "smtp.gmail.com")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER", "")
SMTP_PASS = os.getenv("SMTP_PASS", "")
EMAIL_FROM = os.getenv("EMAIL_FROM", "Interstate Compliance Solutions <noreply@interstatecompliancesolutions.com>")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

# Document storage. Without a bucket, documents are written to the local temp dir.
DOCUMENTS_BUCKET = os.getenv("DOCUMENTS_BUCKET", "")
DOCUMENTS_PREFIX = os.getenv("DOCUMENTS_PREFIX", "documents/")
DOCUMENTS_PUBLIC_BASE_URL = os.getenv("DOCUMENTS_PUBLIC_BASE_URL", "")
DOCUMENTS_LOCAL_DIR = os.getenv("DOCUMENTS_LOCAL_DIR", "temp")
AWS_REGION = os.getenv("AWS_REGION", "us-east-1")

# Company details printed on documents and emails
COMPANY_NAME = os.getenv("COMPANY_NAME", "Interstate Compliance Solutions")
COMPANY_PHONE = os.getenv("COMPANY_PHONE", "1-800-555-0199")
COMPANY_EMAIL = os.getenv("COMPANY_EMAIL", "info@interstatecompliancesolutions.com")


def get_database_url(database_url: Optional[str] = None) -> str:
    """
    Resolve the database URL.

    Raises:
        ValueError: If DATABASE_URL is not configured
    """
    database_url = database_url or os.getenv("DATABASE_URL")
    if not database_url:
        raise ValueError("DATABASE_URL environment variable is required")

    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)
    return database_url


def square_configured() -> bool:
    """True when live Square credentials are present."""
    return bool(SQUARE_ACCESS_TOKEN and SQUARE_LOCATION_ID)
