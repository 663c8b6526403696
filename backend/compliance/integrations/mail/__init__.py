"""Transactional email for lifecycle notifications."""

from compliance.integrations.mail.dispatcher import EMAIL_SUBJECTS, NotificationDispatcher

__all__ = ["EMAIL_SUBJECTS", "NotificationDispatcher"]
