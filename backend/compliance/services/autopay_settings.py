"""
Autopay account settings.

Stores the card-on-file references the renewer charges and the user's
autopay switch. Card tokenization happens in the payment gateway's
frontend SDK; this service only keeps the resulting references.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from compliance.models import User
from compliance.platform.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class AutopaySettingsService:
    """
    Reads and updates a user's autopay configuration.

    Args:
        db_session: Database session
    """

    def __init__(self, db_session: Session):
        self.db = db_session

    def _get_user(self, user_id: int) -> User:
        user = self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def get_status(self, user_id: int) -> dict:
        user = self._get_user(user_id)
        return {
            "autopay_enabled": bool(user.autopay_enabled),
            "has_card": bool(user.autopay_card_last4),
            "card_last4": user.autopay_card_last4,
            "card_brand": user.autopay_card_brand,
        }

    def enable(
        self,
        user_id: int,
        customer_ref: Optional[str],
        card_ref: str,
        card_last4: Optional[str] = None,
        card_brand: Optional[str] = None,
    ) -> dict:
        """
        Store a card on file and switch autopay on.

        A missing customer reference keeps the one already stored.
        """
        if not card_ref:
            raise ValidationError("Payment card token is required")

        user = self._get_user(user_id)
        user.square_customer_id = customer_ref or user.square_customer_id
        user.autopay_card_id = card_ref
        user.autopay_card_last4 = card_last4 or "****"
        user.autopay_card_brand = card_brand or "Card"
        user.autopay_enabled = True
        self.db.commit()

        logger.info("Autopay enabled", extra={"user_id": user_id, "card_brand": user.autopay_card_brand})
        return self.get_status(user_id)

    def set_enabled(self, user_id: int, enabled: bool) -> dict:
        """
        Toggle autopay without touching the stored card.

        Raises:
            ValidationError: Enabling autopay with no card on file
        """
        user = self._get_user(user_id)
        if enabled and not user.autopay_card_id:
            raise ValidationError("Please add a payment card before enabling autopay")

        user.autopay_enabled = bool(enabled)
        self.db.commit()
        logger.info("Autopay toggled", extra={"user_id": user_id, "autopay_enabled": user.autopay_enabled})
        return self.get_status(user_id)

    def disable(self, user_id: int) -> dict:
        """Switch autopay off; the card stays on file."""
        return self.set_enabled(user_id, False)

    def remove_card(self, user_id: int) -> dict:
        """Forget the stored card and switch autopay off."""
        user = self._get_user(user_id)
        user.autopay_enabled = False
        user.autopay_card_id = None
        user.autopay_card_last4 = None
        user.autopay_card_brand = None
        self.db.commit()

        logger.info("Autopay card removed", extra={"user_id": user_id})
        return self.get_status(user_id)
