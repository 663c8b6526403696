"""
Tests for the notification dispatcher.

Covers:
- Every lifecycle template renders with the data the jobs pass
- Render errors surface as NotificationDeliveryError
- Dev mode, SMTP delivery and swallowed delivery failures
"""

import smtplib
from unittest.mock import MagicMock, patch

import pytest

from compliance.integrations.mail import EMAIL_SUBJECTS, NotificationDispatcher
from compliance.platform.errors import NotificationDeliveryError

RECIPIENT = {"contact_name": "Dana Reyes", "company": "Reyes Relocation", "email": "dana@example.com"}

TEMPLATE_DATA = {
    "expiry_30day": {"service_name": "Tariff Publishing", "expiry_date": "01/10/2025"},
    "expiry_5day": {"service_name": "Tariff Publishing", "expiry_date": "01/10/2025"},
    "autopay_reminder": {
        "service_name": "Tariff Publishing",
        "expiry_date": "01/10/2025",
        "amount": "$349.99",
        "card_last4": "4242",
        "card_brand": "VISA",
    },
    "autopay_success": {
        "service_name": "Startup Bundle",
        "amount": "$299.99",
        "card_last4": "4242",
        "new_expiry_date": "01/10/2026",
    },
    "autopay_failed": {
        "service_name": "BOC-3 Process Agent",
        "reason": "Card declined",
        "expiry_date": "01/10/2025",
    },
}


@pytest.fixture
def dev_dispatcher():
    return NotificationDispatcher(smtp_user="", smtp_pass="", from_email="noreply@example.com")


@pytest.fixture
def smtp_dispatcher():
    return NotificationDispatcher(
        smtp_host="smtp.example.com",
        smtp_port=587,
        smtp_user="mailer",
        smtp_pass="secret",
        from_email="noreply@example.com",
    )


class TestRender:
    """Template rendering."""

    @pytest.mark.parametrize("template_name", sorted(EMAIL_SUBJECTS))
    def test_every_template_renders(self, dev_dispatcher, template_name):
        data = {**RECIPIENT, **TEMPLATE_DATA[template_name]}

        subject, html = dev_dispatcher.render(template_name, data)

        assert data["service_name"] in subject
        assert "Dana Reyes" in html
        for value in TEMPLATE_DATA[template_name].values():
            assert value in html

    def test_values_are_escaped(self, dev_dispatcher):
        data = {**RECIPIENT, **TEMPLATE_DATA["autopay_failed"], "reason": "<script>x</script>"}

        _, html = dev_dispatcher.render("autopay_failed", data)

        assert "<script>" not in html
        assert "&lt;script&gt;" in html

    def test_missing_variable_raises(self, dev_dispatcher):
        with pytest.raises(NotificationDeliveryError):
            dev_dispatcher.render("autopay_success", {**RECIPIENT, "service_name": "Tariff Publishing"})

    def test_unknown_template_raises(self, dev_dispatcher):
        with pytest.raises(NotificationDeliveryError):
            dev_dispatcher.render("welcome", RECIPIENT)

    def test_reminder_without_card_asks_for_one(self, dev_dispatcher):
        data = {**RECIPIENT, **TEMPLATE_DATA["autopay_reminder"], "card_last4": None, "card_brand": None}

        _, html = dev_dispatcher.render("autopay_reminder", data)

        assert "no card on file" in html
        assert "Add a card" in html
        assert "will be renewed automatically" not in html
        assert "No action is needed" not in html


class TestSend:
    """Delivery."""

    @pytest.mark.asyncio
    async def test_dev_mode_logs_instead_of_sending(self, dev_dispatcher):
        with patch("compliance.integrations.mail.dispatcher.smtplib.SMTP") as smtp_cls:
            sent = await dev_dispatcher.send(
                "dana@example.com", "expiry_5day", {**RECIPIENT, **TEMPLATE_DATA["expiry_5day"]}
            )

        assert sent is True
        smtp_cls.assert_not_called()

    @pytest.mark.asyncio
    async def test_smtp_delivery(self, smtp_dispatcher):
        with patch("compliance.integrations.mail.dispatcher.smtplib.SMTP") as smtp_cls:
            server = smtp_cls.return_value.__enter__.return_value
            sent = await smtp_dispatcher.send(
                "dana@example.com", "expiry_30day", {**RECIPIENT, **TEMPLATE_DATA["expiry_30day"]}
            )

        assert sent is True
        smtp_cls.assert_called_once_with("smtp.example.com", 587, timeout=30)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("mailer", "secret")
        message = server.send_message.call_args.args[0]
        assert message["To"] == "dana@example.com"
        assert message["Subject"] == "Your Tariff Publishing expires in 30 days"

    @pytest.mark.asyncio
    async def test_smtp_failure_is_swallowed(self, smtp_dispatcher):
        with patch("compliance.integrations.mail.dispatcher.smtplib.SMTP") as smtp_cls:
            smtp_cls.return_value.__enter__.return_value.login.side_effect = smtplib.SMTPAuthenticationError(
                535, b"bad credentials"
            )
            sent = await smtp_dispatcher.send(
                "dana@example.com", "expiry_30day", {**RECIPIENT, **TEMPLATE_DATA["expiry_30day"]}
            )

        assert sent is False

    @pytest.mark.asyncio
    async def test_render_failure_is_swallowed(self, dev_dispatcher):
        assert await dev_dispatcher.send("dana@example.com", "autopay_failed", RECIPIENT) is False
