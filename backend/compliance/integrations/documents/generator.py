"""
Certificate and tariff document generation.

Renders one-page PDFs with reportlab and hands them to a DocumentStorage.
Rendering reads ORM attributes, so it happens on the caller's thread; only
the storage write, which may block on the network, runs in a worker thread.
"""

import asyncio
import logging
import re
import time
from datetime import date
from io import BytesIO
from typing import List, Optional, Tuple

from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import LETTER
from reportlab.pdfgen import canvas

from compliance.config import settings
from compliance.integrations.documents.storage import DocumentStorage, build_document_storage
from compliance.models import ArbitrationEnrollment, TariffOrder, User
from compliance.platform.errors import DocumentGenerationError

logger = logging.getLogger(__name__)

NAVY = HexColor("#0a1628")
GOLD = HexColor("#c9a227")
LIGHT_BLUE = HexColor("#e8f4f8")
MAX_VALUE_CHARS = 60


def _format_date(value: Optional[date]) -> str:
    return value.strftime("%B %d, %Y") if value else "N/A"


def _file_name(kind: str, user: User) -> str:
    ident = re.sub(r"[^a-zA-Z0-9]", "", user.mc_number or "") or str(user.id)
    return f"{kind}-{ident}-{int(time.time() * 1000)}.pdf"


def _carrier_lines(user: User) -> List[Tuple[str, str]]:
    location = ", ".join(p for p in (user.city, user.state) if p)
    return [
        ("Carrier", user.company_name or ""),
        ("MC Number", user.mc_number or "N/A"),
        ("USDOT Number", user.usdot_number or "N/A"),
        ("Address", " ".join(p for p in (user.address, location, user.zip) if p) or "N/A"),
    ]


def _tariff_detail_lines(order: TariffOrder) -> List[Tuple[str, str]]:
    rows = []
    rates = order.rates if isinstance(order.rates, dict) else {}
    for key, value in rates.items():
        # Nested groups (e.g. accessorial surcharges) are not printed on the summary page
        if not isinstance(value, (dict, list)):
            rows.append((key.replace("_", " ").title(), str(value)))
    accessorials = order.accessorials if isinstance(order.accessorials, list) else []
    names = [item.get("name", "") if isinstance(item, dict) else str(item) for item in accessorials]
    if any(names):
        rows.append(("Accessorials", ", ".join(n for n in names if n)))
    if order.special_notes:
        rows.append(("Special Notes", order.special_notes))
    return rows


def _render(title: str, subtitle: str, rows: List[Tuple[str, str]], footer: str) -> bytes:
    buffer = BytesIO()
    width, height = LETTER
    can = canvas.Canvas(buffer, pagesize=LETTER)
    can.setTitle(title)
    can.setAuthor(settings.COMPANY_NAME)

    # Frame
    can.setStrokeColor(NAVY)
    can.setLineWidth(3)
    can.rect(30, 30, width - 60, height - 60)
    can.setStrokeColor(GOLD)
    can.setLineWidth(1)
    can.rect(35, 35, width - 70, height - 70)
    can.setFillColor(LIGHT_BLUE)
    can.rect(40, 40, width - 80, height - 80, stroke=0, fill=1)

    can.setFillColor(NAVY)
    can.setFont("Helvetica-Bold", 24)
    can.drawCentredString(width / 2, height - 100, settings.COMPANY_NAME.upper())
    can.setFillColor(GOLD)
    can.setFont("Helvetica-Bold", 18)
    can.drawCentredString(width / 2, height - 140, title)
    can.setFillColor(NAVY)
    can.setFont("Helvetica", 12)
    can.drawCentredString(width / 2, height - 165, subtitle)

    y = height - 230
    for label, value in rows:
        can.setFont("Helvetica-Bold", 12)
        can.drawString(90, y, f"{label}:")
        can.setFont("Helvetica", 12)
        text = str(value)
        can.drawString(230, y, text if len(text) <= MAX_VALUE_CHARS else text[: MAX_VALUE_CHARS - 3] + "...")
        y -= 26

    can.setFont("Helvetica", 9)
    can.drawCentredString(width / 2, 70, footer)
    can.showPage()
    can.save()
    return buffer.getvalue()


class DocumentGenerator:
    """
    Renders tariff and arbitration documents for a carrier.

    Args:
        storage: Where rendered PDFs go (defaults to configured storage)
    """

    def __init__(self, storage: Optional[DocumentStorage] = None):
        self.storage = storage or build_document_storage()

    def _footer(self) -> str:
        return f"{settings.COMPANY_NAME} | {settings.COMPANY_PHONE} | {settings.COMPANY_EMAIL}"

    def build_tariff_pdf(self, user: User, order: TariffOrder) -> bytes:
        rows = _carrier_lines(user) + [
            ("Pricing Method", (order.pricing_method or "N/A").replace("_", " ").title()),
            ("Service Territory", order.service_territory or "N/A"),
            ("Effective Date", _format_date(order.enrolled_date)),
            ("Expiration Date", _format_date(order.expiry_date)),
        ] + _tariff_detail_lines(order)
        return _render(
            "Household Goods Tariff",
            f"Published tariff for {user.company_name}",
            rows,
            self._footer(),
        )

    def build_arbitration_pdf(self, user: User, enrollment: ArbitrationEnrollment) -> bytes:
        rows = _carrier_lines(user) + [
            ("Enrollment Date", _format_date(enrollment.enrolled_date)),
            ("Expiration Date", _format_date(enrollment.expiry_date)),
            ("Certificate No.", f"ARB-{enrollment.id:06d}" if enrollment.id else "N/A"),
        ]
        return _render(
            "Arbitration Program Enrollment Certificate",
            "Dispute settlement program for household goods shippers",
            rows,
            self._footer(),
        )

    async def _render_and_store(self, kind: str, user: User, builder, record) -> str:
        try:
            content = builder(user, record)
            return await asyncio.to_thread(self.storage.save, _file_name(kind, user), content)
        except DocumentGenerationError:
            raise
        except Exception as e:
            raise DocumentGenerationError(
                f"Failed to generate {kind}: {str(e)}",
                details={"user_id": user.id, "record_id": getattr(record, "id", None)},
            ) from e

    async def render_tariff_document(self, user: User, order: TariffOrder) -> str:
        """
        Render and store a tariff document.

        Returns:
            URL of the stored document

        Raises:
            DocumentGenerationError: If rendering or storage fails
        """
        url = await self._render_and_store("tariff", user, self.build_tariff_pdf, order)
        logger.info("Tariff document generated", extra={"order_id": order.id, "document_url": url})
        return url

    async def render_arbitration_document(self, user: User, enrollment: ArbitrationEnrollment) -> str:
        """
        Render and store an arbitration enrollment certificate.

        Returns:
            URL of the stored document

        Raises:
            DocumentGenerationError: If rendering or storage fails
        """
        url = await self._render_and_store(
            "arbitration-certificate", user, self.build_arbitration_pdf, enrollment
        )
        logger.info("Arbitration certificate generated", extra={"enrollment_id": enrollment.id, "document_url": url})
        return url
