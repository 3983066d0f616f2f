"""
Local vector rendering of certificates with ReportLab.

Layout is fixed and content-independent: every element sits at the same position on a
landscape A4 page whatever the certificate says. Positions are expressed in millimetres
from the top-left corner of the page and converted to ReportLab's bottom-left origin.
"""

from datetime import date
from io import BytesIO
from typing import Optional

from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas
from starlette.concurrency import run_in_threadpool

from opalforge.logging import get_logger
from opalforge.rendering import qr
from opalforge.rendering.base import (
    TIER_COLORS,
    TIER_LABELS,
    CertificateRenderer,
    confidence_tier,
    format_issue_date,
    format_score,
)

logger = get_logger(__name__)

PAGE_SIZE = landscape(A4)
PAGE_WIDTH, PAGE_HEIGHT = PAGE_SIZE
CENTER_X = 148.5

TITLE_Y = 40
ID_Y = 60
SCORE_LABEL_Y = 80
SCORE_Y = 95
BAND_Y = 103
BAND_WIDTH = 90
BAND_HEIGHT = 10
ISSUED_Y = 125
QR_X, QR_Y, QR_SIZE = 220, 130, 40
QR_CAPTION_Y = 176
FOOTER_Y = 195
BORDER_INSET = 8

TEXT_COLOR = HexColor("#1F2933")
MUTED_COLOR = HexColor("#616E7C")
BORDER_COLOR = HexColor("#3E4C59")


def _y(top_mm: float) -> float:
    return PAGE_HEIGHT - top_mm * mm


def render_certificate_pdf(
    cert_id: str,
    qr_png: bytes,
    confidence: float,
    issued_on: Optional[date] = None,
) -> bytes:
    """
    Draws a single-page certificate and returns the PDF bytes.

    Args:
        cert_id: Certificate identifier printed on the page.
        qr_png: PNG raster of the verification QR code, embedded as-is.
        confidence: Authentication confidence in percent; selects the colour band.
        issued_on: Issue date to print. Defaults to today.

    Returns:
        bytes: The rendered PDF document.
    """
    tier = confidence_tier(confidence)
    tier_color = HexColor(TIER_COLORS[tier])

    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=PAGE_SIZE, invariant=1)
    c.setTitle(f"OpalForge Certificate {cert_id}")
    c.setAuthor("OpalForge")

    c.setStrokeColor(BORDER_COLOR)
    c.setLineWidth(1.5)
    c.rect(
        BORDER_INSET * mm,
        BORDER_INSET * mm,
        PAGE_WIDTH - 2 * BORDER_INSET * mm,
        PAGE_HEIGHT - 2 * BORDER_INSET * mm,
    )

    c.setFillColor(TEXT_COLOR)
    c.setFont("Helvetica-Bold", 22)
    c.drawCentredString(CENTER_X * mm, _y(TITLE_Y), "Certificate of Authenticity")

    c.setFont("Helvetica", 16)
    c.drawCentredString(CENTER_X * mm, _y(ID_Y), f"ID: {cert_id}")

    c.setFillColor(MUTED_COLOR)
    c.setFont("Helvetica", 12)
    c.drawCentredString(CENTER_X * mm, _y(SCORE_LABEL_Y), "Confidence Score")

    c.setFillColor(tier_color)
    c.setFont("Helvetica-Bold", 28)
    c.drawCentredString(CENTER_X * mm, _y(SCORE_Y), format_score(confidence))

    c.roundRect(
        (CENTER_X - BAND_WIDTH / 2) * mm,
        _y(BAND_Y + BAND_HEIGHT),
        BAND_WIDTH * mm,
        BAND_HEIGHT * mm,
        2 * mm,
        stroke=0,
        fill=1,
    )
    c.setFillColor(HexColor("#FFFFFF"))
    c.setFont("Helvetica-Bold", 12)
    c.drawCentredString(CENTER_X * mm, _y(BAND_Y + 6.5), TIER_LABELS[tier])

    c.setFillColor(TEXT_COLOR)
    c.setFont("Helvetica", 12)
    c.drawCentredString(CENTER_X * mm, _y(ISSUED_Y), f"Issued: {format_issue_date(issued_on)}")

    c.drawImage(
        ImageReader(BytesIO(qr_png)),
        QR_X * mm,
        _y(QR_Y + QR_SIZE),
        width=QR_SIZE * mm,
        height=QR_SIZE * mm,
    )
    c.setFillColor(MUTED_COLOR)
    c.setFont("Helvetica", 9)
    c.drawCentredString((QR_X + QR_SIZE / 2) * mm, _y(QR_CAPTION_Y), "Scan to verify")

    c.setFont("Helvetica-Oblique", 9)
    c.drawCentredString(CENTER_X * mm, _y(FOOTER_Y), "Issued by OpalForge")

    c.showPage()
    c.save()
    return buf.getvalue()


class LocalRenderer(CertificateRenderer):
    """Renders certificates in-process. Output is never cached."""

    name = "local"
    cache_output = False

    def filename(self, cert_id: str) -> str:
        return f"OpalForge_{cert_id}.pdf"

    async def render(self, cert_id: str, qr_payload: str, confidence: float) -> bytes:
        logger.info(f"Rendering certificate {cert_id} locally")
        qr_png = await run_in_threadpool(qr.encode_png, qr_payload)
        return await run_in_threadpool(render_certificate_pdf, cert_id, qr_png, confidence)
