"""PDF generation utilities.

This project uses ReportLab for PDF output so it works in development
without external system dependencies.

A certificate is laid out top-down on A4: jurisdiction header, title,
salutation, body, issuance sentence, optional receipt line and the two
signature blocks.  Text that would cross the bottom margin continues on a
new page that repeats the header.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from datetime import date
from io import BytesIO

from pypdf import PdfReader, PdfWriter
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas

from .time_utils import format_issue_date

logger = logging.getLogger(__name__)

PAGE_WIDTH, PAGE_HEIGHT = A4
MARGIN_X = 20 * mm
MARGIN_TOP = 20 * mm
MARGIN_BOTTOM = 20 * mm
TEXT_WIDTH = PAGE_WIDTH - 2 * MARGIN_X
LINE_HEIGHT = 6 * mm

BODY_FONT = "Times-Roman"
BOLD_FONT = "Times-Bold"
BODY_SIZE = 12

SIGNATURE_HEIGHT = 12 * mm
SIGNATURE_MAX_WIDTH = 45 * mm


@dataclass
class CertificateMeta:
    """Everything besides the body text that appears on a certificate."""

    province: str
    municipality: str
    barangay_name: str
    certificate_title: str
    issue_date: date
    place_issued: str
    captain_name: str = ""
    secretary_name: str = ""
    resident_display_name: str = ""
    or_number: str | None = None
    amount: str | None = None
    # Absolute file paths of the signatories' signature images, if any.
    captain_signature: str | None = None
    secretary_signature: str | None = None


def certificate_filename(certificate_type: str, resident_display_name: str) -> str:
    """``certificate_<type>_<name with whitespace runs as '_', lower-cased>.pdf``."""
    name = re.sub(r"\s+", "_", (resident_display_name or "").strip()).lower()
    return f"certificate_{certificate_type}_{name}.pdf"


def issue_sentence(meta: CertificateMeta) -> str:
    return (
        f"Issued this {format_issue_date(meta.issue_date)} at {meta.place_issued}, "
        f"{meta.barangay_name}, {meta.municipality}, {meta.province}."
    )


def receipt_line(or_number: str | None, amount: str | None) -> str | None:
    """OR/amount line, or None when neither value was given."""
    if not or_number and not amount:
        return None
    text = f"OR No.: {or_number or 'N/A'}"
    if amount:
        text += f" | Amount: PHP {amount}"
    return text


def _draw_header(c: canvas.Canvas, meta: CertificateMeta) -> float:
    """Draw the jurisdiction header and rule; return the y below it."""
    center = PAGE_WIDTH / 2
    y = PAGE_HEIGHT - MARGIN_TOP
    c.setFont(BODY_FONT, 10)
    lines = [
        "Republic of the Philippines",
        f"Province of {meta.province}",
        f"City/Municipality of {meta.municipality}",
        f"BARANGAY {meta.barangay_name.upper()}",
    ]
    for i, line in enumerate(lines):
        if i:
            y -= 5 * mm
        c.drawCentredString(center, y, line)

    y -= 12 * mm
    c.setLineWidth(0.5 * mm)
    c.line(MARGIN_X, y, PAGE_WIDTH - MARGIN_X, y)
    return y - 10 * mm


def _draw_signature_image(c: canvas.Canvas, path: str | None, name_y: float) -> None:
    if not path or not os.path.isfile(path):
        return
    try:
        c.drawImage(
            path,
            PAGE_WIDTH - MARGIN_X - SIGNATURE_MAX_WIDTH,
            name_y + 2 * mm,
            width=SIGNATURE_MAX_WIDTH,
            height=SIGNATURE_HEIGHT,
            preserveAspectRatio=True,
            anchor="se",
            mask="auto",
        )
    except Exception:
        # An unreadable image should not block issuing the certificate.
        logger.warning("Could not draw signature image %s", path, exc_info=True)


def _merge_letterhead(letterhead_path: str, rendered: bytes) -> bytes:
    """Place page one of the letterhead PDF underneath the first rendered page."""
    overlay_reader = PdfReader(BytesIO(rendered))

    writer = PdfWriter()
    first_page = writer.add_page(PdfReader(letterhead_path).pages[0])
    first_page.merge_page(overlay_reader.pages[0])
    for page in overlay_reader.pages[1:]:
        writer.add_page(page)
    out = BytesIO()
    writer.write(out)
    return out.getvalue()


def render_certificate_pdf(body: str, meta: CertificateMeta, *, letterhead_path: str | None = None) -> bytes:
    """Lay out a certificate and return the PDF bytes."""
    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4)
    c.setTitle(meta.certificate_title)
    c.setAuthor(f"Barangay {meta.barangay_name}")
    if meta.resident_display_name:
        c.setSubject(meta.resident_display_name)

    y = _draw_header(c, meta)

    def ensure_room(height: float) -> None:
        nonlocal y
        if y - height < MARGIN_BOTTOM:
            c.showPage()
            y = _draw_header(c, meta)

    def draw_wrapped(text: str, font_name: str = BODY_FONT, font_size: int = BODY_SIZE) -> None:
        nonlocal y
        for line in simpleSplit(text, font_name, font_size, TEXT_WIDTH) or [""]:
            ensure_room(LINE_HEIGHT)
            c.setFont(font_name, font_size)
            c.drawString(MARGIN_X, y, line)
            y -= LINE_HEIGHT

    # Title
    c.setFont(BOLD_FONT, 16)
    c.drawCentredString(PAGE_WIDTH / 2, y, meta.certificate_title.upper())
    y -= 12 * mm

    c.setFont(BODY_FONT, BODY_SIZE)
    c.drawString(MARGIN_X, y, "TO WHOM IT MAY CONCERN:")
    y -= 8 * mm

    draw_wrapped(body)
    y -= 6 * mm

    draw_wrapped(issue_sentence(meta))
    y -= 10 * mm

    receipt = receipt_line(meta.or_number, meta.amount)
    if receipt:
        ensure_room(LINE_HEIGHT)
        c.setFont(BODY_FONT, 10)
        c.drawString(MARGIN_X, y, receipt)
        y -= 10 * mm

    # Signatories, kept together on one page.
    captain_space = SIGNATURE_HEIGHT if meta.captain_signature else 0
    secretary_space = SIGNATURE_HEIGHT if meta.secretary_signature else 0
    ensure_room(10 * mm + captain_space + 20 * mm + secretary_space + 5 * mm)

    # Each gap is measured from the previous signatory's name line.
    right = PAGE_WIDTH - MARGIN_X
    blocks = (
        (meta.captain_name, "Punong Barangay", meta.captain_signature, 10 * mm + captain_space),
        (meta.secretary_name, "Barangay Secretary", meta.secretary_signature, 20 * mm + secretary_space),
    )
    for name, title, signature, gap in blocks:
        y -= gap
        _draw_signature_image(c, signature, y)
        c.setFont(BOLD_FONT, BODY_SIZE)
        c.drawRightString(right, y, (name or "").upper())
        c.setFont(BODY_FONT, BODY_SIZE)
        c.drawRightString(right, y - 5 * mm, title)

    c.save()
    rendered = buffer.getvalue()

    if letterhead_path and os.path.isfile(letterhead_path):
        return _merge_letterhead(letterhead_path, rendered)
    return rendered
