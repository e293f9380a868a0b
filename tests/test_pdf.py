import io
from datetime import date

import pytest
from PIL import Image
from pypdf import PdfReader
from reportlab.pdfgen import canvas

from barangay_records.pdf_utils import (
    CertificateMeta,
    certificate_filename,
    issue_sentence,
    receipt_line,
    render_certificate_pdf,
)


def _meta(**overrides):
    values = dict(
        province="Metro Manila",
        municipality="Malabon",
        barangay_name="Catmon",
        certificate_title="Certificate of Residency",
        issue_date=date(2026, 3, 5),
        place_issued="Barangay Hall",
        captain_name="Maria Cruz",
        secretary_name="Jose Rizal",
        resident_display_name="Juan Santos",
    )
    values.update(overrides)
    return CertificateMeta(**values)


def _text(pdf_bytes):
    reader = PdfReader(io.BytesIO(pdf_bytes))
    return reader, "\n".join(page.extract_text() for page in reader.pages)


def test_single_page_layout():
    pdf = render_certificate_pdf("This is to certify that JUAN SANTOS is a resident.", _meta())
    assert pdf.startswith(b"%PDF")

    reader, text = _text(pdf)
    assert len(reader.pages) == 1
    for expected in (
        "Republic of the Philippines",
        "Province of Metro Manila",
        "City/Municipality of Malabon",
        "BARANGAY CATMON",
        "CERTIFICATE OF RESIDENCY",
        "TO WHOM IT MAY CONCERN:",
        "JUAN SANTOS",
        "MARIA CRUZ",
        "Punong Barangay",
        "JOSE RIZAL",
        "Barangay Secretary",
    ):
        assert expected in text
    assert "OR No." not in text


def test_receipt_line_rules():
    assert receipt_line(None, None) is None
    assert receipt_line("", "") is None
    assert receipt_line("12345", None) == "OR No.: 12345"
    assert receipt_line(None, "50.00") == "OR No.: N/A | Amount: PHP 50.00"
    assert receipt_line("12345", "50.00") == "OR No.: 12345 | Amount: PHP 50.00"


def test_receipt_line_is_rendered_when_given():
    _, text = _text(render_certificate_pdf("Body.", _meta(or_number="778899", amount="100.00")))
    assert "OR No.: 778899 | Amount: PHP 100.00" in text


def test_issue_sentence():
    assert issue_sentence(_meta()) == "Issued this 5 March 2026 at Barangay Hall, Catmon, Malabon, Metro Manila."


def test_long_body_continues_on_new_page_with_header():
    body = " ".join(["This certification is issued for the records of the barangay."] * 200)
    reader, _ = _text(render_certificate_pdf(body, _meta()))
    assert len(reader.pages) > 1
    for page in reader.pages:
        assert "Republic of the Philippines" in page.extract_text()
    assert "Barangay Secretary" in reader.pages[-1].extract_text()


def test_signature_image_is_embedded(tmp_path):
    sig = tmp_path / "sig.png"
    Image.new("RGB", (300, 100), color=(0, 0, 0)).save(sig)

    plain = render_certificate_pdf("Body.", _meta())
    signed = render_certificate_pdf("Body.", _meta(captain_signature=str(sig)))
    assert len(signed) > len(plain)

    page = PdfReader(io.BytesIO(signed)).pages[0]
    assert len(page.images) == 1


def test_unreadable_signature_is_skipped(tmp_path):
    broken = tmp_path / "broken.png"
    broken.write_bytes(b"not an image")
    pdf = render_certificate_pdf("Body.", _meta(captain_signature=str(broken)))
    _, text = _text(pdf)
    assert "MARIA CRUZ" in text


@pytest.mark.filterwarnings("error:.*writer:DeprecationWarning")
def test_letterhead_is_merged_under_first_page_only(tmp_path):
    letterhead = tmp_path / "letterhead.pdf"
    c = canvas.Canvas(str(letterhead))
    c.drawString(40, 40, "OFFICIAL LETTERHEAD")
    c.showPage()
    c.drawString(40, 40, "LETTERHEAD BACK PAGE")
    c.save()

    body = " ".join(["This certification is issued for the records of the barangay."] * 200)
    pdf = render_certificate_pdf(body, _meta(), letterhead_path=str(letterhead))
    reader, text = _text(pdf)
    assert len(reader.pages) > 1
    assert "OFFICIAL LETTERHEAD" in reader.pages[0].extract_text()
    assert "CERTIFICATE OF RESIDENCY" in reader.pages[0].extract_text()
    assert "OFFICIAL LETTERHEAD" not in reader.pages[1].extract_text()
    assert "LETTERHEAD BACK PAGE" not in text


def test_certificate_filename():
    assert certificate_filename("residency", "Juan M. Santos Jr.") == "certificate_residency_juan_m._santos_jr..pdf"
    assert certificate_filename("clearance", "Ana  Reyes") == "certificate_clearance_ana_reyes.pdf"
