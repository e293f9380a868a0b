"""Certificate body text.

Pure functions only: given a resident, a certificate type, a purpose and
the barangay locality, build the prose that goes under
"TO WHOM IT MAY CONCERN:".  The PDF layout lives in `pdf_utils`.

Residents may be passed as model instances or plain dicts.
"""

from __future__ import annotations

CERTIFICATE_TYPES = {
    "residency": "Certificate of Residency",
    "indigency": "Certificate of Indigency",
    "clearance": "Barangay Clearance",
}

CAPTAIN_POSITION = "Punong Barangay"
SECRETARY_POSITION = "Barangay Secretary"


def _field(record, name: str) -> str:
    if isinstance(record, dict):
        value = record.get(name)
    else:
        value = getattr(record, name, None)
    return str(value).strip() if value else ""


def build_full_name(resident) -> str:
    """``FIRST M. LAST SUFFIX``; middle initial and suffix only when present."""
    if not resident:
        return ""
    middle = _field(resident, "middle_name")
    parts = [
        _field(resident, "first_name"),
        f"{middle[0]}." if middle else "",
        _field(resident, "last_name"),
        _field(resident, "suffix"),
    ]
    return " ".join(p for p in parts if p)


def certificate_title(certificate_type: str) -> str:
    return CERTIFICATE_TYPES.get(certificate_type, "Certificate")


def _lower_first(text: str) -> str:
    return text[0].lower() + text[1:] if text else ""


def generate_certificate_body(
    resident,
    certificate_type: str,
    purpose: str | None,
    barangay_name: str,
    municipality: str,
    province: str,
) -> str:
    """Return the certificate body, or ``""`` for an unknown certificate type.

    Only the first character of ``purpose`` is lower-cased so that it reads
    mid-sentence ("Employment" -> "for employment.").
    """
    if not resident:
        return ""

    name = build_full_name(resident).upper()
    address = _field(resident, "address") or f"{barangay_name}, {municipality}, {province}"
    purpose = (purpose or "").strip()
    lower_purpose = _lower_first(purpose)

    if certificate_type == "residency":
        return (
            f"This is to certify that {name}, "
            f"a resident of {address}, is a bona fide resident of {barangay_name}, {municipality}, {province}. "
            "This certification is being issued upon the request of the above-named person "
            + (f"for {lower_purpose}." if purpose else "for whatever legal purpose it may serve.")
        )
    if certificate_type == "indigency":
        return (
            f"This is to certify that {name}, "
            f"a resident of {address}, is known to this office as an indigent. "
            "This certification is issued to attest to his/her indigent status "
            + (f"for {lower_purpose}." if purpose else "for any legal and lawful purpose it may serve.")
        )
    if certificate_type == "clearance":
        return (
            "This is to certify that, based on the records of this Barangay, "
            f"{name}, a resident of {address}, has no derogatory record filed in this office "
            "at the time of issuance of this certification. "
            + (
                f"This certification is issued upon his/her request for {lower_purpose}."
                if purpose
                else "This certification is issued upon his/her request for whatever legal purpose it may serve."
            )
        )
    return ""


def find_signatory(officials, flag: str, position: str):
    """First official carrying ``flag`` or holding ``position``; None if nobody does.

    ``officials`` is expected in list order (order_no, position, full_name).
    """
    for official in officials:
        if getattr(official, flag, False) or getattr(official, "position", None) == position:
            return official
    return None
