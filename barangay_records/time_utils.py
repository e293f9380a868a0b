"""Date/time helpers shared by the models and the PDF renderer."""

from datetime import date, datetime, timezone


def utcnow() -> datetime:
    """Return a naive UTC datetime for DB storage and comparisons."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def format_issue_date(value: date) -> str:
    """Day-first long form used on certificates, e.g. ``5 March 2026``."""
    return f"{value.day} {value.strftime('%B')} {value.year}"
