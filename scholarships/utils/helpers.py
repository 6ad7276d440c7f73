"""Helper utilities."""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def format_application_number(cycle_id, sequence: int) -> str:
    """Human-readable, cycle-scoped application number (APP-1a2b-007)."""
    suffix = str(cycle_id).replace("-", "")[-4:]
    return f"APP-{suffix}-{sequence:03d}"

