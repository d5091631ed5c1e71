from datetime import datetime, timezone
from typing import Any, Optional

# LibreLinkUp timestamps look like "1/15/2024 10:30:00 AM"
LIBRE_TIMESTAMP_FORMATS = (
    "%m/%d/%Y %I:%M:%S %p",
    "%m/%d/%Y %H:%M:%S",
)


def parse_libre_timestamp(value: str) -> datetime:
    """Parse a vendor timestamp string into a naive wall-clock datetime.

    Raises:
        ValueError: If the string matches no known format
    """
    s = str(value).strip()
    for fmt in LIBRE_TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(s, fmt)
        except ValueError:
            continue
    dt = datetime.fromisoformat(s.replace('Z', '+00:00'))
    if dt.tzinfo is not None:
        # Already an instant; keep its wall clock in UTC
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def utc_from_local_wall_clock(wall_clock: datetime) -> datetime:
    """Shift a wall-clock time by the negative local timezone offset.

    The naive value is read as local time, then the local UTC offset for that
    moment is subtracted, so the result carries the same wall clock in UTC.
    """
    local = wall_clock.astimezone()
    offset = local.utcoffset()
    return local.astimezone(timezone.utc) + offset


def get_utc_date_from_string(timestamp: str) -> datetime:
    """Vendor timestamp string -> aware UTC datetime."""
    return utc_from_local_wall_clock(parse_libre_timestamp(timestamp))


def to_fhir_instant(dt: datetime) -> str:
    """Render an aware datetime as ISO 8601 UTC with milliseconds, e.g. 2024-01-15T10:30:00.000Z."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_fhir_datetime(value: Any) -> Optional[datetime]:
    """Parse a FHIR dateTime/instant string into an aware UTC datetime."""
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def file_timestamp(now: Optional[datetime] = None) -> str:
    """UTC ISO timestamp usable in a file name (colons replaced by dashes)."""
    return to_fhir_instant(now or datetime.now(timezone.utc)).replace(':', '-')
