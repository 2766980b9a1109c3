from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every datetime column is compared in."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    # PostgreSQL hands back aware datetimes, SQLite naive ones
    if value is None:
        return None
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def format_date(value: Optional[datetime], fmt: str = "%B %d, %Y") -> str:
    if value is None:
        return "TBA"
    return value.strftime(fmt)


def format_date_range(start: Optional[datetime], end: Optional[datetime]) -> str:
    if not start and not end:
        return "Dates to be announced"
    return f"{format_date(start, '%b %d, %Y')} - {format_date(end, '%b %d, %Y')}"
