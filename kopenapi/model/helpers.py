from datetime import datetime, timezone
from typing import Optional

from dateutil.parser import parse as parse_date


def maybe_parse_date(dt: Optional[str]) -> Optional[datetime]:
    if dt:
        return parse_date(dt)

    return None


def as_utc(dt: datetime) -> datetime:
    "Naive datetimes are taken to be UTC already"

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_date(dt: datetime) -> str:
    dt = as_utc(dt)

    if dt.microsecond:
        return dt.strftime("%Y-%m-%dT%H:%M:%S.%fZ")
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ")
