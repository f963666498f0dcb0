from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo


def business_today(tz_name: str) -> date:
    """Current calendar date where the fields are located."""
    return datetime.now(ZoneInfo(tz_name)).date()


def utc_naive_to_aware(dt: datetime) -> datetime:
    return dt.replace(tzinfo=timezone.utc)
