from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from app.core.config import settings


def utcnow() -> datetime:
    """Current time as naive UTC, matching how timestamps are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def local_midnight_utc(now: datetime | None = None, tz_name: str | None = None) -> datetime:
    """Start of the store's current local day, as naive UTC."""
    now = now or utcnow()
    tz = ZoneInfo(tz_name or settings.STORE_TIMEZONE)
    local = now.replace(tzinfo=timezone.utc).astimezone(tz)
    midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight.astimezone(timezone.utc).replace(tzinfo=None)


def hours_ago(hours: float, now: datetime | None = None) -> datetime:
    return (now or utcnow()) - timedelta(hours=hours)


def to_naive_utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
