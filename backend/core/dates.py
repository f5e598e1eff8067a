from datetime import datetime, time, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from core.config import settings


def _tz() -> ZoneInfo:
    return ZoneInfo(settings.queue_timezone)


def local_now(now: Optional[datetime] = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(_tz())


def get_today_key(now: Optional[datetime] = None) -> str:
    """Day partition key (YYYY-MM-DD) in the queue's local timezone."""
    return local_now(now).date().isoformat()


def _parse_hhmm(value: str) -> time:
    hh, mm = (value or "").strip().split(":", 1)
    return time(int(hh), int(mm))


def is_within_service_hours(service_start: str, service_end: str, now: Optional[datetime] = None) -> bool:
    start = _parse_hhmm(service_start)
    end = _parse_hhmm(service_end)
    current = local_now(now).time().replace(second=0, microsecond=0)
    if start == end:
        return True
    if start < end:
        return start <= current < end
    # window crosses midnight
    return current >= start or current < end


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
