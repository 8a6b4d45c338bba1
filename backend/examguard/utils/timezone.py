"""
Timezone helpers. Timestamps are stored in UTC and shown in the
platform's configured timezone.
"""
from datetime import datetime
from typing import Optional

import pytz

from ..core.config import settings


def get_local_timezone():
    return pytz.timezone(settings.default_timezone)


def get_local_now() -> datetime:
    return datetime.now(get_local_timezone())


def utc_now() -> datetime:
    return datetime.now(pytz.UTC)


def to_local(dt: datetime) -> datetime:
    """Convert a datetime to the configured timezone; naive values are taken as UTC"""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=pytz.UTC)
    return dt.astimezone(get_local_timezone())


def format_local_time(dt: datetime, format_str: Optional[str] = None) -> str:
    return to_local(dt).strftime(format_str or settings.timezone_display_format)


def get_timezone_info() -> dict:
    now = get_local_now()
    return {
        "timezone": settings.default_timezone,
        "offset": now.strftime("%z"),
        "current_time": format_local_time(now)
    }
