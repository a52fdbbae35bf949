"""Timestamp helpers; console-side day math happens in CONSOLE_TIMEZONE"""

from datetime import date, datetime, time, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo

from dateutil.parser import isoparse

from ..config import CONSOLE_TIMEZONE


def console_tz() -> ZoneInfo:
    return ZoneInfo(CONSOLE_TIMEZONE)


def to_local(moment: datetime, tz: Optional[ZoneInfo] = None) -> datetime:
    """Convert to console time; naive datetimes are taken to already be local"""
    tz = tz or console_tz()
    if moment.tzinfo is None:
        return moment.replace(tzinfo=tz)
    return moment.astimezone(tz)


def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse an upstream ISO timestamp into console time"""
    if not value:
        return None
    if isinstance(value, str):
        value = isoparse(value)
    return to_local(value)


def start_of_day(day: date, tz: Optional[ZoneInfo] = None) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz or console_tz())


def local_now() -> datetime:
    return datetime.now(console_tz())


def local_today() -> date:
    return local_now().date()


def iso_utc(moment: datetime) -> str:
    """ISO 8601 in UTC with millisecond precision, e.g. 2026-10-16T07:00:00.000Z"""
    return to_local(moment).astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
