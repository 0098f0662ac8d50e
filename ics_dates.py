"""
Decode iCalendar DTSTART/DTEND values into facility-local date and time.

Three shapes are understood:
  20251117T153000Z   UTC instant, converted to the facility timezone
  20251117T153000    floating local time, taken as-is
  20251117           all-day date, no time of day
Anything else decodes to None.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import NamedTuple, Optional, Union

import pytz
from pytz.tzinfo import BaseTzInfo

from roster_config import DEFAULT_TIMEZONE

UTC_RE = re.compile(r'^(\d{4})(\d{2})(\d{2})T(\d{2})(\d{2})(\d{2})?Z$')
FLOATING_RE = re.compile(r'^(\d{4})(\d{2})(\d{2})T(\d{2})(\d{2})(\d{2})?$')
ALL_DAY_RE = re.compile(r'^(\d{4})(\d{2})(\d{2})$')


class LocalDateTime(NamedTuple):
    date: str   # YYYY-MM-DD
    time: str   # HH:MM, '' for all-day values

    @property
    def all_day(self) -> bool:
        return not self.time


def get_timezone(tz: Union[str, BaseTzInfo, None] = None) -> BaseTzInfo:
    if tz is None:
        return pytz.timezone(DEFAULT_TIMEZONE)
    if isinstance(tz, str):
        return pytz.timezone(tz)
    return tz


def _positional(match: re.Match) -> datetime:
    year, month, day, hour, minute, second = match.groups()
    return datetime(int(year), int(month), int(day), int(hour), int(minute), int(second or 0))


def decode_ics_datetime(token: Optional[str], tz: Union[str, BaseTzInfo, None] = None) -> Optional[LocalDateTime]:
    """
    Decode one date-time token.

    Args:
        token: Property value, e.g. "20251117T153000Z"
        tz: Facility timezone used for UTC values (name or pytz zone)

    Returns:
        LocalDateTime, or None if the token is not one of the known shapes
        or names an impossible date/time.
    """
    if not token:
        return None
    value = token.strip()

    try:
        m = UTC_RE.match(value)
        if m:
            instant = pytz.utc.localize(_positional(m))
            local = instant.astimezone(get_timezone(tz))
            return LocalDateTime(local.strftime('%Y-%m-%d'), local.strftime('%H:%M'))

        m = FLOATING_RE.match(value)
        if m:
            local = _positional(m)
            return LocalDateTime(local.strftime('%Y-%m-%d'), local.strftime('%H:%M'))

        m = ALL_DAY_RE.match(value)
        if m:
            day = datetime(int(m.group(1)), int(m.group(2)), int(m.group(3)))
            return LocalDateTime(day.strftime('%Y-%m-%d'), '')
    except ValueError:
        # month 13, hour 25 and friends
        return None

    return None
