"""
Canonical shift record shared by the feed and spreadsheet parsers.

Both input formats produce ShiftDraft values which go through
build_shift(), so code/time/clinician clean-up happens in one place.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, Optional

import pandas as pd

from ics_dates import get_timezone

TIME_RE = re.compile(r'^(\d{1,2}):(\d{2})$')

# Cell text used by the roster export for an unfilled slot
UNASSIGNED_PLACEHOLDER = '--'

SHIFT_COLUMNS = ['date', 'shiftName', 'startTime', 'endTime', 'doctor', 'location', 'raw']


@dataclass(frozen=True)
class Shift:
    date: str           # YYYY-MM-DD, facility local
    code: str           # e.g. "R-PM2", "Surge-AM"
    start: str          # HH:MM 24h, '' for all-day events
    end: str            # HH:MM 24h, may be <= start for overnight shifts
    clinician: str      # surname, '' when unassigned
    location: str = ''
    raw: str = ''

    @property
    def is_overnight(self) -> bool:
        return bool(self.start and self.end) and self.end <= self.start

    def start_at(self, tz=None) -> Optional[datetime]:
        """
        Start instant, or None if there is no start time. Naive wall-clock
        time unless a timezone (name or pytz zone) is given.
        """
        return localize(combine_date_time(self.date, self.start), tz)

    def end_at(self, tz=None) -> Optional[datetime]:
        """End instant, pushed to the next day when end <= start on the wall clock."""
        start = combine_date_time(self.date, self.start)
        end = combine_date_time(self.date, self.end)
        if start is None or end is None:
            return None
        if end <= start:
            end += timedelta(days=1)
        return localize(end, tz)

    def to_record(self) -> dict:
        record = {
            'date': self.date,
            'shiftName': self.code,
            'startTime': self.start,
            'endTime': self.end,
            'doctor': self.clinician,
        }
        if self.location:
            record['location'] = self.location
        if self.raw:
            record['raw'] = self.raw
        return record

    def label(self) -> str:
        return f"{self.date} {self.code} ({self.start}-{self.end})"


@dataclass(frozen=True)
class ShiftDraft:
    """Format-neutral fields pulled out of one event block or grid cell."""
    code: Optional[str]
    start: Optional[str]
    end: Optional[str]
    clinician_raw: Optional[str]
    location: Optional[str] = None
    raw: str = ''


@dataclass
class ParseResult:
    """Shifts from one parse run plus how many source records were skipped."""
    shifts: list[Shift] = field(default_factory=list)
    skipped: int = 0
    source: str = ''

    @property
    def parsed_nothing(self) -> bool:
        # Zero records is reported, not raised: the caller decides what to show.
        return not self.shifts

    def __len__(self):
        return len(self.shifts)

    def __iter__(self):
        return iter(self.shifts)


def combine_date_time(date_str: str, time_str: str) -> Optional[datetime]:
    if not date_str or not time_str:
        return None
    try:
        return datetime.strptime(f"{date_str} {time_str}", '%Y-%m-%d %H:%M')
    except ValueError:
        return None


def localize(value: Optional[datetime], tz=None) -> Optional[datetime]:
    """Attach the facility zone to a wall-clock time so DST shifts count."""
    if value is None or tz is None:
        return value
    return get_timezone(tz).localize(value)


def normalize_time(value: Optional[str]) -> str:
    """Zero-pad "7:00" to "07:00"; anything that is not H:MM/HH:MM becomes ''."""
    if not value:
        return ''
    m = TIME_RE.match(value.strip())
    if not m:
        return ''
    hour, minute = int(m.group(1)), int(m.group(2))
    if hour > 23 or minute > 59:
        return ''
    return f"{hour:02d}:{minute:02d}"


def normalize_clinician(value: Optional[str]) -> str:
    if not value:
        return ''
    name = ' '.join(value.split())
    if name == UNASSIGNED_PLACEHOLDER:
        return ''
    return name


def build_shift(date: str, draft: ShiftDraft) -> Shift:
    """Turn a draft into the canonical record. The code falls back to the raw text."""
    code = (draft.code or '').strip() or draft.raw.strip()
    return Shift(
        date=date,
        code=code,
        start=normalize_time(draft.start),
        end=normalize_time(draft.end),
        clinician=normalize_clinician(draft.clinician_raw),
        location=(draft.location or '').strip(),
        raw=draft.raw,
    )


def clinician_key(name: Optional[str]) -> str:
    """Key used for clinician lookups: trimmed and case-folded."""
    return (name or '').strip().casefold()


def sort_shifts(shifts: Iterable[Shift]) -> list[Shift]:
    """Order by date, then start time (all-day entries first)."""
    return sorted(shifts, key=lambda s: (s.date, s.start))


def list_clinicians(shifts: Iterable[Shift]) -> list[str]:
    names = {s.clinician.strip() for s in shifts if s.clinician.strip()}
    return sorted(names, key=str.casefold)


def clinician_shifts(shifts: Iterable[Shift], name: str) -> list[Shift]:
    key = clinician_key(name)
    if not key:
        return []
    return [s for s in shifts if clinician_key(s.clinician) == key]


def shifts_to_json(shifts: Iterable[Shift], indent: Optional[int] = 2) -> str:
    return json.dumps([s.to_record() for s in shifts], indent=indent)


def shifts_from_records(records: Iterable[dict]) -> list[Shift]:
    """Read back records in the outbound JSON shape."""
    return [
        Shift(
            date=r['date'],
            code=r.get('shiftName', ''),
            start=r.get('startTime', ''),
            end=r.get('endTime', ''),
            clinician=r.get('doctor', ''),
            location=r.get('location', ''),
            raw=r.get('raw', ''),
        )
        for r in records
    ]


def shifts_to_frame(shifts: Iterable[Shift]) -> pd.DataFrame:
    """Tabular view of shifts for display."""
    return pd.DataFrame([s.to_record() for s in shifts], columns=SHIFT_COLUMNS).fillna('')
