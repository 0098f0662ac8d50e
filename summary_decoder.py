"""
Best-effort extraction of shift code and clinician from free text.

Feed summaries look like:
    "SBH - ED - R-PM2 - 15:30-00:30 - Peters (Day 2/2)"
    "SBH - ED - Surge-AM - 08:00-17:00 - Klassen"
but the site/department prefix and the annotation are optional. There is
no grammar here; these functions always return something.
"""

from __future__ import annotations

import re
from typing import NamedTuple, Optional

from shift_model import UNASSIGNED_PLACEHOLDER, normalize_time

SEPARATOR = ' - '

# "(Day 2/2)", "(M3)" at the end of a name
TRAILING_ANNOTATION_RE = re.compile(r'\s*\([^()]*\)\s*$')
TIME_BLOCK_RE = re.compile(r'^(\d{1,2}:\d{2})\s*-\s*(\d{1,2}:\d{2})$')
NAME_RUN_RE = re.compile(r'[A-Za-z]+')


class SummaryParts(NamedTuple):
    code: str
    clinician: str
    start: Optional[str] = None
    end: Optional[str] = None


def strip_annotation(text: str) -> str:
    return TRAILING_ANNOTATION_RE.sub('', text).strip()


def _time_block(segments: list[str]) -> tuple[Optional[str], Optional[str]]:
    for segment in segments:
        m = TIME_BLOCK_RE.match(segment)
        if m:
            return normalize_time(m.group(1)) or None, normalize_time(m.group(2)) or None
    return None, None


def decode_summary(summary: Optional[str]) -> SummaryParts:
    """
    Split a summary line into code and clinician.

    Five or more segments: third is the code, fifth the clinician.
    Two to four: second-to-last is the code, last the clinician.
    One: the whole line is the code.
    """
    text = (summary or '').strip()
    segments = [p.strip() for p in text.split(SEPARATOR)]

    if len(segments) >= 5:
        code, clinician = segments[2], segments[4]
    elif len(segments) >= 2:
        code, clinician = segments[-2], segments[-1]
    else:
        code, clinician = text, ''

    start, end = _time_block(segments)
    return SummaryParts(code=code, clinician=strip_annotation(clinician), start=start, end=end)


def extract_clinician_name(text: Optional[str]) -> str:
    """
    Pull a surname out of a grid name cell.

    Cells often read like "KlassenMa (FRCP R3) / Luo (M3)"; the first run of
    letters is taken. Blank cells and the "--" placeholder mean unassigned.
    """
    trimmed = (text or '').strip()
    if not trimmed or trimmed == UNASSIGNED_PLACEHOLDER:
        return ''
    m = NAME_RUN_RE.search(trimmed)
    return m.group(0) if m else ''
