"""
Calendar feed ingestion: fetch the iCalendar document and turn each VEVENT
into a canonical Shift.
"""

from __future__ import annotations

import codecs
import logging
from typing import Optional, Union

import requests
from icalendar import Calendar
from pytz.tzinfo import BaseTzInfo

from ics_dates import decode_ics_datetime, get_timezone
from roster_errors import RetrievalError, SoftParseError
from shift_model import ParseResult, Shift, ShiftDraft, build_shift
from summary_decoder import decode_summary

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


def date_token(event, name: str) -> Optional[str]:
    """
    Raw DTSTART/DTEND token as written back by icalendar, e.g.
    "20251117T153000Z", "20251117T153000" or "20251117".
    """
    prop = event.get(name)
    if prop is None:
        return None
    token = prop.to_ical()
    return token.decode() if isinstance(token, bytes) else str(token)


def text_property(event, name: str) -> Optional[str]:
    value = event.get(name)
    if value is None:
        return None
    return str(value)


def parse_event(event, tz: Union[str, BaseTzInfo, None] = None) -> Shift:
    """
    Decode one VEVENT component.

    Raises:
        SoftParseError: DTSTART or SUMMARY missing, or DTSTART unparsable
    """
    start_value = date_token(event, 'DTSTART')
    summary = text_property(event, 'SUMMARY')
    if start_value is None:
        raise SoftParseError('event has no DTSTART')
    if not summary:
        raise SoftParseError('event has no SUMMARY')

    start = decode_ics_datetime(start_value, tz)
    if start is None:
        raise SoftParseError(f'unparsable DTSTART {start_value!r}')

    parts = decode_summary(summary)

    end_value = date_token(event, 'DTEND')
    end = decode_ics_datetime(end_value, tz) if end_value else None
    end_time = end.time if end is not None else (parts.end or '')

    draft = ShiftDraft(
        code=parts.code,
        start=start.time,
        end=end_time,
        clinician_raw=parts.clinician,
        location=text_property(event, 'LOCATION'),
        raw=summary,
    )
    return build_shift(start.date, draft)


def parse_ics_text(text: str, tz: Union[str, BaseTzInfo, None] = None) -> ParseResult:
    """
    Parse a whole calendar document.

    Events that fail to decode are skipped and counted; the rest of the
    batch is unaffected. A document icalendar cannot read at all parses
    to nothing.
    """
    zone = get_timezone(tz)
    result = ParseResult(source='ics')

    try:
        calendar = Calendar.from_ical(text)
    except ValueError as e:
        logger.warning("Calendar document could not be read: %s", e)
        return result

    for index, event in enumerate(calendar.walk('VEVENT')):
        try:
            result.shifts.append(parse_event(event, zone))
        except SoftParseError as e:
            result.skipped += 1
            logger.debug("Skipping event %d: %s", index, e)

    logger.info("Parsed %d shifts from calendar (%d events skipped)", len(result.shifts), result.skipped)
    return result


def _body_encoding(resp) -> str:
    # requests assumes ISO-8859-1 for text/* without a charset
    content_type = resp.headers.get('Content-Type', '').lower()
    if 'charset=' not in content_type or not resp.encoding:
        return 'utf-8'
    try:
        return codecs.lookup(resp.encoding).name
    except LookupError:
        logger.warning("Unknown feed charset %r, decoding as utf-8", resp.encoding)
        return 'utf-8'


def fetch_feed(
    url: str,
    timeout: float = 20.0,
    session: Optional[requests.Session] = None,
    cancel=None,
) -> str:
    """
    Download the calendar document.

    Args:
        url: Feed URL
        timeout: Connect/read timeout in seconds
        session: Optional requests session
        cancel: Optional threading.Event; when set the download is abandoned

    Returns:
        The decoded document text

    Raises:
        RetrievalError: on network failure, a non-2xx status, a truncated
            body or cancellation. Partial content is never returned.
    """
    http = session or requests
    logger.info("Fetching calendar feed")
    try:
        with http.get(url, timeout=timeout, stream=True) as resp:
            if not 200 <= resp.status_code < 300:
                logger.warning("Calendar feed returned %s", resp.status_code)
                raise RetrievalError('Could not fetch calendar feed', status=resp.status_code)

            buffer = bytearray()
            for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                if cancel is not None and cancel.is_set():
                    raise RetrievalError('Calendar download cancelled')
                buffer.extend(chunk)

            expected = resp.headers.get('Content-Length')
            if expected and expected.isdigit() and len(buffer) < int(expected):
                raise RetrievalError(
                    f'Calendar download truncated ({len(buffer)} of {expected} bytes)',
                    status=resp.status_code,
                )
            encoding = _body_encoding(resp)
    except requests.RequestException as e:
        logger.warning("Calendar feed request failed: %s", e)
        raise RetrievalError(f'Could not fetch calendar feed: {e}') from e

    return bytes(buffer).decode(encoding, errors='replace')


def load_feed_shifts(config) -> ParseResult:
    """Fetch and parse the configured feed."""
    url = config.require_feed_url()
    text = fetch_feed(url, timeout=config.fetch_timeout)
    return parse_ics_text(text, config.timezone)
