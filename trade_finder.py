#!/usr/bin/env python3
"""
ED Trade Finder

Find same-day shift trades and flag the ones that would leave either
clinician with a short turnaround (less than 12 hours off between shifts).
"""

import argparse
import json
import logging
import sys
from bisect import bisect_left
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Iterable, Optional, Union

import pandas as pd
from pytz.tzinfo import BaseTzInfo

from contacts import Contact, ContactDirectory, format_preference
from grid_parser import parse_upload
from ics_dates import get_timezone
from ics_feed import load_feed_shifts, parse_ics_text
from roster_config import load_config
from roster_errors import ConfigurationError, RetrievalError, RosterError, ValidationError
from shift_model import (
    ParseResult,
    Shift,
    clinician_key,
    clinician_shifts,
    list_clinicians,
    shifts_from_records,
    shifts_to_frame,
    shifts_to_json,
    sort_shifts,
)

logger = logging.getLogger(__name__)

MIN_REST = timedelta(hours=12)


@dataclass(frozen=True)
class TradeOption:
    """One same-day shift the selected clinician could trade into."""
    candidate: Shift
    my_short: bool
    their_short: bool
    my_gap: Optional[timedelta] = None      # my previous end -> candidate start
    their_gap: Optional[timedelta] = None   # their previous end -> my shift start

    @property
    def has_short(self) -> bool:
        return self.my_short or self.their_short


class ShiftTimeline:
    """
    Resolved start/end instants for a shift list, with each clinician's
    shifts ordered by end instant for "latest end before X" lookups.

    Instants are localized to the facility zone (default zone when tz is
    None), so a rest gap spanning a DST change is measured in real hours.
    """

    def __init__(self, shifts: Iterable[Shift], tz: Union[str, BaseTzInfo, None] = None):
        self.zone = get_timezone(tz)
        self.instants: dict[int, tuple[Optional[datetime], Optional[datetime]]] = {}
        by_clinician = defaultdict(list)
        for shift in shifts:
            start, end = shift.start_at(self.zone), shift.end_at(self.zone)
            self.instants[id(shift)] = (start, end)
            key = clinician_key(shift.clinician)
            if key and end is not None:
                by_clinician[key].append((end, shift))
        self._ended = {}
        for key, entries in by_clinician.items():
            entries.sort(key=lambda e: e[0])
            self._ended[key] = ([end for end, _ in entries], [shift for _, shift in entries])

    def start_of(self, shift: Shift) -> Optional[datetime]:
        if id(shift) in self.instants:
            return self.instants[id(shift)][0]
        return shift.start_at(self.zone)

    def previous_end(self, clinician: str, before: datetime, exclude: Optional[Shift] = None) -> Optional[datetime]:
        """
        Latest end instant of the clinician's shifts strictly earlier than
        `before`, ignoring the `exclude` shift (the one being traded away).
        A naive `before` is read as facility wall-clock time.
        """
        ended = self._ended.get(clinician_key(clinician))
        if not ended:
            return None
        if before.tzinfo is None:
            before = self.zone.localize(before)
        ends, shifts = ended
        idx = bisect_left(ends, before) - 1
        while idx >= 0 and shifts[idx] is exclude:
            idx -= 1
        return ends[idx] if idx >= 0 else None

    def rest_before(self, clinician: str, start: Optional[datetime], exclude: Optional[Shift] = None) -> Optional[timedelta]:
        if start is None or not clinician_key(clinician):
            return None
        prev_end = self.previous_end(clinician, start, exclude)
        if prev_end is None:
            return None
        return start - prev_end


def find_previous_shift_end(
    shifts: list[Shift],
    clinician: str,
    reference_start: datetime,
    exclude: Optional[Shift] = None,
    tz: Union[str, BaseTzInfo, None] = None,
) -> Optional[datetime]:
    """Latest end of the clinician's shifts that finished before reference_start."""
    return ShiftTimeline(shifts, tz).previous_end(clinician, reference_start, exclude)


def is_short_turnaround(gap: Optional[timedelta], min_rest: timedelta = MIN_REST) -> bool:
    """A gap is short when strictly under min_rest; no gap (no prior shift) never is."""
    return gap is not None and gap < min_rest


def _index_of(shifts: list[Shift], selected: Shift) -> Optional[int]:
    for i, s in enumerate(shifts):
        if s is selected:
            return i
    for i, s in enumerate(shifts):
        if s == selected:
            return i
    return None


def same_day_candidates(shifts: list[Shift], selected: Shift) -> list[Shift]:
    """Every other shift on the selected shift's date, in list order."""
    skip = _index_of(shifts, selected)
    return [s for i, s in enumerate(shifts) if i != skip and s.date == selected.date]


def find_trade_options(
    shifts: list[Shift],
    clinician: str,
    selected: Shift,
    min_rest: timedelta = MIN_REST,
    sort_by_start: bool = False,
    tz: Union[str, BaseTzInfo, None] = None,
) -> list[TradeOption]:
    """
    Evaluate same-day trades for one of the clinician's shifts.

    For each candidate two checks are made:
    - mine: if I take the candidate, my last shift before it must have
      ended at least min_rest before the candidate starts
    - theirs: if they take my shift, their last shift before it must have
      ended at least min_rest before my shift starts
    The shift each side gives up in the trade does not count as their
    previous shift.

    Args:
        shifts: Full canonical shift list (all dates)
        clinician: Name of the clinician looking to trade
        selected: The clinician's shift to trade away
        min_rest: Minimum rest between shifts
        sort_by_start: Order candidates by start instant instead of list order
        tz: Facility timezone for the instants (name or pytz zone)

    Returns:
        List of TradeOption, one per candidate
    """
    idx = _index_of(shifts, selected)
    if idx is not None:
        selected = shifts[idx]

    timeline = ShiftTimeline(shifts, tz)
    my_start = timeline.start_of(selected)

    options = []
    for candidate in same_day_candidates(shifts, selected):
        my_gap = timeline.rest_before(clinician, timeline.start_of(candidate), exclude=selected)
        their_gap = timeline.rest_before(candidate.clinician, my_start, exclude=candidate)
        options.append(TradeOption(
            candidate=candidate,
            my_short=is_short_turnaround(my_gap, min_rest),
            their_short=is_short_turnaround(their_gap, min_rest),
            my_gap=my_gap,
            their_gap=their_gap,
        ))

    if sort_by_start:
        # untimed candidates last
        options.sort(key=lambda o: (timeline.start_of(o.candidate) is None, timeline.start_of(o.candidate)))
    return options


def find_my_shift(shifts: list[Shift], name: str, date: str, code: Optional[str] = None) -> Optional[Shift]:
    """The clinician's shift on date (first match, or the one with this code)."""
    for shift in clinician_shifts(shifts, name):
        if shift.date != date:
            continue
        if code and shift.code.casefold() != code.casefold():
            continue
        return shift
    return None


def _hours(gap: Optional[timedelta]):
    return round(gap.total_seconds() / 3600, 1) if gap is not None else None


def trade_options_frame(options: list[TradeOption], directory: Optional[ContactDirectory] = None) -> pd.DataFrame:
    """Tabular view of trade options, with contact preference when a directory is given."""
    rows = []
    for option in options:
        s = option.candidate
        row = {
            'shift': s.code,
            'start': s.start,
            'end': s.end,
            'doctor': s.clinician or '(open)',
            'my_rest_h': _hours(option.my_gap),
            'their_rest_h': _hours(option.their_gap),
            'flag': 'SHORT TURNAROUND' if option.has_short else 'ok',
        }
        if directory is not None:
            row['contact'] = format_preference(directory.get(s.clinician)) if s.clinician else ''
        rows.append(row)
    return pd.DataFrame(rows)


def load_shifts(args, config) -> ParseResult:
    """Parse shifts from whichever source the command line names."""
    if args.file:
        return parse_upload(Path(args.file))
    if args.json:
        try:
            records = json.loads(Path(args.json).read_text())
        except (OSError, ValueError) as e:
            raise RetrievalError(f'Could not read {args.json}: {e}') from e
        try:
            shifts = shifts_from_records(records)
        except (KeyError, TypeError, AttributeError) as e:
            raise RetrievalError(f'{args.json} is not a list of shift records: {e!r}') from e
        return ParseResult(shifts=shifts, source='json')
    if args.ics:
        try:
            text = Path(args.ics).read_text(encoding='utf-8')
        except OSError as e:
            raise RetrievalError(f'Could not read {args.ics}: {e}') from e
        return parse_ics_text(text, config.timezone)
    return load_feed_shifts(config)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Find same-day ED shift trades')
    source = parser.add_mutually_exclusive_group()
    source.add_argument('--file', '-f', help='Roster spreadsheet export (.xlsx or .csv)')
    source.add_argument('--ics', help='Local iCalendar file instead of the configured feed')
    source.add_argument('--json', help='Previously exported shift JSON')
    parser.add_argument('--env', help='Path to a .env file')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    shifts_cmd = subparsers.add_parser('shifts', help='List parsed shifts')
    shifts_cmd.add_argument('--name', '-n', help='Only this clinician')
    shifts_cmd.add_argument('--date', help='Only this date (YYYY-MM-DD)')

    subparsers.add_parser('clinicians', help='List clinician names')

    trades = subparsers.add_parser('trades', help='Same-day trade options for one of your shifts')
    trades.add_argument('name', help='Your name as it appears in the roster (e.g. Klassen)')
    trades.add_argument('date', help='Date of your shift (YYYY-MM-DD)')
    trades.add_argument('--shift', help='Shift code if you work more than one that day')
    trades.add_argument('--sort', action='store_true', help='Sort candidates by start time')
    trades.add_argument('--safe-only', action='store_true', help='Hide trades with a short turnaround')

    export = subparsers.add_parser('export', help='Write canonical shift JSON')
    export.add_argument('--output', '-o', help='Output file (default: stdout)')

    contacts_cmd = subparsers.add_parser('contacts', help='Manage clinician contact info')
    contacts_sub = contacts_cmd.add_subparsers(dest='contacts_command')
    contacts_sub.add_parser('show', help='Show all contacts')
    contacts_set = contacts_sub.add_parser('set', help='Add or update a contact')
    contacts_set.add_argument('clinician', help='Clinician name as in the roster')
    contacts_set.add_argument('--email', default='')
    contacts_set.add_argument('--phone', default='')
    contacts_set.add_argument('--preferred', default='none', help='email, sms, either or none')
    contacts_remove = contacts_sub.add_parser('remove', help='Remove a contact')
    contacts_remove.add_argument('clinician', help='Clinician name')

    return parser


def run_contacts(args, directory: ContactDirectory):
    if args.contacts_command == 'set':
        contact = directory.upsert(Contact(
            clinician=args.clinician,
            email=args.email,
            phone=args.phone,
            preferred=args.preferred,
        ))
        print(f"Saved {contact.clinician}: {format_preference(contact)}")
    elif args.contacts_command == 'remove':
        if directory.remove(args.clinician):
            print(f"Removed {args.clinician}")
        else:
            print(f"{args.clinician} not in contacts")
    else:
        contacts = directory.all()
        if not contacts:
            print("  (empty)")
        for c in contacts:
            details = ', '.join(v for v in (c.email, c.phone) if v)
            print(f"  {c.clinician}: {format_preference(c)}" + (f" ({details})" if details else ''))


def run_trades(args, shifts: list[Shift], config, directory: ContactDirectory):
    my_shift = find_my_shift(shifts, args.name, args.date, args.shift)
    if my_shift is None:
        print(f"No shifts found for {args.name} on {args.date}")
        sys.exit(1)

    print(f"Your shift: {my_shift.label()}")
    options = find_trade_options(
        shifts, args.name, my_shift,
        min_rest=timedelta(hours=config.min_rest_hours),
        sort_by_start=args.sort,
        tz=config.timezone,
    )
    if args.safe_only:
        options = [o for o in options if not o.has_short]

    if not options:
        print("No same-day shifts to trade with.")
        return

    flagged = sum(1 for o in options if o.has_short)
    print(f"\nFound {len(options)} same-day shifts ({flagged} with a short turnaround):")
    print(trade_options_frame(options, directory).to_string(index=False))


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    try:
        config = load_config(args.env)
        directory = ContactDirectory(config.contacts_file)

        if args.command == 'contacts':
            run_contacts(args, directory)
            return

        result = load_shifts(args, config)
    except (ConfigurationError, RetrievalError, ValidationError) as e:
        print(f"Error: {e}")
        sys.exit(1)

    if result.parsed_nothing:
        print(f"Parsed 0 shifts from the {result.source} source. "
              f"The layout might be different than expected.")
        sys.exit(1)

    shifts = sort_shifts(result.shifts)
    logger.debug("Loaded %d shifts, %d source records skipped", len(shifts), result.skipped)

    if args.command == 'shifts':
        selected = clinician_shifts(shifts, args.name) if args.name else shifts
        if args.date:
            selected = [s for s in selected if s.date == args.date]
        if not selected:
            print("No matching shifts.")
            return
        print(shifts_to_frame(selected).drop(columns=['raw']).to_string(index=False))

    elif args.command == 'clinicians':
        for name in list_clinicians(shifts):
            print(name)

    elif args.command == 'trades':
        run_trades(args, shifts, config, directory)

    elif args.command == 'export':
        payload = shifts_to_json(shifts)
        if args.output:
            Path(args.output).write_text(payload)
            print(f"Exported {len(shifts)} shift records to: {args.output}")
        else:
            print(payload)


if __name__ == '__main__':
    try:
        main()
    except RosterError as e:
        print(f"Error: {e}")
        sys.exit(1)
