"""
Spreadsheet roster ingestion.

The grid export lays out a week per block: a row of day headers
("Mon, Nov 17"), then alternating rows of shift cells
("Surge-AM - 08:00-17:00", possibly with a location line above) and
name cells ("Klassen", "--"). Each column keeps the last date header seen
above it.
"""

from __future__ import annotations

import io
import logging
import re
from datetime import date, datetime
from pathlib import Path
from typing import Optional, Sequence, Union

import pandas as pd
from openpyxl import load_workbook

from roster_errors import RetrievalError
from shift_model import ParseResult, Shift, ShiftDraft, build_shift
from summary_decoder import extract_clinician_name

logger = logging.getLogger(__name__)

MONTHS = {
    'Jan': 1, 'Feb': 2, 'Mar': 3, 'Apr': 4, 'May': 5, 'Jun': 6,
    'Jul': 7, 'Aug': 8, 'Sep': 9, 'Oct': 10, 'Nov': 11, 'Dec': 12,
}

DATE_HEADER_RE = re.compile(r'^(Mon|Tue|Wed|Thu|Fri|Sat|Sun),\s*([A-Za-z]{3})[A-Za-z]*\.?\s+(\d{1,2})\b')
YEAR_RE = re.compile(r'\b(20\d{2})\b')
SHIFT_CELL_RE = re.compile(r'^(.+?)\s*-\s*(\d{1,2}:\d{2})\s*-\s*(\d{1,2}:\d{2})$')
CELL_LINE_RE = re.compile(r'\r?\n')

Grid = Sequence[Sequence[object]]


def cell_text(value) -> str:
    """Only string cells carry roster text; numbers, blanks and NaN read as ''."""
    return value if isinstance(value, str) else ''


def _cell(grid: Optional[Grid], row: int, col: int):
    if grid is None or row >= len(grid):
        return None
    cells = grid[row]
    return cells[col] if col < len(cells) else None


def is_date_header(text: str) -> bool:
    return bool(DATE_HEADER_RE.match(text.strip()))


def parse_header_date(text: str, year: int) -> Optional[str]:
    """
    Decode "Mon, Nov 17" for the given year.

    Returns:
        YYYY-MM-DD, or None for an unknown month or impossible day
    """
    m = DATE_HEADER_RE.match(text.strip())
    if not m:
        return None
    month = MONTHS.get(m.group(2).title())
    if month is None:
        return None
    try:
        return date(year, month, int(m.group(3))).isoformat()
    except ValueError:
        return None


def detect_year(formatted) -> Optional[int]:
    if not isinstance(formatted, str):
        return None
    m = YEAR_RE.search(formatted)
    return int(m.group(1)) if m else None


def apply_headers(
    row: int,
    grid: Grid,
    formatted: Optional[Grid],
    dates_by_col: list[Optional[str]],
    year: Optional[int],
    default_year: int,
) -> tuple[list[Optional[str]], Optional[int]]:
    """
    Header pass for one row.

    Returns the updated per-column dates and the scan year (None until a
    year has been read from a formatted cell).
    """
    dates = list(dates_by_col)
    for col in range(len(dates)):
        text = cell_text(_cell(grid, row, col)).strip()
        if not text or not is_date_header(text):
            continue

        if year is None:
            year = detect_year(_cell(formatted, row, col))

        header_date = parse_header_date(text, year or default_year)
        if header_date:
            dates[col] = header_date
        else:
            logger.debug("Ignoring undecodable date header %r at row %d, col %d", text, row, col)
    return dates, year


def parse_shift_cell(text: str) -> Optional[tuple[str, str, str]]:
    """Match the last line of a cell against "CODE - HH:MM-HH:MM"."""
    last_line = CELL_LINE_RE.split(text)[-1].strip()
    m = SHIFT_CELL_RE.match(last_line)
    if not m:
        return None
    return m.group(1).strip(), m.group(2).zfill(5), m.group(3).zfill(5)


def extract_row_shifts(row: int, grid: Grid, dates_by_col: Sequence[Optional[str]]) -> list[Shift]:
    """Shift pass for one row. Columns without an active date are skipped."""
    shifts = []
    for col, active_date in enumerate(dates_by_col):
        text = cell_text(_cell(grid, row, col))
        if not text or not active_date:
            continue

        matched = parse_shift_cell(text)
        if matched is None:
            continue
        code, start, end = matched

        # The name row sits directly under the shift row
        name_text = cell_text(_cell(grid, row + 1, col))
        draft = ShiftDraft(
            code=code,
            start=start,
            end=end,
            clinician_raw=extract_clinician_name(name_text),
            raw=text,
        )
        shifts.append(build_shift(active_date, draft))
    return shifts


def parse_grid(
    grid: Grid,
    formatted: Optional[Grid] = None,
    default_year: Optional[int] = None,
) -> ParseResult:
    """
    Scan a sheet top to bottom and collect shifts.

    Args:
        grid: Rows of cell values (ragged rows are fine)
        formatted: Optional parallel grid of formatted cell text, used only
            to find the year of the date headers
        default_year: Year for headers when none can be detected
            (defaults to the current year)

    Returns:
        ParseResult with shifts in row-major order
    """
    if isinstance(grid, pd.DataFrame):
        grid = grid_from_frame(grid)
    if default_year is None:
        default_year = date.today().year

    width = max((len(r) for r in grid), default=0)
    dates_by_col: list[Optional[str]] = [None] * width
    year: Optional[int] = None
    result = ParseResult(source='grid')

    for row in range(len(grid)):
        dates_by_col, year = apply_headers(row, grid, formatted, dates_by_col, year, default_year)
        result.shifts.extend(extract_row_shifts(row, grid, dates_by_col))

    logger.info("Parsed %d shifts from grid (%d rows x %d columns)", len(result.shifts), len(grid), width)
    return result


def grid_from_frame(df: pd.DataFrame) -> list[list[object]]:
    """Positional rows from a header-less DataFrame, NaN as None."""
    return [[None if pd.isna(v) else v for v in row] for row in df.itertuples(index=False, name=None)]


def _render_cell(value) -> tuple[object, Optional[str]]:
    """
    Cell value and formatted text. Typed date cells are never headers, so
    they only keep an ISO rendering in the formatted grid.
    """
    if isinstance(value, datetime):
        return None, value.strftime('%Y-%m-%d')
    if isinstance(value, date):
        return None, value.isoformat()
    if isinstance(value, str):
        return value, value
    return value, None


def load_workbook_grid(source: Union[str, Path, bytes]) -> tuple[list[list[object]], list[list[Optional[str]]]]:
    """Read the first worksheet of an .xlsx into value and formatted grids."""
    handle = io.BytesIO(source) if isinstance(source, (bytes, bytearray)) else source
    try:
        wb = load_workbook(handle, data_only=True)
    except Exception as e:
        raise RetrievalError(f'Could not read workbook: {e}') from e

    try:
        ws = wb.worksheets[0]
        values, formatted = [], []
        for row in ws.iter_rows(values_only=True):
            rendered = [_render_cell(v) for v in row]
            values.append([v for v, _ in rendered])
            formatted.append([f for _, f in rendered])
    finally:
        wb.close()
    return values, formatted


def load_csv_grid(source: Union[str, Path, bytes]) -> list[list[object]]:
    handle = io.BytesIO(source) if isinstance(source, (bytes, bytearray)) else source
    try:
        df = pd.read_csv(handle, header=None, dtype=str, keep_default_na=False)
    except Exception as e:
        raise RetrievalError(f'Could not read CSV: {e}') from e
    return grid_from_frame(df)


def parse_upload(
    source: Union[str, Path, bytes],
    filename: Optional[str] = None,
    default_year: Optional[int] = None,
) -> ParseResult:
    """
    Parse an uploaded roster file (.xlsx, or .csv by extension).

    Raises:
        RetrievalError: the file could not be read at all
    """
    name = str(filename or (source if not isinstance(source, (bytes, bytearray)) else ''))
    if Path(name).suffix.lower() == '.csv':
        return parse_grid(load_csv_grid(source), default_year=default_year)
    values, formatted = load_workbook_grid(source)
    return parse_grid(values, formatted, default_year=default_year)
