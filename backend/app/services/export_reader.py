"""
Attendance export reader - parses a meeting-platform attendance report.

The export is tab-separated text, usually UTF-16LE, laid out in numbered
sections:

    1. Summary                     key<TAB>value lines
    Meeting title   Weekly Standup
    Start time      2/10/26, 9:00:00 AM
    ...
    2. Participants
    Name  First Join  Last Leave  In-Meeting Duration  Email  ...  Role
    Alice ...
    3. In-Meeting Activities       per-join detail, never read as attendance

Processing steps:
1. Decode the raw bytes permissively into lines
2. Locate the "2. Participants" window (up to "3. In-Meeting Activities")
3. Extract the summary key/value block before the Participants marker
4. Find the participants header row inside the window and map columns
5. Yield one ParticipantRow per non-empty data row of the window

Structural problems raise ExportFormatError. Bad individual values
(durations, timestamps) degrade to None and never abort the parse.
"""

import codecs
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from dateutil import parser as dateutil_parser

from app.services.durations import parse_minutes
from app.services.errors import ExportFormatError
from app.logging_config import get_logger, log_with_context

logger = get_logger("parser")

# ──────────────────────────────────────────────────────────────
# Export layout markers. The exporting tool owns these strings; if its
# output changes, this block is the only place to update.
# ──────────────────────────────────────────────────────────────
PARTICIPANTS_MARKER = "2. Participants"
ACTIVITIES_MARKER_PATTERN = re.compile(r"^3\.\s*In-Meeting Activities", re.IGNORECASE)
HEADER_PREFIX = "Name\t"
HEADER_EMAIL_CELL = "\tEmail\t"
HEADER_DURATION_LABEL = "In-Meeting Duration"

REQUIRED_COLUMNS = ("Name", "Email", "In-Meeting Duration")

SUMMARY_TITLE_KEY = "Meeting title"
SUMMARY_START_KEY = "Start time"
SUMMARY_END_KEY = "End time"
SUMMARY_DURATION_KEYS = ("Meeting duration", "Duration")

SOURCE_SECTION2_ONLY = "section2_only"

LINE_SPLIT_PATTERN = re.compile(r"\r?\n")


@dataclass(frozen=True)
class SectionWindow:
    """Line range of the Participants section: [start, end)."""
    marker_index: int
    end: int

    @property
    def start(self) -> int:
        return self.marker_index + 1


@dataclass
class ExportSummary:
    meeting_name: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration_min: Optional[int] = None
    fields: Dict[str, str] = field(default_factory=dict)


@dataclass
class ParticipantRow:
    """One raw attendance record from the Participants table."""
    line_index: int
    name: Optional[str]
    email_raw: str
    email: str
    first_join: Optional[datetime]
    last_leave: Optional[datetime]
    minutes: Optional[int]
    role: Optional[str]


@dataclass
class ParsedExport:
    summary: ExportSummary
    window: SectionWindow
    header_index: int
    columns: Dict[str, int]
    rows: List[ParticipantRow]
    source: str = SOURCE_SECTION2_ONLY


# ── Text Decoder ──────────────────────────────────────────────

def decode_export(raw: bytes) -> str:
    """
    Decode export bytes into text without ever raising.

    A byte-order mark wins when present. Otherwise UTF-16LE is assumed,
    except for buffers with no NUL byte near the start, which cannot be
    UTF-16 text and are read as UTF-8 (exports re-saved by spreadsheets).
    Malformed sequences become U+FFFD.
    """
    if not raw:
        return ""
    if raw.startswith(codecs.BOM_UTF8):
        encoding, payload = "utf-8", raw[len(codecs.BOM_UTF8):]
    elif raw.startswith(codecs.BOM_UTF16_LE):
        encoding, payload = "utf-16-le", raw[len(codecs.BOM_UTF16_LE):]
    elif raw.startswith(codecs.BOM_UTF16_BE):
        encoding, payload = "utf-16-be", raw[len(codecs.BOM_UTF16_BE):]
    elif b"\x00" not in raw[:4096]:
        encoding, payload = "utf-8", raw
    else:
        encoding, payload = "utf-16-le", raw

    log_with_context(logger, "DEBUG", "Decoding export as {}".format(encoding),
                     extra_data={"bytes": len(raw)})
    return payload.decode(encoding, errors="replace").lstrip("\ufeff")


def split_lines(text: str) -> List[str]:
    """Split on LF or CRLF."""
    return LINE_SPLIT_PATTERN.split(text)


# ── Section Locator ───────────────────────────────────────────

def find_line(lines: List[str], predicate: Callable[[str], bool],
              start: int = 0, end: Optional[int] = None) -> Optional[int]:
    """Index of the first line in [start, end) satisfying predicate, else None."""
    stop = len(lines) if end is None else min(end, len(lines))
    for index in range(start, stop):
        if predicate(lines[index]):
            return index
    return None


def is_participants_marker(line: str) -> bool:
    return line.strip() == PARTICIPANTS_MARKER


def is_activities_marker(line: str) -> bool:
    return bool(ACTIVITIES_MARKER_PATTERN.match(line.strip()))


def locate_participants_section(lines: List[str]) -> SectionWindow:
    """
    Find the Participants section window.

    Raises:
        ExportFormatError: when the "2. Participants" marker is missing
    """
    marker_index = find_line(lines, is_participants_marker)
    if marker_index is None:
        raise ExportFormatError("Could not find '{}' section.".format(PARTICIPANTS_MARKER))

    next_section = find_line(lines, is_activities_marker, start=marker_index + 1)
    end = len(lines) if next_section is None else next_section
    return SectionWindow(marker_index=marker_index, end=end)


# ── Summary Extractor ─────────────────────────────────────────

def _to_datetime(text: str) -> datetime:
    try:
        return datetime.fromisoformat(text[:-1] + "+00:00" if text.endswith("Z") else text)
    except ValueError:
        return dateutil_parser.parse(text)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse export timestamps ("2026-02-10T09:00:00Z", "2/10/26, 9:00:00 AM").

    Returns a naive UTC datetime for SQLite compatibility; naive input is
    taken as UTC. Returns None if parsing fails or the instant cannot be
    represented in UTC (e.g. 0001-01-01T00:00:00+01:00).
    """
    if not value or not value.strip():
        return None
    text = value.strip()
    try:
        dt = _to_datetime(text)
        if dt.tzinfo is not None:
            dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    except (ValueError, OverflowError) as e:
        log_with_context(logger, "DEBUG", "Failed to parse timestamp: {}".format(text),
                         extra_data={"error": str(e)})
        return None
    return dt


def extract_summary(lines: List[str], marker_index: int) -> ExportSummary:
    """
    Collect key<TAB>value pairs before the Participants marker.

    Duplicate keys: the last occurrence wins.
    """
    fields: Dict[str, str] = {}
    for line in lines[:marker_index]:
        parts = line.split("\t")
        if len(parts) < 2:
            continue
        key = parts[0].strip()
        value = parts[1].strip()
        if key and value:
            fields[key] = value

    duration_min = None
    for key in SUMMARY_DURATION_KEYS:
        duration_min = parse_minutes(fields.get(key))
        if duration_min is not None:
            break

    return ExportSummary(
        meeting_name=fields.get(SUMMARY_TITLE_KEY),
        start_time=parse_timestamp(fields.get(SUMMARY_START_KEY)),
        end_time=parse_timestamp(fields.get(SUMMARY_END_KEY)),
        duration_min=duration_min,
        fields=fields,
    )


# ── Participants Table Parser ─────────────────────────────────

def is_participants_header(line: str) -> bool:
    return (line.startswith(HEADER_PREFIX)
            and HEADER_EMAIL_CELL in line
            and HEADER_DURATION_LABEL in line)


def map_columns(header_line: str) -> Dict[str, int]:
    """Column name -> position; the first column with a given name wins."""
    columns: Dict[str, int] = {}
    for index, name in enumerate(header_line.split("\t")):
        columns.setdefault(name.strip(), index)
    return columns


def _cell(parts: List[str], index: Optional[int]) -> str:
    if index is None or index >= len(parts):
        return ""
    return parts[index].strip()


def parse_participants(lines: List[str], window: SectionWindow):
    """
    Locate the header row inside the window and parse the data rows.

    Returns:
        Tuple of (header_index, column map, list of ParticipantRow)

    Raises:
        ExportFormatError: header row or a required column is missing
    """
    header_index = find_line(lines, is_participants_header, start=window.start, end=window.end)
    if header_index is None:
        raise ExportFormatError(
            "Could not find Participants table header for Section 2 (with '{}').".format(HEADER_DURATION_LABEL)
        )

    columns = map_columns(lines[header_index])
    missing = [name for name in REQUIRED_COLUMNS if name not in columns]
    if missing:
        raise ExportFormatError(
            "Missing required columns in Section 2 (need Name, Email, In-Meeting Duration): {}".format(
                ", ".join(missing))
        )

    idx_name = columns["Name"]
    idx_email = columns["Email"]
    idx_duration = columns["In-Meeting Duration"]
    idx_first_join = columns.get("First Join")
    idx_last_leave = columns.get("Last Leave")
    idx_role = columns.get("Role")

    rows: List[ParticipantRow] = []
    for line_index in range(header_index + 1, window.end):
        line = lines[line_index]
        if not line.strip():
            continue
        parts = line.split("\t")
        if len(parts) < 2:
            continue

        email_raw = _cell(parts, idx_email)
        rows.append(ParticipantRow(
            line_index=line_index,
            name=_cell(parts, idx_name) or None,
            email_raw=email_raw,
            email=email_raw.lower(),
            first_join=parse_timestamp(_cell(parts, idx_first_join)) if idx_first_join is not None else None,
            last_leave=parse_timestamp(_cell(parts, idx_last_leave)) if idx_last_leave is not None else None,
            minutes=parse_minutes(_cell(parts, idx_duration)),
            role=_cell(parts, idx_role) or None,
        ))

    return header_index, columns, rows


def read_attendance_export(raw: bytes) -> ParsedExport:
    """
    Parse an attendance export end to end, without touching the database.

    Raises:
        ExportFormatError: the file does not look like an attendance export
    """
    lines = split_lines(decode_export(raw))
    window = locate_participants_section(lines)
    summary = extract_summary(lines, window.marker_index)
    header_index, columns, rows = parse_participants(lines, window)

    log_with_context(logger, "INFO",
        "Parsed attendance export: {} participant rows".format(len(rows)),
        extra_data={
            "lines": len(lines),
            "participants_marker": window.marker_index,
            "section_end": window.end,
            "header_index": header_index,
            "meeting_name": summary.meeting_name,
            "duration_min": summary.duration_min,
        })

    return ParsedExport(
        summary=summary,
        window=window,
        header_index=header_index,
        columns=columns,
        rows=rows,
    )
