"""
Attendance Import Service - reconciles a parsed export into the database.

Processing pipeline for one uploaded export:
1. Validate cohort fields (intake, year, module code) and the file
2. Parse the export completely (app.services.export_reader) before any write
3. Ensure the module exists (insert if absent, never renamed here)
4. Upsert the session by its derived key; latest upload wins for metadata
5. Upsert every participant's student and attendance record
6. Commit once and return an ImportResult with the counts

Re-importing the same file converges to the same stored state: every write
is keyed by a unique constraint (module code, session key, student email,
session + student). Row-level problems such as an unreadable duration are
stored as NULL; only structural problems reject the file.
"""

import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from app.models.module import Module
from app.models.student import Student
from app.models.session import MeetingSession
from app.models.attendance import Attendance
from app.services.errors import ImportValidationError
from app.services.export_reader import ParsedExport, read_attendance_export
from app.services.identity import (
    build_session_key, is_eligible_email, module_code_from_filename,
    normalize_intake, normalize_module_code, placeholder_email
)
from app.services.upsert import fetch_id, upsert
from app.logging_config import get_logger, log_with_context

logger = get_logger("import")

MAX_YEAR = 9999


@dataclass(frozen=True)
class Cohort:
    """The (module, intake, year) scope an import targets."""
    module_code: str
    intake: str
    year: int


@dataclass
class ImportResult:
    module_code: str
    intake: str
    year: int
    session_id: str
    rows_read: int
    attendance_upserted: int
    eligible_count: int
    duration_min: Optional[int]
    source_used: str
    ok: bool = True


def parse_year(value) -> Optional[int]:
    """Calendar year (1..MAX_YEAR) from form input, else None."""
    if value is None:
        return None
    try:
        year = int(str(value).strip())
    except ValueError:
        return None
    return year if 0 < year <= MAX_YEAR else None


def resolve_cohort(intake: Optional[str], year, module_code: Optional[str],
                   filename: Optional[str], has_file: bool = True) -> Cohort:
    """
    Validate the upload's form fields.

    The explicit module code wins; the filename (e.g. "MN5070NU - Week 3.csv")
    is only a fallback.

    Raises:
        ImportValidationError: any required field is missing or invalid
    """
    resolved_intake = normalize_intake(intake)
    resolved_year = parse_year(year)
    if not resolved_intake or not resolved_year:
        raise ImportValidationError("Missing or invalid intake/year. Please select Intake + Year.")

    if not has_file:
        raise ImportValidationError("No file uploaded")

    resolved_module = normalize_module_code(module_code) or module_code_from_filename(filename)
    if not resolved_module:
        raise ImportValidationError(
            "Missing Module Code. Please select a Module Code (or include it in the filename)."
        )

    return Cohort(module_code=resolved_module, intake=resolved_intake, year=resolved_year)


def ensure_module(db: Session, code: str, name: Optional[str] = None) -> bool:
    """Create the module if it does not exist. Returns True when created."""
    return upsert(db, Module, {"code": code, "name": name or code}, ["code"]) > 0


def upsert_student(db: Session, email: str, name: Optional[str]) -> str:
    """Upsert a student by email; a provided name replaces the stored one."""
    upsert(db, Student,
           {"id": str(uuid.uuid4()), "email": email, "name": name,
            "created_at": datetime.now(timezone.utc)},
           conflict_columns=["email"],
           update_columns=["name"],
           keep_existing_if_null=["name"])
    return fetch_id(db, Student, email=email)


def upsert_session(db: Session, cohort: Cohort, parsed: ParsedExport, session_key: str) -> str:
    """Upsert the meeting session by its derived key and return its opaque id."""
    summary = parsed.summary
    upsert(db, MeetingSession,
           {
               "id": str(uuid.uuid4()),
               "session_key": session_key,
               "module_code": cohort.module_code,
               "intake": cohort.intake,
               "year": cohort.year,
               "meeting_name": summary.meeting_name,
               "start_time": summary.start_time,
               "end_time": summary.end_time,
               "duration_min": summary.duration_min,
               "updated_at": datetime.now(timezone.utc),
           },
           conflict_columns=["session_key"],
           update_columns=["meeting_name", "start_time", "end_time", "duration_min",
                           "intake", "year", "module_code", "updated_at"])
    return fetch_id(db, MeetingSession, session_key=session_key)


def upsert_attendance(db: Session, session_id: str, student_id: str, row, is_eligible: bool):
    upsert(db, Attendance,
           {
               "id": str(uuid.uuid4()),
               "session_id": session_id,
               "student_id": student_id,
               "email_raw": row.email_raw,
               "first_join": row.first_join,
               "last_leave": row.last_leave,
               "minutes": row.minutes,
               "role": row.role,
               "is_eligible": is_eligible,
           },
           conflict_columns=["session_id", "student_id"],
           update_columns=["email_raw", "first_join", "last_leave", "minutes", "role", "is_eligible"])


def reconcile_export(db: Session, cohort: Cohort, parsed: ParsedExport) -> ImportResult:
    """
    Write a parsed export into the store and commit.

    Every participant row produces exactly one attendance upsert; rows
    without an email are attributed to a placeholder student.
    """
    summary = parsed.summary
    session_key = build_session_key(
        cohort.intake, cohort.year, cohort.module_code,
        summary.start_time, summary.end_time, summary.meeting_name
    )

    if ensure_module(db, cohort.module_code):
        log_with_context(logger, "INFO", "Created module {}".format(cohort.module_code),
                         context={"module_code": cohort.module_code})

    session_id = upsert_session(db, cohort, parsed, session_key)

    rows_read = 0
    attendance_upserted = 0
    eligible_count = 0

    for row in parsed.rows:
        rows_read += 1
        email = row.email or placeholder_email(row.line_index, session_key)
        if not row.email:
            log_with_context(logger, "WARNING",
                "Participant row without email recorded as {}".format(email),
                context={"session_id": session_id},
                extra_data={"line": row.line_index, "name": row.name})

        student_id = upsert_student(db, email, row.name)

        is_eligible = is_eligible_email(row.email)
        if is_eligible:
            eligible_count += 1

        upsert_attendance(db, session_id, student_id, row, is_eligible)
        attendance_upserted += 1

    db.commit()

    return ImportResult(
        module_code=cohort.module_code,
        intake=cohort.intake,
        year=cohort.year,
        session_id=session_id,
        rows_read=rows_read,
        attendance_upserted=attendance_upserted,
        eligible_count=eligible_count,
        duration_min=summary.duration_min,
        source_used=parsed.source,
    )


def import_attendance(db: Session, raw: Optional[bytes], filename: Optional[str],
                      intake: Optional[str], year, module_code: Optional[str]) -> ImportResult:
    """
    Import one attendance export for a cohort.

    Args:
        db: Database session
        raw: Uploaded file bytes (None when no file was sent)
        filename: Uploaded filename, used for the module code fallback
        intake: Free-text intake from the form
        year: Year from the form (string or int)
        module_code: Optional explicit module code from the form

    Returns:
        ImportResult with the resolved cohort, session id and counts

    Raises:
        ImportValidationError: invalid form input, nothing parsed or written
        ExportFormatError: unrecognized export layout, nothing written
    """
    start_time = time.time()

    cohort = resolve_cohort(intake, year, module_code, filename, has_file=raw is not None)
    context = {"module_code": cohort.module_code, "intake": cohort.intake, "year": cohort.year}

    log_with_context(logger, "INFO", "Starting attendance import of {}".format(filename or "<unnamed>"),
                     context=context, extra_data={"bytes": len(raw)})

    parsed = read_attendance_export(raw)
    result = reconcile_export(db, cohort, parsed)

    duration_ms = (time.time() - start_time) * 1000
    log_with_context(logger, "INFO",
        "Attendance import complete: {} rows read, {} upserted, {} eligible".format(
            result.rows_read, result.attendance_upserted, result.eligible_count),
        context={**context, "session_id": result.session_id},
        extra_data={"duration_ms": round(duration_ms, 2), "duration_min": result.duration_min})

    return result
