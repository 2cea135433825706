"""
Roster Import Service - module master lists and enrollment rosters.

Two tabular importers that feed the same store as the attendance import:

- Module master (XLSX or CSV: ModuleCode, ModuleName, Program). A module can
  appear once per program; each row upserts the module, its program and the
  program/module link.
- Enrollments (CSV: StudentEmail, StudentName, ModuleCode, optional Intake and
  Year). Intake/year fall back to the filename ("Spring 2026 ... .csv").

Both are idempotent: repeated uploads update names and leave links and
enrollments untouched.
"""

import io
import time
import uuid
import zipfile
from typing import List, Optional

import pandas as pd
from sqlalchemy.orm import Session, joinedload

from app.models.module import Module, Program, ProgramModule
from app.models.enrollment import Enrollment
from app.services.attendance_import import ensure_module, parse_year, upsert_student
from app.services.errors import RosterFormatError
from app.services.identity import (
    intake_year_from_filename, normalize_email, normalize_intake, normalize_module_code
)
from app.services.upsert import fetch_id, upsert
from app.logging_config import get_logger, log_with_context

logger = get_logger("import")

EXCEL_EXTENSIONS = (".xlsx", ".xlsm")
CSV_ENCODINGS = ("utf-8-sig", "cp1252", "latin-1")


def _read_csv(raw: bytes) -> pd.DataFrame:
    """Try each encoding in turn; latin-1 accepts any byte sequence."""
    for encoding in CSV_ENCODINGS[:-1]:
        try:
            return pd.read_csv(io.BytesIO(raw), dtype=str, encoding=encoding,
                               keep_default_na=False, skip_blank_lines=True)
        except UnicodeDecodeError:
            log_with_context(logger, "DEBUG", "CSV is not {}, retrying".format(encoding))
    return pd.read_csv(io.BytesIO(raw), dtype=str, encoding=CSV_ENCODINGS[-1],
                       keep_default_na=False, skip_blank_lines=True)


def read_table(raw: bytes, filename: Optional[str]) -> List[dict]:
    """
    Read an uploaded spreadsheet into a list of row dicts (all values str).

    XLSX is chosen by extension; anything else is read as CSV, as UTF-8
    when it decodes and as a Windows/Latin-1 export otherwise.

    Raises:
        RosterFormatError: the file is empty or cannot be parsed
    """
    name = (filename or "").lower()
    try:
        if name.endswith(EXCEL_EXTENSIONS):
            df = pd.read_excel(io.BytesIO(raw), sheet_name=0, dtype=str)
        else:
            df = _read_csv(raw)
    except (ValueError, zipfile.BadZipFile, pd.errors.ParserError) as e:
        raise RosterFormatError("Could not read {}: {}".format(filename or "upload", e)) from e

    df = df.fillna("")
    df.columns = [str(col).strip() for col in df.columns]
    return df.to_dict(orient="records")


def _text(row: dict, column: str) -> str:
    value = row.get(column, "")
    return "" if value is None else str(value).strip()


def import_modules(db: Session, raw: bytes, filename: Optional[str]) -> dict:
    """
    Import a module master list.

    Rows missing a code, name or program are skipped, as are repeats of the
    same module + program within one upload.
    """
    start_time = time.time()
    rows = read_table(raw, filename)

    rows_read = 0
    skipped = 0
    modules_created = 0
    modules_updated = 0
    programs_created = 0
    links_created = 0
    seen = set()

    for row in rows:
        rows_read += 1
        code = normalize_module_code(_text(row, "ModuleCode"))
        name = _text(row, "ModuleName")
        program_name = _text(row, "Program")

        if not code or not name or not program_name:
            skipped += 1
            continue

        row_key = (code, program_name.lower())
        if row_key in seen:
            skipped += 1
            continue
        seen.add(row_key)

        existing = db.get(Module, code)
        previous_name = existing.name if existing else None
        upsert(db, Module, {"code": code, "name": name}, ["code"], update_columns=["name"])
        if existing is None:
            modules_created += 1
        elif previous_name != name:
            modules_updated += 1
            db.expire(existing)

        programs_created += upsert(db, Program, {"id": str(uuid.uuid4()), "name": program_name}, ["name"])
        program_id = fetch_id(db, Program, name=program_name)

        links_created += upsert(db, ProgramModule,
                                {"id": str(uuid.uuid4()), "program_id": program_id, "module_code": code},
                                ["program_id", "module_code"])

    db.commit()

    duration_ms = (time.time() - start_time) * 1000
    log_with_context(logger, "INFO",
        "Module master import complete: {} rows, {} modules created, {} updated".format(
            rows_read, modules_created, modules_updated),
        extra_data={"duration_ms": round(duration_ms, 2), "skipped": skipped,
                    "programs_created": programs_created, "links_created": links_created})

    return {
        "ok": True,
        "rowsRead": rows_read,
        "skipped": skipped,
        "modulesCreated": modules_created,
        "modulesUpdated": modules_updated,
        "programsCreated": programs_created,
        "linksCreated": links_created,
    }


def list_modules(db: Session) -> List[dict]:
    """Modules ordered by code with their program names joined."""
    modules = db.query(Module).options(
        joinedload(Module.programs).joinedload(ProgramModule.program)
    ).order_by(Module.code).all()

    result = []
    for module in modules:
        names = sorted(link.program.name for link in module.programs if link.program and link.program.name)
        result.append({
            "code": module.code,
            "name": module.name,
            "program": ", ".join(names) if names else None,
        })
    return result


def import_enrollments(db: Session, raw: bytes, filename: Optional[str]) -> dict:
    """
    Import an enrollment roster.

    Rows without an email, a module code or a usable intake/year are skipped.
    """
    start_time = time.time()
    rows = read_table(raw, filename)
    inferred_intake, inferred_year = intake_year_from_filename(filename)

    students_upserted = 0
    enrollments_upserted = 0
    rows_skipped = 0

    for row in rows:
        email = normalize_email(_text(row, "StudentEmail"))
        name = _text(row, "StudentName") or None
        module_code = normalize_module_code(_text(row, "ModuleCode"))

        if not email or not module_code:
            rows_skipped += 1
            continue

        intake = normalize_intake(_text(row, "Intake")) or inferred_intake
        year = parse_year(_text(row, "Year")) or inferred_year
        if not intake or not year:
            rows_skipped += 1
            continue

        ensure_module(db, module_code)

        student_id = upsert_student(db, email, name)
        students_upserted += 1

        upsert(db, Enrollment,
               {"id": str(uuid.uuid4()), "student_id": student_id,
                "module_code": module_code, "intake": intake, "year": year},
               ["student_id", "module_code", "intake", "year"])
        enrollments_upserted += 1

    db.commit()

    duration_ms = (time.time() - start_time) * 1000
    log_with_context(logger, "INFO",
        "Enrollment import complete: {} students, {} enrollments, {} skipped".format(
            students_upserted, enrollments_upserted, rows_skipped),
        extra_data={"duration_ms": round(duration_ms, 2), "filename": filename})

    return {
        "ok": True,
        "studentsUpserted": students_upserted,
        "enrollmentsUpserted": enrollments_upserted,
        "rowsSkipped": rows_skipped,
    }
