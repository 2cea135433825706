"""
Import API routes - file uploads for attendance exports and rosters.

This module implements:
- POST /api/import/attendance    meeting attendance export for one cohort
- POST /api/import/modules       module master list (XLSX/CSV)
- GET  /api/import/modules       modules with their programs, for dropdowns
- POST /api/import/enrollments   enrollment roster (CSV)

Rejected files are answered with {"error": "..."} and status 400. Any other
failure is rolled back, logged with its traceback and reported as a
generic 500 so internal details never reach the client.
"""

from typing import Optional
from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy.orm import Session

from app.database import get_db
from app.services.attendance_import import import_attendance
from app.services.errors import AttendanceImportError
from app.services.roster_import import import_enrollments, import_modules, list_modules
from app.logging_config import get_logger, log_with_context

router = APIRouter()
logger = get_logger("http")


# ── Pydantic schemas ─────────────────────────────────────────

class AttendanceImportResponse(BaseModel):
    """Summary of one attendance import; serialized with camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    ok: bool
    module_code: str
    intake: str
    year: int
    session_id: str
    rows_read: int
    attendance_upserted: int
    eligible_count: int
    duration_min: Optional[int] = None
    source_used: str


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _read_upload(file: Optional[UploadFile]) -> Optional[bytes]:
    if file is None:
        return None
    return file.file.read()


def _run_import(db: Session, label: str, action, failure_message: str):
    """Run an importer, translating its errors into JSON error responses."""
    try:
        return action()
    except AttendanceImportError as e:
        db.rollback()
        log_with_context(logger, "WARNING", "{} rejected: {}".format(label, e))
        return error_response(400, str(e))
    except Exception as e:
        db.rollback()
        log_with_context(logger, "ERROR", "{} failed: {}".format(label, e), exc_info=True)
        return error_response(500, failure_message)


@router.post("/api/import/attendance", response_model=AttendanceImportResponse)
def import_attendance_file(
    file: Optional[UploadFile] = File(None),
    intake: str = Form(""),
    year: str = Form(""),
    module_code: str = Form("", alias="moduleCode"),
    db: Session = Depends(get_db)
):
    """
    Import a meeting attendance export for a cohort.

    Only the "2. Participants" section is read (sourceUsed is always
    "section2_only"). Re-uploading the same file updates the same session
    and attendance rows.
    """
    raw = _read_upload(file)
    filename = file.filename if file is not None else None

    def action():
        result = import_attendance(db, raw, filename, intake, year, module_code)
        return AttendanceImportResponse(
            ok=result.ok,
            module_code=result.module_code,
            intake=result.intake,
            year=result.year,
            session_id=result.session_id,
            rows_read=result.rows_read,
            attendance_upserted=result.attendance_upserted,
            eligible_count=result.eligible_count,
            duration_min=result.duration_min,
            source_used=result.source_used,
        )

    return _run_import(db, "Attendance import", action, "Attendance import failed")


@router.get("/api/import/modules")
def get_modules(db: Session = Depends(get_db)):
    """Modules for the import page dropdown."""
    try:
        modules = list_modules(db)
    except Exception as e:
        log_with_context(logger, "ERROR", "Failed to load modules: {}".format(e), exc_info=True)
        return error_response(500, "Failed to load modules")
    return {"ok": True, "modules": modules}


@router.post("/api/import/modules")
def import_modules_file(file: Optional[UploadFile] = File(None), db: Session = Depends(get_db)):
    """Import a module master list (ModuleCode, ModuleName, Program)."""
    if file is None:
        return error_response(400, "No file uploaded (field name must be 'file')")
    raw = _read_upload(file)
    return _run_import(db, "Module import",
                       lambda: import_modules(db, raw, file.filename),
                       "Module import failed")


@router.post("/api/import/enrollments")
def import_enrollments_file(file: Optional[UploadFile] = File(None), db: Session = Depends(get_db)):
    """Import an enrollment roster (StudentEmail, StudentName, ModuleCode, Intake, Year)."""
    if file is None:
        return error_response(400, "No file uploaded")
    raw = _read_upload(file)
    return _run_import(db, "Enrollment import",
                       lambda: import_enrollments(db, raw, file.filename),
                       "Enrollment import failed")
