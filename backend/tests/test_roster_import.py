import io

import pandas as pd
import pytest

from app.models import Enrollment, Module, Program, ProgramModule, Student
from app.services.errors import RosterFormatError
from app.services.roster_import import import_enrollments, import_modules, list_modules, read_table

MODULES_CSV = (
    "ModuleCode,ModuleName,Program\n"
    "mn5070nu,Strategic Management,MBA\n"
    "MN5070NU,Strategic Management,MSc Management\n"
    "AB1234NU,Accounting,MBA\n"
    ",No Code,MBA\n"
    "MN5070NU,Strategic Management,MBA\n"
)


def test_read_table_csv_keeps_text():
    rows = read_table(b"ModuleCode,Year\nMN5070NU,2026\nAB1234NU,\n", "modules.csv")
    assert rows == [{"ModuleCode": "MN5070NU", "Year": "2026"}, {"ModuleCode": "AB1234NU", "Year": ""}]


def test_read_table_xlsx():
    buffer = io.BytesIO()
    pd.DataFrame({"ModuleCode": ["MN5070NU"], "ModuleName": ["Strategic Management"],
                  "Program": [None]}).to_excel(buffer, index=False)
    rows = read_table(buffer.getvalue(), "Modules.XLSX")
    assert rows == [{"ModuleCode": "MN5070NU", "ModuleName": "Strategic Management", "Program": ""}]


def test_read_table_rejects_broken_workbook():
    with pytest.raises(RosterFormatError):
        read_table(b"not a zip", "modules.xlsx")


def test_read_table_rejects_empty_csv():
    with pytest.raises(RosterFormatError):
        read_table(b"", "modules.csv")


def test_import_modules(db):
    result = import_modules(db, MODULES_CSV.encode("utf-8"), "modules.csv")

    assert result == {
        "ok": True,
        "rowsRead": 5,
        "skipped": 2,
        "modulesCreated": 2,
        "modulesUpdated": 0,
        "programsCreated": 2,
        "linksCreated": 3,
    }
    assert db.query(Module).count() == 2
    assert db.query(Program).count() == 2
    assert db.query(ProgramModule).count() == 3


def test_import_modules_again_renames_without_duplicating(db):
    import_modules(db, MODULES_CSV.encode("utf-8"), "modules.csv")
    renamed = "ModuleCode,ModuleName,Program\nMN5070NU,Strategy,MBA\nAB1234NU,Accounting,MBA\n"

    result = import_modules(db, renamed.encode("utf-8"), "modules.csv")

    assert result["modulesCreated"] == 0
    assert result["modulesUpdated"] == 1
    assert result["programsCreated"] == 0
    assert result["linksCreated"] == 0
    assert db.get(Module, "MN5070NU").name == "Strategy"
    assert db.query(ProgramModule).count() == 3


def test_list_modules_joins_programs(db):
    import_modules(db, MODULES_CSV.encode("utf-8"), "modules.csv")
    db.add(Module(code="ZZ0001NU", name="Orphan"))
    db.commit()

    assert list_modules(db) == [
        {"code": "AB1234NU", "name": "Accounting", "program": "MBA"},
        {"code": "MN5070NU", "name": "Strategic Management", "program": "MBA, MSc Management"},
        {"code": "ZZ0001NU", "name": "Orphan", "program": None},
    ]


def test_import_enrollments(db):
    csv = (
        "StudentEmail,StudentName,ModuleCode,Intake,Year\n"
        " Alice@Stu.NextEducationGroup.com ,Alice,mn5070nu,spring,2026\n"
        "bob@stu.nexteducationgroup.com,Bob,MN5070NU,Fall,2025\n"
        ",Nobody,MN5070NU,Spring,2026\n"
        "carol@stu.nexteducationgroup.com,Carol,,Spring,2026\n"
        "dave@stu.nexteducationgroup.com,Dave,MN5070NU,Winter,2026\n"
    )

    result = import_enrollments(db, csv.encode("utf-8"), "enrollments.csv")

    assert result == {"ok": True, "studentsUpserted": 2, "enrollmentsUpserted": 2, "rowsSkipped": 3}
    alice = db.query(Student).filter_by(email="alice@stu.nexteducationgroup.com").one()
    enrollment = db.query(Enrollment).filter_by(student_id=alice.id).one()
    assert (enrollment.module_code, enrollment.intake, enrollment.year) == ("MN5070NU", "Spring", 2026)
    assert db.query(Enrollment).filter_by(intake="Autumn", year=2025).count() == 1
    assert db.get(Module, "MN5070NU") is not None


def test_import_enrollments_infers_cohort_from_filename(db):
    csv = "StudentEmail,StudentName,ModuleCode\nalice@stu.nexteducationgroup.com,Alice,MN5070NU\n"

    import_enrollments(db, csv.encode("utf-8"), "Summer 2026 MN5070NU roster.csv")
    result = import_enrollments(db, csv.encode("utf-8"), "Summer 2026 MN5070NU roster.csv")

    assert result["enrollmentsUpserted"] == 1
    enrollment = db.query(Enrollment).one()
    assert (enrollment.intake, enrollment.year) == ("Summer", 2026)


def test_import_enrollments_without_cohort_skips_rows(db):
    csv = "StudentEmail,StudentName,ModuleCode\nalice@stu.nexteducationgroup.com,Alice,MN5070NU\n"
    result = import_enrollments(db, csv.encode("utf-8"), "roster.csv")
    assert result["rowsSkipped"] == 1
    assert db.query(Enrollment).count() == 0


def test_read_table_accepts_windows_encoded_csv():
    raw = "StudentEmail,StudentName\nzoe@stu.nexteducationgroup.com,Zoë Müller\n".encode("cp1252")
    rows = read_table(raw, "roster.csv")
    assert rows == [{"StudentEmail": "zoe@stu.nexteducationgroup.com", "StudentName": "Zoë Müller"}]


def test_import_enrollments_from_windows_encoded_csv(db):
    csv = "StudentEmail,StudentName,ModuleCode,Intake,Year\nzoe@stu.nexteducationgroup.com,Zoë,MN5070NU,Spring,2026\n"
    result = import_enrollments(db, csv.encode("cp1252"), "roster.csv")
    assert result["enrollmentsUpserted"] == 1
    assert db.query(Student).one().name == "Zoë"
