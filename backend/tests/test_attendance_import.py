import pytest

from app.models import Attendance, MeetingSession, Module, Student
from app.services.attendance_import import import_attendance, parse_year, resolve_cohort
from app.services.errors import ExportFormatError, ImportValidationError
from app.services.identity import placeholder_email

ELIGIBLE = "@stu.nexteducationgroup.com"


def _import(db, raw, filename="export.csv", intake="Spring", year="2026", module_code="MN5070NU"):
    return import_attendance(db, raw, filename, intake, year, module_code)


def _counts(db):
    return {
        "modules": db.query(Module).count(),
        "sessions": db.query(MeetingSession).count(),
        "students": db.query(Student).count(),
        "attendance": db.query(Attendance).count(),
    }


def test_parse_year():
    assert parse_year("2026") == 2026
    assert parse_year(" 2025 ") == 2025
    assert parse_year(2024) == 2024
    assert parse_year("") is None
    assert parse_year("twenty") is None
    assert parse_year("0") is None
    assert parse_year("9999") == 9999
    assert parse_year("10000") is None
    assert parse_year(None) is None


def test_resolve_cohort_normalizes_fields():
    cohort = resolve_cohort("fall", "2025", " mn5070nu ", None)
    assert (cohort.intake, cohort.year, cohort.module_code) == ("Autumn", 2025, "MN5070NU")


def test_resolve_cohort_explicit_code_beats_filename():
    cohort = resolve_cohort("Spring", "2026", "AB1234NU", "MN5070NU week 1.csv")
    assert cohort.module_code == "AB1234NU"


@pytest.mark.parametrize("intake, year", [("", "2026"), ("Spring", ""), ("Winter", "2026"), ("Spring", "abc"),
    ("Spring", "99999999999999999999"), ("Spring", "10000"),
])
def test_resolve_cohort_rejects_bad_intake_or_year(intake, year):
    with pytest.raises(ImportValidationError, match="intake/year"):
        resolve_cohort(intake, year, "MN5070NU", None)


def test_resolve_cohort_requires_file():
    with pytest.raises(ImportValidationError, match="No file uploaded"):
        resolve_cohort("Spring", "2026", "MN5070NU", None, has_file=False)


def test_resolve_cohort_requires_module_code():
    with pytest.raises(ImportValidationError, match="Module Code"):
        resolve_cohort("Spring", "2026", "", "weekly.csv")


def test_import_writes_module_session_students_and_attendance(db, export_factory, make_participant):
    raw = export_factory([
        make_participant("Alice", "Alice" + ELIGIBLE, duration="45m 0s"),
        make_participant("Bob", "bob@gmail.com", duration="1:02:30", role="Presenter"),
    ])

    result = _import(db, raw)

    assert result.ok is True
    assert result.module_code == "MN5070NU"
    assert result.intake == "Spring"
    assert result.year == 2026
    assert result.rows_read == 2
    assert result.attendance_upserted == 2
    assert result.eligible_count == 1
    assert result.duration_min == 60
    assert result.source_used == "section2_only"

    module = db.get(Module, "MN5070NU")
    assert module.name == "MN5070NU"

    session = db.get(MeetingSession, result.session_id)
    assert session.meeting_name == "Weekly Standup"
    assert session.duration_min == 60
    assert session.session_key.startswith("spring|2026|mn5070nu|2026-02-10t09:00:00.000z|")

    alice = db.query(Student).filter_by(email="alice" + ELIGIBLE).one()
    record = db.query(Attendance).filter_by(student_id=alice.id).one()
    assert record.email_raw == "Alice" + ELIGIBLE
    assert record.minutes == 45
    assert record.is_eligible is True
    assert record.session_id == result.session_id

    bob = db.query(Student).filter_by(email="bob@gmail.com").one()
    bob_record = db.query(Attendance).filter_by(student_id=bob.id).one()
    assert bob_record.is_eligible is False
    assert bob_record.minutes == 63
    assert bob_record.role == "Presenter"


def test_reimport_is_idempotent(db, export_factory, make_participant):
    raw = export_factory([
        make_participant("Alice", "alice" + ELIGIBLE),
        make_participant("Bob", "bob" + ELIGIBLE),
    ])

    first = _import(db, raw)
    before = _counts(db)
    second = _import(db, raw)

    assert second.session_id == first.session_id
    assert second.attendance_upserted == first.attendance_upserted == 2
    assert _counts(db) == before == {"modules": 1, "sessions": 1, "students": 2, "attendance": 2}


def test_reimport_updates_changed_values(db, export_factory, make_participant):
    _import(db, export_factory([make_participant("Alice", "alice" + ELIGIBLE, duration="10m")]))
    _import(db, export_factory([make_participant("Alice", "alice" + ELIGIBLE, duration="50m")]))

    record = db.query(Attendance).one()
    assert record.minutes == 50


def test_reimport_refreshes_session_metadata(db, export_factory, make_participant):
    rows = [make_participant("Alice", "alice" + ELIGIBLE)]
    summary = [
        ("Meeting title", "Weekly Standup"),
        ("Start time", "2026-02-10T09:00:00Z"),
        ("End time", "2026-02-10T10:00:00Z"),
        ("Meeting duration", "55m"),
    ]
    first = _import(db, export_factory(rows))
    second = _import(db, export_factory(rows, summary=summary))

    assert second.session_id == first.session_id
    assert db.get(MeetingSession, first.session_id).duration_min == 55


def test_distinct_meetings_of_one_cohort_get_distinct_sessions(db, export_factory, make_participant):
    rows = [make_participant("Alice", "alice" + ELIGIBLE)]
    next_week = [
        ("Meeting title", "Weekly Standup"),
        ("Start time", "2026-02-17T09:00:00Z"),
        ("End time", "2026-02-17T10:00:00Z"),
    ]
    first = _import(db, export_factory(rows))
    second = _import(db, export_factory(rows, summary=next_week))

    assert first.session_id != second.session_id
    assert db.query(MeetingSession).count() == 2
    assert db.query(Student).count() == 1
    assert db.query(Attendance).count() == 2


def test_same_meeting_for_other_cohort_is_a_separate_session(db, export_factory, make_participant):
    raw = export_factory([make_participant("Alice", "alice" + ELIGIBLE)])
    spring = _import(db, raw, intake="Spring")
    autumn = _import(db, raw, intake="Autumn")
    assert spring.session_id != autumn.session_id


def test_row_without_email_gets_placeholder_student(db, export_factory, make_participant):
    raw = export_factory([
        make_participant("Guest One", ""),
        make_participant("Guest Two", ""),
        make_participant("Alice", "alice" + ELIGIBLE),
    ])

    result = _import(db, raw)

    assert result.rows_read == 3
    assert result.attendance_upserted == 3
    assert result.eligible_count == 1
    assert db.query(Attendance).count() == 3

    session = db.get(MeetingSession, result.session_id)
    guest = db.query(Student).filter_by(name="Guest One").one()
    assert guest.email == placeholder_email(9, session.session_key)
    assert guest.email.endswith("@invalid.local")
    assert db.query(Attendance).filter_by(student_id=guest.id).one().is_eligible is False

    _import(db, raw)
    assert db.query(Student).count() == 3


def test_duplicate_email_in_one_file_is_stored_once(db, export_factory, make_participant):
    raw = export_factory([
        make_participant("Alice", "alice" + ELIGIBLE, duration="10m"),
        make_participant("Alice", "ALICE" + ELIGIBLE, duration="20m"),
    ])

    result = _import(db, raw)

    assert result.rows_read == 2
    assert result.attendance_upserted == 2
    assert db.query(Attendance).count() == 1
    assert db.query(Attendance).one().minutes == 20


def test_student_name_refreshed_but_never_blanked(db, export_factory, make_participant):
    email = "alice" + ELIGIBLE
    _import(db, export_factory([make_participant("Alice", email)]))
    _import(db, export_factory([make_participant("", email)]))
    assert db.query(Student).one().name == "Alice"

    _import(db, export_factory([make_participant("Alice Smith", email)]))
    assert db.query(Student).one().name == "Alice Smith"


def test_existing_module_name_is_kept(db, export_factory, make_participant):
    db.add(Module(code="MN5070NU", name="Strategic Management"))
    db.commit()

    _import(db, export_factory([make_participant("Alice", "alice" + ELIGIBLE)]))

    assert db.get(Module, "MN5070NU").name == "Strategic Management"


def test_module_code_from_filename(db, export_factory, make_participant):
    raw = export_factory([make_participant("Alice", "alice" + ELIGIBLE)])
    result = _import(db, raw, filename="mn5070nu - week 3.csv", module_code="")
    assert result.module_code == "MN5070NU"


def test_zero_participant_rows_is_ok(db, export_factory):
    result = _import(db, export_factory([]))
    assert result.ok is True
    assert result.rows_read == 0
    assert result.attendance_upserted == 0
    assert db.query(MeetingSession).count() == 1


def test_null_duration_is_not_zero(db, export_factory, make_participant):
    _import(db, export_factory([
        make_participant("Alice", "alice" + ELIGIBLE, duration=""),
        make_participant("Bob", "bob" + ELIGIBLE, duration="0m 0s"),
    ]))
    minutes = {r.email_raw: r.minutes for r in db.query(Attendance).all()}
    assert minutes == {"alice" + ELIGIBLE: None, "bob" + ELIGIBLE: 0}


def test_missing_section_marker_writes_nothing(db, make_participant):
    raw = "Name\tEmail\tIn-Meeting Duration\r\nAlice\talice@x.com\t5m".encode("utf-16-le")
    with pytest.raises(ExportFormatError):
        _import(db, raw)
    assert _counts(db) == {"modules": 0, "sessions": 0, "students": 0, "attendance": 0}


def test_missing_header_writes_nothing(db, export_factory, make_participant):
    raw = export_factory([make_participant("Alice", "alice@x.com")], header="Name\tMail\tTime")
    with pytest.raises(ExportFormatError):
        _import(db, raw)
    assert _counts(db)["modules"] == 0


def test_validation_error_before_parsing(db):
    with pytest.raises(ImportValidationError):
        _import(db, None)
    with pytest.raises(ImportValidationError):
        _import(db, b"garbage", intake="")


def test_weekly_standup_scenario(db, export_factory):
    summary = [("Meeting title", "Weekly Standup"), ("Start time", "2026-02-10T09:00:00Z")]
    header = "Name\tEmail\tRole\tIn-Meeting Duration\tFirst Join"
    raw = export_factory([["Alice", "alice" + ELIGIBLE, "Attendee", "45:00", ""]],
                         summary=summary, header=header)

    result = _import(db, raw)

    session = db.query(MeetingSession).one()
    assert session.meeting_name == "Weekly Standup"
    assert session.end_time is None
    assert result.duration_min is None
    record = db.query(Attendance).one()
    assert record.minutes == 45
    assert record.is_eligible is True


def test_oversized_values_in_one_row_do_not_abort_import(db, export_factory, make_participant):
    raw = export_factory([
        make_participant("Alice", "alice" + ELIGIBLE, duration="1e30",
                         first_join="0001-01-01T00:00:00+01:00"),
        make_participant("Bob", "bob" + ELIGIBLE, duration="99999999999999999999h"),
        make_participant("Carol", "carol" + ELIGIBLE, duration="30m"),
    ])

    result = _import(db, raw)

    assert result.attendance_upserted == 3
    minutes = {r.email_raw: r.minutes for r in db.query(Attendance).all()}
    assert minutes == {"alice" + ELIGIBLE: None, "bob" + ELIGIBLE: None, "carol" + ELIGIBLE: 30}
    alice = db.query(Attendance).filter_by(email_raw="alice" + ELIGIBLE).one()
    assert alice.first_join is None
