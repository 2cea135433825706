import os

# Tests never touch a real database; app.database reads this at import time.
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401  registers every table on Base.metadata
from app.database import build_engine, create_tables, get_db

PARTICIPANTS_HEADER = "\t".join([
    "Name", "First Join", "Last Leave", "In-Meeting Duration", "Email", "Participant ID (UPN)", "Role",
])

ACTIVITIES_HEADER = "\t".join([
    "Name", "Join Time", "Leave Time", "Duration", "Email", "Role",
])

DEFAULT_SUMMARY = [
    ("Meeting title", "Weekly Standup"),
    ("Attended participants", "2"),
    ("Start time", "2026-02-10T09:00:00Z"),
    ("End time", "2026-02-10T10:00:00Z"),
    ("Meeting duration", "1h 0m 0s"),
]


def participant(name, email, duration="45m 0s", role="Attendee",
                first_join="2/10/26, 9:00:05 AM", last_leave="2/10/26, 9:45:05 AM"):
    return [name, first_join, last_leave, duration, email, email, role]


def build_export(rows, summary=None, header=PARTICIPANTS_HEADER, activities=None,
                 encoding="utf-16-le", newline="\r\n"):
    """Render a Teams-style attendance report as bytes."""
    lines = ["1. Summary"]
    for key, value in (DEFAULT_SUMMARY if summary is None else summary):
        lines.append(f"{key}\t{value}")
    lines += ["", "2. Participants", header]
    lines += ["\t".join(row) for row in rows]
    if activities is not None:
        lines += ["", "3. In-Meeting Activities", ACTIVITIES_HEADER]
        lines += ["\t".join(row) for row in activities]
    return newline.join(lines).encode(encoding)


@pytest.fixture
def export_factory():
    return build_export


@pytest.fixture
def make_participant():
    return participant


@pytest.fixture
def engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    create_tables(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    from app.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
