"""
MeetingSession model - one scheduled meeting of a module within a cohort.

The opaque id is generated on first insert and kept forever. Re-imports
of the same meeting are matched on session_key, a derived string built
by services.identity.build_session_key from cohort, times and title.
"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, Text, Integer, DateTime, String, ForeignKey, Index
from sqlalchemy.orm import relationship
from app.database import Base


class MeetingSession(Base):
    """SQLAlchemy model for the sessions table."""
    __tablename__ = "sessions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()),
                doc="Opaque session identifier returned to callers")
    session_key = Column(Text, nullable=False, unique=True,
                         doc="Derived identity used to deduplicate re-imports")
    module_code = Column(String(32), ForeignKey("modules.code", ondelete="CASCADE"), nullable=False)
    intake = Column(Text, nullable=False, doc="Spring | Summer | Autumn")
    year = Column(Integer, nullable=False)
    meeting_name = Column(Text, nullable=True)
    start_time = Column(DateTime, nullable=True, doc="Naive UTC")
    end_time = Column(DateTime, nullable=True, doc="Naive UTC")
    duration_min = Column(Integer, nullable=True, doc="Declared meeting duration in minutes")
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc),
                        doc="Last import that touched this session")

    module = relationship("Module", back_populates="sessions")
    attendances = relationship("Attendance", back_populates="session")

    __table_args__ = (
        Index("ix_sessions_module_intake_year", "module_code", "intake", "year"),
    )

    def __repr__(self):
        return f"<MeetingSession(id={self.id}, module='{self.module_code}', {self.intake} {self.year})>"
