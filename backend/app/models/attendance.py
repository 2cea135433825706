"""
Attendance model - one student's participation in one meeting session.

Uniquely keyed by (session_id, student_id); every re-import of the same
row overwrites the previous values instead of adding a new record.
"""

import uuid
from sqlalchemy import Column, Text, Integer, Boolean, DateTime, String, ForeignKey, UniqueConstraint, Index
from sqlalchemy.orm import relationship
from app.database import Base


class Attendance(Base):
    """SQLAlchemy model for the attendance table."""
    __tablename__ = "attendance"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    session_id = Column(String(36), ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False)
    student_id = Column(String(36), ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    email_raw = Column(Text, nullable=True,
                       doc="Email exactly as it appeared in the export (trimmed)")
    first_join = Column(DateTime, nullable=True)
    last_leave = Column(DateTime, nullable=True)
    minutes = Column(Integer, nullable=True,
                     doc="Attended minutes; NULL means not recorded, 0 is a real value")
    role = Column(Text, nullable=True)
    is_eligible = Column(Boolean, nullable=False, default=False,
                         doc="Email matched the student domain at import time")

    session = relationship("MeetingSession", back_populates="attendances")
    student = relationship("Student", back_populates="attendances")

    __table_args__ = (
        UniqueConstraint("session_id", "student_id", name="uq_attendance_session_student"),
        Index("ix_attendance_student_id", "student_id"),
    )

    def __repr__(self):
        return f"<Attendance(session={self.session_id}, student={self.student_id}, minutes={self.minutes})>"
