"""
Student model - represents a participant identified by email.

Students are created lazily by every importer that encounters an email
(attendance exports and enrollment rosters). The email is stored
lowercase and trimmed and is the only natural key.
"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, Text, DateTime, String
from sqlalchemy.orm import relationship
from app.database import Base


class Student(Base):
    """
    SQLAlchemy model for the students table.

    Rows without an email in an attendance export are stored under a
    synthetic placeholder address (see services.identity.placeholder_email).
    """
    __tablename__ = "students"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()),
                doc="Unique student identifier")
    email = Column(Text, nullable=False, unique=True,
                   doc="Lowercase, trimmed email (unique)")
    name = Column(Text, nullable=True,
                  doc="Display name, refreshed by the latest import that provides one")
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc),
                        doc="Timestamp when student record was created")

    attendances = relationship("Attendance", back_populates="student")
    enrollments = relationship("Enrollment", back_populates="student")

    def __repr__(self):
        return f"<Student(id={self.id}, email='{self.email}')>"
