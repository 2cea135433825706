"""
Enrollment model - a student registered on a module for one cohort.

(module_code, intake, year) is the cohort scope shared with sessions.
"""

import uuid
from sqlalchemy import Column, Text, Integer, String, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from app.database import Base


class Enrollment(Base):
    """SQLAlchemy model for the enrollments table."""
    __tablename__ = "enrollments"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    student_id = Column(String(36), ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    module_code = Column(String(32), ForeignKey("modules.code", ondelete="CASCADE"), nullable=False)
    intake = Column(Text, nullable=False)
    year = Column(Integer, nullable=False)

    student = relationship("Student", back_populates="enrollments")

    __table_args__ = (
        UniqueConstraint("student_id", "module_code", "intake", "year",
                         name="uq_enrollments_student_cohort"),
    )

    def __repr__(self):
        return f"<Enrollment(student={self.student_id}, module='{self.module_code}', {self.intake} {self.year})>"
