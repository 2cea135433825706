from app.models.module import Module, Program, ProgramModule
from app.models.student import Student
from app.models.session import MeetingSession
from app.models.attendance import Attendance
from app.models.enrollment import Enrollment

__all__ = ["Module", "Program", "ProgramModule", "Student", "MeetingSession", "Attendance", "Enrollment"]
