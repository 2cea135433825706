"""
Module and Program models.

A module is identified by its uppercase code (e.g. MN5070NU). Programs
group modules through the program_modules link table; a module may sit
in several programs.
"""

import uuid
from sqlalchemy import Column, Text, String, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from app.database import Base


class Module(Base):
    """SQLAlchemy model for the modules table."""
    __tablename__ = "modules"

    code = Column(String(32), primary_key=True,
                  doc="Uppercase module code")
    name = Column(Text, nullable=False,
                  doc="Display name (defaults to the code when created by an attendance import)")

    programs = relationship("ProgramModule", back_populates="module")
    sessions = relationship("MeetingSession", back_populates="module")

    def __repr__(self):
        return f"<Module(code='{self.code}', name='{self.name}')>"


class Program(Base):
    """SQLAlchemy model for the programs table."""
    __tablename__ = "programs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(Text, nullable=False, unique=True)

    modules = relationship("ProgramModule", back_populates="program")

    def __repr__(self):
        return f"<Program(id={self.id}, name='{self.name}')>"


class ProgramModule(Base):
    """Link between a program and one of its modules."""
    __tablename__ = "program_modules"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    program_id = Column(String(36), ForeignKey("programs.id", ondelete="CASCADE"), nullable=False)
    module_code = Column(String(32), ForeignKey("modules.code", ondelete="CASCADE"), nullable=False)

    program = relationship("Program", back_populates="modules")
    module = relationship("Module", back_populates="programs")

    __table_args__ = (
        UniqueConstraint("program_id", "module_code", name="uq_program_modules_program_module"),
        Index("ix_program_modules_module_code", "module_code"),
        Index("ix_program_modules_program_id", "program_id"),
    )
