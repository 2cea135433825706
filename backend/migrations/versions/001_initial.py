"""Initial migration - create all tables

Revision ID: 001_initial
Revises: None
Create Date: 2026-02-05

Creates all database tables for Attendance Ops:
- modules: Module master records keyed by code
- programs / program_modules: Programs and their module links
- students: Students keyed by lowercase email
- enrollments: Student registrations per cohort (module, intake, year)
- sessions: Meeting sessions keyed by the derived session_key
- attendance: One row per (session, student)

Also creates the unique constraints the importers upsert against.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── Modules & Programs ────────────────────────────────────
    op.create_table(
        'modules',
        sa.Column('code', sa.String(32), primary_key=True),
        sa.Column('name', sa.Text(), nullable=False),
    )

    op.create_table(
        'programs',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.Text(), nullable=False, unique=True),
    )

    op.create_table(
        'program_modules',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('program_id', sa.String(36),
                  sa.ForeignKey('programs.id', ondelete='CASCADE'), nullable=False),
        sa.Column('module_code', sa.String(32),
                  sa.ForeignKey('modules.code', ondelete='CASCADE'), nullable=False),
        sa.UniqueConstraint('program_id', 'module_code', name='uq_program_modules_program_module'),
    )
    op.create_index('ix_program_modules_module_code', 'program_modules', ['module_code'])
    op.create_index('ix_program_modules_program_id', 'program_modules', ['program_id'])

    # ── Students & Enrollments ────────────────────────────────
    op.create_table(
        'students',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.Text(), nullable=False, unique=True),
        sa.Column('name', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
    )

    op.create_table(
        'enrollments',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('student_id', sa.String(36),
                  sa.ForeignKey('students.id', ondelete='CASCADE'), nullable=False),
        sa.Column('module_code', sa.String(32),
                  sa.ForeignKey('modules.code', ondelete='CASCADE'), nullable=False),
        sa.Column('intake', sa.Text(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.UniqueConstraint('student_id', 'module_code', 'intake', 'year',
                            name='uq_enrollments_student_cohort'),
    )

    # ── Sessions ──────────────────────────────────────────────
    op.create_table(
        'sessions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('session_key', sa.Text(), nullable=False, unique=True),
        sa.Column('module_code', sa.String(32),
                  sa.ForeignKey('modules.code', ondelete='CASCADE'), nullable=False),
        sa.Column('intake', sa.Text(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('meeting_name', sa.Text(), nullable=True),
        sa.Column('start_time', sa.DateTime(), nullable=True),
        sa.Column('end_time', sa.DateTime(), nullable=True),
        sa.Column('duration_min', sa.Integer(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
    )
    op.create_index('ix_sessions_module_intake_year', 'sessions', ['module_code', 'intake', 'year'])

    # ── Attendance ────────────────────────────────────────────
    op.create_table(
        'attendance',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('session_id', sa.String(36),
                  sa.ForeignKey('sessions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('student_id', sa.String(36),
                  sa.ForeignKey('students.id', ondelete='CASCADE'), nullable=False),
        sa.Column('email_raw', sa.Text(), nullable=True),
        sa.Column('first_join', sa.DateTime(), nullable=True),
        sa.Column('last_leave', sa.DateTime(), nullable=True),
        sa.Column('minutes', sa.Integer(), nullable=True),
        sa.Column('role', sa.Text(), nullable=True),
        sa.Column('is_eligible', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.UniqueConstraint('session_id', 'student_id', name='uq_attendance_session_student'),
    )
    op.create_index('ix_attendance_student_id', 'attendance', ['student_id'])


def downgrade() -> None:
    """Drop all tables in reverse dependency order."""
    op.drop_index('ix_attendance_student_id', table_name='attendance')
    op.drop_table('attendance')
    op.drop_index('ix_sessions_module_intake_year', table_name='sessions')
    op.drop_table('sessions')
    op.drop_table('enrollments')
    op.drop_table('students')
    op.drop_index('ix_program_modules_program_id', table_name='program_modules')
    op.drop_index('ix_program_modules_module_code', table_name='program_modules')
    op.drop_table('program_modules')
    op.drop_table('programs')
    op.drop_table('modules')
