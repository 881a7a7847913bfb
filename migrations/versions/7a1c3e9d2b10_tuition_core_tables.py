"""create tuition center core tables

Revision ID: 7a1c3e9d2b10
Revises:
Create Date: 2026-10-17 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "7a1c3e9d2b10"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'instructors',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('display_name', sa.String(length=150), nullable=False),
        sa.Column('center_name', sa.String(length=150), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ux_instructors_email', 'instructors', ['email'], unique=True)

    op.create_table(
        'students',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('instructor_id', sa.Integer(), sa.ForeignKey('instructors.id'), nullable=False),
        sa.Column('full_name', sa.String(length=150), nullable=False),
        sa.Column('class_grade', sa.String(length=50), nullable=False),
        sa.Column('school_name', sa.String(length=150), nullable=True),
        sa.Column('parent_name', sa.String(length=150), nullable=True),
        sa.Column('parent_phone', sa.String(length=20), nullable=False),
        sa.Column('admission_date', sa.Date(), nullable=False),
        sa.Column('batch_timing', sa.String(length=50), nullable=True),
        sa.Column('status', sa.String(length=10), nullable=False, server_default='Active'),
        sa.Column('leaving_date', sa.Date(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_students_instructor_id', 'students', ['instructor_id'])

    op.create_table(
        'fees',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('instructor_id', sa.Integer(), sa.ForeignKey('instructors.id'), nullable=False),
        sa.Column('student_id', sa.Integer(), sa.ForeignKey('students.id'), nullable=False),
        sa.Column('fee_month', sa.String(length=7), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('paid_date', sa.Date(), nullable=False),
        sa.Column('payment_mode', sa.String(length=10), nullable=False),
        sa.Column('payment_reference', sa.String(length=120), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_fees_instructor_id', 'fees', ['instructor_id'])
    op.create_index('ix_fees_student_id', 'fees', ['student_id'])
    op.create_index('ix_fees_fee_month', 'fees', ['fee_month'])

    op.create_table(
        'attendance',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('instructor_id', sa.Integer(), sa.ForeignKey('instructors.id'), nullable=False),
        sa.Column('student_id', sa.Integer(), sa.ForeignKey('students.id'), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(length=10), nullable=False),
        sa.UniqueConstraint('student_id', 'date', name='uq_attendance_student_date'),
    )
    op.create_index('ix_attendance_instructor_id', 'attendance', ['instructor_id'])
    op.create_index('ix_attendance_date', 'attendance', ['date'])


def downgrade():
    op.drop_index('ix_attendance_date', table_name='attendance')
    op.drop_index('ix_attendance_instructor_id', table_name='attendance')
    op.drop_table('attendance')
    op.drop_index('ix_fees_fee_month', table_name='fees')
    op.drop_index('ix_fees_student_id', table_name='fees')
    op.drop_index('ix_fees_instructor_id', table_name='fees')
    op.drop_table('fees')
    op.drop_index('ix_students_instructor_id', table_name='students')
    op.drop_table('students')
    op.drop_index('ux_instructors_email', table_name='instructors')
    op.drop_table('instructors')
