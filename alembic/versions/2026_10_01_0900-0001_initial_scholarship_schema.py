"""initial_scholarship_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-01 09:00:00.000000+00:00

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '0001'
down_revision = None
branch_labels = None
depends_on = None

JSON = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), 'postgresql')
LIVE_STATUSES = sa.text("status NOT IN ('APPROVED', 'REJECTED', 'WITHDRAWN')")


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    ]


def upgrade() -> None:
    """Create cycles, applications, reviews, history and notification outbox."""
    op.create_table(
        'scholarship_cycles',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('program_name', sa.String(length=255), nullable=False),
        sa.Column('academic_year', sa.String(length=20), nullable=False),
        sa.Column('display_name', sa.String(length=300), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('award_amount', sa.Float(), nullable=False),
        sa.Column('total_slots', sa.Integer(), nullable=False),
        sa.Column('remaining_slots', sa.Integer(), nullable=False),
        sa.Column('application_start', sa.DateTime(), nullable=False),
        sa.Column('application_end', sa.DateTime(), nullable=False),
        sa.Column('eligibility_criteria', JSON, nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('application_sequence', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('total_slots >= 0', name='ck_cycle_total_slots_non_negative'),
        sa.CheckConstraint(
            'remaining_slots >= 0 AND remaining_slots <= total_slots',
            name='ck_cycle_remaining_slots_bounds',
        ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_scholarship_cycles_id'), 'scholarship_cycles', ['id'], unique=False)
    op.create_index(op.f('ix_scholarship_cycles_program_name'), 'scholarship_cycles', ['program_name'], unique=False)
    op.create_index(op.f('ix_scholarship_cycles_status'), 'scholarship_cycles', ['status'], unique=False)

    op.create_table(
        'applications',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('application_number', sa.String(length=40), nullable=False),
        sa.Column('applicant_id', sa.String(length=100), nullable=False),
        sa.Column('cycle_id', sa.Uuid(), nullable=False),
        sa.Column('motivation_letter', sa.Text(), nullable=True),
        sa.Column('academic_info', JSON, nullable=True),
        sa.Column('financial_info', JSON, nullable=True),
        sa.Column('document_ids', JSON, nullable=True),
        sa.Column('score', sa.Float(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('submitted_at', sa.DateTime(), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(), nullable=True),
        sa.Column('decision_at', sa.DateTime(), nullable=True),
        sa.Column('decision_by', sa.String(length=100), nullable=True),
        sa.Column('decision_notes', sa.Text(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['cycle_id'], ['scholarship_cycles.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('cycle_id', 'application_number', name='uq_applications_cycle_number'),
    )
    op.create_index(op.f('ix_applications_id'), 'applications', ['id'], unique=False)
    op.create_index(op.f('ix_applications_application_number'), 'applications', ['application_number'], unique=False)
    op.create_index(op.f('ix_applications_applicant_id'), 'applications', ['applicant_id'], unique=False)
    op.create_index('idx_applications_cycle_status', 'applications', ['cycle_id', 'status'], unique=False)
    # At most one live application per applicant and cycle
    op.create_index(
        'uq_applications_live_per_applicant',
        'applications',
        ['applicant_id', 'cycle_id'],
        unique=True,
        postgresql_where=LIVE_STATUSES,
        sqlite_where=LIVE_STATUSES,
    )

    op.create_table(
        'reviews',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('application_id', sa.Uuid(), nullable=False),
        sa.Column('reviewer_id', sa.String(length=100), nullable=False),
        sa.Column('score', sa.Float(), nullable=False),
        sa.Column('comments', sa.Text(), nullable=True),
        sa.Column('recommendation', sa.String(length=20), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('score >= 0 AND score <= 100', name='ck_review_score_range'),
        sa.ForeignKeyConstraint(['application_id'], ['applications.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('application_id', 'reviewer_id', name='unique_reviewer_per_application'),
    )
    op.create_index(op.f('ix_reviews_id'), 'reviews', ['id'], unique=False)
    op.create_index(op.f('ix_reviews_application_id'), 'reviews', ['application_id'], unique=False)
    op.create_index(op.f('ix_reviews_reviewer_id'), 'reviews', ['reviewer_id'], unique=False)

    op.create_table(
        'application_history',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('application_id', sa.Uuid(), nullable=False),
        sa.Column('action', sa.String(length=30), nullable=False),
        sa.Column('actor_id', sa.String(length=100), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['application_id'], ['applications.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'idx_history_application_time',
        'application_history',
        ['application_id', 'created_at', 'id'],
        unique=False,
    )

    op.create_table(
        'notification_events',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('event_type', sa.String(length=50), nullable=False),
        sa.Column('application_id', sa.Uuid(), nullable=False),
        sa.Column('recipient_id', sa.String(length=100), nullable=False),
        sa.Column('payload', JSON, nullable=True),
        sa.Column('dispatched_at', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['application_id'], ['applications.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_notification_events_id'), 'notification_events', ['id'], unique=False)
    op.create_index('idx_notification_events_pending', 'notification_events', ['dispatched_at', 'created_at'], unique=False)
    op.create_index('idx_notification_events_recipient', 'notification_events', ['recipient_id'], unique=False)


def downgrade() -> None:
    """Drop all scholarship tables."""
    op.drop_index('idx_notification_events_recipient', table_name='notification_events')
    op.drop_index('idx_notification_events_pending', table_name='notification_events')
    op.drop_index(op.f('ix_notification_events_id'), table_name='notification_events')
    op.drop_table('notification_events')

    op.drop_index('idx_history_application_time', table_name='application_history')
    op.drop_table('application_history')

    op.drop_index(op.f('ix_reviews_reviewer_id'), table_name='reviews')
    op.drop_index(op.f('ix_reviews_application_id'), table_name='reviews')
    op.drop_index(op.f('ix_reviews_id'), table_name='reviews')
    op.drop_table('reviews')

    op.drop_index('uq_applications_live_per_applicant', table_name='applications')
    op.drop_index('idx_applications_cycle_status', table_name='applications')
    op.drop_index(op.f('ix_applications_applicant_id'), table_name='applications')
    op.drop_index(op.f('ix_applications_application_number'), table_name='applications')
    op.drop_index(op.f('ix_applications_id'), table_name='applications')
    op.drop_table('applications')

    op.drop_index(op.f('ix_scholarship_cycles_status'), table_name='scholarship_cycles')
    op.drop_index(op.f('ix_scholarship_cycles_program_name'), table_name='scholarship_cycles')
    op.drop_index(op.f('ix_scholarship_cycles_id'), table_name='scholarship_cycles')
    op.drop_table('scholarship_cycles')
