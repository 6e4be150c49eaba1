"""student feedback forms, student evaluation scores, notifications

Revision ID: 0002_feedback_forms_and_notifications
Revises: 0001_initial_schema
Create Date: 2026-10-19 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0002_feedback_forms_and_notifications'
down_revision = '0001_initial_schema'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'student_feedback_forms',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('key', sa.String(120), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('title', sa.String(300), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('schema', sa.JSON(), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint('key', 'version', name='uq_student_feedback_forms_key_version'),
    )

    # Use batch_alter_table for SQLite compatibility
    with op.batch_alter_table('defense_schedules', schema=None) as batch_op:
        batch_op.add_column(sa.Column('student_feedback_form_id', sa.String(36), nullable=True))
        batch_op.create_foreign_key('fk_defense_schedules_feedback_form', 'student_feedback_forms',
                                    ['student_feedback_form_id'], ['id'], ondelete='SET NULL')
        batch_op.create_index('ix_defense_schedules_student_feedback_form_id', ['student_feedback_form_id'])

    with op.batch_alter_table('student_evaluations', schema=None) as batch_op:
        batch_op.add_column(sa.Column('form_id', sa.String(36), nullable=True))
        batch_op.create_foreign_key('fk_student_evaluations_form', 'student_feedback_forms',
                                    ['form_id'], ['id'], ondelete='SET NULL')
        batch_op.create_index('ix_student_evaluations_form_id', ['form_id'])

    op.create_table(
        'student_evaluation_scores',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('student_evaluation_id', sa.String(36),
                  sa.ForeignKey('student_evaluations.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('form_id', sa.String(36), sa.ForeignKey('student_feedback_forms.id', ondelete='SET NULL')),
        sa.Column('total_score', sa.Float(), nullable=False, server_default='0'),
        sa.Column('max_score', sa.Float(), nullable=False, server_default='0'),
        sa.Column('percentage', sa.Float(), nullable=False, server_default='0'),
        sa.Column('breakdown', sa.JSON(), nullable=False),
        sa.Column('computed_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        'notifications',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(40), nullable=False, server_default='general'),
        sa.Column('title', sa.String(300), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('data', sa.JSON(), nullable=False),
        sa.Column('read_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_notifications_user_created', 'notifications', ['user_id', 'created_at'])


def downgrade():
    op.drop_index('ix_notifications_user_created', table_name='notifications')
    op.drop_table('notifications')
    op.drop_table('student_evaluation_scores')
    with op.batch_alter_table('student_evaluations', schema=None) as batch_op:
        batch_op.drop_index('ix_student_evaluations_form_id')
        batch_op.drop_constraint('fk_student_evaluations_form', type_='foreignkey')
        batch_op.drop_column('form_id')
    with op.batch_alter_table('defense_schedules', schema=None) as batch_op:
        batch_op.drop_index('ix_defense_schedules_student_feedback_form_id')
        batch_op.drop_constraint('fk_defense_schedules_feedback_form', type_='foreignkey')
        batch_op.drop_column('student_feedback_form_id')
    op.drop_table('student_feedback_forms')
