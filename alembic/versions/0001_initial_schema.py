"""Initial schema: users, thesis groups, rubrics, schedules, evaluations, audit

Revision ID: 0001_initial_schema
Revises: None
Create Date: 2026-10-19 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def _id():
    return sa.Column('id', sa.String(36), primary_key=True)


def _created():
    return sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now())


def _updated():
    return sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now())


def upgrade() -> None:
    op.create_table(
        'users',
        _id(),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('role', sa.String(20), nullable=False, server_default='student'),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('password_hash', sa.String(255), nullable=False),
        _created(), _updated(),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'thesis_groups',
        _id(),
        sa.Column('title', sa.String(300), nullable=False),
        sa.Column('adviser_id', sa.String(36), sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.Column('program', sa.String(120)),
        sa.Column('term', sa.String(60)),
        _created(), _updated(),
    )

    op.create_table(
        'group_members',
        sa.Column('group_id', sa.String(36), sa.ForeignKey('thesis_groups.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('student_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
    )

    op.create_table(
        'rubric_templates',
        _id(),
        sa.Column('name', sa.String(300), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _created(), _updated(),
    )

    op.create_table(
        'rubric_criteria',
        _id(),
        sa.Column('template_id', sa.String(36), sa.ForeignKey('rubric_templates.id', ondelete='CASCADE'),
                  nullable=False),
        sa.Column('criterion', sa.Text(), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('weight', sa.Numeric(6, 3), nullable=False, server_default='1'),
        sa.Column('min_score', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('max_score', sa.Integer(), nullable=False, server_default='5'),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        _created(),
        sa.CheckConstraint('min_score <= max_score', name='ck_rubric_criteria_score_range'),
        sa.CheckConstraint('weight > 0', name='ck_rubric_criteria_weight_positive'),
    )
    op.create_index('ix_rubric_criteria_template_id', 'rubric_criteria', ['template_id'])

    op.create_table(
        'rubric_scale_levels',
        sa.Column('template_id', sa.String(36), sa.ForeignKey('rubric_templates.id', ondelete='CASCADE'),
                  primary_key=True),
        sa.Column('score', sa.Integer(), primary_key=True),
        sa.Column('adjectival', sa.String(120), nullable=False),
        sa.Column('description', sa.Text()),
    )

    op.create_table(
        'defense_schedules',
        _id(),
        sa.Column('group_id', sa.String(36), sa.ForeignKey('thesis_groups.id', ondelete='CASCADE'), nullable=False),
        sa.Column('scheduled_at', sa.DateTime(), nullable=False),
        sa.Column('room', sa.String(120)),
        sa.Column('status', sa.String(30), nullable=False, server_default='scheduled'),
        sa.Column('rubric_template_id', sa.String(36),
                  sa.ForeignKey('rubric_templates.id', ondelete='SET NULL')),
        sa.Column('created_by', sa.String(36), sa.ForeignKey('users.id', ondelete='SET NULL')),
        _created(), _updated(),
    )
    op.create_index('ix_defense_schedules_group_id', 'defense_schedules', ['group_id'])
    op.create_index('ix_defense_schedules_scheduled_at', 'defense_schedules', ['scheduled_at'])
    op.create_index('ix_defense_schedules_rubric_template_id', 'defense_schedules', ['rubric_template_id'])

    op.create_table(
        'schedule_panelists',
        sa.Column('schedule_id', sa.String(36), sa.ForeignKey('defense_schedules.id', ondelete='CASCADE'),
                  primary_key=True),
        sa.Column('staff_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
    )

    op.create_table(
        'evaluations',
        _id(),
        sa.Column('schedule_id', sa.String(36), sa.ForeignKey('defense_schedules.id', ondelete='CASCADE'),
                  nullable=False),
        sa.Column('evaluator_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('submitted_at', sa.DateTime()),
        sa.Column('locked_at', sa.DateTime()),
        _created(),
        sa.UniqueConstraint('schedule_id', 'evaluator_id', name='uq_evaluations_assignment'),
    )
    op.create_index('ix_evaluations_schedule_id', 'evaluations', ['schedule_id'])

    op.create_table(
        'evaluation_scores',
        sa.Column('evaluation_id', sa.String(36), sa.ForeignKey('evaluations.id', ondelete='CASCADE'),
                  primary_key=True),
        sa.Column('criterion_id', sa.String(36), sa.ForeignKey('rubric_criteria.id', ondelete='CASCADE'),
                  primary_key=True),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('comment', sa.Text()),
    )

    op.create_table(
        'evaluation_extras',
        sa.Column('evaluation_id', sa.String(36), sa.ForeignKey('evaluations.id', ondelete='CASCADE'),
                  primary_key=True),
        sa.Column('data', sa.JSON(), nullable=False),
        _created(), _updated(),
    )

    op.create_table(
        'student_evaluations',
        _id(),
        sa.Column('schedule_id', sa.String(36), sa.ForeignKey('defense_schedules.id', ondelete='CASCADE'),
                  nullable=False),
        sa.Column('student_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('answers', sa.JSON(), nullable=False),
        sa.Column('submitted_at', sa.DateTime()),
        sa.Column('locked_at', sa.DateTime()),
        _created(), _updated(),
        sa.UniqueConstraint('schedule_id', 'student_id', name='uq_student_evaluations_schedule_student'),
    )
    op.create_index('ix_student_evaluations_schedule_id', 'student_evaluations', ['schedule_id'])
    op.create_index('ix_student_evaluations_student_id', 'student_evaluations', ['student_id'])

    op.create_table(
        'audit_logs',
        _id(),
        sa.Column('actor_id', sa.String(36), sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.Column('action', sa.String(120), nullable=False),
        sa.Column('entity', sa.String(60), nullable=False),
        sa.Column('entity_id', sa.String(36)),
        sa.Column('details', sa.JSON()),
        _created(),
    )
    op.create_index('ix_audit_logs_actor_id', 'audit_logs', ['actor_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])

    op.create_table(
        'password_resets',
        _id(),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('token_hash', sa.String(64), nullable=False, unique=True),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('used_at', sa.DateTime()),
        _created(),
    )
    op.create_index('ix_password_resets_user_id', 'password_resets', ['user_id'])


def downgrade() -> None:
    for table in ('password_resets', 'audit_logs', 'student_evaluations', 'evaluation_extras',
                  'evaluation_scores', 'evaluations', 'schedule_panelists', 'defense_schedules',
                  'rubric_scale_levels', 'rubric_criteria', 'rubric_templates', 'group_members',
                  'thesis_groups', 'users'):
        op.drop_table(table)
