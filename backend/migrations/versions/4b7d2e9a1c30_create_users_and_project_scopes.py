"""create user, project_scope and scope_student tables

Revision ID: 4b7d2e9a1c30
Revises:
Create Date: 2026-09-14 10:20:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4b7d2e9a1c30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'user' not in existing_tables:
        op.create_table(
            'user',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('username', sa.String(length=64), nullable=False),
            sa.Column('name', sa.String(length=128), nullable=True),
            sa.Column('email', sa.String(length=128), nullable=True, unique=True),
            sa.Column('roll_number', sa.String(length=32), nullable=True, unique=True),
            sa.Column('role', sa.String(length=16), nullable=False, server_default='STUDENT'),
            sa.Column('password_hash', sa.String(length=256), nullable=False),
        )
        op.create_index('ix_user_username', 'user', ['username'], unique=True)

    if 'project_scope' not in existing_tables:
        op.create_table(
            'project_scope',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(length=128), nullable=False),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('type', sa.String(length=64), nullable=True),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('require_guide', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('require_subject_expert', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('number_of_phases', sa.Integer(), nullable=False, server_default='4'),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.Column('timer_total_hours', sa.Float(), nullable=True),
            sa.Column('current_remaining_seconds', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('is_timer_running', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('timer_last_updated', sa.DateTime(timezone=True), nullable=True),
        )
    else:
        # Older deployments created scopes before the batch timer existed
        scope_cols = {c['name'] for c in insp.get_columns('project_scope')}
        with op.batch_alter_table('project_scope') as batch_op:
            if 'timer_total_hours' not in scope_cols:
                batch_op.add_column(sa.Column('timer_total_hours', sa.Float(), nullable=True))
            if 'current_remaining_seconds' not in scope_cols:
                batch_op.add_column(sa.Column('current_remaining_seconds', sa.Integer(), nullable=False, server_default='0'))
            if 'is_timer_running' not in scope_cols:
                batch_op.add_column(sa.Column('is_timer_running', sa.Boolean(), nullable=False, server_default=sa.false()))
            if 'timer_last_updated' not in scope_cols:
                batch_op.add_column(sa.Column('timer_last_updated', sa.DateTime(timezone=True), nullable=True))

    if 'scope_student' not in existing_tables:
        op.create_table(
            'scope_student',
            sa.Column('scope_id', sa.Integer(), sa.ForeignKey('project_scope.id'), primary_key=True),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), primary_key=True),
        )


def downgrade():
    op.drop_table('scope_student')
    op.drop_table('project_scope')
    op.drop_index('ix_user_username', table_name='user')
    op.drop_table('user')
