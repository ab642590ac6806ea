"""create_checkin_tables

Revision ID: a7c3e91d2b40
Revises:
Create Date: 2025-11-04 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'a7c3e91d2b40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'events',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('owner_id', sa.Integer(), nullable=False),
        sa.Column('checkin_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('enabled_methods', sa.JSON(), nullable=False),
        sa.Column('event_token', sa.String(length=100), nullable=True),
        sa.Column('event_token_rotated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_events_owner_id', 'events', ['owner_id'])

    op.create_table(
        'event_members',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('event_id', sa.Integer(), sa.ForeignKey('events.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('event_id', 'user_id', name='uq_event_member'),
    )
    op.create_index('ix_event_members_event_id', 'event_members', ['event_id'])
    op.create_index('ix_event_members_user_id', 'event_members', ['user_id'])

    op.create_table(
        'member_checkin_states',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('event_id', sa.Integer(), sa.ForeignKey('events.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('checked_in_methods', sa.JSON(), nullable=False),
        sa.Column('blocked_all', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('blocked_methods', sa.JSON(), nullable=False),
        sa.Column('last_checkin_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_rejection_reason', sa.String(length=500), nullable=True),
        sa.Column('last_rejection_actor_id', sa.Integer(), nullable=True),
        sa.Column('last_rejection_method', sa.String(length=32), nullable=True),
        sa.Column('last_rejected_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_rejection_visible', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('member_token', sa.String(length=100), nullable=False),
        sa.Column('member_token_key', sa.String(length=64), nullable=False),
        sa.Column('member_token_rotated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('archived_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.UniqueConstraint('event_id', 'user_id', name='uq_checkin_state_member'),
    )
    op.create_index('idx_checkin_states_event', 'member_checkin_states', ['event_id'])
    op.create_index('ix_member_checkin_states_member_token_key', 'member_checkin_states', ['member_token_key'])

    # No foreign keys: denials against unknown events are recorded too
    op.create_table(
        'checkin_audit_entries',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('event_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('actor_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(length=32), nullable=False),
        sa.Column('method', sa.String(length=32), nullable=True),
        sa.Column('source', sa.String(length=16), nullable=False),
        sa.Column('result', sa.String(length=16), nullable=False),
        sa.Column('reason', sa.String(length=500), nullable=True),
        sa.Column('comment', sa.String(length=500), nullable=True),
        sa.Column('show_comment_to_user', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('idx_audit_event_seq', 'checkin_audit_entries', ['event_id', 'id'])
    op.create_index('idx_audit_member_seq', 'checkin_audit_entries', ['event_id', 'user_id', 'id'])


def downgrade():
    op.drop_index('idx_audit_member_seq', table_name='checkin_audit_entries')
    op.drop_index('idx_audit_event_seq', table_name='checkin_audit_entries')
    op.drop_table('checkin_audit_entries')

    op.drop_index('ix_member_checkin_states_member_token_key', table_name='member_checkin_states')
    op.drop_index('idx_checkin_states_event', table_name='member_checkin_states')
    op.drop_table('member_checkin_states')

    op.drop_index('ix_event_members_user_id', table_name='event_members')
    op.drop_index('ix_event_members_event_id', table_name='event_members')
    op.drop_table('event_members')

    op.drop_index('ix_events_owner_id', table_name='events')
    op.drop_table('events')
