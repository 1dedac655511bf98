"""initial_schema

Revision ID: 3c1f07a9d2b4
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '3c1f07a9d2b4'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- Users ---
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('username', sa.String(), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_users_username'), 'users', ['username'], unique=True)

    # --- Connections ---
    op.create_table(
        'connections',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('latest_revision_nr', sa.Integer(), nullable=True),
        sa.Column('active_revision_nr', sa.Integer(), nullable=True),
        sa.Column('deleted_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_connections_deleted_at'), 'connections', ['deleted_at'], unique=False)

    # --- Connection Revisions ---
    op.create_table(
        'connection_revisions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('connection_id', sa.Integer(), nullable=False),
        sa.Column('revision_nr', sa.Integer(), nullable=False),
        sa.Column('parent_revision_nr', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('state', sa.String(), nullable=False),
        sa.Column('expiration_date', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('metadata_url', sa.String(), nullable=True),
        sa.Column('metadata_valid_until', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('metadata_cache_until', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('allow_all_entities', sa.Boolean(), nullable=False),
        sa.Column('allowed_connections', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('blocked_connections', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('arp_attributes', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('manipulation_code', sa.Text(), nullable=True),
        sa.Column('revision_note', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('metadata', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_by_user_id', sa.Integer(), nullable=True),
        sa.Column('updated_from_ip', sa.String(), nullable=True),
        sa.ForeignKeyConstraint(['connection_id'], ['connections.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['updated_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('connection_id', 'revision_nr', name='uq_connection_revision_nr')
    )
    op.create_index(op.f('ix_connection_revisions_connection_id'), 'connection_revisions', ['connection_id'], unique=False)
    op.create_index(op.f('ix_connection_revisions_name'), 'connection_revisions', ['name'], unique=False)
    op.create_index(op.f('ix_connection_revisions_type'), 'connection_revisions', ['type'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_connection_revisions_type'), table_name='connection_revisions')
    op.drop_index(op.f('ix_connection_revisions_name'), table_name='connection_revisions')
    op.drop_index(op.f('ix_connection_revisions_connection_id'), table_name='connection_revisions')
    op.drop_table('connection_revisions')
    op.drop_index(op.f('ix_connections_deleted_at'), table_name='connections')
    op.drop_table('connections')
    op.drop_index(op.f('ix_users_username'), table_name='users')
    op.drop_table('users')
