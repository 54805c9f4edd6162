"""Initial schema for tracked accounts and last-seen match state

Revision ID: 001
Revises:
Create Date: 2026-10-18 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create tracked_accounts table
    op.create_table('tracked_accounts',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('provider_id', sa.String(length=78), nullable=False),
        sa.Column('region', sa.String(length=8), nullable=False),
        sa.Column('game_type', sa.String(length=10), nullable=False, server_default='LOL'),
        sa.Column('game_name', sa.String(length=16), nullable=False),
        sa.Column('tag_line', sa.String(length=5), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('provider_id', 'region', name='uq_tracked_accounts_provider_region')
    )
    op.create_index('idx_tracked_accounts_game_type', 'tracked_accounts', ['game_type'])

    # Create last_seen_states table
    op.create_table('last_seen_states',
        sa.Column('provider_id', sa.String(length=78), nullable=False),
        sa.Column('region', sa.String(length=8), nullable=False),
        sa.Column('last_match_id', sa.String(length=32), nullable=True),
        sa.Column('last_polled_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(
            ['provider_id', 'region'],
            ['tracked_accounts.provider_id', 'tracked_accounts.region'],
            name='fk_last_seen_states_account',
            ondelete='CASCADE'
        ),
        sa.PrimaryKeyConstraint('provider_id', 'region')
    )


def downgrade() -> None:
    op.drop_table('last_seen_states')

    op.drop_index('idx_tracked_accounts_game_type', table_name='tracked_accounts')
    op.drop_table('tracked_accounts')
