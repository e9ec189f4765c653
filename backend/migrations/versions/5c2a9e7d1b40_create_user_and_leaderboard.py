"""create user ledger and leaderboard_entry tables

Revision ID: 5c2a9e7d1b40
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c2a9e7d1b40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    tables = set(insp.get_table_names())
    if 'user' not in tables:
        op.create_table(
            'user',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('username', sa.String(length=64), nullable=False),
            sa.Column('password_hash', sa.String(length=256), nullable=False),
            sa.Column('balance', sa.Integer(), nullable=False, server_default='1000'),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_user_username', 'user', ['username'], unique=True)
    if 'leaderboard_entry' not in tables:
        op.create_table(
            'leaderboard_entry',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('player_key', sa.String(length=64), nullable=False),
            sa.Column('username', sa.String(length=64), nullable=False),
            sa.Column('balance', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('updated_at', sa.Float(), nullable=False),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_leaderboard_entry_player_key', 'leaderboard_entry', ['player_key'], unique=True)


def downgrade():
    op.drop_index('ix_leaderboard_entry_player_key', table_name='leaderboard_entry')
    op.drop_table('leaderboard_entry')
    op.drop_index('ix_user_username', table_name='user')
    op.drop_table('user')
