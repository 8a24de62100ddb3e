"""create player, player_game_stat and score_entry ledger tables

Revision ID: 4c7d2e91a0b3
Revises:
Create Date: 2026-10-19 09:30:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c7d2e91a0b3'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'player' not in existing_tables:
        op.create_table(
            'player',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('wallet_address', sa.String(length=64), nullable=False),
            sa.Column('total_points', sa.BigInteger(), nullable=False, server_default='0'),
            sa.Column('minted_points', sa.BigInteger(), nullable=False, server_default='0'),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('last_played', sa.DateTime(), nullable=False),
            sa.CheckConstraint('total_points >= 0', name='ck_player_total_points_non_negative'),
            sa.CheckConstraint('minted_points >= 0', name='ck_player_minted_points_non_negative'),
            sa.CheckConstraint('minted_points <= total_points', name='ck_player_minted_within_total'),
        )
        op.create_index('ix_player_wallet_address', 'player', ['wallet_address'], unique=True)
        op.create_index('ix_player_total_points', 'player', ['total_points'])

    if 'player_game_stat' not in existing_tables:
        op.create_table(
            'player_game_stat',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('wallet_address', sa.String(length=64), sa.ForeignKey('player.wallet_address'), nullable=False),
            sa.Column('game_type', sa.String(length=32), nullable=False),
            sa.Column('games_played', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('high_score', sa.BigInteger(), nullable=False, server_default='0'),
            sa.UniqueConstraint('wallet_address', 'game_type', name='uq_player_game_stat_wallet_game'),
        )
        op.create_index('ix_player_game_stat_wallet_address', 'player_game_stat', ['wallet_address'])

    if 'score_entry' not in existing_tables:
        op.create_table(
            'score_entry',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('wallet_address', sa.String(length=64), sa.ForeignKey('player.wallet_address'), nullable=False),
            sa.Column('game_type', sa.String(length=32), nullable=False),
            sa.Column('score', sa.BigInteger(), nullable=False),
            sa.Column('points', sa.BigInteger(), nullable=False),
            sa.Column('game_data', sa.JSON(), nullable=True),
            sa.Column('played_at', sa.DateTime(), nullable=False),
        )
        op.create_index('ix_score_entry_wallet_game', 'score_entry', ['wallet_address', 'game_type'])
        op.create_index('ix_score_entry_game_score', 'score_entry', ['game_type', 'score'])
        op.create_index('ix_score_entry_played_at', 'score_entry', ['played_at'])


def downgrade():
    op.drop_table('score_entry')
    op.drop_table('player_game_stat')
    op.drop_table('player')
