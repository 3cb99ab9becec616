"""initial round engine schema

Revision ID: 5c2a9e71b0d4
Revises:
Create Date: 2026-10-18 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c2a9e71b0d4'
down_revision = None
branch_labels = None
depends_on = None


ROUND_STATUSES = ('IN_PROGRESS', 'HINTS_COMPLETE', 'BETTING', 'VOTING', 'EMERGENCY_VOTING', 'GUESSING', 'COMPLETE')
BET_STATUSES = ('PENDING', 'WON', 'LOST', 'FORFEITED', 'REFUNDED')


def upgrade():
    op.create_table(
        'lobby',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(length=8), nullable=False),
        sa.Column('owner_id', sa.Integer(), nullable=True),
        sa.Column('target_score', sa.Integer(), nullable=False),
        sa.Column('betting_enabled', sa.Boolean(), nullable=False),
        sa.Column('emergency_votes_enabled', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_lobby_code', 'lobby', ['code'], unique=True)

    op.create_table(
        'player',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('lobby_id', sa.Integer(), sa.ForeignKey('lobby.id'), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('is_online', sa.Boolean(), nullable=False),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('lobby_id', 'name', name='uq_player_lobby_name'),
    )
    op.create_index('ix_player_lobby_id', 'player', ['lobby_id'])

    with op.batch_alter_table('lobby') as batch_op:
        batch_op.create_foreign_key('fk_lobby_owner_id', 'player', ['owner_id'], ['id'])

    op.create_table(
        'round',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('lobby_id', sa.Integer(), sa.ForeignKey('lobby.id'), nullable=False),
        sa.Column('round_number', sa.Integer(), nullable=False),
        sa.Column('word', sa.String(length=128), nullable=False),
        sa.Column('category', sa.String(length=64), nullable=False),
        sa.Column('imposter_id', sa.Integer(), sa.ForeignKey('player.id'), nullable=False),
        sa.Column('turn_order', sa.Text(), nullable=False),
        sa.Column('current_turn', sa.Integer(), nullable=False),
        sa.Column('status', sa.Enum(*ROUND_STATUSES, name='roundstatus', native_enum=False, length=32), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_round_lobby_id', 'round', ['lobby_id'])
    op.create_index(
        'uq_round_active_lobby', 'round', ['lobby_id'], unique=True,
        postgresql_where=sa.text("status != 'COMPLETE'"),
        sqlite_where=sa.text("status != 'COMPLETE'"),
    )

    op.create_table(
        'hint',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('round_id', sa.Integer(), sa.ForeignKey('round.id'), nullable=False),
        sa.Column('player_id', sa.Integer(), sa.ForeignKey('player.id'), nullable=False),
        sa.Column('text', sa.String(length=64), nullable=False),
        sa.Column('turn_index', sa.Integer(), nullable=False),
    )
    op.create_index('ix_hint_round_id', 'hint', ['round_id'])

    op.create_table(
        'vote',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('round_id', sa.Integer(), sa.ForeignKey('round.id'), nullable=False),
        sa.Column('voter_id', sa.Integer(), sa.ForeignKey('player.id'), nullable=False),
        sa.Column('suspect_id', sa.Integer(), sa.ForeignKey('player.id'), nullable=False),
        sa.UniqueConstraint('round_id', 'voter_id', name='uq_vote_round_voter'),
    )
    op.create_index('ix_vote_round_id', 'vote', ['round_id'])

    op.create_table(
        'bet',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('round_id', sa.Integer(), sa.ForeignKey('round.id'), nullable=False),
        sa.Column('bettor_id', sa.Integer(), sa.ForeignKey('player.id'), nullable=False),
        sa.Column('target_id', sa.Integer(), sa.ForeignKey('player.id'), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('payout', sa.Integer(), nullable=True),
        sa.Column('status', sa.Enum(*BET_STATUSES, name='betstatus', native_enum=False, length=16), nullable=False),
        sa.UniqueConstraint('round_id', 'bettor_id', name='uq_bet_round_bettor'),
        sa.CheckConstraint('amount >= 1 AND amount <= 3', name='ck_bet_amount'),
        sa.CheckConstraint('bettor_id != target_id', name='ck_bet_not_self'),
    )
    op.create_index('ix_bet_round_id', 'bet', ['round_id'])

    op.create_table(
        'emergency_vote',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('round_id', sa.Integer(), sa.ForeignKey('round.id'), nullable=False, unique=True),
        sa.Column('initiator_id', sa.Integer(), sa.ForeignKey('player.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )


def downgrade():
    op.drop_table('emergency_vote')
    op.drop_index('ix_bet_round_id', table_name='bet')
    op.drop_table('bet')
    op.drop_index('ix_vote_round_id', table_name='vote')
    op.drop_table('vote')
    op.drop_index('ix_hint_round_id', table_name='hint')
    op.drop_table('hint')
    op.drop_index('uq_round_active_lobby', table_name='round')
    op.drop_index('ix_round_lobby_id', table_name='round')
    op.drop_table('round')
    with op.batch_alter_table('lobby') as batch_op:
        batch_op.drop_constraint('fk_lobby_owner_id', type_='foreignkey')
    op.drop_index('ix_player_lobby_id', table_name='player')
    op.drop_table('player')
    op.drop_index('ix_lobby_code', table_name='lobby')
    op.drop_table('lobby')
