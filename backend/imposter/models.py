from imposter import db
from datetime import datetime, timezone
from sqlalchemy import text
import enum
import json
import string
import random


def _utcnow():
    return datetime.now(timezone.utc)


class RoundStatus(str, enum.Enum):
    IN_PROGRESS = 'IN_PROGRESS'
    HINTS_COMPLETE = 'HINTS_COMPLETE'
    BETTING = 'BETTING'
    VOTING = 'VOTING'
    EMERGENCY_VOTING = 'EMERGENCY_VOTING'
    GUESSING = 'GUESSING'
    COMPLETE = 'COMPLETE'


HINT_STATUSES = (RoundStatus.IN_PROGRESS, RoundStatus.HINTS_COMPLETE)
VOTING_STATUSES = (RoundStatus.VOTING, RoundStatus.EMERGENCY_VOTING)


class BetStatus(str, enum.Enum):
    PENDING = 'PENDING'
    WON = 'WON'
    LOST = 'LOST'
    FORFEITED = 'FORFEITED'
    REFUNDED = 'REFUNDED'


def generate_lobby_code(length=6):
    """Generate a unique, short lobby code."""
    while True:
        code = ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))
        if not Lobby.query.filter_by(code=code).first():
            return code


class Lobby(db.Model):
    __tablename__ = 'lobby'
    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(8), unique=True, index=True, nullable=False)
    owner_id = db.Column(db.Integer, db.ForeignKey('player.id', name='fk_lobby_owner_id', use_alter=True), nullable=True)
    target_score = db.Column(db.Integer, default=7, nullable=False)
    betting_enabled = db.Column(db.Boolean, default=False, nullable=False)
    emergency_votes_enabled = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)
    players = db.relationship('Player', back_populates='lobby', foreign_keys='Player.lobby_id', order_by='Player.id')
    rounds = db.relationship('Round', back_populates='lobby', lazy='dynamic')

    def __init__(self, **kwargs):
        super(Lobby, self).__init__(**kwargs)
        if not self.code:
            self.code = generate_lobby_code()

    @property
    def online_players(self):
        return [p for p in self.players if p.is_online]

    def to_dict(self):
        return {
            'id': self.id,
            'code': self.code,
            'owner_id': self.owner_id,
            'target_score': self.target_score,
            'betting_enabled': self.betting_enabled,
            'emergency_votes_enabled': self.emergency_votes_enabled,
            'players': [p.to_dict() for p in self.players],
        }


class Player(db.Model):
    __tablename__ = 'player'
    __table_args__ = (
        db.UniqueConstraint('lobby_id', 'name', name='uq_player_lobby_name'),
    )
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False)
    lobby_id = db.Column(db.Integer, db.ForeignKey('lobby.id'), nullable=False, index=True)
    score = db.Column(db.Integer, default=0, nullable=False)
    is_online = db.Column(db.Boolean, default=True, nullable=False)
    joined_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)
    lobby = db.relationship('Lobby', back_populates='players', foreign_keys=[lobby_id])

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'score': self.score,
            'is_online': self.is_online,
        }


class Round(db.Model):
    __tablename__ = 'round'
    __table_args__ = (
        # Race-safety net behind the service check: one unfinished round per lobby
        db.Index(
            'uq_round_active_lobby', 'lobby_id', unique=True,
            postgresql_where=text("status != 'COMPLETE'"),
            sqlite_where=text("status != 'COMPLETE'"),
        ),
    )
    id = db.Column(db.Integer, primary_key=True)
    lobby_id = db.Column(db.Integer, db.ForeignKey('lobby.id'), nullable=False, index=True)
    round_number = db.Column(db.Integer, nullable=False)
    word = db.Column(db.String(128), nullable=False)
    category = db.Column(db.String(64), nullable=False)
    imposter_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    turn_order_json = db.Column('turn_order', db.Text, nullable=False, default='[]')
    current_turn = db.Column(db.Integer, default=0, nullable=False)
    status = db.Column(db.Enum(RoundStatus, native_enum=False, length=32), nullable=False, default=RoundStatus.IN_PROGRESS)
    version = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)

    lobby = db.relationship('Lobby', back_populates='rounds')
    hints = db.relationship('Hint', backref='round', order_by='Hint.turn_index', lazy='dynamic')
    votes = db.relationship('Vote', backref='round', lazy='dynamic')
    bets = db.relationship('Bet', backref='round', lazy='dynamic')
    emergency_vote = db.relationship('EmergencyVote', backref='round', uselist=False)

    __mapper_args__ = {'version_id_col': version}

    @property
    def turn_order(self):
        return json.loads(self.turn_order_json or '[]')

    @turn_order.setter
    def turn_order(self, player_ids):
        self.turn_order_json = json.dumps(list(player_ids))

    def touch(self):
        """Mark the round modified so the version check guards this transaction."""
        self.updated_at = _utcnow()

    def to_dict(self):
        # Public view: never carries the word or the imposter while the round is live
        data = {
            'id': self.id,
            'round_number': self.round_number,
            'category': self.category,
            'turn_order': self.turn_order,
            'current_turn': self.current_turn,
            'status': self.status.value,
            'hints': [h.to_dict() for h in self.hints],
        }
        if self.status == RoundStatus.COMPLETE:
            data['word'] = self.word
            data['imposter_id'] = self.imposter_id
        return data


class Hint(db.Model):
    __tablename__ = 'hint'
    id = db.Column(db.Integer, primary_key=True)
    round_id = db.Column(db.Integer, db.ForeignKey('round.id'), nullable=False, index=True)
    player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    text = db.Column(db.String(64), nullable=False)
    turn_index = db.Column(db.Integer, nullable=False)
    player = db.relationship('Player')

    def to_dict(self):
        return {
            'id': self.id,
            'player_id': self.player_id,
            'player_name': self.player.name if self.player else None,
            'text': self.text,
            'turn_index': self.turn_index,
        }


class Vote(db.Model):
    __tablename__ = 'vote'
    __table_args__ = (
        db.UniqueConstraint('round_id', 'voter_id', name='uq_vote_round_voter'),
    )
    id = db.Column(db.Integer, primary_key=True)
    round_id = db.Column(db.Integer, db.ForeignKey('round.id'), nullable=False, index=True)
    voter_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    suspect_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)


class Bet(db.Model):
    __tablename__ = 'bet'
    __table_args__ = (
        db.UniqueConstraint('round_id', 'bettor_id', name='uq_bet_round_bettor'),
        db.CheckConstraint('amount >= 1 AND amount <= 3', name='ck_bet_amount'),
        db.CheckConstraint('bettor_id != target_id', name='ck_bet_not_self'),
    )
    id = db.Column(db.Integer, primary_key=True)
    round_id = db.Column(db.Integer, db.ForeignKey('round.id'), nullable=False, index=True)
    bettor_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    target_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    amount = db.Column(db.Integer, nullable=False)
    payout = db.Column(db.Integer, nullable=True)
    status = db.Column(db.Enum(BetStatus, native_enum=False, length=16), nullable=False, default=BetStatus.PENDING)

    bettor = db.relationship('Player', foreign_keys=[bettor_id])
    target = db.relationship('Player', foreign_keys=[target_id])

    def to_dict(self):
        return {
            'id': self.id,
            'bettor_id': self.bettor_id,
            'bettor_name': self.bettor.name,
            'target_id': self.target_id,
            'target_name': self.target.name,
            'amount': self.amount,
        }


class EmergencyVote(db.Model):
    __tablename__ = 'emergency_vote'
    id = db.Column(db.Integer, primary_key=True)
    round_id = db.Column(db.Integer, db.ForeignKey('round.id'), nullable=False, unique=True)
    initiator_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)
    initiator = db.relationship('Player')
