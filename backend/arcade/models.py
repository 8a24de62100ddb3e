from datetime import datetime, timezone

from arcade import db
from flask_login import UserMixin


def utcnow():
    return datetime.now(timezone.utc)


def isoformat(value):
    return value.isoformat() if value else None


def normalize_game_map(source, game_types):
    """Zero-fill every configured game type, keeping extra recorded types."""
    normalized = {game_type: 0 for game_type in game_types}
    for key, value in (source or {}).items():
        normalized[key] = value
    return normalized


class Player(UserMixin, db.Model):
    __tablename__ = 'player'
    __table_args__ = (
        db.CheckConstraint('total_points >= 0', name='ck_player_total_points_non_negative'),
        db.CheckConstraint('minted_points >= 0', name='ck_player_minted_points_non_negative'),
        db.CheckConstraint('minted_points <= total_points', name='ck_player_minted_within_total'),
    )
    id = db.Column(db.Integer, primary_key=True)
    wallet_address = db.Column(db.String(64), unique=True, nullable=False, index=True)
    total_points = db.Column(db.BigInteger, default=0, nullable=False, index=True)
    minted_points = db.Column(db.BigInteger, default=0, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    last_played = db.Column(db.DateTime, default=utcnow, nullable=False)
    game_stats = db.relationship(
        'PlayerGameStat',
        order_by='PlayerGameStat.game_type',
        lazy='selectin',
        viewonly=True,
    )

    @property
    def available_points(self):
        return max(0, (self.total_points or 0) - (self.minted_points or 0))

    def games_played(self):
        return {stat.game_type: stat.games_played for stat in self.game_stats}

    def high_scores(self):
        return {stat.game_type: stat.high_score for stat in self.game_stats}

    def to_dict(self, settings):
        games_played = normalize_game_map(self.games_played(), settings.game_types)
        minted_points = self.minted_points or 0
        return {
            'id': self.id,
            'wallet_address': self.wallet_address,
            'total_points': self.total_points or 0,
            'minted_points': minted_points,
            'available_points': self.available_points,
            'minted_oracles': minted_points / settings.point_rate,
            'games_played': games_played,
            'high_scores': normalize_game_map(self.high_scores(), settings.game_types),
            'total_games': sum(games_played.values()),
            'created_at': isoformat(self.created_at),
            'last_played': isoformat(self.last_played),
        }


class PlayerGameStat(db.Model):
    __tablename__ = 'player_game_stat'
    __table_args__ = (
        db.UniqueConstraint('wallet_address', 'game_type', name='uq_player_game_stat_wallet_game'),
    )
    id = db.Column(db.Integer, primary_key=True)
    wallet_address = db.Column(db.String(64), db.ForeignKey('player.wallet_address'), nullable=False, index=True)
    game_type = db.Column(db.String(32), nullable=False)
    games_played = db.Column(db.Integer, default=0, nullable=False)
    high_score = db.Column(db.BigInteger, default=0, nullable=False)


class ScoreEntry(db.Model):
    __tablename__ = 'score_entry'
    __table_args__ = (
        db.Index('ix_score_entry_wallet_game', 'wallet_address', 'game_type'),
        db.Index('ix_score_entry_game_score', 'game_type', 'score'),
    )
    id = db.Column(db.Integer, primary_key=True)
    wallet_address = db.Column(db.String(64), db.ForeignKey('player.wallet_address'), nullable=False)
    game_type = db.Column(db.String(32), nullable=False)
    score = db.Column(db.BigInteger, nullable=False)
    points = db.Column(db.BigInteger, nullable=False)
    game_data = db.Column(db.JSON, nullable=True)
    played_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'wallet_address': self.wallet_address,
            'game_type': self.game_type,
            'score': self.score,
            'points': self.points,
            'game_data': self.game_data or {},
            'played_at': isoformat(self.played_at),
        }
