from dominoes import db
from datetime import datetime
import json
import uuid


class StoreRecord(db.Model):
    """One key of the replicated key-value store (e.g. ``rooms/AB12``)."""
    __tablename__ = 'store_record'
    key = db.Column(db.String(255), primary_key=True)
    value = db.Column(db.Text, nullable=False)  # JSON-encoded
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            'key': self.key,
            'value': json.loads(self.value),
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


def generate_game_id():
    return uuid.uuid4().hex[:12]


class Game(db.Model):
    """A single-player game against computer opponents, auto-saved on every change."""
    __tablename__ = 'game'
    id = db.Column(db.String(32), primary_key=True, default=generate_game_id)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    status = db.Column(db.String(16), default='playing', nullable=False)  # playing, finished
    state = db.Column(db.Text, nullable=True)  # serialized GameState
    settings = db.Column(db.Text, nullable=True)  # JSON-encoded GameSettings
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'status': self.status,
            'settings': json.loads(self.settings) if self.settings else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


class MatchRecord(db.Model):
    """History entry for a finished game."""
    __tablename__ = 'match_record'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    game_id = db.Column(db.String(32), nullable=False)
    winner_id = db.Column(db.String(64), nullable=True)
    winner_name = db.Column(db.String(64), nullable=True)
    target_score = db.Column(db.Integer, nullable=False)
    rounds = db.Column(db.Integer, nullable=False, default=1)
    players = db.Column(db.Text, nullable=False)  # JSON list of {id, name, score, is_computer}
    final_scores = db.Column(db.Text, nullable=False)  # JSON {player_id: score}
    settings = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'game_id': self.game_id,
            'winner_id': self.winner_id,
            'winner_name': self.winner_name,
            'target_score': self.target_score,
            'rounds': self.rounds,
            'players': json.loads(self.players),
            'final_scores': json.loads(self.final_scores),
            'settings': json.loads(self.settings) if self.settings else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
