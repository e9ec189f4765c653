from blackjack import db, bcrypt
from flask_login import UserMixin
from flask import current_app
import time


def _starting_balance():
    try:
        return int(current_app.config.get('STARTING_BALANCE', 1000))
    except RuntimeError:
        return 1000


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    balance = db.Column(db.Integer, nullable=False, default=_starting_balance)

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'balance': self.balance,
        }


class LeaderboardEntry(db.Model):
    """Best balance ever reached per player (account id, or sid for guests)."""
    __tablename__ = 'leaderboard_entry'
    id = db.Column(db.Integer, primary_key=True)
    player_key = db.Column(db.String(64), unique=True, nullable=False, index=True)
    username = db.Column(db.String(64), nullable=False)
    balance = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.Float, nullable=False, default=time.time)

    def to_dict(self):
        return {
            'player_key': self.player_key,
            'username': self.username,
            'balance': self.balance,
            'updated_at': self.updated_at,
        }
