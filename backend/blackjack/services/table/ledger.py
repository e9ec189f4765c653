"""Balance ledger and leaderboard store.

The room engine treats both as fire-and-forget: a failed write is rolled
back and logged, and the in-memory game carries on with its own copy of the
balance.
"""
import time
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from blackjack import db
from blackjack.models import LeaderboardEntry, User


class SqlLedger:

    def __init__(self, app):
        self.app = app

    def get_balance(self, account_id) -> Optional[int]:
        with self.app.app_context():
            try:
                user = db.session.get(User, int(account_id))
            except SQLAlchemyError as exc:
                db.session.rollback()
                self.app.logger.warning(f"[ledger-error] get_balance account={account_id} error={exc}")
                return None
            return user.balance if user else None

    def set_balance(self, account_id, amount) -> bool:
        with self.app.app_context():
            try:
                user = db.session.get(User, int(account_id))
                if not user:
                    self.app.logger.warning(f"[ledger-miss] set_balance account={account_id} unknown")
                    return False
                user.balance = int(amount)
                db.session.add(user)
                db.session.commit()
            except SQLAlchemyError as exc:
                db.session.rollback()
                self.app.logger.warning(f"[ledger-error] set_balance account={account_id} error={exc}")
                return False
            return True

    def upsert_high_water_mark(self, player_key, username, balance) -> None:
        """Record ``balance`` for ``player_key`` only if it beats the stored best."""
        with self.app.app_context():
            try:
                entry = LeaderboardEntry.query.filter_by(player_key=str(player_key)).first()
                if entry is None:
                    entry = LeaderboardEntry(player_key=str(player_key), username=username, balance=int(balance))
                elif balance > entry.balance:
                    entry.balance = int(balance)
                    entry.username = username
                else:
                    return
                entry.updated_at = time.time()
                db.session.add(entry)
                db.session.commit()
            except SQLAlchemyError as exc:
                db.session.rollback()
                self.app.logger.warning(f"[ledger-error] leaderboard key={player_key} error={exc}")

    def top(self, limit=10) -> List[dict]:
        with self.app.app_context():
            try:
                entries = (
                    LeaderboardEntry.query
                    .order_by(LeaderboardEntry.balance.desc(), LeaderboardEntry.updated_at.asc())
                    .limit(limit)
                    .all()
                )
            except SQLAlchemyError as exc:
                db.session.rollback()
                self.app.logger.warning(f"[ledger-error] top error={exc}")
                return []
            return [e.to_dict() for e in entries]
