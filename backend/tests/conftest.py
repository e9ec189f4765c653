import logging
import os
import sys
import pytest

# Ensure the backend root (containing the `blackjack` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from blackjack import create_app, db, socketio
from blackjack.services.table import RoomManager
from blackjack.services.table.cards import SUITS, Card, new_deck
from blackjack.services.table.scheduler import ManualScheduler


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    WTF_CSRF_ENABLED = False
    ROOM_SCHEDULER = 'manual'
    MIN_PLAYERS = 2
    STARTING_BALANCE = 1000
    TURN_TIMEOUT_SEC = 60
    DEAL_DELAY_SEC = 0
    DEALER_TURN_DELAY_SEC = 0
    DEALER_DRAW_DELAY_SEC = 0
    VOTE_PROMPT_DELAY_SEC = 0
    AUTO_ADVANCE_DELAY_SEC = 0


# Engine tests keep the prompt and auto-advance delays so they can be stepped
ENGINE_SETTINGS = {
    'MIN_PLAYERS': 2,
    'STARTING_BALANCE': 1000,
    'TURN_TIMEOUT_SEC': 60,
    'DEAL_DELAY_SEC': 0,
    'DEALER_TURN_DELAY_SEC': 0,
    'DEALER_DRAW_DELAY_SEC': 0,
    'VOTE_PROMPT_DELAY_SEC': 2,
    'AUTO_ADVANCE_DELAY_SEC': 5,
}


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import blackjack.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')


class RecordingBroadcaster:
    """Captures every emit as ``(event, payload, to)``."""

    def __init__(self):
        self.sent = []
        self.members = {}

    def emit(self, event, payload, to):
        self.sent.append((event, payload, to))

    def enter(self, sid, room):
        self.members.setdefault(room, set()).add(sid)

    def leave(self, sid, room):
        self.members.get(room, set()).discard(sid)

    def names(self):
        return [event for event, _, _ in self.sent]

    def events(self, name):
        return [payload for event, payload, _ in self.sent if event == name]

    def sent_to(self, name, to):
        return [payload for event, payload, target in self.sent if event == name and target == to]

    def clear(self):
        self.sent = []


class FakeLedger:

    def __init__(self):
        self.balances = {}
        self.high_water = {}

    def get_balance(self, account_id):
        return self.balances.get(account_id)

    def set_balance(self, account_id, amount):
        self.balances[account_id] = amount
        return True

    def upsert_high_water_mark(self, player_key, username, balance):
        best = self.high_water.get(player_key)
        if best is None or balance > best['balance']:
            self.high_water[player_key] = {'player_key': player_key, 'username': username, 'balance': balance}

    def top(self, limit=10):
        return sorted(self.high_water.values(), key=lambda e: -e['balance'])[:limit]


def stacked_deck(*ranks):
    """A deck that deals ``ranks`` in order, with a full deck underneath."""
    seen = {}
    cards = []
    for rank in ranks:
        n = seen.get(rank, 0)
        seen[rank] = n + 1
        cards.append(Card(SUITS[n % len(SUITS)], rank))
    # draw_card pops from the end of the list
    return new_deck() + list(reversed(cards))


class Table:
    """A RoomManager wired to in-memory collaborators and a manual clock."""

    def __init__(self, **settings):
        self.scheduler = ManualScheduler()
        self.broadcaster = RecordingBroadcaster()
        self.ledger = FakeLedger()
        self.ranks = ()
        options = dict(ENGINE_SETTINGS)
        options.update(settings)
        self.manager = RoomManager(
            scheduler=self.scheduler,
            broadcaster=self.broadcaster,
            ledger=self.ledger,
            logger=logging.getLogger('blackjack.tests'),
            deck_factory=lambda: stacked_deck(*self.ranks),
            **options,
        )

    def seat(self, *player_ids, balance=1000):
        host = player_ids[0]
        room = self.manager.create_room(host, host.title(), balance)
        for player_id in player_ids[1:]:
            self.manager.join_room(room.code, player_id, player_id.title(), balance)
        return room

    def start(self, room, bets, ranks=()):
        """Start a round from ``waiting``, place ``bets`` and run the deal."""
        self.ranks = ranks
        self.manager.start_game(room.code, room.host_id)
        self.bet(room, bets)

    def bet(self, room, bets):
        for player_id, amount in bets.items():
            self.manager.place_bet(room.code, player_id, amount)
        self.scheduler.run_pending()

    def events(self, name):
        return self.broadcaster.events(name)


@pytest.fixture()
def table():
    return Table()
