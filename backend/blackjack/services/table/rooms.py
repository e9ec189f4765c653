import random
import string
import threading
from collections import deque
from typing import Dict, List, Optional

from .cards import Card, best_hand_value
from .hands import Hand, HandStatus, Player, dealer_from_dict

WAITING = 'waiting'
BETTING = 'betting'
PLAYING = 'playing'
ENDED = 'ended'
STATES = (WAITING, BETTING, PLAYING, ENDED)

# current_turn sentinel while the dealer plays
DEALER_TURN = 'dealer'


def generate_room_code(taken, length=6):
    """Generate a short room code not present in ``taken``."""
    while True:
        code = ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))
        if code not in taken:
            return code


class Room:
    """All state for one table: seats, dealer, deck, phase and pending timers."""

    def __init__(self, code: str, host: Player):
        self.code = code
        self.players: List[Player] = [host]
        self.host_id: Optional[str] = host.id
        self.dealer = Hand(id='dealer')
        self.deck: List[Card] = []
        self.state = WAITING
        self.current_turn: Optional[str] = None
        self.pending_reset_votes: Optional[Dict[str, str]] = None
        self.auto_advance = False

        # Transient, never serialized
        self.turn_timer = None
        self.turn_serial = 0
        self.tasks = []
        self.visited = set()
        self.auto_skipped = set()
        self.deal_queue = deque()
        self.lock = threading.RLock()

    # ---- seats ----

    def find_player(self, player_id) -> Optional[Player]:
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def find_hand(self, hand_id):
        """Return ``(hand, owning player)`` for a primary or split hand id."""
        for player in self.players:
            for hand in player.hands():
                if hand.id == hand_id:
                    return hand, player
        return None, None

    def owner_of(self, hand) -> Optional[Player]:
        if getattr(hand, 'is_split', False):
            return self.find_player(hand.parent_id)
        return hand

    def is_host(self, player_id) -> bool:
        return player_id is not None and player_id == self.host_id

    def has_username(self, username) -> bool:
        return any(p.username == username for p in self.players)

    def add_player(self, player: Player) -> None:
        self.players.append(player)
        if self.host_id is None:
            self.host_id = player.id

    def remove_player(self, player_id):
        """Unseat a player (and their split hands). Returns ``(player, was_host)``."""
        player = self.find_player(player_id)
        if player is None:
            return None, False
        self.players.remove(player)
        was_host = self.host_id == player_id
        if was_host:
            self.host_id = self.players[0].id if self.players else None
        return player, was_host

    def participants(self) -> List[Player]:
        return [p for p in self.players if p.is_participating]

    def turn_sequence(self):
        """Hands in play order: each seat's primary hand, then its splits.

        A seat with no balance left (all in) is passed over and settles on
        the cards it holds.
        """
        for player in self.participants():
            if player.balance <= 0:
                continue
            for hand in player.hands():
                yield hand

    def all_spectating(self) -> bool:
        return bool(self.players) and all(p.is_spectating for p in self.players)

    # ---- round bookkeeping ----

    def reset_round(self, deck) -> List[Player]:
        """Clear every hand for a fresh betting phase; returns players who just became spectators."""
        newly_spectating = []
        for player in self.players:
            was_spectating = player.is_spectating
            player.reset_for_round()
            if player.is_spectating and not was_spectating:
                newly_spectating.append(player)
        self.dealer = Hand(id='dealer')
        self.deck = list(deck)
        self.current_turn = None
        self.pending_reset_votes = None
        self.visited = set()
        self.auto_skipped = set()
        self.deal_queue = deque()
        return newly_spectating

    def cards_on_table(self) -> List[Card]:
        cards = list(self.dealer.cards)
        for player in self.players:
            for hand in player.hands():
                cards.extend(hand.cards)
        return cards

    def refill_deck(self, deck) -> int:
        """Replace an exhausted deck with ``deck`` minus the cards already dealt."""
        on_table = set(self.cards_on_table())
        self.deck = [c for c in deck if c not in on_table]
        return len(self.deck)

    # ---- scheduled work ----

    def track(self, handle):
        self.tasks = [t for t in self.tasks if t.active]
        self.tasks.append(handle)
        return handle

    def cancel_turn_timer(self) -> None:
        if self.turn_timer is not None:
            self.turn_timer.cancel()
            self.turn_timer = None

    def cancel_tasks(self) -> None:
        self.cancel_turn_timer()
        for task in self.tasks:
            task.cancel()
        self.tasks = []
        self.deal_queue = deque()

    # ---- serialization ----

    def dealer_view(self, reveal=False):
        data = self.dealer.to_dict()
        hidden = (
            not reveal
            and self.state == PLAYING
            and self.current_turn != DEALER_TURN
            and len(self.dealer.cards) >= 2
        )
        if hidden:
            data['cards'] = [self.dealer.cards[0].to_dict(), {'hidden': True}]
            data['score'] = best_hand_value(self.dealer.cards[:1])
        return data

    def players_payload(self):
        return [p.to_dict() for p in self.players]

    def to_dict(self, reveal=False):
        data = {
            'code': self.code,
            'host_id': self.host_id,
            'state': self.state,
            'current_turn': self.current_turn,
            'players': self.players_payload(),
            'dealer': self.dealer_view(reveal=reveal),
            'auto_advance': self.auto_advance,
            'pending_reset_votes': dict(self.pending_reset_votes) if self.pending_reset_votes is not None else None,
        }
        if reveal:
            data['deck'] = [c.to_dict() for c in self.deck]
        return data

    @classmethod
    def from_dict(cls, data):
        """Rebuild a room from ``to_dict(reveal=True)`` output."""
        players = [Player.from_dict(p) for p in data['players']]
        if not players:
            raise ValueError('A room needs at least one player')
        room = cls(data['code'], players[0])
        room.players = players
        room.host_id = data.get('host_id') or players[0].id
        room.dealer = dealer_from_dict(data.get('dealer') or {})
        room.deck = [Card.from_dict(c) for c in data.get('deck', [])]
        room.state = data.get('state', WAITING)
        room.current_turn = data.get('current_turn')
        votes = data.get('pending_reset_votes')
        room.pending_reset_votes = dict(votes) if votes is not None else None
        room.auto_advance = bool(data.get('auto_advance', False))
        return room


def mark_spectating(player: Player) -> None:
    player.balance = max(0, player.balance)
    player.status = HandStatus.SPECTATING
