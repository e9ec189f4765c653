from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .cards import Card, best_hand_value, is_blackjack


class HandStatus(str, Enum):
    STOOD = 'stood'
    BUSTED = 'busted'
    BLACKJACK = 'blackjack'
    SURRENDERED = 'surrendered'
    SPECTATING = 'spectating'


def _status_value(status):
    return status.value if status is not None else None


def _status_from(value):
    return HandStatus(value) if value else None


@dataclass
class Hand:
    """Cards plus derived score and status. The dealer uses this directly."""
    id: str
    cards: List[Card] = field(default_factory=list)
    score: int = 0
    status: Optional[HandStatus] = None

    def add_card(self, card: Card) -> None:
        self.cards.append(card)
        self.score = best_hand_value(self.cards)

    def set_cards(self, cards) -> None:
        self.cards = list(cards)
        self.score = best_hand_value(self.cards)

    @property
    def has_blackjack(self) -> bool:
        return is_blackjack(self.cards)

    @property
    def is_busted(self) -> bool:
        return self.score > 21

    def clear(self) -> None:
        self.cards = []
        self.score = 0
        self.status = None

    def to_dict(self):
        return {
            'id': self.id,
            'cards': [c.to_dict() for c in self.cards],
            'score': self.score,
            'status': _status_value(self.status),
        }


@dataclass
class SplitHand(Hand):
    """Second hand created by a split.

    It carries its own bet but no balance: money always moves through the
    parent seat, looked up by ``parent_id``.
    """
    parent_id: str = ''
    bet: int = 0

    is_split = True

    @staticmethod
    def id_for(parent_id: str) -> str:
        return f"{parent_id}-split"

    def to_dict(self):
        data = super().to_dict()
        data.update({'parent_id': self.parent_id, 'bet': self.bet, 'is_split': True})
        return data

    @classmethod
    def from_dict(cls, data):
        hand = cls(
            id=data['id'],
            parent_id=data['parent_id'],
            bet=int(data.get('bet') or 0),
            status=_status_from(data.get('status')),
        )
        hand.set_cards(Card.from_dict(c) for c in data.get('cards', []))
        return hand


@dataclass
class Player(Hand):
    """A seat: the primary hand plus the money and identity behind it."""
    username: str = ''
    balance: int = 0
    bet: int = 0
    account_id: Optional[int] = None
    splits: List[SplitHand] = field(default_factory=list)

    is_split = False

    @property
    def is_spectating(self) -> bool:
        return self.status == HandStatus.SPECTATING

    @property
    def is_participating(self) -> bool:
        """Seated in the current round with a stake on the table."""
        return not self.is_spectating and self.bet > 0

    @property
    def player_key(self) -> str:
        return str(self.account_id) if self.account_id is not None else self.id

    def hands(self):
        yield self
        for split in self.splits:
            yield split

    def reset_for_round(self) -> None:
        """Drop the previous round's cards, bet and splits; balance is kept."""
        self.clear()
        self.bet = 0
        self.splits = []
        if self.balance <= 0:
            self.balance = 0
            self.status = HandStatus.SPECTATING

    def to_dict(self):
        data = super().to_dict()
        data.update({
            'username': self.username,
            'balance': self.balance,
            'bet': self.bet,
            'account_id': self.account_id,
            'splits': [s.to_dict() for s in self.splits],
        })
        return data

    @classmethod
    def from_dict(cls, data):
        player = cls(
            id=data['id'],
            username=data.get('username', ''),
            balance=int(data.get('balance') or 0),
            bet=int(data.get('bet') or 0),
            account_id=data.get('account_id'),
            status=_status_from(data.get('status')),
            splits=[SplitHand.from_dict(s) for s in data.get('splits', [])],
        )
        player.set_cards(Card.from_dict(c) for c in data.get('cards', []))
        return player


def dealer_from_dict(data) -> Hand:
    dealer = Hand(id='dealer', status=_status_from(data.get('status')))
    dealer.set_cards(Card.from_dict(c) for c in data.get('cards', []))
    return dealer
