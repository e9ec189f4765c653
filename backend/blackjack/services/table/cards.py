import random
from dataclasses import dataclass
from typing import Iterable, List, Optional

from .errors import EmptyDeck

SUITS = ('hearts', 'diamonds', 'clubs', 'spades')
RANKS = ('2', '3', '4', '5', '6', '7', '8', '9', '10', 'jack', 'queen', 'king', 'ace')
FACE_RANKS = ('jack', 'queen', 'king')


@dataclass(frozen=True)
class Card:
    suit: str
    rank: str

    def to_dict(self):
        return {'suit': self.suit, 'rank': self.rank}

    @classmethod
    def from_dict(cls, data):
        return cls(suit=data['suit'], rank=data['rank'])

    def __str__(self):
        return f"{self.rank} of {self.suit}"


def new_deck() -> List[Card]:
    """Return the 52 cards in suit-major order."""
    return [Card(suit, rank) for suit in SUITS for rank in RANKS]


def new_shuffled_deck(rng: Optional[random.Random] = None) -> List[Card]:
    deck = new_deck()
    # random.shuffle is an in-place Fisher-Yates pass
    (rng or random).shuffle(deck)
    return deck


def draw_card(deck: List[Card]) -> Card:
    """Pop the top card (the end of the list)."""
    if not deck:
        raise EmptyDeck()
    return deck.pop()


def best_hand_value(cards: Iterable[Card]) -> int:
    """Best blackjack total for ``cards``.

    Every ace is first counted as 11; while the total is over 21 and an ace
    is still counted high, one ace is demoted to 1. The result is the highest
    total not over 21 when one exists, otherwise the lowest bust total.
    """
    score = 0
    aces = 0
    for card in cards:
        if card.rank == 'ace':
            aces += 1
            score += 11
        elif card.rank in FACE_RANKS:
            score += 10
        else:
            score += int(card.rank)
    while score > 21 and aces > 0:
        score -= 10
        aces -= 1
    return score


def is_blackjack(cards) -> bool:
    return len(cards) == 2 and best_hand_value(cards) == 21
