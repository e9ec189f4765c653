"""Hit, stand, double down, split and surrender.

Each action checks every precondition before touching the room, so a
rejected request leaves the table (and the running turn timer) exactly as
it was.
"""
from . import turns
from .errors import InsufficientBalance, InvalidAction, NotYourTurn
from .hands import HandStatus, SplitHand
from .rooms import PLAYING


def _hand_payload(hand, owner, new_card=True):
    return {
        'to': hand.id,
        'ownerId': owner.id,
        'cards': [c.to_dict() for c in hand.cards],
        'score': hand.score,
        'bet': hand.bet,
        'balance': owner.balance,
        'status': hand.status.value if hand.status else None,
        'isNewCard': new_card,
    }


def _turn_hand(manager, room, player_id, hand_id=None):
    """Resolve the hand being played and check it is its owner's turn."""
    target_id = hand_id or player_id
    if room.state != PLAYING or room.current_turn != target_id:
        raise NotYourTurn()
    hand, owner = room.find_hand(target_id)
    if hand is None or owner is None:
        manager.logger.warning(f"[action-drop] room={room.code} hand={target_id} not seated")
        return None, None
    if owner.id != player_id:
        raise NotYourTurn()
    if hand.status is not None:
        raise InvalidAction('This hand has already finished')
    return hand, owner


def hit(manager, room, player_id, hand_id=None):
    hand, owner = _turn_hand(manager, room, player_id, hand_id)
    if hand is None:
        return None
    room.cancel_turn_timer()
    hand.add_card(manager.draw(room))
    if hand.is_busted:
        hand.status = HandStatus.BUSTED
    manager.emit('card_dealt', _hand_payload(hand, owner), to=room.code)
    if hand.status == HandStatus.BUSTED:
        turns.advance_turn(manager, room)
    else:
        turns.start_turn_timer(manager, room)
    return hand


def stand(manager, room, player_id, hand_id=None):
    hand, owner = _turn_hand(manager, room, player_id, hand_id)
    if hand is None:
        return None
    room.cancel_turn_timer()
    hand.status = HandStatus.STOOD
    turns.advance_turn(manager, room)
    return hand


def double_down(manager, room, player_id, hand_id=None):
    hand, owner = _turn_hand(manager, room, player_id, hand_id)
    if hand is None:
        return None
    if len(hand.cards) != 2:
        raise InvalidAction('You can only double down on your first two cards')
    if owner.balance < hand.bet:
        raise InsufficientBalance('Not enough balance to double down')

    room.cancel_turn_timer()
    owner.balance -= hand.bet
    hand.bet *= 2
    hand.add_card(manager.draw(room))
    hand.status = HandStatus.BUSTED if hand.is_busted else HandStatus.STOOD
    manager.emit('card_dealt', _hand_payload(hand, owner), to=room.code)
    turns.advance_turn(manager, room)
    return hand


def split(manager, room, player_id, hand_id=None):
    hand, owner = _turn_hand(manager, room, player_id, hand_id)
    if hand is None:
        return None
    if hand.is_split:
        raise InvalidAction('A split hand cannot be split again')
    if owner.splits:
        raise InvalidAction('This hand has already been split')
    if len(hand.cards) != 2:
        raise InvalidAction('You can only split with two cards')
    first, second = hand.cards
    if first.rank != second.rank:
        raise InvalidAction('You can only split matching cards')
    if owner.balance < hand.bet:
        raise InsufficientBalance('Not enough balance to split')

    room.cancel_turn_timer()
    owner.balance -= hand.bet
    split_hand = SplitHand(id=SplitHand.id_for(owner.id), parent_id=owner.id, bet=hand.bet)
    split_hand.set_cards([second, manager.draw(room)])
    hand.set_cards([first, manager.draw(room)])
    for h in (hand, split_hand):
        if h.has_blackjack:
            h.status = HandStatus.BLACKJACK
    owner.splits.append(split_hand)

    manager.emit('card_dealt', _hand_payload(hand, owner), to=room.code)
    manager.emit('card_dealt', _hand_payload(split_hand, owner), to=room.code)
    manager.emit('player_split', {
        'playerId': owner.id,
        'newHandId': split_hand.id,
        'players': room.players_payload(),
    }, to=room.code)
    if hand.status == HandStatus.BLACKJACK:
        turns.advance_turn(manager, room)
    else:
        turns.start_turn_timer(manager, room)
    return split_hand


def surrender(manager, room, player_id, hand_id=None):
    hand, owner = _turn_hand(manager, room, player_id, hand_id)
    if hand is None:
        return None
    if len(hand.cards) != 2:
        raise InvalidAction('You can only surrender on your first two cards')

    room.cancel_turn_timer()
    kept = hand.bet // 2
    owner.balance += hand.bet - kept
    hand.bet = kept
    hand.status = HandStatus.SURRENDERED
    manager.emit('player_surrendered', {
        'playerId': hand.id,
        'ownerId': owner.id,
        'bet': hand.bet,
        'balance': owner.balance,
    }, to=room.code)
    turns.advance_turn(manager, room)
    return hand
