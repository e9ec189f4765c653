"""Whose turn it is, the per-turn timer, and the hand-off to the dealer.

Every way a hand can finish (stand, bust, double, surrender, timeout or the
owner leaving) ends in ``advance_turn``.
"""
import time

from . import settlement
from .hands import HandStatus
from .rooms import DEALER_TURN, PLAYING


def _set_turn(manager, room, hand, skipped=False):
    room.current_turn = hand.id
    room.turn_serial += 1
    room.visited.add(hand.id)
    owner = room.owner_of(hand)
    manager.emit('player_turn', {
        'playerId': hand.id,
        'ownerId': owner.id if owner else None,
        'username': owner.username if owner else None,
        'skipped': skipped,
        'players': room.players_payload(),
    }, to=room.code)


def open_first_turn(manager, room):
    """Start the turn walk once the initial cards are out."""
    room.visited = set()
    room.current_turn = None
    advance_turn(manager, room)


def advance_turn(manager, room):
    """Move ``current_turn`` to the next hand that still has to act.

    Hands are walked seat by seat, each primary hand followed by its split, and
    a hand is never given the turn twice in a round. Blackjack hands get a
    turn event and are passed over straight away. With nothing left to play
    the dealer takes over.
    """
    room.cancel_turn_timer()
    if room.state != PLAYING:
        return
    for hand in room.turn_sequence():
        if hand.id in room.visited:
            continue
        if hand.status == HandStatus.BLACKJACK:
            _set_turn(manager, room, hand, skipped=True)
            continue
        if hand.status is not None:
            room.visited.add(hand.id)
            continue
        _set_turn(manager, room, hand)
        start_turn_timer(manager, room)
        return
    begin_dealer_phase(manager, room)


def start_turn_timer(manager, room):
    """(Re)start the auto-stand timer for the current hand. Any previous timer is cancelled first."""
    room.cancel_turn_timer()
    if room.state != PLAYING or room.current_turn in (None, DEALER_TURN):
        return
    hand, _ = room.find_hand(room.current_turn)
    if hand is None or hand.status is not None:
        return
    duration = manager.settings['TURN_TIMEOUT_SEC']
    room.turn_timer = manager.schedule(
        room, duration, on_turn_timeout, hand.id, room.turn_serial, name='turn-timer'
    )
    manager.logger.info(
        f"[timer-set] room={room.code} hand={hand.id} serial={room.turn_serial} duration={duration}s"
    )


def on_turn_timeout(manager, room, hand_id, serial):
    manager.logger.info(
        f"[timer-fire] room={room.code} hand={hand_id} serial={serial} current={room.current_turn} current_serial={room.turn_serial}"
    )
    if room.state != PLAYING or room.current_turn != hand_id or room.turn_serial != serial:
        manager.logger.info(f"[timer-abort] room={room.code} hand={hand_id} turn already moved on")
        return
    key = (hand_id, serial)
    if key in room.auto_skipped:
        manager.logger.info(f"[timer-skip] room={room.code} hand={hand_id} already auto-skipped")
        return
    hand, owner = room.find_hand(hand_id)
    if hand is None or hand.status is not None:
        return
    room.auto_skipped.add(key)
    room.turn_timer = None
    hand.status = HandStatus.STOOD
    manager.emit('player_auto_skipped', {
        'playerId': hand_id,
        'username': owner.username if owner else hand_id,
        'players': room.players_payload(),
        'timestamp': time.time(),
    }, to=room.code)
    advance_turn(manager, room)


def begin_dealer_phase(manager, room):
    room.cancel_turn_timer()
    room.current_turn = DEALER_TURN
    manager.logger.info(f"[dealer-turn] room={room.code}")
    manager.emit('dealer_turn', {'players': room.players_payload()}, to=room.code)
    manager.schedule(
        room, manager.settings['DEALER_TURN_DELAY_SEC'], settlement.dealer_step, True, name='dealer'
    )
