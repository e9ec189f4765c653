"""Betting phase and the initial deal.

The deal is a queue of targets (each participating seat, then the dealer,
twice over) consumed one card per scheduled step, so a room that is torn
down mid-deal simply has its remaining steps cancelled.
"""
import uuid
from collections import deque

from . import settlement, turns
from .errors import GameInProgress, InsufficientBalance, InvalidAction, InvalidBetAmount, NotHost
from .hands import HandStatus
from .rooms import BETTING, DEALER_TURN, ENDED, PLAYING, WAITING, mark_spectating


def _announce_spectators(manager, room, players):
    for player in players:
        manager.emit('player_spectating', {'playerId': player.id, 'username': player.username}, to=room.code)


def _open_betting(manager, room):
    newly_spectating = room.reset_round(manager.deck_factory())
    room.state = BETTING
    _announce_spectators(manager, room, newly_spectating)


def start_game(manager, room, requester_id):
    if not room.is_host(requester_id):
        raise NotHost('Only the host can start the game')
    if room.state != WAITING:
        raise GameInProgress()
    min_players = int(manager.settings['MIN_PLAYERS'])
    if len(room.players) < min_players:
        raise InvalidAction(f'Need at least {min_players} players to start')
    if not any(p.balance > 0 for p in room.players):
        raise InsufficientBalance('Nobody at the table has chips to bet')

    _open_betting(manager, room)
    manager.logger.info(f"[game-start] room={room.code} players={len(room.players)}")
    manager.emit('game_started', {
        'gameId': uuid.uuid4().hex,
        'players': room.players_payload(),
        'dealer': room.dealer_view(),
        'currentTurn': None,
    }, to=room.code)
    return room


def _coerce_amount(amount):
    if isinstance(amount, bool):
        raise InvalidBetAmount()
    if isinstance(amount, int):
        return amount
    if isinstance(amount, float) and amount.is_integer():
        return int(amount)
    if isinstance(amount, str) and amount.strip().isdigit():
        return int(amount.strip())
    raise InvalidBetAmount()


def place_bet(manager, room, player_id, amount):
    player = room.find_player(player_id)
    if player is None:
        manager.logger.warning(f"[bet-drop] room={room.code} player={player_id} not seated")
        return None
    if room.state != BETTING:
        raise InvalidAction('Bets are not being taken right now')
    if player.is_spectating:
        raise InsufficientBalance('You have no chips left and are spectating this round')
    if player.bet > 0:
        raise InvalidAction('Bet already placed')
    amount = _coerce_amount(amount)
    if amount <= 0 or amount > player.balance:
        raise InvalidBetAmount()

    player.bet = amount
    player.balance -= amount
    manager.logger.info(f"[bet] room={room.code} player={player.username} bet={amount} balance={player.balance}")
    manager.emit('bet_placed', {'bet': amount, 'balance': player.balance}, to=player.id)
    manager.emit('player_bet_placed', {
        'playerId': player.id,
        'username': player.username,
        'bet': amount,
        'players': room.players_payload(),
    }, to=room.code)
    check_bets_complete(manager, room)
    return player


def check_bets_complete(manager, room):
    """Deal once every seat that can bet has done so."""
    if room.state != BETTING:
        return False
    waiting_on = [p for p in room.players if not p.is_spectating and p.bet == 0 and p.balance > 0]
    if waiting_on or not room.participants():
        return False
    deal_initial_cards(manager, room)
    return True


def deal_initial_cards(manager, room):
    room.state = PLAYING
    room.current_turn = None
    for player in room.players:
        player.cards = []
        player.score = 0
        if not player.is_participating:
            mark_spectating(player)
    seats = [p.id for p in room.participants()]
    room.deal_queue = deque(seats + [DEALER_TURN] + seats + [DEALER_TURN])
    manager.emit('betting_ended', {'players': room.players_payload()}, to=room.code)
    manager.schedule(room, 0, deal_next_card, name='deal')


def deal_next_card(manager, room):
    if room.state != PLAYING or room.current_turn is not None:
        return
    while room.deal_queue:
        target = room.deal_queue.popleft()
        if target == DEALER_TURN:
            room.dealer.add_card(manager.draw(room))
            manager.emit('card_dealt', {'to': 'dealer', 'dealer': room.dealer_view(), 'isNewCard': True}, to=room.code)
            break
        player = room.find_player(target)
        if player is None or not player.is_participating:
            # seat left during the deal
            continue
        player.add_card(manager.draw(room))
        if player.has_blackjack:
            player.status = HandStatus.BLACKJACK
        manager.emit('card_dealt', {
            'to': player.id,
            'cards': [c.to_dict() for c in player.cards],
            'score': player.score,
            'isNewCard': True,
        }, to=room.code)
        break
    delay = manager.settings['DEAL_DELAY_SEC']
    if room.deal_queue:
        manager.schedule(room, delay, deal_next_card, name='deal')
    else:
        manager.schedule(room, delay, finish_deal, name='deal')


def finish_deal(manager, room):
    if room.state != PLAYING or room.current_turn is not None:
        return
    turns.open_first_turn(manager, room)


def start_new_round(manager, room, requester_id):
    """Host request (or auto-advance when ``requester_id`` is None) to deal again."""
    if requester_id is not None and not room.is_host(requester_id):
        raise NotHost('Only the host can start a new round')
    if room.state != ENDED:
        raise InvalidAction('The current round has not finished')
    if room.pending_reset_votes is not None:
        settlement.prompt_vote(manager, room)
        return None
    if all(p.balance <= 0 for p in room.players):
        for player in room.players:
            if not player.is_spectating:
                mark_spectating(player)
        settlement.open_vote(manager, room)
        return None

    _open_betting(manager, room)
    manager.logger.info(f"[new-round] room={room.code} auto={requester_id is None}")
    manager.emit('new_round', {
        'players': room.players_payload(),
        'gameState': BETTING,
        'dealer': room.dealer_view(),
        'isAutoSkip': requester_id is None,
    }, to=room.code)
    return room


def abort_round(manager, room):
    """Everyone with a stake left mid-round: drop back to the lobby."""
    room.cancel_tasks()
    for player in room.players:
        player.reset_for_round()
    room.dealer.clear()
    room.deck = []
    room.state = WAITING
    room.current_turn = None
    room.visited = set()
    manager.logger.info(f"[round-abort] room={room.code} no participants left")
    manager.emit('game_state_update', {
        'gameState': WAITING,
        'players': room.players_payload(),
        'dealer': room.dealer_view(),
    }, to=room.code)
