"""Dealer play, payouts, and the vote that restores an all-broke table.

Bets leave a player's balance when they are placed (and when a hand is
doubled or split), so settlement only ever credits money back:

- blackjack beats the dealer for 3:2 (``floor(bet * 1.5)``), pushes with a
  dealer blackjack
- busted and surrendered hands get nothing further
- otherwise a dealer blackjack loses, a busted dealer or higher score wins
  even money, a lower score loses and equal scores push
"""
from .errors import AlreadyVoted, InvalidAction, NotHost
from .hands import Hand, HandStatus
from .rooms import DEALER_TURN, ENDED, PLAYING, WAITING, mark_spectating

DEALER_STANDS_ON = 17
VOTE_CONTINUE = 'continue'


def dealer_step(manager, room, reveal=False):
    """One step of the dealer's hand: reveal, draw a card, or stop and settle."""
    if room.state != PLAYING or room.current_turn != DEALER_TURN:
        manager.logger.info(f"[dealer-abort] room={room.code} state={room.state} turn={room.current_turn}")
        return
    dealer = room.dealer
    if reveal:
        manager.emit('card_dealt', {'to': 'dealer', 'dealer': room.dealer_view(), 'isNewCard': False}, to=room.code)
    if dealer.score < DEALER_STANDS_ON:
        dealer.add_card(manager.draw(room))
        manager.emit('card_dealt', {'to': 'dealer', 'dealer': room.dealer_view(), 'isNewCard': True}, to=room.code)
        manager.schedule(room, manager.settings['DEALER_DRAW_DELAY_SEC'], dealer_step, name='dealer')
        return
    if dealer.is_busted:
        dealer.status = HandStatus.BUSTED
    elif dealer.has_blackjack:
        dealer.status = HandStatus.BLACKJACK
    else:
        dealer.status = HandStatus.STOOD
    settle_round(manager, room)


def settle_hand(hand, dealer, dealer_blackjack):
    """Return ``(outcome, amount_change, credit)`` for one hand against the dealer."""
    bet = hand.bet
    if hand.status == HandStatus.BLACKJACK:
        if dealer_blackjack:
            return 'push', 0, bet
        bonus = bet * 3 // 2
        return 'blackjack', bonus, bet + bonus
    if hand.status == HandStatus.BUSTED:
        return 'bust', -bet, 0
    if hand.status == HandStatus.SURRENDERED:
        # bet was already halved and the other half refunded
        return 'surrender', -bet, 0
    if dealer_blackjack:
        return 'lose', -bet, 0
    if dealer.is_busted or hand.score > dealer.score:
        return 'win', bet, bet * 2
    if hand.score < dealer.score:
        return 'lose', -bet, 0
    return 'push', 0, bet


def _result_row(player, hand, outcome, amount_change):
    return {
        'playerId': player.id,
        'handId': hand.id,
        'username': player.username,
        'isSplit': hand is not player,
        'outcome': outcome,
        'amountChange': amount_change,
        'bet': getattr(hand, 'bet', 0),
        'cards': [c.to_dict() for c in hand.cards],
        'score': hand.score,
    }


def settle_round(manager, room):
    """Pay out every hand. Runs once per round: only a ``playing`` room can settle."""
    if room.state != PLAYING:
        manager.logger.warning(f"[settle-skip] room={room.code} state={room.state}")
        return None
    room.state = ENDED
    room.current_turn = None
    room.cancel_turn_timer()

    dealer = room.dealer
    dealer_blackjack = dealer.has_blackjack
    results = []
    for player in room.players:
        if player.is_spectating:
            results.append(_result_row(player, player, 'spectating', 0))
            continue
        for hand in player.hands():
            outcome, amount_change, credit = settle_hand(hand, dealer, dealer_blackjack)
            player.balance += credit
            results.append(_result_row(player, hand, outcome, amount_change))
        manager.ledger.upsert_high_water_mark(player.player_key, player.username, player.balance)
        if player.account_id is not None:
            manager.ledger.set_balance(player.account_id, player.balance)

    for player in room.players:
        if player.balance <= 0 and not player.is_spectating:
            mark_spectating(player)
            manager.emit('player_spectating', {'playerId': player.id, 'username': player.username}, to=room.code)

    manager.logger.info(
        f"[settle] room={room.code} dealer={dealer.score} hands={len(results)} "
        f"outcomes={[r['outcome'] for r in results]}"
    )

    payload = {
        'dealer': room.dealer_view(),
        'players': room.players_payload(),
        'result': {
            'dealerScore': dealer.score,
            'dealerHasBlackjack': dealer_blackjack,
            'dealerCards': [c.to_dict() for c in dealer.cards],
            'results': results,
        },
        'allPlayersLost': False,
    }
    if room.all_spectating():
        payload['result']['results'].append({
            'playerId': 'all',
            'username': 'All Players',
            'outcome': 'all_lost',
            'amountChange': 0,
            'message': 'All players ran out of money!',
        })
        payload['allPlayersLost'] = True
        manager.emit('game_ended', payload, to=room.code)
        open_vote(manager, room)
    else:
        manager.emit('game_ended', payload, to=room.code)
        if room.auto_advance:
            manager.schedule(room, manager.settings['AUTO_ADVANCE_DELAY_SEC'], _auto_new_round, name='auto-advance')

    manager.emit('leaderboard_updated', {
        'leaderboard': manager.ledger.top(manager.settings['LEADERBOARD_SIZE']),
    }, to=room.code)
    return results


def _auto_new_round(manager, room):
    if room.state != ENDED or not room.auto_advance:
        return
    from .betting import start_new_round
    start_new_round(manager, room, None)


# ---- broke recovery ----

def open_vote(manager, room):
    if room.pending_reset_votes is None:
        room.pending_reset_votes = {}
    manager.logger.info(f"[vote-open] room={room.code} players={len(room.players)}")
    manager.schedule(room, manager.settings['VOTE_PROMPT_DELAY_SEC'], prompt_vote, name='vote-prompt')


def prompt_vote(manager, room):
    if room.state != ENDED or room.pending_reset_votes is None:
        return
    manager.emit('vote_to_continue', {
        'message': 'All players ran out of money! Vote to continue and reset the game.',
        'roomId': room.code,
        'totalPlayers': len(room.players),
        'votesReceived': len(room.pending_reset_votes),
    }, to=room.code)


def vote_continue(manager, room, player_id, choice=VOTE_CONTINUE):
    player = room.find_player(player_id)
    if player is None:
        manager.logger.warning(f"[vote-drop] room={room.code} player={player_id} not seated")
        return None
    if room.pending_reset_votes is None:
        raise InvalidAction('There is no vote in progress')
    if choice != VOTE_CONTINUE:
        # TODO: decide what a 'reset' vote should do once the client flow for it exists
        raise InvalidAction('Only a "continue" vote is supported')
    if player_id in room.pending_reset_votes:
        raise AlreadyVoted()
    room.pending_reset_votes[player_id] = VOTE_CONTINUE
    manager.emit('vote_status', {
        'votes': dict(room.pending_reset_votes),
        'totalPlayers': len(room.players),
        'votesReceived': len(room.pending_reset_votes),
    }, to=room.code)
    check_vote_complete(manager, room)
    return room.pending_reset_votes


def check_vote_complete(manager, room):
    votes = room.pending_reset_votes
    if votes is None or not room.players:
        return False
    if len(votes) < len(room.players):
        return False
    starting = manager.settings['STARTING_BALANCE']
    reset_room(manager, room, f'Game has been reset. Everyone starts with ${starting} again.')
    return True


def reset_room(manager, room, message):
    """Back to ``waiting`` with every balance restored to the starting amount."""
    room.cancel_tasks()
    starting = manager.settings['STARTING_BALANCE']
    for player in room.players:
        player.balance = starting
        player.reset_for_round()
        if player.account_id is not None:
            manager.ledger.set_balance(player.account_id, starting)
    room.dealer = Hand(id='dealer')
    room.deck = []
    room.state = WAITING
    room.current_turn = None
    room.pending_reset_votes = None
    room.visited = set()
    room.auto_skipped = set()
    manager.logger.info(f"[reset] room={room.code} balance={starting}")
    manager.emit('game_reset', {
        'message': message,
        'players': room.players_payload(),
        'gameState': WAITING,
    }, to=room.code)


def restart_game(manager, room, requester_id):
    if not room.is_host(requester_id):
        raise NotHost('Only the host can restart the game')
    starting = manager.settings['STARTING_BALANCE']
    reset_room(manager, room, f'Game has been restarted by the host! Everyone starts with ${starting} again.')
