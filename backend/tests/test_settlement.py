import pytest

from blackjack.services.table import settlement
from blackjack.services.table.errors import AlreadyVoted, InsufficientBalance, InvalidAction, NotHost
from blackjack.services.table.hands import Hand, HandStatus, Player
from blackjack.services.table.cards import Card
from blackjack.services.table.rooms import BETTING, ENDED, WAITING


def _results(table):
    return {r['handId']: r for r in table.events('game_ended')[-1]['result']['results'] if 'handId' in r}


def _finish(table, room, *player_ids):
    for player_id in player_ids:
        table.manager.stand(room.code, player_id)
    table.scheduler.run_pending()


def _hand(*ranks, bet=0, status=None):
    hand = Player(id='p', bet=bet, status=status)
    hand.set_cards(Card('hearts', r) for r in ranks)
    return hand


def _dealer(*ranks):
    dealer = Hand(id='dealer')
    dealer.set_cards(Card('clubs', r) for r in ranks)
    return dealer


@pytest.mark.parametrize('player, dealer, expected', [
    (('ace', 'king'), ('10', '9'), ('blackjack', 15, 25)),
    (('ace', 'king'), ('ace', 'queen'), ('push', 0, 10)),
    (('10', '9'), ('ace', 'queen'), ('lose', -10, 0)),
    (('10', '9'), ('10', '6', '8'), ('win', 10, 20)),
    (('10', '9'), ('10', '8'), ('win', 10, 20)),
    (('10', '7'), ('10', '8'), ('lose', -10, 0)),
    (('10', '8'), ('10', '8'), ('push', 0, 10)),
])
def test_settle_hand(player, dealer, expected):
    hand = _hand(*player, bet=10, status=HandStatus.BLACKJACK if player == ('ace', 'king') else HandStatus.STOOD)
    dealer_hand = _dealer(*dealer)
    assert settlement.settle_hand(hand, dealer_hand, dealer_hand.has_blackjack) == expected


def test_bust_loses_even_when_dealer_busts():
    hand = _hand('10', '9', '5', bet=10, status=HandStatus.BUSTED)
    assert settlement.settle_hand(hand, _dealer('10', '6', '9'), False) == ('bust', -10, 0)


def test_lose_to_dealer_twenty(table):
    room = table.seat('a', 'b', balance=500)
    table.start(room, {'a': 50, 'b': 50}, ranks=('10', '10', '10', '9', '8', '10'))
    assert room.find_player('a').balance == 450
    _finish(table, room, 'a', 'b')

    row = _results(table)['a']
    assert row['outcome'] == 'lose'
    assert row['amountChange'] == -50
    assert room.find_player('a').balance == 450
    assert room.state == ENDED
    ended = table.events('game_ended')[-1]
    assert ended['result']['dealerScore'] == 20
    assert ended['allPlayersLost'] is False


def test_double_down_then_win(table):
    room = table.seat('a', 'b', balance=100)
    table.start(room, {'a': 20, 'b': 20}, ranks=('5', '10', '10', '6', '8', '7', '10'))
    table.manager.double_down(room.code, 'a')

    player = room.find_player('a')
    assert player.balance == 60
    assert player.bet == 40
    assert player.score == 21
    assert player.status == HandStatus.STOOD
    assert room.current_turn == 'b'

    _finish(table, room, 'b')
    assert _results(table)['a']['outcome'] == 'win'
    assert _results(table)['a']['amountChange'] == 40
    assert player.balance == 140


def test_double_down_needs_two_cards_and_funds(table):
    room = table.seat('a', 'b', balance=100)
    table.start(room, {'a': 60, 'b': 20}, ranks=('5', '10', '10', '6', '8', '7', '2'))
    with pytest.raises(InsufficientBalance):
        table.manager.double_down(room.code, 'a')
    table.manager.hit(room.code, 'a')
    with pytest.raises(InvalidAction):
        table.manager.double_down(room.code, 'a')
    assert room.find_player('a').balance == 40


def test_surrender_refunds_half(table):
    room = table.seat('a', 'b')
    table.start(room, {'a': 50, 'b': 10}, ranks=('10', '9', '10', '6', '8', '7'))
    table.manager.surrender(room.code, 'a')
    player = room.find_player('a')
    assert player.balance == 975
    assert player.status == HandStatus.SURRENDERED
    assert table.events('player_surrendered')[-1]['balance'] == 975

    _finish(table, room, 'b')
    row = _results(table)['a']
    assert row['outcome'] == 'surrender'
    assert row['amountChange'] == -25
    assert player.balance == 975


def test_blackjack_pays_three_to_two(table):
    room = table.seat('a', 'b')
    table.start(room, {'a': 10, 'b': 10}, ranks=('ace', '9', '10', 'king', '8', '7'))
    _finish(table, room, 'b')
    row = _results(table)['a']
    assert row['outcome'] == 'blackjack'
    assert row['amountChange'] == 15
    assert room.find_player('a').balance == 1015


def test_split_hands_settle_separately(table):
    room = table.seat('a', 'b')
    # a: 8,8 split -> split hand 8+10, primary 8+3 then hit 10
    table.start(room, {'a': 10, 'b': 10}, ranks=('8', '10', '10', '8', '9', '9', '10', '3', '10'))
    table.manager.split(room.code, 'a')
    table.manager.hit(room.code, 'a')
    table.manager.stand(room.code, 'a')
    table.manager.stand(room.code, 'a', 'a-split')
    _finish(table, room, 'b')

    results = _results(table)
    assert results['a']['outcome'] == 'win'
    assert results['a-split']['outcome'] == 'lose'
    assert results['a-split']['isSplit'] is True
    assert room.find_player('a').balance == 1000


def test_settlement_runs_once(table):
    room = table.seat('a', 'b')
    table.start(room, {'a': 10, 'b': 10}, ranks=('10', '10', '10', '9', '8', '7'))
    _finish(table, room, 'a', 'b')
    balances = [p.balance for p in room.players]

    assert settlement.settle_round(table.manager, room) is None
    assert [p.balance for p in room.players] == balances
    assert len(table.events('game_ended')) == 1


def test_settlement_updates_ledger_and_leaderboard(table):
    room = table.seat('a', 'b')
    room.find_player('a').account_id = 7
    table.start(room, {'a': 10, 'b': 10}, ranks=('10', '10', '10', '9', '7', '7'))
    _finish(table, room, 'a', 'b')

    assert table.ledger.balances[7] == 1010
    assert table.ledger.high_water['7']['balance'] == 1010
    assert table.ledger.high_water['b']['balance'] == 1000
    board = table.events('leaderboard_updated')[-1]['leaderboard']
    assert board[0]['username'] == 'A'


def test_all_broke_vote_resets_the_room(table):
    room = table.seat('a', 'b', balance=10)
    table.start(room, {'a': 10, 'b': 10}, ranks=('10', '10', '10', '7', '6', '10'))
    # both seats went all in, so the dealer plays straight away
    assert not table.events('player_turn')

    ended = table.events('game_ended')[-1]
    assert ended['allPlayersLost'] is True
    assert ended['result']['results'][-1]['outcome'] == 'all_lost'
    assert all(p.status == HandStatus.SPECTATING for p in room.players)
    assert not table.events('vote_to_continue')

    table.scheduler.advance(2)
    assert table.events('vote_to_continue')[-1]['totalPlayers'] == 2

    table.manager.vote_continue(room.code, 'a')
    assert table.events('vote_status')[-1]['votesReceived'] == 1
    with pytest.raises(AlreadyVoted):
        table.manager.vote_continue(room.code, 'a')
    with pytest.raises(InvalidAction):
        table.manager.vote_continue(room.code, 'b', 'reset')

    table.manager.vote_continue(room.code, 'b')
    assert room.state == WAITING
    assert room.pending_reset_votes is None
    assert [p.balance for p in room.players] == [1000, 1000]
    assert all(p.status is None for p in room.players)
    assert table.events('game_reset')[-1]['gameState'] == WAITING


def test_vote_without_open_vote(table):
    room = table.seat('a', 'b')
    with pytest.raises(InvalidAction):
        table.manager.vote_continue(room.code, 'a')


def test_new_round_request_while_everyone_is_broke_reprompts(table):
    room = table.seat('a', 'b', balance=10)
    table.start(room, {'a': 10, 'b': 10}, ranks=('10', '10', '10', '7', '6', '10'))
    table.scheduler.advance(2)
    table.manager.start_new_round(room.code, 'a')
    assert len(table.events('vote_to_continue')) == 2
    assert room.state == ENDED


def test_voter_leaving_completes_the_vote(table):
    room = table.seat('a', 'b', balance=10)
    table.start(room, {'a': 10, 'b': 10}, ranks=('10', '10', '10', '7', '6', '10'))
    table.manager.vote_continue(room.code, 'a')
    table.manager.leave_room('b')
    assert room.state == WAITING
    assert room.find_player('a').balance == 1000


def test_host_restart(table):
    room = table.seat('a', 'b')
    table.start(room, {'a': 100, 'b': 10}, ranks=('10', '9', '10', '7', '8', '7'))
    with pytest.raises(NotHost):
        table.manager.restart_game(room.code, 'b')
    table.manager.restart_game(room.code, 'a')
    assert room.state == WAITING
    assert room.find_player('a').balance == 1000
    assert room.turn_timer is None
    assert not table.scheduler.pending()

    table.manager.start_game(room.code, 'a')
    assert room.state == BETTING
