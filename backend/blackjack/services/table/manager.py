"""The room registry and the entry point for every table operation.

``RoomManager`` owns the live rooms and the collaborators the engine needs
(scheduler, broadcaster, ledger, logger). Each public method looks the room
up, takes its lock, and hands over to the phase module that implements the
rule.
"""
import logging
import threading
import time

from . import actions, betting, settlement, turns
from .cards import draw_card, new_shuffled_deck
from .errors import GameInProgress, InvalidAction, NotHost, RoomNotFound
from .hands import Player
from .rooms import BETTING, ENDED, PLAYING, WAITING, Room, generate_room_code
from .scheduler import ManualScheduler, SocketIOScheduler

DEFAULT_SETTINGS = {
    'MIN_PLAYERS': 2,
    'STARTING_BALANCE': 1000,
    'ROOM_CODE_LENGTH': 6,
    'TURN_TIMEOUT_SEC': 60,
    'DEAL_DELAY_SEC': 0.65,
    'DEALER_TURN_DELAY_SEC': 1.0,
    'DEALER_DRAW_DELAY_SEC': 0.6,
    'VOTE_PROMPT_DELAY_SEC': 2,
    'AUTO_ADVANCE_DELAY_SEC': 5,
    'CHAT_MAX_LENGTH': 500,
    'LEADERBOARD_SIZE': 10,
}


class RoomManager:

    def __init__(self, scheduler=None, broadcaster=None, ledger=None, logger=None, deck_factory=None, **settings):
        self.rooms = {}
        self.scheduler = scheduler
        self.broadcaster = broadcaster
        self.ledger = ledger
        self.logger = logger or logging.getLogger(__name__)
        self.deck_factory = deck_factory or new_shuffled_deck
        self.settings = dict(DEFAULT_SETTINGS)
        self.settings.update(settings)
        self._lock = threading.RLock()

    def init_app(self, app, socketio):
        from .broadcast import SocketIOBroadcaster
        from .ledger import SqlLedger

        for key, default in DEFAULT_SETTINGS.items():
            self.settings[key] = app.config.get(key, default)
        if app.config.get('ROOM_SCHEDULER') == 'manual':
            self.scheduler = ManualScheduler()
        else:
            self.scheduler = SocketIOScheduler(socketio)
        self.broadcaster = SocketIOBroadcaster(socketio, namespace='/ws')
        self.ledger = SqlLedger(app)
        self.logger = app.logger
        self.rooms = {}
        app.extensions['room_manager'] = self

    # ---- plumbing used by the phase modules ----

    def emit(self, event, payload, to):
        self.broadcaster.emit(event, payload, to=to)

    def schedule(self, room, delay, fn, *args, name=''):
        """Run ``fn(manager, room, *args)`` after ``delay`` seconds under the room lock.

        The handle is tracked on the room so tearing the room down cancels it.
        """
        handle = self.scheduler.call_later(delay, self._run_deferred, room, fn, args, name=name)
        return room.track(handle)

    def _run_deferred(self, room, fn, args):
        if self.rooms.get(room.code) is not room:
            self.logger.info(f"[task-drop] room={room.code} step={fn.__name__} room is gone")
            return
        with room.lock:
            # the room may have been torn down while we waited for the lock
            if self.rooms.get(room.code) is not room:
                self.logger.info(f"[task-drop] room={room.code} step={fn.__name__} room is gone")
                return
            fn(self, room, *args)

    def draw(self, room):
        if not room.deck:
            remaining = room.refill_deck(self.deck_factory())
            self.logger.warning(f"[deck-refill] room={room.code} reshuffled {remaining} cards not on the table")
        return draw_card(room.deck)

    # ---- registry ----

    def get_room(self, code) -> Room:
        room = self.rooms.get((code or '').upper())
        if room is None:
            raise RoomNotFound()
        return room

    def find_room_for(self, player_id):
        for room in list(self.rooms.values()):
            if room.find_player(player_id) is not None:
                return room
        return None

    def snapshot(self, code):
        room = self.get_room(code)
        with room.lock:
            return room.to_dict()

    def create_room(self, player_id, username, balance, account_id=None):
        if not username:
            raise InvalidAction('Username is required')
        with self._lock:
            if self.find_room_for(player_id) is not None:
                raise InvalidAction('You are already seated in a room')
            code = generate_room_code(self.rooms, length=int(self.settings['ROOM_CODE_LENGTH']))
            host = Player(id=player_id, username=username, balance=int(balance), account_id=account_id)
            room = Room(code, host)
            self.rooms[code] = room
        self.broadcaster.enter(player_id, code)
        self.logger.info(f"[room-create] room={code} host={player_id} username={username}")
        self.emit('room_joined', {
            'roomId': code,
            'players': room.players_payload(),
            'hostId': room.host_id,
            'gameState': room.state,
        }, to=player_id)
        return room

    def join_room(self, code, player_id, username, balance, account_id=None):
        if not username:
            raise InvalidAction('Username is required')
        room = self.get_room(code)
        with room.lock:
            if room.state != WAITING:
                raise GameInProgress()
            if self.find_room_for(player_id) is not None:
                raise InvalidAction('You are already seated in a room')
            if room.has_username(username):
                raise InvalidAction('That username is already taken in this room')
            room.add_player(Player(id=player_id, username=username, balance=int(balance), account_id=account_id))
            self.broadcaster.enter(player_id, room.code)
            self.logger.info(f"[room-join] room={room.code} player={player_id} username={username}")
            self.emit('room_joined', {
                'roomId': room.code,
                'players': room.players_payload(),
                'hostId': room.host_id,
                'gameState': room.state,
            }, to=player_id)
            self.emit('player_joined', {'players': room.players_payload(), 'hostId': room.host_id}, to=room.code)
            return room

    def leave_room(self, player_id, code=None, disconnected=False):
        """Unseat a player, for an explicit leave or a dropped connection.

        Mid-round this goes through the same turn-advance path as a stand.
        """
        room = self.rooms.get(code.upper()) if code else self.find_room_for(player_id)
        if room is None or room.find_player(player_id) is None:
            self.logger.info(f"[leave-drop] player={player_id} code={code} not seated")
            return None
        with room.lock:
            removed_hand_ids = {h.id for h in room.find_player(player_id).hands()}
            player, was_host = room.remove_player(player_id)
            if not disconnected:
                self.broadcaster.leave(player_id, room.code)
            if room.pending_reset_votes is not None:
                room.pending_reset_votes.pop(player_id, None)
            self.logger.info(
                f"[room-leave] room={room.code} player={player_id} was_host={was_host} disconnected={disconnected}"
            )
            if not room.players:
                self._teardown(room)
                return player

            self.emit('player_left', {
                'players': room.players_payload(),
                'leftPlayer': player.username,
                'wasHost': was_host,
                'hostId': room.host_id,
            }, to=room.code)

            if room.state == PLAYING:
                if not room.participants():
                    betting.abort_round(self, room)
                elif room.current_turn in removed_hand_ids:
                    turns.advance_turn(self, room)
            elif room.state == BETTING:
                betting.check_bets_complete(self, room)
            elif room.state == ENDED:
                settlement.check_vote_complete(self, room)

            self.emit('room_update', {
                'players': room.players_payload(),
                'hostId': room.host_id,
                'gameState': room.state,
                'dealer': room.dealer_view(),
            }, to=room.code)
            return player

    def kick_player(self, code, requester_id, target_id):
        room = self.get_room(code)
        with room.lock:
            if not room.is_host(requester_id):
                raise NotHost('Only the host can kick players')
            if room.state != WAITING:
                raise InvalidAction('Players can only be kicked before the game starts')
            if target_id == requester_id:
                raise InvalidAction('You cannot kick yourself')
            if room.find_player(target_id) is None:
                raise InvalidAction('Player not found')
            kicked, _ = room.remove_player(target_id)
            self.logger.info(f"[room-kick] room={room.code} player={target_id} by={requester_id}")
            self.emit('kicked', {'message': 'You have been kicked from the room by the host'}, to=target_id)
            self.broadcaster.leave(target_id, room.code)
            self.emit('player_kicked', {
                'players': room.players_payload(),
                'kickedPlayer': kicked.username,
                'kickedPlayerId': kicked.id,
            }, to=room.code)
            return kicked

    def _teardown(self, room):
        room.cancel_tasks()
        with self._lock:
            if self.rooms.get(room.code) is room:
                del self.rooms[room.code]
        self.logger.info(f"[room-delete] room={room.code} last player left")

    # ---- table operations ----

    def _locked(self, code, fn, *args):
        room = self.get_room(code)
        with room.lock:
            return fn(self, room, *args)

    def start_game(self, code, requester_id):
        return self._locked(code, betting.start_game, requester_id)

    def place_bet(self, code, player_id, amount):
        return self._locked(code, betting.place_bet, player_id, amount)

    def start_new_round(self, code, requester_id):
        return self._locked(code, betting.start_new_round, requester_id)

    def hit(self, code, player_id, hand_id=None):
        return self._locked(code, actions.hit, player_id, hand_id)

    def stand(self, code, player_id, hand_id=None):
        return self._locked(code, actions.stand, player_id, hand_id)

    def double_down(self, code, player_id, hand_id=None):
        return self._locked(code, actions.double_down, player_id, hand_id)

    def split(self, code, player_id, hand_id=None):
        return self._locked(code, actions.split, player_id, hand_id)

    def surrender(self, code, player_id, hand_id=None):
        return self._locked(code, actions.surrender, player_id, hand_id)

    def vote_continue(self, code, player_id, choice=settlement.VOTE_CONTINUE):
        return self._locked(code, settlement.vote_continue, player_id, choice)

    def restart_game(self, code, requester_id):
        return self._locked(code, settlement.restart_game, requester_id)

    def set_auto_advance(self, code, requester_id, enabled):
        room = self.get_room(code)
        with room.lock:
            if not room.is_host(requester_id):
                raise NotHost('Only the host can change auto-advance')
            room.auto_advance = bool(enabled)
            self.emit('room_update', {
                'players': room.players_payload(),
                'hostId': room.host_id,
                'gameState': room.state,
                'dealer': room.dealer_view(),
                'autoAdvance': room.auto_advance,
            }, to=room.code)
            return room.auto_advance

    def send_message(self, code, player_id, message):
        room = self.get_room(code)
        with room.lock:
            player = room.find_player(player_id)
            if player is None:
                raise InvalidAction('You are not in this room')
            text = (message or '').strip() if isinstance(message, str) else ''
            if not text:
                raise InvalidAction('Message is empty')
            text = text[:int(self.settings['CHAT_MAX_LENGTH'])]
            self.emit('message', {
                'sender': player.username,
                'senderId': player.id,
                'content': text,
                'timestamp': time.time(),
                'type': 'message',
            }, to=room.code)
            return text
