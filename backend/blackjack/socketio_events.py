from flask_socketio import emit
from flask import current_app, request
from flask_login import current_user
from blackjack import socketio, room_manager
from blackjack.services.table.errors import GameError
from typing import Any, Callable, Dict, Optional
import random
import string


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _room_code(data) -> Optional[str]:
    code = (data or {}).get('roomId')
    return code.upper() if isinstance(code, str) and code else None


def _guest_name() -> str:
    return 'Guest-' + ''.join(random.choices(string.digits, k=4))


def _identity(data) -> Dict[str, Any]:
    """Seat identity for this socket: the logged-in account, else a guest.

    Guests always start from STARTING_BALANCE; a balance sent by the client
    is ignored.
    """
    starting = int(current_app.config.get('STARTING_BALANCE', 1000))
    if current_user and current_user.is_authenticated:
        balance = room_manager.ledger.get_balance(current_user.id)
        return {
            'username': current_user.username,
            'balance': starting if balance is None else balance,
            'account_id': current_user.id,
        }
    username = (data or {}).get('username')
    username = username.strip() if isinstance(username, str) else ''
    return {'username': username or _guest_name(), 'balance': starting, 'account_id': None}


def _dispatch(fn: Callable, *args, **kwargs):
    """Run an engine call, reporting a rejected request to the caller only."""
    try:
        return fn(*args, **kwargs)
    except GameError as exc:
        current_app.logger.info(f"[rejected] sid={_get_sid()} op={fn.__name__} code={exc.code} message={exc.message}")
        emit('error', exc.to_dict())
        return None


def _require_room(data) -> Optional[str]:
    code = _room_code(data)
    if not code:
        emit('error', {'message': 'roomId is required', 'code': 'invalid_action'})
    return code


def handle_connect(auth=None):
    emit('connected', {'message': 'Connected to /ws', 'sid': _get_sid()})


def handle_disconnect(reason=None):
    # A dropped socket is treated exactly like leaving the room
    current_app.logger.info(f"[disconnect] sid={_get_sid()} reason={reason}")
    room_manager.leave_room(_get_sid(), disconnected=True)


def handle_ping(data):
    emit('pong', data or {})


def handle_create_room(data):
    who = _identity(data)
    _dispatch(room_manager.create_room, _get_sid(), who['username'], who['balance'], who['account_id'])


def handle_join_room(data):
    code = _require_room(data)
    if not code:
        return
    who = _identity(data)
    _dispatch(room_manager.join_room, code, _get_sid(), who['username'], who['balance'], who['account_id'])


def handle_leave_room(data):
    player = room_manager.leave_room(_get_sid(), code=_room_code(data))
    if player is not None:
        emit('left', {'roomId': _room_code(data)})


def handle_start_game(data):
    code = _require_room(data)
    if code:
        _dispatch(room_manager.start_game, code, _get_sid())


def handle_place_bet(data):
    code = _require_room(data)
    if code:
        _dispatch(room_manager.place_bet, code, _get_sid(), (data or {}).get('amount'))


def handle_hit(data):
    code = _require_room(data)
    if code:
        _dispatch(room_manager.hit, code, _get_sid(), (data or {}).get('handId'))


def handle_stand(data):
    code = _require_room(data)
    if code:
        _dispatch(room_manager.stand, code, _get_sid(), (data or {}).get('handId'))


def handle_double_down(data):
    code = _require_room(data)
    if code:
        _dispatch(room_manager.double_down, code, _get_sid(), (data or {}).get('handId'))


def handle_split(data):
    code = _require_room(data)
    if code:
        _dispatch(room_manager.split, code, _get_sid(), (data or {}).get('handId'))


def handle_surrender(data):
    code = _require_room(data)
    if code:
        _dispatch(room_manager.surrender, code, _get_sid(), (data or {}).get('handId'))


def handle_new_round(data):
    code = _require_room(data)
    if code:
        _dispatch(room_manager.start_new_round, code, _get_sid())


def handle_kick_player(data):
    code = _require_room(data)
    if code:
        _dispatch(room_manager.kick_player, code, _get_sid(), (data or {}).get('playerId'))


def handle_vote_reset(data):
    code = _require_room(data)
    if code:
        _dispatch(room_manager.vote_continue, code, _get_sid(), (data or {}).get('vote', 'continue'))


def handle_restart_game(data):
    code = _require_room(data)
    if code:
        _dispatch(room_manager.restart_game, code, _get_sid())


def handle_send_message(data):
    code = _require_room(data)
    if code:
        _dispatch(room_manager.send_message, code, _get_sid(), (data or {}).get('message'))


def handle_set_auto_advance(data):
    code = _require_room(data)
    if code:
        _dispatch(room_manager.set_auto_advance, code, _get_sid(), bool((data or {}).get('enabled')))


_HANDLERS = {
    'connect': handle_connect,
    'disconnect': handle_disconnect,
    'ping': handle_ping,
    'create_room': handle_create_room,
    'join_room': handle_join_room,
    'leave_room': handle_leave_room,
    'start_game': handle_start_game,
    'place_bet': handle_place_bet,
    'hit': handle_hit,
    'stand': handle_stand,
    'double_down': handle_double_down,
    'split': handle_split,
    'surrender': handle_surrender,
    'new_round': handle_new_round,
    'kick_player': handle_kick_player,
    'vote_reset': handle_vote_reset,
    'restart_game': handle_restart_game,
    'send_message': handle_send_message,
    'set_auto_advance': handle_set_auto_advance,
}


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    for event, handler in _HANDLERS.items():
        socketio.on_event(event, handler, namespace='/ws')

    if testing:
        # Test-only mirror on default namespace
        for event, handler in _HANDLERS.items():
            socketio.on_event(event, handler, namespace='/')
