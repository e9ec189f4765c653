from flask import Blueprint, jsonify, current_app
from blackjack import room_manager
from blackjack.services.table.errors import RoomNotFound


rooms = Blueprint('rooms', __name__)


@rooms.route('/rooms/<string:code>', methods=['GET'])
def get_room_state(code):
    """Public snapshot of a table. The dealer's hole card stays hidden while hands are in play."""
    try:
        snapshot = room_manager.snapshot(code)
    except RoomNotFound:
        return jsonify({'error': 'Room not found'}), 404
    return jsonify(snapshot)


@rooms.route('/leaderboard', methods=['GET'])
def get_leaderboard():
    size = int(current_app.config.get('LEADERBOARD_SIZE', 10))
    return jsonify({'leaderboard': room_manager.ledger.top(size)})
