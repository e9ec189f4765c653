class SocketIOBroadcaster:
    """Delivers engine events over Socket.IO rooms.

    Every connection is implicitly in a room named after its sid, so
    ``to=<player id>`` reaches a single player and ``to=<room code>`` the
    whole table.
    """

    def __init__(self, socketio, namespace='/ws'):
        self._socketio = socketio
        self.namespace = namespace

    def emit(self, event, payload, to):
        self._socketio.emit(event, payload, to=to, namespace=self.namespace)

    def enter(self, sid, room):
        self._socketio.server.enter_room(sid, room, namespace=self.namespace)

    def leave(self, sid, room):
        self._socketio.server.leave_room(sid, room, namespace=self.namespace)
