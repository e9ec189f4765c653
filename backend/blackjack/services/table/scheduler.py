"""Delayed continuations for the room engine.

Dealing, the dealer's draws and the turn timer are all "run this later"
steps. Each call returns a handle whose ``cancel()`` guarantees the step will
not run; a cancelled step that wakes up simply returns.
"""
import heapq
import itertools


class TaskHandle:
    __slots__ = ('name', 'cancelled', 'done')

    def __init__(self, name=''):
        self.name = name
        self.cancelled = False
        self.done = False

    @property
    def active(self):
        return not (self.cancelled or self.done)

    def cancel(self):
        self.cancelled = True


class SocketIOScheduler:
    """Runs each step as a Socket.IO background task after a cooperative sleep.

    The sleep is taken in ``poll_interval`` slices so a cancelled step ends
    its task promptly instead of sleeping out the full delay.
    """

    def __init__(self, socketio, poll_interval=0.25):
        self._socketio = socketio
        self.poll_interval = poll_interval

    def call_later(self, delay, fn, *args, name=''):
        handle = TaskHandle(name)

        def _worker():
            remaining = delay
            while remaining > 0 and not handle.cancelled:
                step = min(self.poll_interval, remaining)
                self._socketio.sleep(step)
                remaining -= step
            if handle.cancelled:
                return
            handle.done = True
            fn(*args)

        self._socketio.start_background_task(_worker)
        return handle


class ManualScheduler:
    """Keeps steps on a virtual clock that only moves when told to.

    Used when the app runs with ``ROOM_SCHEDULER = 'manual'`` (the test
    configuration) so a whole round can be stepped deterministically.
    """

    def __init__(self):
        self.now = 0.0
        self._queue = []
        self._seq = itertools.count()

    def call_later(self, delay, fn, *args, name=''):
        handle = TaskHandle(name)
        heapq.heappush(self._queue, (self.now + max(0.0, delay), next(self._seq), handle, fn, args))
        return handle

    def pending(self):
        return [entry[2] for entry in sorted(self._queue) if entry[2].active]

    def advance(self, seconds=0.0):
        """Move the clock forward, running every step that falls due (including ones scheduled on the way)."""
        target = self.now + seconds
        ran = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, handle, fn, args = heapq.heappop(self._queue)
            self.now = max(self.now, due)
            if handle.cancelled:
                continue
            handle.done = True
            fn(*args)
            ran += 1
        self.now = target
        return ran

    def run_pending(self):
        """Run everything due right now."""
        return self.advance(0.0)
