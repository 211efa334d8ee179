import itertools
import logging
import threading
from typing import Callable, Dict, List, Set, Tuple

logger = logging.getLogger(__name__)


class TimerScheduler:
    """Deferred callbacks on Socket.IO background tasks, owned per room.

    - Each callback gets a token filed under its room code
    - ``cancel_room`` drops a room's tokens; a cancelled callback wakes up and returns
    - Callbacks still re-check room state themselves, this only stops the obvious cases
    """

    def __init__(self, socketio):
        self.socketio = socketio
        self._pending: Dict[str, Set[int]] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def schedule(self, room_code: str, delay_ms: int, fn: Callable, *args, label: str = 'timer') -> int:
        token = next(self._ids)
        with self._lock:
            self._pending.setdefault(room_code, set()).add(token)
        logger.info(f"[timer-set] room={room_code} task={label} delay={delay_ms}ms")
        self.socketio.start_background_task(self._worker, room_code, token, delay_ms, fn, args, label)
        return token

    def cancel_room(self, room_code: str) -> None:
        with self._lock:
            dropped = self._pending.pop(room_code, None)
        if dropped:
            logger.info(f"[timer-cancel] room={room_code} tasks={len(dropped)}")

    def pending(self, room_code: str) -> int:
        with self._lock:
            return len(self._pending.get(room_code, ()))

    def _claim(self, room_code: str, token: int) -> bool:
        with self._lock:
            tokens = self._pending.get(room_code)
            if not tokens or token not in tokens:
                return False
            tokens.discard(token)
            if not tokens:
                self._pending.pop(room_code, None)
            return True

    def _worker(self, room_code, token, delay_ms, fn, args, label):
        self.socketio.sleep(max(0, delay_ms) / 1000.0)
        if not self._claim(room_code, token):
            logger.info(f"[timer-abort] room={room_code} task={label} cancelled")
            return
        logger.info(f"[timer-fire] room={room_code} task={label}")
        try:
            fn(*args)
        except Exception:
            logger.exception(f"[timer-error] room={room_code} task={label}")


class ManualScheduler:
    """Scheduler driven by the caller, for tests.

    Nothing fires until ``advance`` or ``run_pending`` is called. Callbacks due
    at the same time run in the order they were scheduled.
    """

    def __init__(self):
        self.now = 0
        self._seq = itertools.count()
        self._queue: List[Tuple[int, int, str, Callable, tuple, str]] = []

    def schedule(self, room_code: str, delay_ms: int, fn: Callable, *args, label: str = 'timer') -> int:
        seq = next(self._seq)
        self._queue.append((self.now + max(0, delay_ms), seq, room_code, fn, args, label))
        return seq

    def cancel_room(self, room_code: str) -> None:
        self._queue = [item for item in self._queue if item[2] != room_code]

    def pending(self, room_code: str = None) -> int:
        if room_code is None:
            return len(self._queue)
        return sum(1 for item in self._queue if item[2] == room_code)

    def advance(self, ms: int) -> None:
        """Move the clock forward by ``ms``, firing everything that comes due."""
        until = self.now + ms
        while True:
            due = [item for item in self._queue if item[0] <= until]
            if not due:
                break
            item = min(due, key=lambda it: (it[0], it[1]))
            self._queue.remove(item)
            self.now = item[0]
            item[3](*item[4])
        self.now = until

    def run_pending(self) -> None:
        """Fire callbacks until the queue is empty, including ones they schedule."""
        while self._queue:
            item = min(self._queue, key=lambda it: (it[0], it[1]))
            self.advance(item[0] - self.now)
