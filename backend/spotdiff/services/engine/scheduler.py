"""Cancellable one-shot callbacks.

Engines never touch threads or clocks directly; they ask a scheduler for a
single delayed call and keep the returned handle so they can cancel it.
``ManualScheduler`` runs on a virtual clock (tests, replays) and
``SocketIOScheduler`` runs callbacks from Socket.IO background tasks.
"""

import heapq
import itertools
import time
from contextlib import nullcontext
from typing import Any, Callable, List, Optional, Tuple


class ScheduledCall:
    """Handle for a pending callback."""

    def __init__(self, callback: Callable[[], Any], due: float):
        self.callback = callback
        self.due = due
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def active(self) -> bool:
        return not (self.cancelled or self.fired)


class ManualScheduler:
    """Virtual-clock scheduler; time only moves when ``advance`` is called."""

    def __init__(self, start: float = 0.0):
        self._now = start
        self._queue: List[Tuple[float, int, ScheduledCall]] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], Any]) -> ScheduledCall:
        handle = ScheduledCall(callback, self._now + max(0.0, delay))
        heapq.heappush(self._queue, (handle.due, next(self._seq), handle))
        return handle

    def advance(self, seconds: float) -> int:
        """Move the clock forward, firing every call that comes due. Returns the count fired."""
        target = self._now + seconds
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now = due
            handle.fired = True
            handle.callback()
            fired += 1
        self._now = target
        return fired

    def pending(self) -> int:
        return sum(1 for _, _, h in self._queue if h.active)


class SocketIOScheduler:
    """Runs each call in a Socket.IO background task inside an app context.

    ``lock`` is held while the callback runs so a timer never interleaves
    with a request touching the same session.
    """

    def __init__(self, app, socketio, lock=None):
        self._app = app
        self._socketio = socketio
        self._lock = lock

    def now(self) -> float:
        return time.monotonic()

    def call_later(self, delay: float, callback: Callable[[], Any]) -> ScheduledCall:
        handle = ScheduledCall(callback, self.now() + max(0.0, delay))

        def _runner():
            self._socketio.sleep(max(0.0, delay))
            with (self._lock if self._lock is not None else nullcontext()):
                if handle.cancelled:
                    return
                handle.fired = True
                with self._app.app_context():
                    try:
                        callback()
                    except Exception:
                        self._app.logger.exception("[scheduler-error] scheduled callback failed")

        self._socketio.start_background_task(_runner)
        return handle


class FrameCoalescer:
    """Applies at most one submitted event per frame.

    Each ``submit`` replaces the pending event; when the frame fires only the
    latest one is applied and the superseded ones are dropped.
    """

    def __init__(self, scheduler, apply: Callable[[Any], None], frame_interval: float = 0.016):
        self._scheduler = scheduler
        self._apply = apply
        self._interval = frame_interval
        self._latest: Any = None
        self._frame: Optional[ScheduledCall] = None
        self.applied = 0

    @property
    def pending(self) -> bool:
        return self._frame is not None

    def submit(self, event: Any) -> None:
        self._latest = event
        if self._frame is None:
            self._frame = self._scheduler.call_later(self._interval, self._fire)

    def cancel(self) -> None:
        if self._frame is not None:
            self._frame.cancel()
            self._frame = None
        self._latest = None

    def _fire(self) -> None:
        event, self._latest, self._frame = self._latest, None, None
        if event is None:
            return
        self.applied += 1
        self._apply(event)
