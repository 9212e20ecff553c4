import logging
from typing import Callable, Optional

from .scheduler import ScheduledCall

logger = logging.getLogger(__name__)

IDLE = 'idle'
RUNNING = 'running'
PAUSED = 'paused'
EXPIRED = 'expired'

TICK_SECONDS = 1.0


class CountdownTimer:
    """Whole-second countdown driven by one-shot ticks.

    Each tick re-arms exactly one follow-up tick, so there is never more than
    one pending call per timer. ``on_timeout`` fires once when ``time_left``
    reaches zero; ``on_tick`` fires after each decrement that leaves time
    on the clock.
    """

    def __init__(
        self,
        scheduler,
        duration: int = 0,
        on_timeout: Optional[Callable[[], None]] = None,
        on_tick: Optional[Callable[[int], None]] = None,
        heartbeat_sec: int = 0,
    ):
        self._scheduler = scheduler
        self.duration = max(0, int(duration))
        self.time_left = self.duration
        self.state = IDLE
        self._on_timeout = on_timeout
        self._on_tick = on_tick
        self._heartbeat = heartbeat_sec
        self._pending: Optional[ScheduledCall] = None

    @property
    def is_running(self) -> bool:
        return self.state == RUNNING

    def _clear(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _arm(self) -> None:
        self._pending = self._scheduler.call_later(TICK_SECONDS, self._tick)

    def _set_duration(self, duration: Optional[int]) -> None:
        if duration is not None:
            self.duration = max(0, int(duration))
        self.time_left = self.duration

    def start(self, duration: Optional[int] = None) -> None:
        self._clear()
        self._set_duration(duration)
        self.state = RUNNING
        logger.info(f"[timer-start] duration={self.duration}s")
        if self.time_left <= 0:
            self._expire()
            return
        self._arm()

    def pause(self) -> None:
        self._clear()
        if self.state == RUNNING:
            self.state = PAUSED
            logger.info(f"[timer-pause] remaining={self.time_left}s")

    def reset(self, duration: Optional[int] = None) -> None:
        self._clear()
        self._set_duration(duration)
        self.state = IDLE

    def _tick(self) -> None:
        self._pending = None
        if self.state != RUNNING:
            return
        self.time_left = max(0, self.time_left - 1)
        if self._heartbeat and self.time_left % self._heartbeat == 0:
            logger.info(f"[timer-heartbeat] remaining={self.time_left}s")
        if self.time_left <= 0:
            self._expire()
            return
        self._arm()
        if self._on_tick is not None:
            self._on_tick(self.time_left)

    def _expire(self) -> None:
        self._clear()
        self.time_left = 0
        self.state = EXPIRED
        logger.info("[timer-expire] countdown reached zero")
        if self._on_timeout is not None:
            self._on_timeout()

    def snapshot(self) -> dict:
        return {
            'duration': self.duration,
            'timeLeft': self.time_left,
            'isRunning': self.is_running,
            'state': self.state,
        }


def format_time(seconds: float) -> str:
    """Render seconds as ``M:SS``."""
    normalized = max(0, int(seconds // 1))
    return f"{normalized // 60}:{normalized % 60:02d}"
