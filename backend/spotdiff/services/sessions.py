"""Live play and editor sessions.

Each session owns its engines, a scheduler and an RLock. Requests, socket
handlers and timer callbacks all hold the lock while touching the engines,
so every operation runs to completion before the next one starts.
"""

import random
import string
import threading
from typing import Any, Dict, Optional, Tuple

from flask import current_app

from spotdiff import socketio
from spotdiff.models import Level
from spotdiff.services.engine import (
    CountdownTimer,
    EditorEngine,
    EditorSettings,
    ManualScheduler,
    ScoreTracker,
    SocketIOScheduler,
)
from spotdiff.services.engine.countdown import format_time
from spotdiff.services.engine.geometry import Difference, parse_differences
from spotdiff.services.levels import level_differences, level_rules, level_time_limit, storage_key_for


class SessionNotFound(LookupError):
    pass


_sessions: Dict[str, Any] = {}
_registry_lock = threading.Lock()


def _room(code: str) -> str:
    return f"session:{code}"


def _broadcast(code: str, event: str, payload: Dict[str, Any]) -> None:
    socketio.emit(event, payload, to=_room(code), namespace='/ws')


def generate_session_code(length=6):
    """Generate a unique, short session code."""
    while True:
        code = ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))
        if code not in _sessions:
            return code


def _make_scheduler(lock):
    app = current_app._get_current_object()
    if app.config.get('SCHEDULER_MODE') == 'manual':
        # One shared virtual clock; tests advance it explicitly
        return app.extensions.setdefault('spotdiff.clock', ManualScheduler())
    return SocketIOScheduler(app, socketio, lock=lock)


def _persistence():
    return current_app.extensions['spotdiff.persistence']


def resolve_differences(level: Level) -> Tuple[Difference, ...]:
    """Level differences, or the editor checkpoint when running in dev mode."""
    if current_app.config.get('DEV_MODE'):
        stored = _persistence().load(storage_key_for(level))
        if isinstance(stored, list):
            try:
                return parse_differences(stored)
            except (AttributeError, KeyError, TypeError, ValueError) as exc:
                current_app.logger.warning(f"[checkpoint-invalid] level={level.slug} error={exc}")
    return level_differences(level)


class PlaySession:
    kind = 'play'

    def __init__(self, code: str, level: Level):
        self.code = code
        self.level_slug = level.slug
        self.lock = threading.RLock()
        self.time_limit = level_time_limit(level)
        self.tracker = ScoreTracker(resolve_differences(level), level_rules(level))
        self.timer = CountdownTimer(
            _make_scheduler(self.lock),
            self.time_limit,
            on_timeout=self._on_timeout,
            on_tick=self._on_tick,
            heartbeat_sec=int(current_app.config.get('TIMER_HEARTBEAT_SEC', 0)),
        )
        self.started = False
        self.victory = False
        self.timed_out = False
        self.bonus = 0

    def start(self) -> bool:
        if self.tracker.total == 0:
            return False
        self.tracker.reset()
        self.started = True
        self.victory = False
        self.timed_out = False
        self.bonus = 0
        self.timer.start(self.time_limit)
        _broadcast(self.code, 'state_update', self.snapshot())
        return True

    def click(self, x: float, y: float, context: Optional[Dict[str, Any]] = None):
        if not self.started or self.victory:
            return None
        result = self.tracker.register_click(x, y, context)
        if self.tracker.is_complete:
            self._win()
        _broadcast(self.code, 'state_update', self.snapshot())
        return result

    def _win(self) -> None:
        self.bonus = self.tracker.apply_bonus(self.timer.time_left)
        self.victory = True
        self.started = False
        self.timer.pause()
        current_app.logger.info(f"[victory] session={self.code} score={self.tracker.score} bonus={self.bonus}")
        _broadcast(self.code, 'victory', self.snapshot())

    def _on_tick(self, time_left: int) -> None:
        _broadcast(self.code, 'timer_tick', {'timeLeft': time_left, 'formattedTime': format_time(time_left)})

    def _on_timeout(self) -> None:
        self.timed_out = True
        self.started = False
        current_app.logger.info(f"[timeout] session={self.code} found={len(self.tracker.found)}/{self.tracker.total}")
        _broadcast(self.code, 'timeout', self.snapshot())

    def reset(self) -> None:
        self.tracker.reset()
        self.started = False
        self.victory = False
        self.timed_out = False
        self.bonus = 0
        self.timer.reset(self.time_limit)
        _broadcast(self.code, 'state_update', self.snapshot())

    def close(self) -> None:
        self.timer.reset()

    def snapshot(self) -> Dict[str, Any]:
        payload = {
            'code': self.code,
            'kind': self.kind,
            'levelId': self.level_slug,
            'started': self.started,
            'victory': self.victory,
            'timedOut': self.timed_out,
            'bonus': self.bonus,
            'rules': self.tracker.rules.to_dict(),
            'timer': self.timer.snapshot(),
            'formattedTime': format_time(self.timer.time_left),
        }
        payload.update(self.tracker.snapshot())
        return payload


class EditorSession:
    kind = 'editor'

    def __init__(self, code: str, level: Level):
        self.code = code
        self.level_slug = level.slug
        self.lock = threading.RLock()
        cfg = current_app.config
        self.engine = EditorEngine(
            resolve_differences(level),
            _make_scheduler(self.lock),
            persistence=_persistence(),
            storage_key=storage_key_for(level),
            persist_enabled=bool(cfg.get('DEV_MODE')),
            settings=EditorSettings.from_config(cfg),
            on_change=self._on_change,
        )

    def _on_change(self, engine: EditorEngine) -> None:
        _broadcast(self.code, 'state_update', self.snapshot())

    def close(self) -> None:
        self.engine.teardown()

    def snapshot(self) -> Dict[str, Any]:
        payload = {'code': self.code, 'kind': self.kind, 'levelId': self.level_slug}
        payload.update(self.engine.snapshot())
        return payload


def open_session(kind: str, level: Level):
    cls = PlaySession if kind == PlaySession.kind else EditorSession
    with _registry_lock:
        code = generate_session_code()
        session = cls(code, level)
        _sessions[code] = session
    current_app.logger.info(f"[session-open] kind={kind} code={code} level={level.slug}")
    return session


def get_session(code: str, kind: Optional[str] = None):
    session = _sessions.get((code or '').upper())
    if session is None or (kind is not None and session.kind != kind):
        raise SessionNotFound(f"No {kind or 'game'} session {code}")
    return session


def close_session(code: str) -> bool:
    with _registry_lock:
        session = _sessions.pop((code or '').upper(), None)
    if session is None:
        return False
    with session.lock:
        session.close()
    current_app.logger.info(f"[session-close] kind={session.kind} code={session.code}")
    return True


def close_all_sessions() -> None:
    for code in list(_sessions):
        close_session(code)


def reload_editor_sessions(level: Level) -> int:
    """Point open editors for ``level`` at its freshly imported differences."""
    editors = [s for s in list(_sessions.values()) if s.kind == EditorSession.kind and s.level_slug == level.slug]
    for session in editors:
        with session.lock:
            session.engine.load(level_differences(level), storage_key_for(level))
    return len(editors)
