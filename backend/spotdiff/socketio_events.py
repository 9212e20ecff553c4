from flask_socketio import join_room, leave_room, emit
from flask import current_app, request
from spotdiff import socketio
from spotdiff.services.sessions import SessionNotFound, close_session, get_session
from typing import Dict, Any
import time


def handle_connect(auth=None):
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(*args):
    # A dropped owner releases any drag in progress; if no other owner
    # comes back within the grace period the session is closed
    ctx = _sid_to_ctx.pop(_get_sid(), None)
    if not ctx:
        return
    code = ctx.get('code')
    if ctx.get('is_session_owner') and code:
        _owner_count[code] = max(0, _owner_count.get(code, 0) - 1)
        _release_drag(code)
        # In tests, end immediately for determinism; in prod, allow grace period
        if current_app.config.get('TESTING'):
            if _owner_count.get(code, 0) == 0:
                _end_session(code)
            return
        _schedule_end_if_no_owner(code)


def handle_join_session(data):
    code = (data or {}).get('code')
    is_session_owner = bool((data or {}).get('is_session_owner'))
    if not code:
        emit('error', {'message': 'code is required'})
        return
    code = code.upper()
    room = f"session:{code}"
    join_room(room)
    _sid_to_ctx[_get_sid()] = {'code': code, 'is_session_owner': is_session_owner}
    if is_session_owner:
        _owner_count[code] = _owner_count.get(code, 0) + 1
        _cancel_scheduled_end(code)
    emit('joined', {'room': room})
    try:
        session = get_session(code)
    except SessionNotFound:
        return
    with session.lock:
        emit('state_update', session.snapshot())


def handle_leave_session(data):
    code = (data or {}).get('code')
    if not code:
        emit('error', {'message': 'code is required'})
        return
    code = code.upper()
    room = f"session:{code}"
    leave_room(room)
    emit('left', {'room': room})
    ctx = _sid_to_ctx.get(_get_sid())
    if ctx and ctx.get('is_session_owner') and ctx.get('code') == code:
        # Explicit quit: end immediately
        _end_session(code)


def _editor_for(data):
    code = (data or {}).get('code')
    if not code:
        emit('error', {'message': 'code is required'})
        return None
    try:
        return get_session(code, 'editor')
    except SessionNotFound as exc:
        emit('error', {'message': str(exc)})
        return None


def handle_pointer_move(data):
    session = _editor_for(data)
    if session is None:
        return
    try:
        client_x, client_y = float(data['clientX']), float(data['clientY'])
    except (KeyError, TypeError, ValueError):
        emit('error', {'message': 'pointer_move needs clientX and clientY'})
        return
    with session.lock:
        session.engine.update_drag(client_x, client_y)


def handle_pointer_up(data):
    session = _editor_for(data)
    if session is None:
        return
    with session.lock:
        session.engine.end_drag()


def handle_keydown(data):
    session = _editor_for(data)
    if session is None:
        return
    with session.lock:
        session.engine.handle_key(str(data.get('key') or ''), bool(data.get('shiftKey')))


def handle_ping(data=None):
    emit('pong', data or {})

# ---- Session owner lifecycle helpers ----

_sid_to_ctx: Dict[str, Dict[str, Any]] = {}
_owner_count: Dict[str, int] = {}
_end_deadline: Dict[str, float] = {}

def _get_sid() -> str:
    # request.sid exists in Socket.IO context
    return request.sid  # type: ignore

def _release_drag(code: str) -> None:
    try:
        session = get_session(code, 'editor')
    except SessionNotFound:
        return
    with session.lock:
        session.engine.end_drag()

def _end_session(code: str) -> None:
    """End the session: notify clients and tear down its engines."""
    # Use socketio.emit since this may be called from a background task
    socketio.emit('session_ended', {'code': code}, to=f"session:{code}", namespace='/ws')
    try:
        close_session(code)
    finally:
        _owner_count.pop(code, None)
        _end_deadline.pop(code, None)

def _schedule_end_if_no_owner(code: str, delay_sec: float = 2.0) -> None:
    if _owner_count.get(code, 0) > 0:
        return
    _end_deadline[code] = time.time() + delay_sec
    app = current_app._get_current_object()

    def _runner(session_code: str, deadline: float):
        sleep_for = max(0.0, deadline - time.time())
        if sleep_for:
            socketio.sleep(sleep_for)
        if _owner_count.get(session_code, 0) == 0 and _end_deadline.get(session_code) == deadline:
            with app.app_context():
                _end_session(session_code)

    socketio.start_background_task(_runner, code, _end_deadline[code])

def _cancel_scheduled_end(code: str) -> None:
    _end_deadline.pop(code, None)


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    handlers = {
        'connect': handle_connect,
        'disconnect': handle_disconnect,
        'join_session': handle_join_session,
        'leave_session': handle_leave_session,
        'pointer_move': handle_pointer_move,
        'pointer_up': handle_pointer_up,
        'keydown': handle_keydown,
        'ping': handle_ping,
    }
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        for event, handler in handlers.items():
            socketio.on_event(event, handler, namespace=namespace)
