from flask import Blueprint, jsonify, request
from spotdiff.api import error, read_float, read_rect
from spotdiff.models import Level
from spotdiff.services.sessions import SessionNotFound, close_session, get_session, open_session

editor = Blueprint('editor', __name__)


@editor.errorhandler(SessionNotFound)
def handle_missing_session(exc):
    return error(str(exc), 404)


def _read_id(data):
    try:
        return int(data['id'])
    except (KeyError, TypeError, ValueError):
        return None


@editor.route('/create', methods=['POST'])
def create_editor_session():
    """
    Opens an editor session. In dev mode the last checkpoint for the level
    replaces the level's own differences.
    """
    data = request.get_json(silent=True) or {}
    level_id = data.get('level_id')
    if not level_id:
        return error('level_id is required')
    level = Level.query.filter_by(slug=level_id).first_or_404()
    session = open_session('editor', level)
    with session.lock:
        return jsonify(session.snapshot()), 201


@editor.route('/<string:code>/state', methods=['GET'])
def get_editor_state(code):
    session = get_session(code, 'editor')
    with session.lock:
        return jsonify(session.snapshot())


@editor.route('/<string:code>/select', methods=['POST'])
def select(code):
    data = request.get_json(silent=True) or {}
    session = get_session(code, 'editor')
    with session.lock:
        session.engine.select_difference(_read_id(data))
        return jsonify(session.snapshot())


@editor.route('/<string:code>/add', methods=['POST'])
def add(code):
    """
    Adds a circle at {x, y} percent, or at {clientX, clientY} inside rect.
    """
    data = request.get_json(silent=True) or {}
    x, y = read_float(data, 'x'), read_float(data, 'y')
    rect = read_rect(data)
    client_x, client_y = read_float(data, 'clientX'), read_float(data, 'clientY')
    session = get_session(code, 'editor')
    with session.lock:
        if x is not None and y is not None:
            added = session.engine.add_difference(x, y)
        elif rect is not None and client_x is not None and client_y is not None:
            added = session.engine.add_difference_at_pointer(client_x, client_y, rect)
        else:
            return error('Add needs x/y percentages or clientX/clientY with a container rect')
        payload = session.snapshot()
        payload['added'] = added.id
        return jsonify(payload), 201


@editor.route('/<string:code>/remove', methods=['POST'])
def remove(code):
    data = request.get_json(silent=True) or {}
    session = get_session(code, 'editor')
    with session.lock:
        session.engine.remove_difference(_read_id(data))
        return jsonify(session.snapshot())


@editor.route('/<string:code>/adjust', methods=['POST'])
def adjust(code):
    data = request.get_json(silent=True) or {}
    field = data.get('field')
    delta = read_float(data, 'delta')
    if delta is None:
        return error('delta must be a number')
    diff_id = _read_id(data)
    session = get_session(code, 'editor')
    with session.lock:
        engine = session.engine
        if field == 'radius':
            engine.adjust_radius(diff_id, delta)
        elif field in ('width', 'height'):
            engine.adjust_dimension(diff_id, field, delta)
        elif field == 'tolerance':
            engine.adjust_tolerance(diff_id, delta)
        else:
            return error('field must be radius, width, height or tolerance')
        return jsonify(session.snapshot())


@editor.route('/<string:code>/field', methods=['POST'])
def set_field(code):
    """
    Sets a numeric field from raw form input. Non-numeric input leaves the difference unchanged.
    """
    data = request.get_json(silent=True) or {}
    session = get_session(code, 'editor')
    with session.lock:
        session.engine.set_field_absolute(_read_id(data), data.get('field'), data.get('value'))
        return jsonify(session.snapshot())


@editor.route('/<string:code>/shape', methods=['POST'])
def change_shape(code):
    data = request.get_json(silent=True) or {}
    session = get_session(code, 'editor')
    with session.lock:
        session.engine.change_shape_type(_read_id(data), data.get('type'))
        return jsonify(session.snapshot())


@editor.route('/<string:code>/nudge', methods=['POST'])
def nudge(code):
    """
    Moves a difference by {dx, dy}, or handles an arrow {key, shiftKey} for the selection.
    """
    data = request.get_json(silent=True) or {}
    session = get_session(code, 'editor')
    with session.lock:
        if data.get('key'):
            session.engine.handle_key(data['key'], bool(data.get('shiftKey')))
        else:
            dx, dy = read_float(data, 'dx'), read_float(data, 'dy')
            if dx is None or dy is None:
                return error('Nudge needs dx/dy or an arrow key')
            session.engine.nudge(_read_id(data), dx, dy)
        return jsonify(session.snapshot())


@editor.route('/<string:code>/pointer-down', methods=['POST'])
def pointer_down(code):
    data = request.get_json(silent=True) or {}
    rect = read_rect(data)
    client_x, client_y = read_float(data, 'clientX'), read_float(data, 'clientY')
    if rect is None or client_x is None or client_y is None:
        return error('pointer-down needs clientX, clientY and a container rect')
    session = get_session(code, 'editor')
    with session.lock:
        session.engine.begin_drag(_read_id(data), client_x, client_y, rect)
        return jsonify(session.snapshot())


@editor.route('/<string:code>/pointer-move', methods=['POST'])
def pointer_move(code):
    data = request.get_json(silent=True) or {}
    client_x, client_y = read_float(data, 'clientX'), read_float(data, 'clientY')
    if client_x is None or client_y is None:
        return error('pointer-move needs clientX and clientY')
    session = get_session(code, 'editor')
    with session.lock:
        session.engine.update_drag(client_x, client_y)
        return jsonify(session.snapshot())


@editor.route('/<string:code>/pointer-up', methods=['POST'])
def pointer_up(code):
    session = get_session(code, 'editor')
    with session.lock:
        session.engine.end_drag()
        return jsonify(session.snapshot())


@editor.route('/<string:code>/save', methods=['POST'])
def save_now(code):
    session = get_session(code, 'editor')
    with session.lock:
        written = session.engine.flush()
        payload = session.snapshot()
        payload['written'] = written
        return jsonify(payload)


@editor.route('/<string:code>/close', methods=['POST'])
def close_editor_session(code):
    get_session(code, 'editor')
    close_session(code)
    return jsonify({'message': 'Session closed'})
