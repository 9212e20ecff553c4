from flask import Blueprint, jsonify, request
from spotdiff.api import error, read_float, read_rect
from spotdiff.models import Level
from spotdiff.services.engine.geometry import pointer_to_percent
from spotdiff.services.sessions import SessionNotFound, close_session, get_session, open_session

play = Blueprint('play', __name__)


@play.errorhandler(SessionNotFound)
def handle_missing_session(exc):
    return error(str(exc), 404)


@play.route('/create', methods=['POST'])
def create_play_session():
    """
    Opens a play session for a level. The round does not start until /start.
    """
    data = request.get_json(silent=True) or {}
    level_id = data.get('level_id')
    if not level_id:
        return error('level_id is required')
    level = Level.query.filter_by(slug=level_id).first_or_404()
    session = open_session('play', level)
    with session.lock:
        return jsonify(session.snapshot()), 201


@play.route('/<string:code>/state', methods=['GET'])
def get_play_state(code):
    session = get_session(code, 'play')
    with session.lock:
        return jsonify(session.snapshot())


@play.route('/<string:code>/start', methods=['POST'])
def start_round(code):
    session = get_session(code, 'play')
    with session.lock:
        if not session.start():
            return error('This level has no differences to find')
        return jsonify(session.snapshot())


@play.route('/<string:code>/click', methods=['POST'])
def click(code):
    """
    Registers a click. Accepts percent coordinates {x, y} or a pointer
    position {clientX, clientY} plus the container rect.
    """
    data = request.get_json(silent=True) or {}
    x, y = read_float(data, 'x'), read_float(data, 'y')
    if x is None or y is None:
        rect = read_rect(data)
        client_x, client_y = read_float(data, 'clientX'), read_float(data, 'clientY')
        if rect is None or client_x is None or client_y is None:
            return error('Click needs x/y percentages or clientX/clientY with a container rect')
        x, y = pointer_to_percent(client_x, client_y, rect)
    context = {'imageType': data.get('imageType')} if data.get('imageType') else {}

    session = get_session(code, 'play')
    with session.lock:
        result = session.click(x, y, context)
        if result is None:
            return error('Round is not in progress', 409)
        payload = session.snapshot()
        payload['result'] = result.to_dict()
        return jsonify(payload)


@play.route('/<string:code>/pause', methods=['POST'])
def pause_round(code):
    session = get_session(code, 'play')
    with session.lock:
        session.timer.pause()
        return jsonify(session.snapshot())


@play.route('/<string:code>/reset', methods=['POST'])
def reset_round(code):
    session = get_session(code, 'play')
    with session.lock:
        session.reset()
        return jsonify(session.snapshot())


@play.route('/<string:code>/close', methods=['POST'])
def close_play_session(code):
    get_session(code, 'play')
    close_session(code)
    return jsonify({'message': 'Session closed'})
