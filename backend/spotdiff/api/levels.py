from flask import Blueprint, jsonify, request
from spotdiff.api import error
from spotdiff.models import Level
from spotdiff.services.levels import (
    LevelPayloadError,
    export_level,
    import_level,
    list_levels,
    next_level_slug,
)
from spotdiff.services.sessions import SessionNotFound, get_session, reload_editor_sessions

levels = Blueprint('levels', __name__)


@levels.errorhandler(LevelPayloadError)
def handle_payload_error(exc):
    return error(str(exc), 400)


@levels.route('', methods=['GET'])
def level_index():
    return jsonify({'levels': [lvl.to_meta() for lvl in list_levels()]})


@levels.route('/<string:slug>', methods=['GET'])
def get_level_data(slug):
    level = Level.query.filter_by(slug=slug).first_or_404()
    return jsonify(level.to_dict())


@levels.route('/import', methods=['POST'])
def import_new_level():
    """
    Imports a level file. The payload's "id" picks the level to create or overwrite.
    """
    payload = request.get_json(silent=True)
    level = import_level(payload)
    reload_editor_sessions(level)
    return jsonify(level.to_dict()), 201


@levels.route('/<string:slug>/import', methods=['POST'])
def import_into_level(slug):
    """
    Overwrites an existing level with an imported payload.
    """
    Level.query.filter_by(slug=slug).first_or_404()
    payload = request.get_json(silent=True)
    level = import_level(payload, slug=slug)
    reload_editor_sessions(level)
    return jsonify(level.to_dict())


@levels.route('/<string:slug>/export', methods=['GET'])
def export_level_data(slug):
    """
    Exports a level. With ?session=CODE the editor session's differences are used.
    """
    level = Level.query.filter_by(slug=slug).first_or_404()
    code = request.args.get('session')
    if not code:
        return jsonify(export_level(level))
    try:
        session = get_session(code, 'editor')
    except SessionNotFound as exc:
        return error(str(exc), 404)
    with session.lock:
        differences = session.engine.differences
    return jsonify(export_level(level, differences))


@levels.route('/<string:slug>/next', methods=['GET'])
def get_next_level(slug):
    Level.query.filter_by(slug=slug).first_or_404()
    return jsonify({'id': next_level_slug(slug)})
