from flask import Blueprint, jsonify, current_app

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the Spot the Difference game server!'})

@main.route('/api/config')
def client_config():
    cfg = current_app.config
    return jsonify({
        'devMode': bool(cfg.get('DEV_MODE')),
        'defaultTimeLimit': cfg.get('DEFAULT_TIME_LIMIT_SEC'),
        'nudgeStep': {'normal': cfg.get('NUDGE_STEP_NORMAL'), 'fine': cfg.get('NUDGE_STEP_FINE')},
        'saveDebounceMs': cfg.get('SAVE_DEBOUNCE_MS'),
    })
