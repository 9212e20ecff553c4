from flask import jsonify

from spotdiff.services.engine.geometry import ContainerRect


def error(message, status=400):
    return jsonify({'error': message}), status


def read_rect(data):
    """Container rect from a request body, or None when absent/invalid."""
    raw = data.get('rect')
    if not isinstance(raw, dict):
        return None
    try:
        rect = ContainerRect.from_dict(raw)
    except (KeyError, TypeError, ValueError):
        return None
    if rect.width <= 0 or rect.height <= 0:
        return None
    return rect


def read_float(data, key):
    try:
        return float(data[key])
    except (KeyError, TypeError, ValueError):
        return None
