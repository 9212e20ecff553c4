import os
import sys
import pytest

# Ensure the backend root (containing the `spotdiff` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from spotdiff import create_app, db, socketio
from spotdiff.services.engine import ManualScheduler


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    DEV_MODE = True
    DEFAULT_TIME_LIMIT_SEC = 120
    POINTS_PER_HIT = 200
    PENALTY_PER_MISS = 50
    BONUS_PER_SECOND = 10
    SAVE_DEBOUNCE_MS = 200
    DRAG_FRAME_MS = 16
    EDITOR_FLUSH_ON_TEARDOWN = False
    DIFFERENCES_STORAGE_PREFIX = 'differences'
    STORAGE_BACKEND = 'database'
    SCHEDULER_MODE = 'manual'


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import spotdiff.models  # noqa: F401
        db.create_all()
        yield application
        from spotdiff.services.sessions import close_all_sessions
        close_all_sessions()
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def clock(flask_app):
    return flask_app.extensions.setdefault('spotdiff.clock', ManualScheduler())


@pytest.fixture()
def level(flask_app):
    from spotdiff.services.levels import SAMPLE_LEVEL, import_level
    return import_level(SAMPLE_LEVEL)


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass
