import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///spotdiff.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Editor checkpoints are only read/written in development builds
    DEV_MODE = os.environ.get('DEV_MODE', '1') == '1'
    # Round defaults; level files may override each of these
    DEFAULT_TIME_LIMIT_SEC = int(os.environ.get('DEFAULT_TIME_LIMIT_SEC', '120'))
    POINTS_PER_HIT = int(os.environ.get('POINTS_PER_HIT', '200'))
    PENALTY_PER_MISS = int(os.environ.get('PENALTY_PER_MISS', '50'))
    BONUS_PER_SECOND = int(os.environ.get('BONUS_PER_SECOND', '10'))
    # Editor tuning (percent units)
    NUDGE_STEP_NORMAL = float(os.environ.get('NUDGE_STEP_NORMAL', '0.8'))
    NUDGE_STEP_FINE = float(os.environ.get('NUDGE_STEP_FINE', '0.2'))
    DEFAULT_CIRCLE_RADIUS = 8
    DEFAULT_RECT_WIDTH = 12
    DEFAULT_RECT_HEIGHT = 12
    DEFAULT_TOLERANCE = 2
    # Debounce window for editor checkpoints (ms)
    SAVE_DEBOUNCE_MS = int(os.environ.get('SAVE_DEBOUNCE_MS', '200'))
    # Drag updates are applied at most once per frame (ms)
    DRAG_FRAME_MS = int(os.environ.get('DRAG_FRAME_MS', '16'))
    # Write pending edits when an editor session closes inside the debounce window
    EDITOR_FLUSH_ON_TEARDOWN = os.environ.get('EDITOR_FLUSH_ON_TEARDOWN', '0') == '1'
    DIFFERENCES_STORAGE_PREFIX = 'differences'
    # Optional: heartbeat interval for countdown logs (sec). 0 disables.
    TIMER_HEARTBEAT_SEC = int(os.environ.get('TIMER_HEARTBEAT_SEC', '0'))
    # 'database' keeps checkpoints in the stored_value table; 'memory' keeps them in-process
    STORAGE_BACKEND = os.environ.get('STORAGE_BACKEND', 'database')
    # 'socketio' runs timers as background tasks; 'manual' uses a virtual clock
    SCHEDULER_MODE = os.environ.get('SCHEDULER_MODE', 'socketio')
