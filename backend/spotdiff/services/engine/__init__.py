"""Spot-the-difference engine: hit testing, scoring, countdown and editing.

Nothing in this package imports Flask; the web layer wires these pieces to
requests, sockets and the database.
"""

from .countdown import CountdownTimer
from .editor import EditorEngine, EditorSettings
from .geometry import within_shape
from .persistence import MemoryStore, PersistenceAdapter
from .scheduler import FrameCoalescer, ManualScheduler, SocketIOScheduler
from .scoring import ScoreTracker, ScoringRules

__all__ = [
    'CountdownTimer',
    'EditorEngine',
    'EditorSettings',
    'FrameCoalescer',
    'ManualScheduler',
    'MemoryStore',
    'PersistenceAdapter',
    'ScoreTracker',
    'ScoringRules',
    'SocketIOScheduler',
    'within_shape',
]
