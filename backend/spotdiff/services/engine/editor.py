"""Authoring state for a level's differences.

The collection is an immutable tuple; every edit builds a new tuple and swaps
it in, so readers holding the old snapshot never see a half-applied change.
Edits are checkpointed through a ``PersistenceAdapter`` after a quiet
debounce window.
"""

import logging
import math
import re
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from .geometry import (
    CIRCLE,
    RECT,
    CircleDifference,
    ContainerRect,
    Difference,
    RectDifference,
    clamp_percent,
    dump_differences,
    pointer_to_percent,
    round2,
)
from .scheduler import FrameCoalescer, ScheduledCall

logger = logging.getLogger(__name__)

ARROW_KEYS = {
    'ArrowUp': (0, -1),
    'ArrowDown': (0, 1),
    'ArrowLeft': (-1, 0),
    'ArrowRight': (1, 0),
}

_LEADING_NUMBER = re.compile(r'^\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?')


def parse_number(raw: Any) -> Optional[float]:
    """Lenient numeric parse of form input: '12.5', ' 7px' -> 7.0, 'abc' -> None."""
    if isinstance(raw, bool) or raw is None:
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
    else:
        match = _LEADING_NUMBER.match(str(raw))
        if not match:
            return None
        value = float(match.group(0))
    if math.isnan(value) or math.isinf(value):
        return None
    return value


@dataclass(frozen=True)
class EditorSettings:
    nudge_step_normal: float = 0.8
    nudge_step_fine: float = 0.2
    default_circle_radius: float = 8
    default_rect_width: float = 12
    default_rect_height: float = 12
    default_tolerance: float = 2
    min_radius: float = 1
    min_rect_dimension: float = 2
    min_tolerance: float = 0
    save_debounce: float = 0.2
    frame_interval: float = 0.016
    flush_on_teardown: bool = False

    @classmethod
    def from_config(cls, config) -> 'EditorSettings':
        return cls(
            nudge_step_normal=float(config.get('NUDGE_STEP_NORMAL', 0.8)),
            nudge_step_fine=float(config.get('NUDGE_STEP_FINE', 0.2)),
            default_circle_radius=float(config.get('DEFAULT_CIRCLE_RADIUS', 8)),
            default_rect_width=float(config.get('DEFAULT_RECT_WIDTH', 12)),
            default_rect_height=float(config.get('DEFAULT_RECT_HEIGHT', 12)),
            default_tolerance=float(config.get('DEFAULT_TOLERANCE', 2)),
            save_debounce=int(config.get('SAVE_DEBOUNCE_MS', 200)) / 1000.0,
            frame_interval=int(config.get('DRAG_FRAME_MS', 16)) / 1000.0,
            flush_on_teardown=bool(config.get('EDITOR_FLUSH_ON_TEARDOWN', False)),
        )


@dataclass(frozen=True)
class DragSession:
    id: int
    rect: ContainerRect
    start_pointer_x: float
    start_pointer_y: float
    start_x: float
    start_y: float


def _editable(diff: Difference) -> bool:
    # Polygons and unknown shapes are read-only here
    return isinstance(diff, (CircleDifference, RectDifference))


class EditorEngine:
    def __init__(
        self,
        differences: Iterable[Difference],
        scheduler,
        persistence=None,
        storage_key: Optional[str] = None,
        persist_enabled: bool = False,
        settings: Optional[EditorSettings] = None,
        on_change: Optional[Callable[['EditorEngine'], None]] = None,
    ):
        self.settings = settings or EditorSettings()
        self._scheduler = scheduler
        self._persistence = persistence
        self.storage_key = storage_key
        self.persist_enabled = persist_enabled
        self._on_change = on_change
        self._frames = FrameCoalescer(scheduler, self._apply_drag, self.settings.frame_interval)
        self._save_pending: Optional[ScheduledCall] = None
        self.differences: Tuple[Difference, ...] = ()
        self.selected_id: Optional[int] = None
        self.drag: Optional[DragSession] = None
        self._id_floor = 0
        self._load(differences)

    # -- collection plumbing -------------------------------------------------

    def _load(self, differences: Iterable[Difference]) -> None:
        self.differences = tuple(differences)
        self.selected_id = None
        self._cancel_drag()
        self._id_floor = max((d.id for d in self.differences), default=0)

    def load(self, differences: Iterable[Difference], storage_key: Optional[str] = None) -> None:
        """Replace the collection with a freshly loaded level.

        Restarts id allocation and drops any checkpoint still pending for the
        previous collection. ``storage_key`` re-targets later checkpoints.
        """
        if self._save_pending is not None:
            self._save_pending.cancel()
            self._save_pending = None
        if storage_key is not None:
            self.storage_key = storage_key
        self._load(differences)
        self._notify()

    def get(self, diff_id: int) -> Optional[Difference]:
        return next((d for d in self.differences if d.id == diff_id), None)

    def _commit(self, differences: Tuple[Difference, ...]) -> None:
        self.differences = differences
        self._schedule_save()
        self._notify()

    def _update(self, diff_id: int, change: Callable[[Difference], Difference]) -> bool:
        changed = False
        updated = []
        for diff in self.differences:
            if diff.id == diff_id and _editable(diff):
                new = change(diff)
                changed = changed or new != diff or new.extras != diff.extras
                updated.append(new)
            else:
                updated.append(diff)
        if changed:
            self._commit(tuple(updated))
        return changed

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self)

    # -- debounced checkpoints -----------------------------------------------

    def _schedule_save(self) -> None:
        if not (self.persist_enabled and self.storage_key and self._persistence is not None):
            return
        if self._save_pending is not None:
            self._save_pending.cancel()
        self._save_pending = self._scheduler.call_later(self.settings.save_debounce, self.flush)

    def flush(self) -> bool:
        """Persist the current collection now. Returns True when a write happened."""
        if self._save_pending is not None:
            self._save_pending.cancel()
            self._save_pending = None
        if not (self.persist_enabled and self.storage_key and self._persistence is not None):
            return False
        written = self._persistence.save(self.storage_key, dump_differences(self.differences))
        if written:
            logger.info(f"[editor-save] key={self.storage_key} count={len(self.differences)}")
        return written

    @property
    def save_pending(self) -> bool:
        return self._save_pending is not None and self._save_pending.active

    def teardown(self) -> None:
        self._cancel_drag()
        if self._save_pending is not None:
            if self.settings.flush_on_teardown:
                self.flush()
            else:
                self._save_pending.cancel()
                self._save_pending = None
                logger.info(f"[editor-discard] key={self.storage_key} pending edits dropped on teardown")

    # -- selection and dragging ----------------------------------------------

    def select_difference(self, diff_id: Optional[int]) -> None:
        self._cancel_drag()
        self.selected_id = diff_id
        self._notify()

    def _cancel_drag(self) -> None:
        self._frames.cancel()
        self.drag = None

    def begin_drag(self, diff_id: int, pointer_x: float, pointer_y: float, rect: ContainerRect) -> bool:
        diff = self.get(diff_id)
        if diff is None:
            return False
        self._cancel_drag()
        self.selected_id = diff_id
        if _editable(diff):
            self.drag = DragSession(diff_id, rect, pointer_x, pointer_y, diff.x, diff.y)
        self._notify()
        return self.drag is not None

    def update_drag(self, pointer_x: float, pointer_y: float) -> None:
        if self.drag is None:
            return
        self._frames.submit((pointer_x, pointer_y))

    def _apply_drag(self, event: Tuple[float, float]) -> None:
        session = self.drag
        if session is None or session.rect.width <= 0 or session.rect.height <= 0:
            return
        pointer_x, pointer_y = event
        dx = (pointer_x - session.start_pointer_x) / session.rect.width * 100
        dy = (pointer_y - session.start_pointer_y) / session.rect.height * 100
        x = round2(clamp_percent(session.start_x + dx))
        y = round2(clamp_percent(session.start_y + dy))
        self._update(session.id, lambda d: replace(d, x=x, y=y))

    def end_drag(self) -> None:
        if self.drag is None:
            return
        self._cancel_drag()
        self._notify()

    # -- positional edits ----------------------------------------------------

    def nudge(self, diff_id: int, delta_x: float, delta_y: float) -> bool:
        return self._update(diff_id, lambda d: replace(
            d,
            x=round2(clamp_percent(d.x + delta_x)),
            y=round2(clamp_percent(d.y + delta_y)),
        ))

    def handle_key(self, key: str, shift_key: bool = False) -> bool:
        """Arrow keys move the selected difference; Shift switches to the fine step."""
        direction = ARROW_KEYS.get(key)
        if direction is None or self.selected_id is None:
            return False
        step = self.settings.nudge_step_fine if shift_key else self.settings.nudge_step_normal
        return self.nudge(self.selected_id, direction[0] * step, direction[1] * step)

    # -- size edits ----------------------------------------------------------

    def adjust_radius(self, diff_id: int, delta: float) -> bool:
        def change(d):
            if not isinstance(d, CircleDifference):
                return d
            return replace(d, radius=round2(max(self.settings.min_radius, d.radius + delta)))
        return self._update(diff_id, change)

    def adjust_dimension(self, diff_id: int, key: str, delta: float) -> bool:
        if key not in ('width', 'height'):
            return False

        def change(d):
            if not isinstance(d, RectDifference):
                return d
            current = getattr(d, key)
            return replace(d, **{key: round2(max(self.settings.min_rect_dimension, current + delta))})
        return self._update(diff_id, change)

    def adjust_tolerance(self, diff_id: int, delta: float) -> bool:
        return self._update(diff_id, lambda d: replace(
            d, tolerance=round2(max(self.settings.min_tolerance, d.tolerance + delta)),
        ))

    def _field_floor(self, field_name: str) -> Optional[Tuple[float, float]]:
        if field_name in ('x', 'y'):
            return 0, 100
        if field_name == 'radius':
            return self.settings.min_radius, math.inf
        if field_name in ('width', 'height'):
            return self.settings.min_rect_dimension, math.inf
        if field_name == 'tolerance':
            return self.settings.min_tolerance, math.inf
        return None

    def set_field_absolute(self, diff_id: int, field_name: str, raw_value: Any) -> bool:
        bounds = self._field_floor(field_name)
        parsed = parse_number(raw_value)
        if bounds is None or parsed is None:
            return False
        value = round2(min(max(parsed, bounds[0]), bounds[1]))

        def change(d):
            if not hasattr(d, field_name):
                return d
            return replace(d, **{field_name: value})
        return self._update(diff_id, change)

    def change_shape_type(self, diff_id: int, next_type: str) -> bool:
        if next_type not in (CIRCLE, RECT):
            return False
        min_dim = self.settings.min_rect_dimension
        min_radius = self.settings.min_radius

        def change(d):
            if isinstance(d, CircleDifference) and next_type == RECT:
                fallback = max(6, d.radius * 2)
                extras = dict(d.extras)
                # Former dimensions come from stored records and may be junk
                width = parse_number(extras.pop('width', None))
                height = parse_number(extras.pop('height', None))
                extras['radius'] = d.radius
                return RectDifference(
                    d.id, d.x, d.y,
                    round2(fallback if width is None else max(min_dim, width)),
                    round2(fallback if height is None else max(min_dim, height)),
                    d.tolerance, d.name, extras,
                )
            if isinstance(d, RectDifference) and next_type == CIRCLE:
                extras = dict(d.extras)
                radius = parse_number(extras.pop('radius', None))
                extras['width'] = d.width
                extras['height'] = d.height
                if radius is None:
                    size = next((v for v in (d.width, d.height) if v is not None), self.settings.default_rect_width)
                    radius = size / 2
                return CircleDifference(d.id, d.x, d.y, round2(max(min_radius, radius)), d.tolerance, d.name, extras)
            return d
        return self._update(diff_id, change)

    # -- add / remove --------------------------------------------------------

    def add_difference(self, x_percent: float, y_percent: float) -> Difference:
        next_id = max(max((d.id for d in self.differences), default=0), self._id_floor) + 1
        self._id_floor = next_id
        diff = CircleDifference(
            id=next_id,
            x=round2(clamp_percent(x_percent)),
            y=round2(clamp_percent(y_percent)),
            radius=self.settings.default_circle_radius,
            tolerance=self.settings.default_tolerance,
            name=f"Difference {next_id}",
        )
        self.selected_id = next_id
        self._commit(self.differences + (diff,))
        return diff

    def add_difference_at_pointer(self, client_x: float, client_y: float, rect: ContainerRect) -> Optional[Difference]:
        if rect.width <= 0 or rect.height <= 0:
            return None
        x, y = pointer_to_percent(client_x, client_y, rect)
        return self.add_difference(x, y)

    def remove_difference(self, diff_id: int) -> bool:
        remaining = tuple(d for d in self.differences if d.id != diff_id)
        if len(remaining) == len(self.differences):
            return False
        if self.drag is not None and self.drag.id == diff_id:
            self._cancel_drag()
        if self.selected_id == diff_id:
            self.selected_id = None
        self._commit(remaining)
        return True

    def snapshot(self) -> Dict[str, Any]:
        return {
            'differences': dump_differences(self.differences),
            'selectedId': self.selected_id,
            'dragging': self.drag.id if self.drag else None,
            'savePending': self.save_pending,
        }
