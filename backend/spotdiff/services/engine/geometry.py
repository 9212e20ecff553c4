"""Difference shapes and the point-in-shape test.

All coordinates live in the 0-100 percentage space of the image container,
so the same records work at any rendered size. Callers convert device
pixels with ``pointer_to_percent`` before testing.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

CIRCLE = 'circle'
RECT = 'rect'
POLYGON = 'polygon'
SHAPE_TYPES = (CIRCLE, RECT, POLYGON)

# Fallback sizes used when a record omits them
FALLBACK_RADIUS = 5
FALLBACK_RECT_SIZE = 10


def round2(value: float) -> float:
    """Round half up to two decimals, the precision every mutation keeps."""
    return math.floor(value * 100 + 0.5) / 100


def clamp_percent(value: float, low: float = 0, high: float = 100) -> float:
    if value is None or math.isnan(value):
        return low
    return min(max(value, low), high)


@dataclass(frozen=True)
class ContainerRect:
    """Bounding box of an image container in device pixels."""
    left: float
    top: float
    width: float
    height: float

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ContainerRect':
        return cls(
            left=float(data.get('left', 0)),
            top=float(data.get('top', 0)),
            width=float(data['width']),
            height=float(data['height']),
        )


def pointer_to_percent(client_x: float, client_y: float, rect: ContainerRect) -> Tuple[float, float]:
    """Convert a pointer position to container percentages (unclamped)."""
    x = (client_x - rect.left) / rect.width * 100
    y = (client_y - rect.top) / rect.height * 100
    return x, y


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class CircleDifference:
    id: int
    x: float
    y: float
    radius: float = FALLBACK_RADIUS
    tolerance: float = 0
    name: Optional[str] = None
    # Keys carried through untouched, e.g. a former rect's width/height
    extras: Dict[str, Any] = field(default_factory=dict, compare=False)

    type = CIRCLE


@dataclass(frozen=True)
class RectDifference:
    id: int
    x: float
    y: float
    width: float = FALLBACK_RECT_SIZE
    height: float = FALLBACK_RECT_SIZE
    tolerance: float = 0
    name: Optional[str] = None
    extras: Dict[str, Any] = field(default_factory=dict, compare=False)

    type = RECT


@dataclass(frozen=True)
class PolygonDifference:
    id: int
    x: float
    y: float
    points: Tuple[Point, ...] = ()
    # Stored for completeness; the polygon test does not use it
    tolerance: float = 0
    name: Optional[str] = None
    extras: Dict[str, Any] = field(default_factory=dict, compare=False)

    type = POLYGON


@dataclass(frozen=True)
class UnknownDifference:
    """A record whose ``type`` this engine does not understand. Never hit."""
    id: int
    x: float
    y: float
    kind: str = ''
    tolerance: float = 0
    name: Optional[str] = None
    extras: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def type(self) -> str:
        return self.kind


Difference = Union[CircleDifference, RectDifference, PolygonDifference, UnknownDifference]

_OWN_KEYS = {
    CIRCLE: ('id', 'type', 'x', 'y', 'radius', 'tolerance', 'name'),
    RECT: ('id', 'type', 'x', 'y', 'width', 'height', 'tolerance', 'name'),
    POLYGON: ('id', 'type', 'x', 'y', 'points', 'tolerance', 'name'),
}


def _number(data: Dict[str, Any], key: str, default: float) -> float:
    value = data.get(key)
    if value is None:
        return default
    return float(value)


def difference_from_dict(data: Dict[str, Any]) -> Difference:
    """Build a Difference from its JSON form. Shape type defaults to circle."""
    kind = data.get('type') or CIRCLE
    diff_id = int(data['id'])
    name = data.get('name')
    tolerance = _number(data, 'tolerance', 0)

    if kind == POLYGON:
        points = tuple(Point(float(p['x']), float(p['y'])) for p in (data.get('points') or []))
        if 'x' in data and 'y' in data:
            x, y = float(data['x']), float(data['y'])
        elif points:
            x = round2(sum(p.x for p in points) / len(points))
            y = round2(sum(p.y for p in points) / len(points))
        else:
            x = y = 0.0
        extras = {k: v for k, v in data.items() if k not in _OWN_KEYS[POLYGON]}
        return PolygonDifference(diff_id, x, y, points, tolerance, name, extras)

    x = _number(data, 'x', 0)
    y = _number(data, 'y', 0)
    if kind == CIRCLE:
        extras = {k: v for k, v in data.items() if k not in _OWN_KEYS[CIRCLE]}
        return CircleDifference(diff_id, x, y, _number(data, 'radius', FALLBACK_RADIUS), tolerance, name, extras)
    if kind == RECT:
        extras = {k: v for k, v in data.items() if k not in _OWN_KEYS[RECT]}
        return RectDifference(
            diff_id, x, y,
            _number(data, 'width', FALLBACK_RECT_SIZE),
            _number(data, 'height', FALLBACK_RECT_SIZE),
            tolerance, name, extras,
        )
    extras = {k: v for k, v in data.items() if k not in ('id', 'type', 'x', 'y', 'tolerance', 'name')}
    return UnknownDifference(diff_id, x, y, str(kind), tolerance, name, extras)


def difference_to_dict(diff: Difference) -> Dict[str, Any]:
    payload: Dict[str, Any] = dict(diff.extras)
    payload.update({'id': diff.id, 'type': diff.type, 'x': diff.x, 'y': diff.y})
    if isinstance(diff, CircleDifference):
        payload['radius'] = diff.radius
    elif isinstance(diff, RectDifference):
        payload['width'] = diff.width
        payload['height'] = diff.height
    elif isinstance(diff, PolygonDifference):
        payload['points'] = [{'x': p.x, 'y': p.y} for p in diff.points]
    payload['tolerance'] = diff.tolerance
    if diff.name is not None:
        payload['name'] = diff.name
    return payload


def parse_differences(items: Iterable[Dict[str, Any]]) -> Tuple[Difference, ...]:
    return tuple(difference_from_dict(item) for item in items)


def dump_differences(diffs: Iterable[Difference]) -> List[Dict[str, Any]]:
    return [difference_to_dict(d) for d in diffs]


def point_in_polygon(points: Tuple[Point, ...], x: float, y: float) -> bool:
    """Even-odd ray casting against the ordered vertex list."""
    inside = False
    j = len(points) - 1
    for i in range(len(points)):
        xi, yi = points[i].x, points[i].y
        xj, yj = points[j].x, points[j].y
        if (yi > y) != (yj > y):
            # horizontal edges never get here, so yj != yi
            cross_x = (xj - xi) * (y - yi) / (yj - yi) + xi
            if x < cross_x:
                inside = not inside
        j = i
    return inside


def within_shape(diff: Optional[Difference], x: float, y: float) -> bool:
    """True when (x, y) falls inside ``diff`` widened by its tolerance."""
    if diff is None:
        return False
    if isinstance(diff, CircleDifference):
        return math.hypot(diff.x - x, diff.y - y) <= diff.radius + diff.tolerance
    if isinstance(diff, RectDifference):
        allow = diff.tolerance
        return (
            diff.x - diff.width / 2 - allow <= x <= diff.x + diff.width / 2 + allow
            and diff.y - diff.height / 2 - allow <= y <= diff.y + diff.height / 2 + allow
        )
    if isinstance(diff, PolygonDifference):
        # Tolerance is not applied to polygons
        return point_in_polygon(diff.points, x, y)
    return False


