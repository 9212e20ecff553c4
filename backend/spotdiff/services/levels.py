import json
from typing import Any, Dict, List, Optional

from flask import current_app

from spotdiff import db
from spotdiff.models import Level
from spotdiff.services.engine.geometry import (
    Difference,
    PolygonDifference,
    dump_differences,
    parse_differences,
)
from spotdiff.services.engine.persistence import differences_storage_key
from spotdiff.services.engine.scoring import ScoringRules


class LevelPayloadError(ValueError):
    """An imported level file does not have the expected shape."""


# Payload key -> Level column
_LEVEL_FIELDS = {
    'name': 'name',
    'description': 'description',
    'originalImage': 'original_image',
    'modifiedImage': 'modified_image',
    'timeLimit': 'time_limit',
    'pointsPerHit': 'points_per_hit',
    'penaltyPerMiss': 'penalty_per_miss',
    'bonusPerSecond': 'bonus_per_second',
}

SAMPLE_LEVEL = {
    'id': 'living-room',
    'name': 'Living room',
    'description': 'Five things changed in the living room.',
    'originalImage': '/images/original.png',
    'modifiedImage': '/images/modified.png',
    'timeLimit': 120,
    'differences': [
        {'id': 1, 'type': 'circle', 'x': 22.5, 'y': 30, 'radius': 6, 'tolerance': 2, 'name': 'Lamp'},
        {'id': 2, 'type': 'rect', 'x': 64, 'y': 18, 'width': 12, 'height': 8, 'tolerance': 1, 'name': 'Painting'},
        {'id': 3, 'type': 'circle', 'x': 80, 'y': 72, 'radius': 5, 'tolerance': 2, 'name': 'Cat'},
        {'id': 4, 'type': 'polygon', 'points': [{'x': 40, 'y': 60}, {'x': 52, 'y': 60}, {'x': 46, 'y': 70}], 'name': 'Rug corner'},
        {'id': 5, 'type': 'rect', 'x': 12, 'y': 80, 'width': 8, 'height': 10, 'tolerance': 1, 'name': 'Book'},
    ],
}


def validate_payload(payload: Any) -> Dict[str, Any]:
    """Check an import payload before anything is touched.

    Raises LevelPayloadError unless it is an object with a ``differences``
    array whose entries parse as difference records.
    """
    if not isinstance(payload, dict):
        raise LevelPayloadError('Level payload must be a JSON object')
    items = payload.get('differences')
    if not isinstance(items, list):
        raise LevelPayloadError('Level payload must include a "differences" array')
    try:
        differences = parse_differences(items)
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        raise LevelPayloadError(f'Invalid difference record: {exc}') from exc
    ids = [diff.id for diff in differences]
    if len(ids) != len(set(ids)):
        raise LevelPayloadError('Difference ids must be unique')
    for diff in differences:
        _check_difference(diff)
    return payload


def _check_difference(diff: Difference) -> None:
    if not (0 <= diff.x <= 100 and 0 <= diff.y <= 100):
        raise LevelPayloadError(f'Difference {diff.id} must lie within 0-100 on both axes')
    if diff.tolerance < 0:
        raise LevelPayloadError(f'Difference {diff.id} has a negative tolerance')
    if isinstance(diff, PolygonDifference):
        if len(diff.points) < 3:
            raise LevelPayloadError(f'Polygon difference {diff.id} needs at least 3 points')
        if any(not (0 <= p.x <= 100 and 0 <= p.y <= 100) for p in diff.points):
            raise LevelPayloadError(f'Polygon difference {diff.id} has a point outside 0-100')


def parse_payload_text(text: str) -> Dict[str, Any]:
    try:
        payload = json.loads(text or '{}')
    except ValueError as exc:
        raise LevelPayloadError(f'Level file is not valid JSON: {exc}') from exc
    return validate_payload(payload)


def list_levels() -> List[Level]:
    return Level.query.order_by(Level.position, Level.id).all()


def get_level(slug: str) -> Optional[Level]:
    return Level.query.filter_by(slug=slug).first()


def level_differences(level: Level) -> tuple:
    return parse_differences(level.get_differences())


def level_rules(level: Level) -> ScoringRules:
    cfg = current_app.config
    defaults = {
        'pointsPerHit': cfg.get('POINTS_PER_HIT'),
        'penaltyPerMiss': cfg.get('PENALTY_PER_MISS'),
        'bonusPerSecond': cfg.get('BONUS_PER_SECOND'),
    }
    overrides = {
        'pointsPerHit': level.points_per_hit,
        'penaltyPerMiss': level.penalty_per_miss,
        'bonusPerSecond': level.bonus_per_second,
    }
    return ScoringRules.merged(overrides, defaults)


def level_time_limit(level: Level) -> int:
    if level.time_limit is not None:
        return int(level.time_limit)
    return int(current_app.config.get('DEFAULT_TIME_LIMIT_SEC', 120))


def import_level(payload: Any, slug: Optional[str] = None) -> Level:
    """Create or update a level from an import payload.

    Fields present in the payload override the stored level; the differences
    array always replaces the stored one.
    """
    payload = validate_payload(payload)
    slug = slug or payload.get('id')
    if not slug:
        raise LevelPayloadError('Level payload must include an "id" when no level is given')
    level = get_level(str(slug))
    if level is None:
        level = Level(slug=str(slug), name=payload.get('name') or str(slug))
        level.position = db.session.query(db.func.count(Level.id)).scalar() or 0
    for key, column in _LEVEL_FIELDS.items():
        if key in payload and not (column == 'name' and not payload[key]):
            setattr(level, column, payload[key])
    level.set_differences(payload['differences'])
    db.session.add(level)
    db.session.commit()
    current_app.logger.info(f"[level-import] level={level.slug} differences={len(payload['differences'])}")

    # The imported set becomes the working checkpoint so it is not shadowed by an older edit
    persistence = current_app.extensions['spotdiff.persistence']
    if current_app.config.get('DEV_MODE'):
        persistence.save(storage_key_for(level), payload['differences'])
    else:
        persistence.clear(storage_key_for(level))
    return level


def storage_key_for(level: Level) -> str:
    prefix = current_app.config.get('DIFFERENCES_STORAGE_PREFIX', 'differences')
    return differences_storage_key(level.slug, prefix)


def export_level(level: Level, differences: Optional[List[Difference]] = None) -> Dict[str, Any]:
    payload = level.to_dict()
    if differences is not None:
        payload['differences'] = dump_differences(differences)
    return payload


def next_level_slug(current: str) -> str:
    """Slug of the level after ``current``, wrapping around. Stays put with fewer than two levels."""
    levels = list_levels()
    if len(levels) < 2:
        return current
    slugs = [lvl.slug for lvl in levels]
    idx = slugs.index(current) if current in slugs else -1
    return slugs[(idx + 1) % len(slugs)]
