import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from .geometry import Difference, difference_to_dict, within_shape

logger = logging.getLogger(__name__)

SCORING_DEFAULTS = {
    'pointsPerHit': 200,
    'penaltyPerMiss': 50,
    'bonusPerSecond': 10,
}


@dataclass(frozen=True)
class ScoringRules:
    points_per_hit: int = SCORING_DEFAULTS['pointsPerHit']
    penalty_per_miss: int = SCORING_DEFAULTS['penaltyPerMiss']
    bonus_per_second: int = SCORING_DEFAULTS['bonusPerSecond']

    @classmethod
    def merged(cls, overrides: Optional[Dict[str, Any]] = None, defaults: Optional[Dict[str, Any]] = None) -> 'ScoringRules':
        """Level values win field by field; missing or None values use the defaults."""
        values = dict(SCORING_DEFAULTS)
        values.update({k: v for k, v in (defaults or {}).items() if v is not None})
        values.update({k: v for k, v in (overrides or {}).items() if v is not None})
        return cls(
            points_per_hit=values['pointsPerHit'],
            penalty_per_miss=values['penaltyPerMiss'],
            bonus_per_second=values['bonusPerSecond'],
        )

    def to_dict(self) -> Dict[str, int]:
        return {
            'pointsPerHit': self.points_per_hit,
            'penaltyPerMiss': self.penalty_per_miss,
            'bonusPerSecond': self.bonus_per_second,
        }


@dataclass(frozen=True)
class WrongClick:
    x: float
    y: float
    timestamp: float
    context: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {'x': self.x, 'y': self.y, 'timestamp': self.timestamp, 'context': dict(self.context)}


@dataclass(frozen=True)
class ClickResult:
    hit: bool
    difference: Optional[Difference] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'hit': self.hit,
            'difference': difference_to_dict(self.difference) if self.difference is not None else None,
        }


class ScoreTracker:
    """Resolves clicks against a difference collection and keeps the round tally."""

    def __init__(self, differences: Iterable[Difference] = (), rules: Optional[ScoringRules] = None,
                 clock: Callable[[], float] = time.time):
        self.differences: Tuple[Difference, ...] = tuple(differences)
        self.rules = rules or ScoringRules()
        self._clock = clock
        self.found: List[int] = []
        self.score = 0
        self.attempts = 0
        self.wrong_click: Optional[WrongClick] = None

    @property
    def total(self) -> int:
        return len(self.differences)

    @property
    def is_complete(self) -> bool:
        return self.total > 0 and len(self.found) >= self.total

    @property
    def accuracy(self) -> int:
        if self.attempts <= 0:
            return 0
        return int(len(self.found) / self.attempts * 100 + 0.5)

    def register_click(self, x: float, y: float, context: Optional[Dict[str, Any]] = None) -> ClickResult:
        # attempts moves before score so no observer sees a score change first
        self.attempts += 1
        found = set(self.found)
        match = next(
            (d for d in self.differences if d.id not in found and within_shape(d, x, y)),
            None,
        )
        if match is not None:
            self.found = self.found + [match.id]
            self.score += self.rules.points_per_hit
            self.wrong_click = None
            logger.info(f"[click-hit] id={match.id} x={x:.2f} y={y:.2f} score={self.score}")
            return ClickResult(True, match)

        self.score = max(0, self.score - self.rules.penalty_per_miss)
        self.wrong_click = WrongClick(x, y, self._clock(), dict(context or {}))
        logger.info(f"[click-miss] x={x:.2f} y={y:.2f} score={self.score}")
        return ClickResult(False, None)

    def apply_bonus(self, seconds_remaining: float) -> int:
        """Add the time bonus. Returns the points added (0 when no time is left)."""
        if seconds_remaining <= 0:
            return 0
        bonus = seconds_remaining * self.rules.bonus_per_second
        self.score += bonus
        return bonus

    def reset(self) -> None:
        self.found = []
        self.score = 0
        self.attempts = 0
        self.wrong_click = None

    def snapshot(self) -> Dict[str, Any]:
        return {
            'score': self.score,
            'attempts': self.attempts,
            'foundDifferences': list(self.found),
            'wrongClick': self.wrong_click.to_dict() if self.wrong_click else None,
            'accuracy': self.accuracy,
            'total': self.total,
        }
