from spotdiff.services.engine.geometry import CircleDifference, RectDifference
from spotdiff.services.engine.scoring import ScoreTracker, ScoringRules


def make_tracker(**rules):
    differences = [
        CircleDifference(id=1, x=20, y=20, radius=5),
        # Overlaps the first circle; only wins once id 1 is found
        CircleDifference(id=2, x=22, y=20, radius=5),
        RectDifference(id=3, x=70, y=70, width=10, height=10),
    ]
    return ScoreTracker(differences, ScoringRules.merged(rules), clock=lambda: 1234.0)


def test_rules_merge_field_by_field():
    rules = ScoringRules.merged({'pointsPerHit': 500, 'penaltyPerMiss': None})
    assert rules.points_per_hit == 500
    assert rules.penalty_per_miss == 50
    assert rules.bonus_per_second == 10
    # Level values beat app defaults, app defaults beat the hardcoded ones
    rules = ScoringRules.merged({'bonusPerSecond': 1}, {'bonusPerSecond': 5, 'penaltyPerMiss': 20})
    assert rules.bonus_per_second == 1
    assert rules.penalty_per_miss == 20


def test_hit_takes_first_match_in_collection_order():
    tracker = make_tracker()
    result = tracker.register_click(21, 20)
    assert result.hit
    assert result.difference.id == 1
    # Same spot again resolves to the next unfound overlapping difference
    result = tracker.register_click(21, 20)
    assert result.difference.id == 2
    assert tracker.found == [1, 2]
    assert tracker.score == 400


def test_attempts_increment_on_every_click():
    tracker = make_tracker()
    tracker.register_click(20, 20)
    tracker.register_click(0, 100)
    tracker.register_click(20, 20)
    assert tracker.attempts == 3


def test_miss_penalty_clamps_at_zero_and_records_wrong_click():
    tracker = make_tracker(penaltyPerMiss=75)
    result = tracker.register_click(95, 5, {'imageType': 'modified'})
    assert not result.hit
    assert tracker.score == 0
    assert tracker.wrong_click.x == 95
    assert tracker.wrong_click.timestamp == 1234.0
    assert tracker.wrong_click.context == {'imageType': 'modified'}


def test_hit_clears_wrong_click_and_penalty_subtracts():
    tracker = make_tracker()
    tracker.register_click(70, 70)
    tracker.register_click(0, 0)
    assert tracker.score == 150
    assert tracker.wrong_click is not None
    tracker.register_click(20, 20)
    assert tracker.wrong_click is None
    assert tracker.score == 350


def test_found_difference_is_not_hit_twice():
    tracker = make_tracker()
    tracker.register_click(70, 70)
    result = tracker.register_click(70, 70)
    assert not result.hit
    assert tracker.found == [3]


def test_apply_bonus_only_for_positive_time():
    tracker = make_tracker(bonusPerSecond=3)
    assert tracker.apply_bonus(0) == 0
    assert tracker.apply_bonus(-5) == 0
    assert tracker.score == 0
    assert tracker.apply_bonus(4) == 12
    assert tracker.score == 12


def test_reset_clears_everything():
    tracker = make_tracker()
    tracker.register_click(20, 20)
    tracker.register_click(0, 0)
    tracker.reset()
    snapshot = tracker.snapshot()
    assert snapshot['score'] == 0
    assert snapshot['attempts'] == 0
    assert snapshot['foundDifferences'] == []
    assert snapshot['wrongClick'] is None


def test_completion_and_accuracy():
    tracker = make_tracker()
    assert not tracker.is_complete
    assert tracker.accuracy == 0
    tracker.register_click(20, 20)
    tracker.register_click(20, 20)
    tracker.register_click(0, 0)
    tracker.register_click(70, 70)
    assert tracker.is_complete
    assert tracker.accuracy == 75
    assert not ScoreTracker([]).is_complete
