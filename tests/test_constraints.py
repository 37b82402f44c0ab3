"""Tests for constraints.py — quality metrics, scoring and validation."""

from datetime import datetime

import pytest

from leaguesched.constraints import (
    build_time_index, count_back_to_back, count_repeats, evaluate_schedule,
    format_validation_report, matches_per_team, score_quality, validate_schedule,
)
from leaguesched.models import ConstraintSet, Match, Quality, ScoreWeights


def _match(home, away, when, venue="V1", referee=None):
    return Match("c", "s", "regular_season", home, away,
                 venue_id=venue, scheduled_at=when, referee_team_id=referee)


SAT_10 = datetime(2026, 3, 7, 10)
SAT_12 = datetime(2026, 3, 7, 12)
SAT_14 = datetime(2026, 3, 7, 14)
SUN_10 = datetime(2026, 3, 8, 10)


class TestTimeIndex:
    def test_positions_per_day(self):
        index = build_time_index([SAT_14, SAT_10, SUN_10, SAT_12, SAT_10])
        assert index[SAT_10] == (SAT_10.date(), 0)
        assert index[SAT_12] == (SAT_10.date(), 1)
        assert index[SAT_14] == (SAT_10.date(), 2)
        assert index[SUN_10] == (SUN_10.date(), 0)


class TestMetrics:
    def test_count_repeats(self):
        matches = [
            _match("A", "B", SAT_10),
            _match("B", "A", SUN_10),
            _match("C", "D", SAT_10, "V2"),
        ]
        assert count_repeats(matches) == 1

    def test_back_to_back(self):
        matches = [
            _match("A", "B", SAT_10),
            _match("A", "C", SAT_12),
            _match("B", "C", SAT_14),
        ]
        # A at 10 and 12; C at 12 and 14
        assert count_back_to_back(matches) == 2

    def test_back_to_back_uses_slot_grid(self):
        matches = [_match("A", "B", SAT_10), _match("A", "C", SAT_14)]
        assert count_back_to_back(matches) == 1
        grid = build_time_index([SAT_10, SAT_12, SAT_14])
        assert count_back_to_back(matches, grid) == 0

    def test_not_back_to_back_across_days(self):
        matches = [_match("A", "B", SAT_14), _match("A", "C", SUN_10)]
        assert count_back_to_back(matches) == 0

    def test_matches_per_team_includes_idle(self):
        counts = matches_per_team([_match("A", "B", SAT_10)], ["A", "B", "C"])
        assert counts == {"A": 1, "B": 1, "C": 0}

    def test_evaluate(self):
        matches = [_match("A", "B", SAT_10), _match("C", "D", SAT_10, "V2")]
        q = evaluate_schedule(matches, ["A", "B", "C", "D"], unscheduled=1,
                              slot_count=5)
        assert q.repeat_violations == 0
        assert q.unfilled_slots == 3
        assert q.unscheduled_pairings == 1
        assert q.match_imbalance_std_dev == 0.0

    def test_imbalance(self):
        q = evaluate_schedule([_match("A", "B", SAT_10)], ["A", "B", "C", "D"])
        assert q.match_imbalance_std_dev == pytest.approx(0.5)


class TestScore:
    def test_weights(self):
        q = Quality(repeat_violations=1, back_to_back_violations=2,
                    unscheduled_pairings=1, match_imbalance_std_dev=0.5)
        assert score_quality(q, ConstraintSet()) == 1000 + 200 + 10000 + 0.5

    def test_toggles_off(self):
        q = Quality(repeat_violations=1, back_to_back_violations=2,
                    unscheduled_pairings=0, match_imbalance_std_dev=0.5)
        off = ConstraintSet(avoid_repeats=False, balance_matches=False,
                            avoid_back_to_back=False)
        assert score_quality(q, off) == 0

    def test_unscheduled_always_counts(self):
        off = ConstraintSet(avoid_repeats=False, balance_matches=False,
                            avoid_back_to_back=False)
        assert score_quality(Quality(unscheduled_pairings=2), off) == 20000

    def test_custom_weights(self):
        q = Quality(repeat_violations=2)
        assert score_quality(q, ConstraintSet(), ScoreWeights(repeat=7)) == 14


class TestValidateSchedule:
    def test_valid(self):
        result = validate_schedule([
            _match("A", "B", SAT_10, referee="C"),
            _match("C", "D", SAT_12),
        ], ["A", "B", "C", "D"])
        assert result["valid"]
        assert result["errors"] == []

    def test_double_booking(self):
        result = validate_schedule([
            _match("A", "B", SAT_10, "V1"),
            _match("A", "C", SAT_10, "V2"),
        ])
        assert not result["valid"]
        assert any("A is booked 2 times" in e for e in result["errors"])

    def test_referee_double_booked(self):
        result = validate_schedule([
            _match("A", "B", SAT_10, "V1", referee="C"),
            _match("C", "D", SAT_10, "V2"),
        ])
        assert not result["valid"]

    def test_referee_playing(self):
        result = validate_schedule([_match("A", "B", SAT_10, referee="A")])
        assert any("referee A is playing" in e for e in result["errors"])

    def test_venue_used_twice(self):
        result = validate_schedule([
            _match("A", "B", SAT_10, "V1"),
            _match("C", "D", SAT_10, "V1"),
        ])
        assert any("Venue V1" in e for e in result["errors"])

    def test_unknown_team(self):
        result = validate_schedule([_match("A", "X", SAT_10)], ["A", "B"])
        assert "Unknown team: X" in result["errors"]

    def test_warnings(self):
        result = validate_schedule([
            _match("A", "B", SAT_10),
            _match("B", "A", SAT_12),
        ])
        assert result["valid"]
        assert any("played 2 times" in w for w in result["warnings"])
        assert any("back-to-back" in w for w in result["warnings"])

    def test_report(self):
        result = validate_schedule([_match("A", "B", SAT_10, referee="B")])
        text = format_validation_report(result)
        assert "INVALID (1 violations)" in text
        assert "ERROR:" in text
