"""Tests for standings.py — aggregation and tie-breaks."""

from leaguesched.models import (
    Match, MatchStatus, PointsConfig, TieBreaker,
)
from leaguesched.standings import (
    compute_standings, format_standings, head_to_head_table,
)


def _result(home, away, hs, as_, status=MatchStatus.COMPLETED, **kwargs):
    return Match("c", "s", "regular_season", home, away,
                 status=status, home_score=hs, away_score=as_, **kwargs)


def _order(rows):
    return [r.team_id for r in rows]


class TestAggregation:
    def test_win_draw_loss(self):
        rows = compute_standings([
            _result("A", "B", 2, 1),
            _result("B", "C", 1, 1),
        ])
        by_id = {r.team_id: r for r in rows}
        assert (by_id["A"].wins, by_id["A"].points) == (1, 3)
        assert (by_id["B"].losses, by_id["B"].draws, by_id["B"].points) == (1, 1, 1)
        assert (by_id["C"].draws, by_id["C"].points) == (1, 1)
        assert by_id["B"].played == 2

    def test_only_completed_matches_count(self):
        rows = compute_standings([
            _result("A", "B", 3, 0),
            _result("B", "A", 5, 0, status=MatchStatus.SCHEDULED),
            _result("B", "A", 5, 0, status=MatchStatus.CANCELLED),
        ])
        by_id = {r.team_id: r for r in rows}
        assert by_id["A"].played == 1
        assert by_id["B"].goals_for == 0

    def test_points_and_goals_balance(self):
        matches = [
            _result("A", "B", 2, 1),
            _result("C", "D", 0, 0),
            _result("A", "C", 1, 3),
            _result("B", "D", 4, 4),
        ]
        rows = compute_standings(matches)
        assert sum(r.goals_for for r in rows) == sum(r.goals_against for r in rows)
        # 2 decisive matches (3 points each) + 2 draws (2 points each)
        assert sum(r.points for r in rows) == 3 * 2 + 2 * 2

    def test_custom_points(self):
        rows = compute_standings(
            [_result("A", "B", 1, 0), _result("A", "C", 0, 0)],
            points=PointsConfig(points_per_win=2, points_per_draw=1, points_per_loss=0),
        )
        assert rows[0].team_id == "A"
        assert rows[0].points == 3

    def test_empty(self):
        assert compute_standings([]) == []

    def test_roster_includes_idle_teams(self):
        rows = compute_standings([_result("A", "B", 1, 0)], roster=["A", "B", "Z"])
        # Z (GD 0) ranks above B (GD -1)
        assert _order(rows) == ["A", "Z", "B"]
        z = next(r for r in rows if r.team_id == "Z")
        assert (z.played, z.points) == (0, 0)

    def test_deterministic(self):
        matches = [
            _result("A", "B", 1, 1),
            _result("C", "D", 2, 2),
            _result("A", "C", 0, 0),
        ]
        first = compute_standings(matches)
        for _ in range(3):
            assert compute_standings(list(reversed(matches))) == first


class TestTieBreakers:
    def test_head_to_head_beats_goal_difference(self):
        matches = [
            _result("A", "B", 0, 1),
            _result("A", "C", 5, 0),
            _result("B", "C", 0, 0),
            _result("A", "D", 0, 0),
        ]
        rows = compute_standings(matches)
        # A and B on 4 points; B won the direct match despite a worse GD.
        # C and D never met, so goal difference separates them.
        assert _order(rows) == ["B", "A", "D", "C"]

    def test_goal_difference_first_when_configured(self):
        matches = [
            _result("A", "B", 0, 1),
            _result("A", "C", 5, 0),
            _result("B", "C", 0, 0),
            _result("A", "D", 0, 0),
        ]
        rows = compute_standings(
            matches, tie_breakers=[TieBreaker.GOAL_DIFFERENCE, TieBreaker.HEAD_TO_HEAD],
        )
        assert _order(rows)[:2] == ["A", "B"]

    def test_three_way_mini_league(self):
        matches = [
            _result("A", "B", 2, 0),
            _result("B", "C", 1, 0),
            _result("C", "A", 1, 0),
        ]
        rows = compute_standings(matches)
        assert [r.points for r in rows] == [3, 3, 3]
        assert _order(rows) == ["A", "C", "B"]

    def test_exhausted_tie_falls_back_to_team_id(self):
        matches = [
            _result("D", "C", 1, 0),
            _result("C", "B", 1, 0),
            _result("B", "D", 1, 0),
        ]
        assert _order(compute_standings(matches)) == ["B", "C", "D"]

    def test_fair_play(self):
        matches = [
            _result("A", "B", 1, 1, home_fair_play=3, away_fair_play=1),
        ]
        rows = compute_standings(
            matches,
            tie_breakers=[TieBreaker.GOAL_DIFFERENCE, TieBreaker.FAIR_PLAY],
        )
        assert _order(rows) == ["B", "A"]

    def test_head_to_head_table(self):
        matches = [
            _result("A", "B", 2, 0),
            _result("A", "C", 0, 3),
        ]
        mini = head_to_head_table(["A", "B"], matches, PointsConfig())
        assert mini["A"].points == 3
        assert mini["A"].goals_against == 0
        assert set(mini) == {"A", "B"}


class TestFormatStandings:
    def test_lines(self):
        rows = compute_standings([_result("A", "B", 2, 0)])
        text = format_standings(rows, {"A": "Alpha"})
        lines = text.splitlines()
        assert "Pts" in lines[0]
        assert "Alpha" in lines[2]
        assert "+2" in lines[2]
