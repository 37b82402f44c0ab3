"""Tests for models.py — data classes and enums."""

from datetime import date, datetime, time

import pytest

from leaguesched.errors import InvalidMatch, SchedulingError
from leaguesched.models import (
    DayOfWeek, Match, MatchStatus, Pairing, Slot, StandingsRow, Team,
)


class TestDayOfWeek:
    def test_from_str(self):
        assert DayOfWeek.from_str("Mon") == DayOfWeek.Mon
        assert DayOfWeek.from_str("saturday") == DayOfWeek.Sat
        assert DayOfWeek.from_str(" sun ") == DayOfWeek.Sun

    def test_from_js_index(self):
        assert DayOfWeek.from_js_index(0) == DayOfWeek.Sun
        assert DayOfWeek.from_js_index(1) == DayOfWeek.Mon
        assert DayOfWeek.from_js_index(6) == DayOfWeek.Sat

    def test_matches_date_weekday(self):
        # 2026-03-07 is a Saturday
        assert DayOfWeek(date(2026, 3, 7).weekday()) == DayOfWeek.Sat

    def test_weekday_weekend(self):
        assert DayOfWeek.Fri.is_weekday()
        assert not DayOfWeek.Fri.is_weekend()
        assert DayOfWeek.Sun.is_weekend()


class TestMatch:
    def test_defaults(self):
        m = Match("c", "s", "regular_season", "A", "B")
        assert m.status is MatchStatus.SCHEDULED
        assert m.home_score == 0
        assert m.away_score == 0
        assert m.id is None
        assert not m.is_completed

    def test_team_cannot_play_itself(self):
        with pytest.raises(InvalidMatch):
            Match("c", "s", "regular_season", "A", "A")

    def test_invalid_match_is_scheduling_error(self):
        with pytest.raises(SchedulingError):
            Match("c", "s", "final", "X", "X")

    def test_involves(self):
        m = Match("c", "s", "final", "A", "B")
        assert m.involves("A")
        assert m.involves("B")
        assert not m.involves("C")


class TestPairing:
    def test_key_is_unordered(self):
        assert Pairing("B", "A").key == ("A", "B")
        assert Pairing("A", "B").key == Pairing("B", "A").key

    def test_opponent(self):
        p = Pairing("A", "B")
        assert p.opponent("A") == "B"
        assert p.opponent("B") == "A"

    def test_mirrored(self):
        p = Pairing("A", "B", round_number=2, group="group_a")
        m = p.mirrored(5)
        assert (m.home, m.away) == ("B", "A")
        assert m.round_number == 7
        assert m.group == "group_a"


class TestSlot:
    def test_open_slot_admits_anyone(self):
        s = Slot(datetime(2026, 3, 7, 10), "V1")
        assert s.admits(Pairing("A", "B"))
        assert s.date == date(2026, 3, 7)

    def test_restricted_slot(self):
        s = Slot(datetime(2026, 3, 7, 10), "V1", frozenset({"A", "B"}))
        assert s.admits(Pairing("A", "B"))
        assert not s.admits(Pairing("A", "C"))

    def test_hashable(self):
        a = Slot(datetime.combine(date(2026, 3, 7), time(10)), "V1")
        b = Slot(datetime(2026, 3, 7, 10), "V1")
        assert len({a, b}) == 1


class TestTeamAndRow:
    def test_label_falls_back_to_id(self):
        assert Team("lions").label == "lions"
        assert Team("lions", name="Lions").label == "Lions"

    def test_goal_difference(self):
        row = StandingsRow("A", goals_for=7, goals_against=3)
        assert row.goal_difference == 4
