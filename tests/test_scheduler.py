"""Tests for scheduler.py — single attempts, optimizer and request path."""

from collections import Counter
from datetime import date, datetime, time, timedelta

import pytest

from leaguesched.constraints import validate_schedule
from leaguesched.errors import InsufficientSlots, InvalidBracketSize, InvalidConstraint
from leaguesched.handlers import HandlerKey
from leaguesched.models import (
    ConstraintSet, DayOfWeek, EventDate, MatchStatus, Pairing, PhaseConstraints,
    PlayoffFormat, Slot, SlotRange, Team, Venue,
)
from leaguesched.roundrobin import round_robin_pairings
from leaguesched.scheduler import (
    ScheduleRequest, generate, generate_schedule, run_attempt,
)


def _teams(n):
    return [f"T{i}" for i in range(1, n + 1)]


def _daily_slots(days, times=(time(10),), venues=("V1",), start=date(2026, 3, 7)):
    slots = []
    for d in range(days):
        for t in times:
            for v in venues:
                slots.append(Slot(datetime.combine(start + timedelta(days=d), t), v))
    return slots


def _request(n_teams=4, **kwargs):
    defaults = dict(
        competition_id="cup",
        season_id="2026",
        stage="regular_season",
        teams=[Team(t) for t in _teams(n_teams)],
        venues=[Venue("V1"), Venue("V2")],
        slot_range=SlotRange(date(2026, 3, 7), date(2026, 5, 31),
                             [time(10), time(14)], []),
        attempts=4,
        workers=1,
    )
    defaults.update(kwargs)
    return ScheduleRequest(**defaults)


class TestRunAttempt:
    def test_places_every_pairing(self):
        pairings = round_robin_pairings(_teams(4))
        attempt = run_attempt(pairings, _daily_slots(10), _teams(4),
                              ConstraintSet(), 0, 0)
        assert len(attempt.matches) == 6
        assert attempt.unscheduled == []
        assert attempt.quality.unfilled_slots == 4

    def test_attempt_zero_keeps_order(self):
        pairings = round_robin_pairings(_teams(4))
        constraints = ConstraintSet(balance_matches=False, avoid_back_to_back=False)
        attempt = run_attempt(pairings, _daily_slots(6), _teams(4),
                              constraints, 0, 123)
        assert [(m.home_team_id, m.away_team_id) for m in attempt.matches] == \
               [(p.home, p.away) for p in pairings]

    def test_same_seed_same_attempt(self):
        pairings = round_robin_pairings(_teams(6), include_return_games=True)
        slots = _daily_slots(20, times=(time(10), time(12)), venues=("V1", "V2"))
        a = run_attempt(pairings, slots, _teams(6), ConstraintSet(), 3, 99)
        b = run_attempt(pairings, slots, _teams(6), ConstraintSet(), 3, 99)
        assert a.matches == b.matches
        assert a.score == b.score

    def test_no_team_twice_at_same_time(self):
        pairings = round_robin_pairings(_teams(6), include_return_games=True)
        slots = _daily_slots(10, times=(time(10), time(12)), venues=("V1", "V2", "V3"))
        attempt = run_attempt(pairings, slots, _teams(6), ConstraintSet(), 1, 5)
        result = validate_schedule(attempt.matches, _teams(6))
        assert result["valid"], result["errors"]

    def test_avoids_back_to_back(self):
        pairings = round_robin_pairings(["A", "B", "C"])
        slots = _daily_slots(1, times=[time(h) for h in range(10, 15)])
        on = run_attempt(pairings, slots, ["A", "B", "C"], ConstraintSet(), 0, 0)
        off = run_attempt(pairings, slots, ["A", "B", "C"],
                          ConstraintSet(avoid_back_to_back=False), 0, 0)
        assert on.quality.back_to_back_violations == 0
        assert off.quality.back_to_back_violations > 0

    def test_event_team_subset(self):
        restricted = Slot(datetime(2026, 6, 13, 9), "V1", frozenset({"A", "B"}))
        open_slot = Slot(datetime(2026, 6, 14, 9), "V1")
        pairings = [Pairing("C", "D"), Pairing("A", "B")]
        attempt = run_attempt(pairings, [restricted, open_slot],
                              ["A", "B", "C", "D"], ConstraintSet(), 0, 0)
        by_pair = {(m.home_team_id, m.away_team_id): m for m in attempt.matches}
        assert by_pair[("A", "B")].scheduled_at == restricted.starts_at
        assert by_pair[("C", "D")].scheduled_at == open_slot.starts_at

    def test_unplaceable_pairing_is_reported(self):
        restricted = Slot(datetime(2026, 6, 13, 9), "V1", frozenset({"A", "B"}))
        attempt = run_attempt([Pairing("C", "D")], [restricted], ["A", "B", "C", "D"],
                              ConstraintSet(), 0, 0)
        assert attempt.matches == []
        assert attempt.quality.unscheduled_pairings == 1
        assert attempt.score >= 10000

    def test_matches_per_day_cap(self):
        pairings = round_robin_pairings(_teams(4))
        slots = _daily_slots(6, times=(time(10), time(14)), venues=("V1", "V2"))
        attempt = run_attempt(pairings, slots, _teams(4), ConstraintSet(), 0, 0,
                              phase_constraints=PhaseConstraints(matches_per_day=1))
        per_day = Counter(m.scheduled_at.date() for m in attempt.matches)
        assert len(attempt.matches) == 6
        assert max(per_day.values()) == 1

    def test_phase_allowed_days(self):
        pairings = round_robin_pairings(_teams(4))
        # 2026-03-07 is a Saturday
        slots = _daily_slots(21, times=(time(10), time(14)), venues=("V1", "V2"))
        attempt = run_attempt(pairings, slots, _teams(4), ConstraintSet(), 0, 0,
                              phase_constraints=PhaseConstraints(allowed_days=[DayOfWeek.Sun]))
        assert len(attempt.matches) == 6
        assert {m.scheduled_at.strftime("%a") for m in attempt.matches} == {"Sun"}

    def test_phase_allowed_days_leaves_overflow_unscheduled(self):
        slots = [Slot(datetime(2026, 3, 6, 10), "V1"), Slot(datetime(2026, 3, 7, 10), "V1")]
        pairings = [Pairing("A", "B"), Pairing("C", "D"), Pairing("A", "C")]
        attempt = run_attempt(pairings, slots, ["A", "B", "C", "D"], ConstraintSet(), 0, 0,
                              phase_constraints=PhaseConstraints(allowed_days=[DayOfWeek.Sat]))
        assert [m.scheduled_at for m in attempt.matches] == [datetime(2026, 3, 7, 10)]
        assert len(attempt.unscheduled) == 2

    def test_phase_time_slots(self):
        pairings = round_robin_pairings(_teams(4))
        slots = _daily_slots(6, times=(time(10), time(18)))
        attempt = run_attempt(pairings, slots, _teams(4), ConstraintSet(), 0, 0,
                              phase_constraints=PhaseConstraints(time_slots=[time(18)]))
        assert len(attempt.matches) == 6
        assert {m.scheduled_at.time() for m in attempt.matches} == {time(18)}

    def test_rest_days(self):
        pairings = round_robin_pairings(_teams(4))
        attempt = run_attempt(
            pairings, _daily_slots(20), _teams(4), ConstraintSet(), 0, 0,
            phase_constraints=PhaseConstraints(rest_days_between_matches=2),
        )
        assert len(attempt.matches) == 6
        for team in _teams(4):
            days = sorted(m.scheduled_at.date() for m in attempt.matches if m.involves(team))
            for a, b in zip(days, days[1:]):
                assert (b - a).days > 2

    def test_target_matches_per_team(self):
        pairings = round_robin_pairings(_teams(4), include_return_games=True)
        attempt = run_attempt(pairings, _daily_slots(20), _teams(4),
                              ConstraintSet(target_matches_per_team=3), 0, 0)
        counts = Counter(t for m in attempt.matches
                         for t in (m.home_team_id, m.away_team_id))
        assert max(counts.values()) <= 3
        assert len(attempt.matches) + len(attempt.unscheduled) == 12

    def test_home_away_balance(self):
        pairings = [Pairing("A", "B"), Pairing("A", "C"), Pairing("A", "D")]
        slots = _daily_slots(3)
        plain = run_attempt(pairings, slots, ["A", "B", "C", "D"],
                            ConstraintSet(), 0, 0)
        balanced = run_attempt(pairings, slots, ["A", "B", "C", "D"],
                               ConstraintSet(), 0, 0,
                               phase_constraints=PhaseConstraints(home_away_balance=True))
        assert sum(m.home_team_id == "A" for m in plain.matches) == 3
        assert sum(m.home_team_id == "A" for m in balanced.matches) == 2

    def test_home_away_balance_keeps_return_legs(self):
        pairings = round_robin_pairings(_teams(4), include_return_games=True)
        attempt = run_attempt(pairings, _daily_slots(12), _teams(4), ConstraintSet(),
                              0, 0, phase_constraints=PhaseConstraints(home_away_balance=True))
        ordered = Counter((m.home_team_id, m.away_team_id) for m in attempt.matches)
        assert all(count == 1 for count in ordered.values())
        assert len(ordered) == 12


class TestReferees:
    def test_third_team_referees(self):
        pairings = round_robin_pairings(["A", "B", "C"])
        attempt = run_attempt(pairings, _daily_slots(3), ["A", "B", "C"],
                              ConstraintSet(auto_referee=True), 0, 0)
        for m in attempt.matches:
            assert m.referee_team_id == ({"A", "B", "C"} - {m.home_team_id, m.away_team_id}).pop()

    def test_referee_load_is_spread(self):
        teams = _teams(5)
        pairings = round_robin_pairings(teams)
        attempt = run_attempt(pairings, _daily_slots(10), teams,
                              ConstraintSet(auto_referee=True), 0, 0)
        refs = Counter(m.referee_team_id for m in attempt.matches)
        assert sum(refs.values()) == 10
        assert set(refs) == set(teams)
        assert validate_schedule(attempt.matches, teams)["valid"]

    def test_no_free_team(self):
        slots = _daily_slots(1, venues=("V1", "V2"))
        attempt = run_attempt([Pairing("A", "B"), Pairing("C", "D")], slots,
                              ["A", "B", "C", "D"], ConstraintSet(auto_referee=True), 0, 0)
        assert [m.referee_team_id for m in attempt.matches] == [None, None]

    def test_off_by_default(self):
        attempt = run_attempt(round_robin_pairings(["A", "B", "C"]), _daily_slots(3),
                              ["A", "B", "C"], ConstraintSet(), 0, 0)
        assert all(m.referee_team_id is None for m in attempt.matches)


class TestGenerate:
    def test_four_teams_ten_slots_no_repeats(self):
        result = generate(round_robin_pairings(_teams(4)), _daily_slots(10), _teams(4),
                          ConstraintSet(avoid_repeats=True), attempts=5, workers=1)
        assert len(result.matches) == 6
        assert result.stats.quality.repeat_violations == 0
        assert result.stats.attempts_run == 5

    def test_never_worse_than_baseline(self):
        teams = _teams(6)
        pairings = round_robin_pairings(teams, include_return_games=True)
        slots = _daily_slots(8, times=(time(10), time(12), time(14)), venues=("V1", "V2"))
        baseline = run_attempt(pairings, slots, teams, ConstraintSet(), 0, 7)
        result = generate(pairings, slots, teams, ConstraintSet(),
                          attempts=10, seed=7, workers=1)
        assert result.stats.best_score <= baseline.score

    def test_insufficient_slots(self):
        pairings = [Pairing(f"H{i}", f"A{i}") for i in range(8)]
        with pytest.raises(InsufficientSlots) as exc:
            generate(pairings, _daily_slots(5), [], attempts=3, workers=1)
        assert exc.value.pairings == 8
        assert exc.value.slots == 5

    @pytest.mark.parametrize("constraints,attempts", [
        (ConstraintSet(target_matches_per_team=0), 5),
        (ConstraintSet(), 0),
        (ConstraintSet(target_matches_per_team=True), 5),
        (ConstraintSet(), True),
    ])
    def test_invalid_constraints(self, constraints, attempts):
        with pytest.raises(InvalidConstraint):
            generate(round_robin_pairings(_teams(4)), _daily_slots(10), _teams(4),
                     constraints, attempts=attempts, workers=1)

    @pytest.mark.parametrize("phase", [
        PhaseConstraints(matches_per_day=True),
        PhaseConstraints(rest_days_between_matches=False),
    ])
    def test_bool_phase_limits_rejected(self, phase):
        with pytest.raises(InvalidConstraint):
            generate(round_robin_pairings(_teams(4)), _daily_slots(10), _teams(4),
                     attempts=2, workers=1, phase_constraints=phase)

    def test_reproducible(self):
        teams = _teams(6)
        pairings = round_robin_pairings(teams)
        slots = _daily_slots(10, times=(time(10), time(12)))
        a = generate(pairings, slots, teams, attempts=6, seed=3, workers=1)
        b = generate(pairings, slots, teams, attempts=6, seed=3, workers=1)
        assert a.matches == b.matches
        assert a.stats == b.stats

    def test_process_pool_matches_inline(self):
        teams = _teams(6)
        pairings = round_robin_pairings(teams)
        slots = _daily_slots(10, times=(time(10), time(12)))
        inline = generate(pairings, slots, teams, attempts=4, seed=1, workers=1)
        pooled = generate(pairings, slots, teams, attempts=4, seed=1, workers=2)
        assert inline.matches == pooled.matches
        assert inline.stats.best_attempt_index == pooled.stats.best_attempt_index

    def test_match_defaults_stamped(self):
        result = generate(round_robin_pairings(_teams(4)), _daily_slots(6), _teams(4),
                          attempts=1, workers=1,
                          match_defaults={"competition_id": "cup", "season_id": "s1",
                                          "stage": "regular_season"})
        for m in result.matches:
            assert (m.competition_id, m.season_id, m.stage) == ("cup", "s1", "regular_season")
            assert m.status is MatchStatus.SCHEDULED
            assert (m.home_score, m.away_score) == (0, 0)
            assert m.id is None


class TestGenerateSchedule:
    def test_league_uses_phase_return_games(self):
        result = generate_schedule(_request(4))
        assert len(result.matches) == 12
        assert {m.venue_id for m in result.matches} <= {"V1", "V2"}
        assert all(m.stage == "regular_season" for m in result.matches)
        assert validate_schedule(result.matches, _teams(4))["valid"]

    def test_single_leg_override(self):
        result = generate_schedule(_request(4, include_return_games=False))
        assert len(result.matches) == 6

    def test_knockout_quarter_final(self):
        result = generate_schedule(_request(
            8, handler=HandlerKey.KNOCKOUT, stage="quarter-final",
        ))
        assert len(result.matches) == 4
        pairs = {(m.home_team_id, m.away_team_id) for m in result.matches}
        assert ("T1", "T8") in pairs

    def test_knockout_with_byes(self):
        result = generate_schedule(_request(
            6, handler=HandlerKey.KNOCKOUT, stage="quarter-final",
        ))
        assert len(result.matches) == 2

    def test_invalid_bracket(self):
        with pytest.raises(InvalidBracketSize):
            generate_schedule(_request(
                4, handler=HandlerKey.KNOCKOUT, stage="final", bracket_size=6,
            ))

    def test_swiss_regular_season(self):
        result = generate_schedule(_request(
            8, handler=HandlerKey.SWISS_SYSTEM, stage="regular_season",
            include_return_games=False,
        ))
        assert len(result.matches) == 12
        assert {m.group for m in result.matches} == {"poule_a", "poule_b"}

    def test_swiss_round_from_previous_pairings(self):
        result = generate_schedule(_request(
            4, handler=HandlerKey.SWISS_SYSTEM, stage="regular_season",
            standings=_teams(4), previous_pairings=[("T2", "T1")],
        ))
        pairs = {(m.home_team_id, m.away_team_id) for m in result.matches}
        assert pairs == {("T1", "T3"), ("T4", "T2")}

    def test_semi_final_single_match_by_default(self):
        result = generate_schedule(_request(
            4, handler=HandlerKey.ROUND_ROBIN_FINAL, stage="semi-final",
        ))
        assert len(result.matches) == 2

    @pytest.mark.parametrize("fmt", [PlayoffFormat.HOME_AWAY, PlayoffFormat.BEST_OF_3])
    def test_semi_final_two_legs(self, fmt):
        result = generate_schedule(_request(
            4, handler=HandlerKey.ROUND_ROBIN_FINAL, stage="semi-final",
            playoff_format=fmt,
        ))
        pairs = Counter((m.home_team_id, m.away_team_id) for m in result.matches)
        assert pairs == {("T1", "T4"): 1, ("T4", "T1"): 1,
                         ("T3", "T2"): 1, ("T2", "T3"): 1}

    def test_groups(self):
        result = generate_schedule(_request(
            8, handler=HandlerKey.GROUPS_KNOCKOUT, stage="start", group_count=2,
        ))
        assert len(result.matches) == 12
        assert {m.group for m in result.matches} == {"group_a", "group_b"}

    def test_event_mode(self):
        request = _request(
            4, slot_range=None, match_minutes=60,
            events=[EventDate(date(2026, 6, 13), time(9), time(15), ["V1", "V2"])],
            include_return_games=False,
        )
        result = generate_schedule(request)
        assert len(result.matches) == 6
        assert all(m.scheduled_at.date() == date(2026, 6, 13) for m in result.matches)
        assert validate_schedule(result.matches, _teams(4))["valid"]

    def test_seed_order(self):
        request = _request(4)
        request.teams = [Team("X"), Team("Y", seed=2), Team("Z", seed=1), Team("W")]
        assert request.team_ids == ["Z", "Y", "X", "W"]

    def test_not_enough_slots(self):
        request = _request(6, slot_range=SlotRange(date(2026, 3, 7), date(2026, 3, 7),
                                                   [time(10)], []))
        with pytest.raises(InsufficientSlots):
            generate_schedule(request)
