"""Scheduling engine: assign pairings to slots across randomized attempts.

Pipeline for one request:
1. Pairings from the phase's generation type (pairing.py)
2. Slots from the range or event availability (slots.py)
3. N independent attempts, each a greedy assignment over its own shuffled
   pairing order. Attempt 0 keeps the caller's order and is the baseline.
4. Each candidate is scored (constraints.py); the lowest score wins.

Attempts are pure functions of (pairings, slots, seed), so they run on a
process pool and the only synchronization point is the final reduction.
A fixed attempt count bounds the search.
"""

import logging
import os
import random
from collections import Counter, defaultdict
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from leaguesched.constraints import build_time_index, evaluate_schedule, score_quality
from leaguesched.errors import InsufficientSlots, InvalidConstraint
from leaguesched.handlers import HandlerKey, default_settings, get_phase
from leaguesched.models import (
    Attempt, ConstraintSet, DayOfWeek, EventDate, GenerationStats, Match,
    MatchGenerationType, Pairing, PhaseConstraints, PlayoffFormat,
    ScheduleResult, ScoreWeights, SeedingMethod, Slot, SlotRange, Team, Venue,
)
from leaguesched.pairing import determine_generation, generate_pairings
from leaguesched.slots import build_slots

logger = logging.getLogger(__name__)

DEFAULT_ATTEMPTS = 20


def _is_count(value) -> bool:
    # bool is an int subclass; True must not pass as 1
    return isinstance(value, int) and not isinstance(value, bool)


def check_constraints(constraints: ConstraintSet, attempts: int,
                      phase_constraints: Optional[PhaseConstraints] = None):
    """Reject malformed constraint values before any work starts."""
    target = constraints.target_matches_per_team
    if target is not None and (not _is_count(target) or target < 1):
        raise InvalidConstraint(f"target_matches_per_team must be >= 1, got {target!r}")
    if not _is_count(attempts) or attempts < 1:
        raise InvalidConstraint(f"attempts must be >= 1, got {attempts!r}")
    if phase_constraints is not None:
        cap = phase_constraints.matches_per_day
        if cap is not None and (not _is_count(cap) or cap < 1):
            raise InvalidConstraint(f"matches_per_day must be >= 1, got {cap!r}")
        rest = phase_constraints.rest_days_between_matches
        if rest is not None and (not _is_count(rest) or rest < 0):
            raise InvalidConstraint(f"rest_days_between_matches must be >= 0, got {rest!r}")


# ---------------------------------------------------------------------------
# Single attempt
# ---------------------------------------------------------------------------

def _pick_next(pending: list[Pairing], counts: Counter, balance: bool) -> int:
    """Index of the next pairing to place."""
    if not balance:
        return 0
    # Teams with the fewest matches so far go first; ties keep shuffle order
    return min(
        range(len(pending)),
        key=lambda i: (max(counts[pending[i].home], counts[pending[i].away]),
                       counts[pending[i].home] + counts[pending[i].away],
                       i),
    )


def _balance_home_away(matches: list[Match]):
    """Flip single-leg fixtures so each team's home/away counts even out.

    Matchups that meet more than once keep their orientation, so mirrored
    return fixtures stay mirrored.
    """
    legs = Counter(
        (min(m.home_team_id, m.away_team_id), max(m.home_team_id, m.away_team_id))
        for m in matches
    )
    diff: dict[str, int] = defaultdict(int)
    for m in matches:
        diff[m.home_team_id] += 1
        diff[m.away_team_id] -= 1

    for _ in range(len(matches)):
        flipped = False
        for m in matches:
            key = (min(m.home_team_id, m.away_team_id), max(m.home_team_id, m.away_team_id))
            if legs[key] > 1:
                continue
            h, a = m.home_team_id, m.away_team_id
            # Flipping moves diff[h] down by 2 and diff[a] up by 2
            if diff[h] - diff[a] >= 3:
                m.home_team_id, m.away_team_id = a, h
                diff[h] -= 2
                diff[a] += 2
                flipped = True
        if not flipped:
            break


def run_attempt(pairings: list[Pairing], slots: list[Slot], teams: list[str],
                constraints: ConstraintSet, index: int, seed: Optional[int],
                phase_constraints: Optional[PhaseConstraints] = None,
                weights: Optional[ScoreWeights] = None,
                match_defaults: Optional[dict] = None) -> Attempt:
    """Greedy assignment of pairings to slots, then score the result.

    Hard rules: no team twice at the same datetime, event team subsets, the
    phase's allowed weekdays and start times, the per-day match cap and rest
    days. Among feasible slots the earliest one with no back-to-back and no
    same-day repeat wins; otherwise the least-bad one, back-to-back weighing
    first. Referees are assigned once every match is placed, so refereeing
    never takes a slot away from playing.
    """
    defaults = match_defaults or {}
    pc = phase_constraints or PhaseConstraints()
    rest_days = pc.rest_days_between_matches or 0
    allowed_days = set(pc.allowed_days)
    allowed_times = set(pc.time_slots)

    pending = list(pairings)
    if index > 0:
        random.Random(seed).shuffle(pending)

    time_index = build_time_index(s.starts_at for s in slots)
    team_order = {t: i for i, t in enumerate(teams)}
    used = [False] * len(slots)

    busy: dict[datetime, set[str]] = defaultdict(set)
    positions: dict[str, set[tuple[date, int]]] = defaultdict(set)
    team_dates: dict[str, list[date]] = defaultdict(list)
    met_on: dict[tuple[str, str], set[date]] = defaultdict(set)
    day_counts: Counter = Counter()
    counts: Counter = Counter()
    ref_counts: Counter = Counter()

    placed: list[tuple[int, Pairing]] = []
    unscheduled: list[Pairing] = []

    def feasible(slot: Slot, p: Pairing) -> bool:
        if not slot.admits(p):
            return False
        if allowed_days and DayOfWeek(slot.starts_at.weekday()) not in allowed_days:
            return False
        if allowed_times and slot.starts_at.time() not in allowed_times:
            return False
        if p.home in busy[slot.starts_at] or p.away in busy[slot.starts_at]:
            return False
        if pc.matches_per_day is not None and day_counts[slot.date] >= pc.matches_per_day:
            return False
        if rest_days:
            for t in (p.home, p.away):
                if any(abs((slot.date - d).days) <= rest_days for d in team_dates[t]):
                    return False
        return True

    def cost(slot: Slot, p: Pairing) -> tuple[int, int]:
        b2b = 0
        if constraints.avoid_back_to_back:
            day, i = time_index[slot.starts_at]
            for t in (p.home, p.away):
                if (day, i - 1) in positions[t] or (day, i + 1) in positions[t]:
                    b2b += 1
        repeat = 0
        if constraints.avoid_repeats and slot.date in met_on[p.key]:
            repeat = 1
        return (b2b, repeat)

    def pick_referee(slot: Slot, p: Pairing) -> Optional[str]:
        candidates = [
            t for t in teams
            if t not in (p.home, p.away)
            and t not in busy[slot.starts_at]
            and (slot.teams is None or t in slot.teams)
        ]
        if not candidates:
            return None
        return min(candidates, key=lambda t: (ref_counts[t], team_order[t]))

    target = constraints.target_matches_per_team
    while pending:
        p = pending.pop(_pick_next(pending, counts, constraints.balance_matches))

        if target is not None and (counts[p.home] >= target or counts[p.away] >= target):
            unscheduled.append(p)
            continue

        best, best_cost = None, None
        for si, slot in enumerate(slots):
            if used[si] or not feasible(slot, p):
                continue
            c = cost(slot, p)
            if c == (0, 0):
                best = si
                break
            if best is None or c < best_cost:
                best, best_cost = si, c

        if best is None:
            unscheduled.append(p)
            continue

        slot = slots[best]
        used[best] = True
        busy[slot.starts_at].update((p.home, p.away))
        for t in (p.home, p.away):
            positions[t].add(time_index[slot.starts_at])
            team_dates[t].append(slot.date)
            counts[t] += 1
        met_on[p.key].add(slot.date)
        day_counts[slot.date] += 1
        placed.append((best, p))

    placed.sort(key=lambda item: item[0])
    referees: list[Optional[str]] = [None] * len(placed)
    if constraints.auto_referee:
        for k, (si, p) in enumerate(placed):
            referee = pick_referee(slots[si], p)
            if referee is not None:
                busy[slots[si].starts_at].add(referee)
                ref_counts[referee] += 1
            referees[k] = referee
    matches = [
        Match(
            competition_id=defaults.get("competition_id", ""),
            season_id=defaults.get("season_id", ""),
            stage=defaults.get("stage", ""),
            home_team_id=p.home,
            away_team_id=p.away,
            venue_id=slots[si].venue_id,
            scheduled_at=slots[si].starts_at,
            referee_team_id=referee,
            group=p.group,
        )
        for (si, p), referee in zip(placed, referees)
    ]

    if pc.home_away_balance:
        _balance_home_away(matches)

    quality = evaluate_schedule(
        matches, teams, unscheduled=len(unscheduled),
        slot_count=len(slots), time_index=time_index,
    )
    score = score_quality(quality, constraints, weights)
    logger.debug("Attempt %d (seed=%s): score=%s %s", index, seed, score, quality)
    return Attempt(index=index, seed=seed, matches=matches,
                   unscheduled=unscheduled, quality=quality, score=score)


# ---------------------------------------------------------------------------
# Multi-attempt optimizer
# ---------------------------------------------------------------------------

def _worker_count(workers: Optional[int], attempts: int) -> int:
    if workers is None:
        workers = os.cpu_count() or 1
    return max(1, min(workers, attempts))


def generate(pairings: list[Pairing], slots: list[Slot], teams: list[str],
             constraints: Optional[ConstraintSet] = None,
             attempts: int = DEFAULT_ATTEMPTS, seed: Optional[int] = 0,
             workers: Optional[int] = None,
             weights: Optional[ScoreWeights] = None,
             phase_constraints: Optional[PhaseConstraints] = None,
             match_defaults: Optional[dict] = None) -> ScheduleResult:
    """Run ``attempts`` candidate assignments and keep the best one.

    Raises InsufficientSlots when there are more pairings than slots; no
    attempt runs in that case. Otherwise always returns a schedule, possibly
    with violations reported in ``stats.quality``.
    """
    constraints = constraints or ConstraintSet()
    check_constraints(constraints, attempts, phase_constraints)
    if len(pairings) > len(slots):
        raise InsufficientSlots(len(pairings), len(slots))

    if seed is None:
        seed = random.randrange(2 ** 31)
        logger.info("No seed given, using %d", seed)

    pool_size = _worker_count(workers, attempts)
    args = [
        (pairings, slots, teams, constraints, i, seed + i,
         phase_constraints, weights, match_defaults)
        for i in range(attempts)
    ]

    if pool_size == 1:
        results = [run_attempt(*a) for a in args]
    else:
        with ProcessPoolExecutor(max_workers=pool_size) as pool:
            futures = [pool.submit(run_attempt, *a) for a in args]
            results = [f.result() for f in futures]

    best = min(results, key=lambda a: (a.score, a.index))
    logger.info("Ran %d attempts on %d workers: best #%d score=%s "
                "(%d matches, %d unscheduled)",
                len(results), pool_size, best.index, best.score,
                len(best.matches), len(best.unscheduled))

    return ScheduleResult(
        matches=best.matches,
        stats=GenerationStats(
            attempts_run=len(results),
            best_attempt_index=best.index,
            best_score=best.score,
            quality=best.quality,
        ),
        unscheduled=best.unscheduled,
    )


# ---------------------------------------------------------------------------
# Request path
# ---------------------------------------------------------------------------

@dataclass
class ScheduleRequest:
    """Everything a dry run needs for one phase of one season."""
    competition_id: str
    season_id: str
    stage: str
    teams: list[Team]
    venues: list[Venue] = field(default_factory=list)
    handler: HandlerKey = HandlerKey.LEAGUE_ONLY
    generation: Optional[MatchGenerationType] = None
    slot_range: Optional[SlotRange] = None
    events: list[EventDate] = field(default_factory=list)
    match_minutes: int = 90
    break_minutes: int = 0
    constraints: ConstraintSet = field(default_factory=ConstraintSet)
    phase_constraints: Optional[PhaseConstraints] = None
    attempts: int = DEFAULT_ATTEMPTS
    seed: Optional[int] = 0
    workers: Optional[int] = None
    weights: ScoreWeights = field(default_factory=ScoreWeights)
    include_return_games: Optional[bool] = None
    seeding: SeedingMethod = SeedingMethod.SEEDED
    bracket_size: Optional[int] = None
    manual_order: Optional[list[Optional[str]]] = None
    group_count: int = 4
    grouping: SeedingMethod = SeedingMethod.SEEDED
    standings: list = field(default_factory=list)
    snake_pattern: Optional[list[list[int]]] = None
    playoff_format: Optional[PlayoffFormat] = None
    previous_pairings: Optional[list[tuple[str, str]]] = None

    @property
    def team_ids(self) -> list[str]:
        """Team ids in seed order (explicit seeds first, then listed order)."""
        ordered = sorted(
            enumerate(self.teams),
            key=lambda it: (it[1].seed is None, it[1].seed or 0, it[0]),
        )
        return [t.id for _, t in ordered]


def request_pairings(request: ScheduleRequest) -> list[Pairing]:
    phase = get_phase(request.handler, request.stage)
    explicit = request.generation
    if explicit is None and phase is not None:
        explicit = phase.generation
    generation = determine_generation(request.stage, request.handler, explicit)
    include_return = request.include_return_games
    if include_return is None:
        include_return = phase.include_return_games if phase else False

    bracket_size = request.bracket_size
    if bracket_size is None and phase is not None:
        bracket_size = phase.bracket_size
        if bracket_size is not None and len(request.teams) > bracket_size:
            bracket_size = None

    playoff_format = request.playoff_format
    if playoff_format is None:
        playoff_format = PlayoffFormat(
            default_settings(request.handler).get(
                "playoff_format", PlayoffFormat.SINGLE_MATCH.value)
        )

    return generate_pairings(
        generation, request.team_ids,
        include_return_games=include_return,
        standings=request.standings,
        snake_pattern=request.snake_pattern,
        bracket_size=bracket_size,
        seeding=request.seeding,
        manual_order=request.manual_order,
        group_count=request.group_count,
        grouping=request.grouping,
        playoff_format=playoff_format,
        previous=request.previous_pairings,
        seed=request.seed,
    )


def request_slots(request: ScheduleRequest) -> list[Slot]:
    slot_range = request.slot_range
    if slot_range is not None and not slot_range.venue_ids:
        slot_range = SlotRange(
            start_date=slot_range.start_date,
            end_date=slot_range.end_date,
            time_slots=slot_range.time_slots,
            venue_ids=[v.id for v in request.venues],
            allowed_days=slot_range.allowed_days,
        )
    return build_slots(slot_range, request.events,
                       request.match_minutes, request.break_minutes)


def generate_schedule(request: ScheduleRequest) -> ScheduleResult:
    """Dry run: proposed matches for one phase plus generation stats.

    Raises InsufficientTeams, InvalidBracketSize, InsufficientSlots or
    InvalidConstraint on bad input. Proposed matches carry status
    ``scheduled`` and zero scores; persisting them is the caller's job.
    """
    phase = get_phase(request.handler, request.stage)
    phase_constraints = request.phase_constraints
    if phase_constraints is None and phase is not None:
        phase_constraints = phase.constraints

    pairings = request_pairings(request)
    slots = request_slots(request)
    logger.info("Scheduling %s/%s: %d pairings into %d slots",
                request.season_id, request.stage, len(pairings), len(slots))

    return generate(
        pairings, slots, request.team_ids,
        constraints=request.constraints,
        attempts=request.attempts,
        seed=request.seed,
        workers=request.workers,
        weights=request.weights,
        phase_constraints=phase_constraints,
        match_defaults={
            "competition_id": request.competition_id,
            "season_id": request.season_id,
            "stage": request.stage,
        },
    )
