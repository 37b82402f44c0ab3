"""Constraint evaluation for candidate and persisted schedules.

``evaluate_schedule`` turns a candidate into quality metrics and
``score_quality`` folds them into one number (lower is better).
``validate_schedule`` is the report-style check used on exported schedules.
"""

from collections import Counter, defaultdict
from datetime import date, datetime
from statistics import pstdev
from typing import Iterable

from leaguesched.models import ConstraintSet, Match, Quality, ScoreWeights


def build_time_index(starts: Iterable[datetime]) -> dict[datetime, tuple[date, int]]:
    """Map each start datetime to (day, position among that day's start times).

    Two matches are adjacent when they share a day and their positions
    differ by one.
    """
    by_day: dict[date, set[datetime]] = defaultdict(set)
    for dt in starts:
        by_day[dt.date()].add(dt)
    index = {}
    for day, times in by_day.items():
        for i, dt in enumerate(sorted(times)):
            index[dt] = (day, i)
    return index


def count_repeats(matches: Iterable[Match]) -> int:
    """Number of unordered matchups scheduled more than once."""
    counts = Counter(
        (min(m.home_team_id, m.away_team_id), max(m.home_team_id, m.away_team_id))
        for m in matches
    )
    return sum(1 for c in counts.values() if c > 1)


def count_back_to_back(matches: list[Match],
                       time_index: dict[datetime, tuple[date, int]] | None = None) -> int:
    """Number of team-day adjacencies (a team in two consecutive time slots)."""
    if time_index is None:
        time_index = build_time_index(m.scheduled_at for m in matches)

    positions: dict[str, set[tuple[date, int]]] = defaultdict(set)
    for m in matches:
        pos = time_index[m.scheduled_at]
        positions[m.home_team_id].add(pos)
        positions[m.away_team_id].add(pos)

    violations = 0
    for team_positions in positions.values():
        for day, i in team_positions:
            if (day, i + 1) in team_positions:
                violations += 1
    return violations


def matches_per_team(matches: Iterable[Match],
                     teams: Iterable[str] = ()) -> dict[str, int]:
    counts = {t: 0 for t in teams}
    for m in matches:
        counts[m.home_team_id] = counts.get(m.home_team_id, 0) + 1
        counts[m.away_team_id] = counts.get(m.away_team_id, 0) + 1
    return counts


def evaluate_schedule(matches: list[Match], teams: Iterable[str] = (),
                      unscheduled: int = 0, slot_count: int | None = None,
                      time_index: dict[datetime, tuple[date, int]] | None = None
                      ) -> Quality:
    """Compute quality metrics for a candidate schedule."""
    counts = matches_per_team(matches, teams)
    return Quality(
        repeat_violations=count_repeats(matches),
        back_to_back_violations=count_back_to_back(matches, time_index),
        unfilled_slots=max(0, slot_count - len(matches)) if slot_count is not None else 0,
        unscheduled_pairings=unscheduled,
        match_imbalance_std_dev=pstdev(counts.values()) if counts else 0.0,
    )


def score_quality(quality: Quality, constraints: ConstraintSet,
                  weights: ScoreWeights | None = None) -> float:
    """Weighted sum of the metrics the request cares about; lower is better.

    Unscheduled pairings always count. Repeats, back-to-back and imbalance
    only count when their constraint is enabled.
    """
    w = weights or ScoreWeights()
    score = w.unscheduled * quality.unscheduled_pairings
    if constraints.avoid_repeats:
        score += w.repeat * quality.repeat_violations
    if constraints.avoid_back_to_back:
        score += w.back_to_back * quality.back_to_back_violations
    if constraints.balance_matches:
        score += w.imbalance * quality.match_imbalance_std_dev
    return round(score, 6)


def validate_schedule(matches: list[Match], teams: Iterable[str] | None = None) -> dict:
    """Validate a schedule against hard rules and soft constraints.

    Returns dict with:
    - valid: bool (True if no hard constraint violations)
    - errors: list of hard constraint violations
    - warnings: list of soft constraint issues
    """
    errors = []
    warnings = []
    known = set(teams) if teams is not None else None

    # team -> datetime -> count, for double booking
    bookings: dict[str, Counter] = defaultdict(Counter)
    venue_use: Counter = Counter()

    for m in matches:
        h, a = m.home_team_id, m.away_team_id
        if known is not None:
            for t in (h, a):
                if t not in known:
                    errors.append(f"Unknown team: {t}")
        if m.scheduled_at is None:
            errors.append(f"{h} vs {a} has no date")
            continue

        bookings[h][m.scheduled_at] += 1
        bookings[a][m.scheduled_at] += 1
        venue_use[(m.venue_id, m.scheduled_at)] += 1

        if m.referee_team_id in (h, a):
            errors.append(
                f"{h} vs {a} on {m.scheduled_at:%Y-%m-%d %H:%M}: "
                f"referee {m.referee_team_id} is playing"
            )
        elif m.referee_team_id is not None:
            bookings[m.referee_team_id][m.scheduled_at] += 1

    for team, per_time in sorted(bookings.items()):
        for dt, count in sorted(per_time.items()):
            if count > 1:
                errors.append(
                    f"{team} is booked {count} times at {dt:%Y-%m-%d %H:%M}"
                )

    for (venue, dt), count in sorted(venue_use.items(), key=lambda kv: (kv[0][1], kv[0][0])):
        if count > 1:
            errors.append(f"Venue {venue} hosts {count} matches at {dt:%Y-%m-%d %H:%M}")

    dated = [m for m in matches if m.scheduled_at is not None]
    pair_counts = Counter(
        (min(m.home_team_id, m.away_team_id), max(m.home_team_id, m.away_team_id))
        for m in dated
    )
    for (t1, t2), count in sorted(pair_counts.items()):
        if count > 1:
            warnings.append(f"{t1} vs {t2} played {count} times")

    b2b = count_back_to_back(dated)
    if b2b:
        warnings.append(f"{b2b} back-to-back appearances")

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "warnings": warnings,
    }


def format_validation_report(result: dict) -> str:
    """Format validation results as text."""
    lines = []
    lines.append("=" * 60)
    lines.append("SCHEDULE VALIDATION REPORT")
    lines.append("=" * 60)

    if result["valid"]:
        lines.append("\nRESULT: VALID (no hard constraint violations)")
    else:
        lines.append(f"\nRESULT: INVALID ({len(result['errors'])} violations)")

    if result["errors"]:
        lines.append(f"\n--- ERRORS ({len(result['errors'])}) ---")
        for e in result["errors"]:
            lines.append(f"  ERROR: {e}")

    if result["warnings"]:
        lines.append(f"\n--- WARNINGS ({len(result['warnings'])}) ---")
        for w in result["warnings"]:
            lines.append(f"  WARN: {w}")

    return "\n".join(lines)
