"""Standings table with configurable points and tie-break chain.

Rows are recomputed from the full set of completed matches every time; the
table is never stored. Ties on points are separated by the configured
criteria in order. When every criterion is exhausted the order falls back to
team id, so identical input always yields the identical table.
"""

from collections import defaultdict
from typing import Iterable, Optional

from leaguesched.models import (
    DEFAULT_TIE_BREAKERS, Match, PointsConfig, StandingsRow, TieBreaker,
)


def _completed(matches: Iterable[Match]) -> list[Match]:
    return [m for m in matches if m.is_completed]


def _aggregate(matches: list[Match], points: PointsConfig,
               roster: Optional[Iterable[str]] = None) -> dict[str, StandingsRow]:
    rows: dict[str, StandingsRow] = {}
    for team_id in roster or ():
        rows[team_id] = StandingsRow(team_id=team_id)

    for m in matches:
        home = rows.setdefault(m.home_team_id, StandingsRow(team_id=m.home_team_id))
        away = rows.setdefault(m.away_team_id, StandingsRow(team_id=m.away_team_id))

        home.played += 1
        away.played += 1
        home.goals_for += m.home_score
        home.goals_against += m.away_score
        away.goals_for += m.away_score
        away.goals_against += m.home_score
        home.fair_play += m.home_fair_play
        away.fair_play += m.away_fair_play

        if m.home_score > m.away_score:
            home.wins += 1
            away.losses += 1
            home.points += points.points_per_win
            away.points += points.points_per_loss
        elif m.home_score < m.away_score:
            away.wins += 1
            home.losses += 1
            away.points += points.points_per_win
            home.points += points.points_per_loss
        else:
            home.draws += 1
            away.draws += 1
            home.points += points.points_per_draw
            away.points += points.points_per_draw

    return rows


def head_to_head_table(team_ids: Iterable[str], matches: list[Match],
                       points: PointsConfig) -> dict[str, StandingsRow]:
    """Mini-league restricted to matches between the given teams."""
    subset = set(team_ids)
    direct = [m for m in matches
              if m.home_team_id in subset and m.away_team_id in subset]
    return _aggregate(direct, points, roster=sorted(subset))


def _criterion_key(criterion: TieBreaker, rows: list[StandingsRow],
                   matches: list[Match], points: PointsConfig) -> dict[str, tuple]:
    """Map team id -> sort key for one criterion (higher key ranks higher)."""
    if criterion is TieBreaker.HEAD_TO_HEAD:
        mini = head_to_head_table([r.team_id for r in rows], matches, points)
        return {
            tid: (row.points, row.goal_difference) for tid, row in mini.items()
        }

    keys = {}
    for r in rows:
        match criterion:
            case TieBreaker.GOAL_DIFFERENCE:
                keys[r.team_id] = (r.goal_difference,)
            case TieBreaker.GOALS_SCORED:
                keys[r.team_id] = (r.goals_for,)
            case TieBreaker.GOALS_AGAINST:
                keys[r.team_id] = (-r.goals_against,)
            case TieBreaker.WINS:
                keys[r.team_id] = (r.wins,)
            case TieBreaker.FAIR_PLAY:
                keys[r.team_id] = (-r.fair_play,)
    return keys


def _split(rows: list[StandingsRow], key: dict[str, tuple]) -> list[list[StandingsRow]]:
    """Group rows by key value, best group first."""
    buckets: dict[tuple, list[StandingsRow]] = defaultdict(list)
    for r in rows:
        buckets[key[r.team_id]].append(r)
    return [buckets[k] for k in sorted(buckets, reverse=True)]


def _resolve(tied: list[StandingsRow], chain: list[TieBreaker],
             matches: list[Match], points: PointsConfig) -> list[StandingsRow]:
    if len(tied) <= 1 or not chain:
        return sorted(tied, key=lambda r: r.team_id)

    criterion, rest = chain[0], chain[1:]
    key = _criterion_key(criterion, tied, matches, points)
    ordered = []
    for group in _split(tied, key):
        ordered.extend(_resolve(group, rest, matches, points))
    return ordered


def compute_standings(matches: Iterable[Match],
                      points: PointsConfig | None = None,
                      tie_breakers: Iterable[TieBreaker] = DEFAULT_TIE_BREAKERS,
                      roster: Optional[Iterable[str]] = None) -> list[StandingsRow]:
    """Compute the ordered table, best team first.

    Only ``completed`` matches count. Teams listed in ``roster`` appear even
    without any completed match; teams found only in matches are included
    too. With no completed matches and no roster the table is empty.
    """
    points = points or PointsConfig()
    chain = list(tie_breakers)
    played = _completed(matches)
    rows = _aggregate(played, points, roster=roster)

    by_points: dict[int, list[StandingsRow]] = defaultdict(list)
    for row in rows.values():
        by_points[row.points].append(row)

    table = []
    for pts in sorted(by_points, reverse=True):
        table.extend(_resolve(by_points[pts], chain, played, points))
    return table


def format_standings(rows: list[StandingsRow],
                     team_names: dict[str, str] | None = None) -> str:
    """Format the table as fixed-width text."""
    names = team_names or {}
    lines = []
    lines.append(f"{'Pos':>3}  {'Team':<20} {'P':>3} {'W':>3} {'D':>3} {'L':>3} "
                 f"{'GF':>4} {'GA':>4} {'GD':>4} {'Pts':>4}")
    lines.append("-" * 62)
    for pos, r in enumerate(rows, 1):
        name = names.get(r.team_id, r.team_id)
        lines.append(
            f"{pos:>3}  {name:<20} {r.played:>3} {r.wins:>3} {r.draws:>3} "
            f"{r.losses:>3} {r.goals_for:>4} {r.goals_against:>4} "
            f"{r.goal_difference:>+4} {r.points:>4}"
        )
    return "\n".join(lines)
