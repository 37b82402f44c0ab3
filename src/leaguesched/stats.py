"""Statistics and balance reporting for generated schedules."""

from collections import defaultdict
from typing import Optional

from leaguesched.models import GenerationStats, Match

IMBALANCE_THRESHOLD = 2


def compute_stats(matches: list[Match], teams: list[str] | None = None) -> dict:
    """Per-team counts and matchup repeats for a schedule.

    Returns dict with all stats needed for reporting. Teams listed in
    ``teams`` appear even when they have no matches.
    """
    all_teams = sorted(set(teams or []) | {
        t for m in matches for t in (m.home_team_id, m.away_team_id)
    })

    played = {t: 0 for t in all_teams}
    home_counts = defaultdict(int)
    away_counts = defaultdict(int)
    refereed = defaultdict(int)
    matches_per_day = defaultdict(int)
    matchup_counts = defaultdict(lambda: defaultdict(int))

    for m in matches:
        h = m.home_team_id
        a = m.away_team_id
        played[h] += 1
        played[a] += 1
        home_counts[h] += 1
        away_counts[a] += 1
        if m.referee_team_id is not None:
            refereed[m.referee_team_id] += 1
        if m.scheduled_at is not None:
            matches_per_day[m.scheduled_at.date()] += 1
        matchup_counts[h][a] += 1
        matchup_counts[a][h] += 1

    repeated = []
    for t1 in all_teams:
        for t2, count in sorted(matchup_counts[t1].items()):
            if t1 < t2 and count > 1:
                repeated.append((t1, t2, count))

    counts = list(played.values())
    min_played = min(counts, default=0)
    max_played = max(counts, default=0)

    return {
        "all_teams": all_teams,
        "played": played,
        "home_counts": dict(home_counts),
        "away_counts": dict(away_counts),
        "refereed": dict(refereed),
        "matches_per_day": dict(sorted(matches_per_day.items())),
        "matchup_counts": {k: dict(v) for k, v in matchup_counts.items()},
        "repeated_matchups": repeated,
        "min_played": min_played,
        "max_played": max_played,
        "imbalanced": max_played - min_played > IMBALANCE_THRESHOLD,
        "total_matches": len(matches),
    }


def format_stats_report(stats: dict,
                        generation_stats: Optional[GenerationStats] = None,
                        team_names: dict[str, str] | None = None) -> str:
    """Format statistics into a human-readable report."""
    names = team_names or {}
    lines = []
    lines.append("=" * 70)
    lines.append("SCHEDULE STATISTICS")
    lines.append("=" * 70)

    if generation_stats is not None:
        q = generation_stats.quality
        lines.append("\n--- GENERATION ---")
        lines.append(f"  Attempts run:        {generation_stats.attempts_run}")
        lines.append(f"  Best attempt:        #{generation_stats.best_attempt_index}")
        lines.append(f"  Best score:          {generation_stats.best_score:g}")
        lines.append(f"  Repeat violations:   {q.repeat_violations}")
        lines.append(f"  Back-to-back:        {q.back_to_back_violations}")
        lines.append(f"  Unfilled slots:      {q.unfilled_slots}")
        lines.append(f"  Unscheduled:         {q.unscheduled_pairings}")
        lines.append(f"  Imbalance std dev:   {q.match_imbalance_std_dev:.3f}")

    def _z(v, width=5):
        if v == 0:
            return " " * width
        return f"{v:>{width}}"

    lines.append("\n--- TEAM BALANCE ---")
    lines.append(f"{'Team':<20} {'Play':>5} {'Home':>5} {'Away':>5} {'Ref':>5}")
    lines.append("-" * 44)
    for t in stats["all_teams"]:
        label = names.get(t, t)
        lines.append(
            f"{label:<20} {_z(stats['played'].get(t, 0))} "
            f"{_z(stats['home_counts'].get(t, 0))} "
            f"{_z(stats['away_counts'].get(t, 0))} "
            f"{_z(stats['refereed'].get(t, 0))}"
        )
    flag = "  *** IMBALANCED" if stats["imbalanced"] else ""
    lines.append(f"\nMatches per team: min {stats['min_played']}, "
                 f"max {stats['max_played']}{flag}")

    if stats["repeated_matchups"]:
        lines.append("\n--- REPEATED MATCHUPS ---")
        for t1, t2, count in stats["repeated_matchups"]:
            lines.append(f"  {names.get(t1, t1)} vs {names.get(t2, t2)}: {count}x")

    if stats["matches_per_day"]:
        lines.append("\n--- MATCHES PER DAY ---")
        for d, count in stats["matches_per_day"].items():
            lines.append(f"  {d.strftime('%a %Y-%m-%d')}: {count}")

    return "\n".join(lines)
