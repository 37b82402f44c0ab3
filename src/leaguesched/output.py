"""Output formatters and match-store CSV I/O."""

import csv
from datetime import date, datetime
from io import StringIO
from pathlib import Path

from leaguesched.constraints import format_validation_report, validate_schedule
from leaguesched.models import Match, MatchStatus, ScheduleResult
from leaguesched.stats import compute_stats, format_stats_report

CSV_COLUMNS = [
    "competition_id", "season_id", "stage", "group",
    "home_team_id", "away_team_id", "referee_team_id", "venue_id",
    "match_date", "status", "home_score", "away_score",
]


def format_schedule(matches: list[Match], team_names: dict[str, str] | None = None,
                    title: str = "") -> str:
    """Format schedule as human-readable text, organized by day."""
    names = team_names or {}
    dated = [m for m in matches if m.scheduled_at is not None]

    lines = []
    lines.append("=" * 80)
    lines.append((title or "SCHEDULE").upper())
    lines.append("=" * 80)

    by_date: dict[date, list[Match]] = {}
    for m in dated:
        by_date.setdefault(m.scheduled_at.date(), []).append(m)

    for d in sorted(by_date.keys()):
        lines.append(f"\n  {d.strftime('%A')} {d.strftime('%m/%d/%Y')}")
        for m in sorted(by_date[d], key=lambda x: (x.scheduled_at, x.venue_id)):
            start = m.scheduled_at.strftime("%H:%M")
            home = names.get(m.home_team_id, m.home_team_id)
            away = names.get(m.away_team_id, m.away_team_id)
            ref = ""
            if m.referee_team_id is not None:
                ref = f"  (ref {names.get(m.referee_team_id, m.referee_team_id)})"
            group = f" [{m.group}]" if m.group else ""
            lines.append(
                f"    {start:>5}  {home:<16} vs {away:<16} @ {m.venue_id}{group}{ref}"
            )

    # Per-team schedule
    lines.append("\n" + "=" * 80)
    lines.append("PER-TEAM SCHEDULES")
    lines.append("=" * 80)

    by_team: dict[str, list[Match]] = {}
    for m in dated:
        by_team.setdefault(m.home_team_id, []).append(m)
        by_team.setdefault(m.away_team_id, []).append(m)

    for team_id in sorted(by_team.keys()):
        lines.append(f"\n{names.get(team_id, team_id)}:")
        for i, m in enumerate(sorted(by_team[team_id], key=lambda x: x.scheduled_at), 1):
            is_home = m.home_team_id == team_id
            opponent = m.away_team_id if is_home else m.home_team_id
            h_a = "H" if is_home else "A"
            when = m.scheduled_at.strftime("%a %m/%d %H:%M")
            lines.append(
                f"  {i:>2}. {when} {h_a} vs {names.get(opponent, opponent):<16} @ {m.venue_id}"
            )

    return "\n".join(lines)


def format_matches_csv(matches: list[Match]) -> str:
    """Format matches as rows for the match store, one per line."""
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(CSV_COLUMNS)

    for m in sorted(matches, key=lambda x: (x.scheduled_at or datetime.min, x.venue_id)):
        writer.writerow([
            m.competition_id, m.season_id, m.stage, m.group or "",
            m.home_team_id, m.away_team_id, m.referee_team_id or "", m.venue_id,
            m.scheduled_at.isoformat(timespec="minutes") if m.scheduled_at else "",
            m.status.value, m.home_score, m.away_score,
        ])

    return output.getvalue()


def parse_matches_csv(path: str | Path) -> list[Match]:
    """Read matches exported by ``format_matches_csv`` (or edited by hand).

    Missing optional columns fall back to the Match defaults.
    """
    matches = []
    with open(path, newline="") as f:
        reader = csv.DictReader(f)
        for row in reader:
            when = (row.get("match_date") or "").strip()
            matches.append(Match(
                competition_id=row.get("competition_id", ""),
                season_id=row.get("season_id", ""),
                stage=row.get("stage", ""),
                home_team_id=row["home_team_id"].strip(),
                away_team_id=row["away_team_id"].strip(),
                venue_id=row.get("venue_id", ""),
                scheduled_at=datetime.fromisoformat(when) if when else None,
                referee_team_id=(row.get("referee_team_id") or "").strip() or None,
                status=MatchStatus((row.get("status") or "scheduled").strip().lower()),
                home_score=int(row.get("home_score") or 0),
                away_score=int(row.get("away_score") or 0),
                group=(row.get("group") or "").strip() or None,
            ))
    return matches


def write_schedule(result: ScheduleResult, output_prefix: str = "output",
                   team_names: dict[str, str] | None = None,
                   teams: list[str] | None = None, title: str = ""):
    """Write all output files into {output_prefix}/ directory."""
    out_dir = Path(output_prefix)
    out_dir.mkdir(parents=True, exist_ok=True)

    schedule_text = format_schedule(result.matches, team_names, title=title)
    if result.unscheduled:
        schedule_text += f"\n\nUNSCHEDULED PAIRINGS ({len(result.unscheduled)})\n"
        schedule_text += "\n".join(f"  {p.home} vs {p.away}" for p in result.unscheduled)
    schedule_path = out_dir / "schedule.txt"
    schedule_path.write_text(schedule_text)
    print(f"Written: {schedule_path}")

    csv_path = out_dir / "matches.csv"
    csv_path.write_text(format_matches_csv(result.matches))
    print(f"Written: {csv_path}")

    report = format_validation_report(validate_schedule(result.matches, teams))
    stats = compute_stats(result.matches, teams)
    stats_path = out_dir / "stats.txt"
    stats_path.write_text(
        report + "\n\n" + format_stats_report(stats, result.stats, team_names)
    )
    print(f"Written: {stats_path}")
