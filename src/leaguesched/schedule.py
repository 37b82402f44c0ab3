#!/usr/bin/env python3
"""League and tournament schedule builder.

Generate mode (default):
    leaguesched [config.yaml] [--seed N] [--attempts N] [--workers N] [-o DIR]

    Runs a dry-run generation for the configured phase and writes:
      {DIR}/schedule.txt  - Human-readable day-by-day + per-team schedule
      {DIR}/matches.csv   - Proposed match rows for the match store
      {DIR}/stats.txt     - Validation report + generation statistics

Standings mode:
    leaguesched [config.yaml] --standings matches.csv

    Prints the standings table from an exported match store.

Phase status mode:
    leaguesched [config.yaml] --status matches.csv

    Prints the derived status of every phase of the configured format.

Examples:
    leaguesched                              # default config
    leaguesched --seed 42 -o spring2026      # reproducible, custom directory
    leaguesched cup.yaml --attempts 50 --workers 4
    leaguesched --standings output/matches.csv
"""

import argparse
import logging
import sys
from pathlib import Path

from leaguesched.config import load_config
from leaguesched.constraints import format_validation_report, validate_schedule
from leaguesched.errors import SchedulingError
from leaguesched.handlers import phases_for
from leaguesched.output import parse_matches_csv, write_schedule
from leaguesched.phases import current_phase, season_phase_statuses
from leaguesched.scheduler import generate_schedule
from leaguesched.standings import compute_standings, format_standings
from leaguesched.stats import compute_stats, format_stats_report


def print_standings(config: dict, csv_path: str):
    request = config["request"]
    matches = [m for m in parse_matches_csv(csv_path)
               if m.season_id in ("", request.season_id)]
    rows = compute_standings(
        matches, config["points"], config["tie_breakers"],
        roster=[t.id for t in request.teams],
    )
    print(format_standings(rows, config["team_names"]))


def print_status(config: dict, csv_path: str):
    request = config["request"]
    matches = [m for m in parse_matches_csv(csv_path)
               if m.season_id in ("", request.season_id)]
    phases = phases_for(config["handler"])
    statuses = season_phase_statuses(phases, matches)

    print(f"{'Phase':<22} {'Status':<12} {'Done':>5} {'Total':>6}")
    print("-" * 48)
    for s in statuses:
        note = " (skipped)" if s.implicit else ""
        print(f"{s.phase_id:<22} {s.status.value:<12} "
              f"{s.completed_matches:>5} {s.total_matches:>6}{note}")
    active = current_phase(phases, statuses)
    print(f"\nCurrent phase: {active.id if active else 'none (season complete)'}")


def main():
    parser = argparse.ArgumentParser(
        description="League and tournament schedule builder",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Output files (generate mode):
  {dir}/schedule.txt   Human-readable schedule (day view + per-team)
  {dir}/matches.csv    Proposed match rows
  {dir}/stats.txt      Validation report + generation statistics

Exit codes:
  0  Schedule generated (soft violations are reported, not fatal)
  1  Config error or scheduling failure
""",
    )
    parser.add_argument(
        "config", nargs="?", default="config.yaml",
        help="Path to config YAML file (default: config.yaml)"
    )
    parser.add_argument(
        "--seed", type=int, default=None,
        help="Base random seed; attempt i uses seed+i (default: from config)"
    )
    parser.add_argument(
        "--attempts", type=int, default=None,
        help="Number of candidate schedules to try (default: from config)"
    )
    parser.add_argument(
        "--workers", type=int, default=None,
        help="Worker processes for attempts (default: CPU count, 1 runs inline)"
    )
    parser.add_argument(
        "--output-prefix", "-o", default=None,
        help="Output directory for generated files (default: output/)"
    )
    parser.add_argument(
        "--standings", metavar="CSV",
        help="Print the standings table for a match export instead of generating"
    )
    parser.add_argument(
        "--status", metavar="CSV",
        help="Print phase status for a match export instead of generating"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Log per-attempt scores"
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    config_path = args.config
    if not Path(config_path).exists():
        print(f"Error: config file {config_path} not found")
        sys.exit(1)

    print(f"Loading config from {config_path}...")
    try:
        config = load_config(config_path)
    except SchedulingError as e:
        print(f"Error: {e}")
        sys.exit(1)

    if args.standings:
        print_standings(config, args.standings)
        return
    if args.status:
        print_status(config, args.status)
        return

    request = config["request"]
    if args.seed is not None:
        request.seed = args.seed
    if args.attempts is not None:
        request.attempts = args.attempts
    if args.workers is not None:
        request.workers = args.workers

    print(f"Generating {request.stage} schedule "
          f"(seed={request.seed}, attempts={request.attempts})...")
    try:
        result = generate_schedule(request)
    except SchedulingError as e:
        print(f"Error: {e}")
        sys.exit(1)

    team_ids = [t.id for t in request.teams]
    print("\nValidating...")
    print(format_validation_report(validate_schedule(result.matches, team_ids)))
    print("\n" + format_stats_report(
        compute_stats(result.matches, team_ids), result.stats, config["team_names"]
    ))

    print("\nWriting output files...")
    write_schedule(
        result,
        output_prefix=args.output_prefix or config["output_prefix"],
        team_names=config["team_names"],
        teams=team_ids,
        title=config["name"],
    )

    if result.unscheduled:
        print(f"\n{len(result.unscheduled)} pairings could not be scheduled.")
        print("Add slots or relax constraints, or try another seed.")
    else:
        print("\nSchedule generated successfully!")


if __name__ == "__main__":
    main()
