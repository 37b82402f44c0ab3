#!/usr/bin/env python3
"""Scan base seeds to find schedules with no repeats and nothing unscheduled.

Usage: leaguesched-scan [config.yaml] [-n MAX_SEED] [--attempts N]
"""

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

from leaguesched.config import load_config
from leaguesched.errors import SchedulingError
from leaguesched.scheduler import ScheduleRequest, generate_schedule


def scan_seed(request: ScheduleRequest, seed: int) -> dict:
    """Run a single base seed and return summary info."""
    result = generate_schedule(replace(request, seed=seed))
    q = result.stats.quality
    return {
        "seed": seed,
        "ok": q.repeat_violations == 0 and q.unscheduled_pairings == 0,
        "matches": len(result.matches),
        "unscheduled": q.unscheduled_pairings,
        "repeats": q.repeat_violations,
        "back_to_back": q.back_to_back_violations,
        "score": result.stats.best_score,
    }


def main():
    parser = argparse.ArgumentParser(
        description="Try a range of base seeds and list those whose best "
                    "attempt has no repeated matchups and nothing unscheduled",
    )
    parser.add_argument(
        "config", nargs="?", default="config.yaml",
        help="Season config YAML (default: config.yaml)"
    )
    parser.add_argument(
        "-n", "--max-seed", type=int, default=100,
        help="Try base seeds 0..N-1 (default: 100)"
    )
    parser.add_argument(
        "--attempts", type=int, default=None,
        help="Override attempts per seed from the config"
    )
    args = parser.parse_args()

    # Keep the per-seed table readable
    logging.basicConfig(level=logging.WARNING)

    if not Path(args.config).exists():
        print(f"Error: {args.config} does not exist")
        sys.exit(1)

    try:
        request = load_config(args.config)["request"]
    except SchedulingError as e:
        print(f"Error: {e}")
        sys.exit(1)
    if args.attempts is not None:
        request.attempts = args.attempts

    print(f"Trying base seeds 0..{args.max_seed - 1} for {args.config}")
    print(f"{'Seed':>6}  {'Match':>5}  {'Unsched':>7}  {'Rep':>4}  {'B2B':>4}  "
          f"{'Score':>10}  Result")
    print("-" * 60)

    clean = []
    for seed in range(args.max_seed):
        try:
            row = scan_seed(request, seed)
        except SchedulingError as e:
            print(f"Error: {e}")
            sys.exit(1)
        print(f"{seed:>6}  {row['matches']:>5}  {row['unscheduled']:>7}  "
              f"{row['repeats']:>4}  {row['back_to_back']:>4}  "
              f"{row['score']:>10g}  {'clean' if row['ok'] else '-'}", flush=True)
        if row["ok"]:
            clean.append(seed)

    print("-" * 60)
    if not clean:
        print(f"\nNo clean seed in 0..{args.max_seed - 1}")
        sys.exit(1)
    print(f"\n{len(clean)}/{args.max_seed} clean seeds: {' '.join(map(str, clean))}")


if __name__ == "__main__":
    main()
