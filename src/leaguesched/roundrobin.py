"""Round-robin pairing generation (circle method)."""

import random

from leaguesched.errors import InsufficientTeams
from leaguesched.models import Pairing, Round

BYE = "__BYE__"


def generate_round_robin(teams: list[str], include_return_games: bool = False,
                         seed: int | None = None,
                         group: str | None = None) -> list[Round]:
    """Generate a full round-robin schedule using the circle method.

    For N teams: N-1 rounds of N/2 pairings if even; if odd, a bye is added
    and every round has (N-1)/2 pairings plus one bye team. Bye pairings are
    never emitted.

    With ``seed`` the team order is shuffled first; without it the caller's
    order is kept, so the output is fully deterministic.

    With ``include_return_games`` the mirrored rounds (home/away swapped) are
    appended and numbered after the first cycle.
    """
    if len(teams) < 2:
        raise InsufficientTeams(len(teams))

    order = list(teams)
    if seed is not None:
        random.Random(seed).shuffle(order)

    n = len(order)
    if n % 2 == 1:
        order.append(BYE)
        n += 1

    # Circle method: fix position 0, rotate the rest
    rounds = []
    for r in range(n - 1):
        pairings = []
        bye_teams = []
        for i in range(n // 2):
            t1 = order[i]
            t2 = order[n - 1 - i]
            if t1 == BYE:
                bye_teams.append(t2)
            elif t2 == BYE:
                bye_teams.append(t1)
            else:
                pairings.append(Pairing(t1, t2, round_number=r + 1, group=group))

        rounds.append(Round(number=r + 1, pairings=pairings, bye_teams=bye_teams))

        order = [order[0]] + [order[-1]] + order[1:-1]

    if include_return_games:
        cycle = len(rounds)
        rounds += [
            Round(
                number=rnd.number + cycle,
                pairings=[p.mirrored(cycle) for p in rnd.pairings],
                bye_teams=list(rnd.bye_teams),
            )
            for rnd in rounds
        ]

    return rounds


def round_robin_pairings(teams: list[str], include_return_games: bool = False,
                         seed: int | None = None,
                         group: str | None = None) -> list[Pairing]:
    """Flattened pairing list of :func:`generate_round_robin`."""
    rounds = generate_round_robin(teams, include_return_games, seed=seed,
                                  group=group)
    return [p for rnd in rounds for p in rnd.pairings]


def verify_round_robin(rounds: list[Round], teams: list[str],
                       cycles: int = 1) -> dict:
    """Verify a round-robin schedule is valid and complete.

    Returns dict with:
    - valid: bool
    - errors: list of error strings
    - matchup_counts: dict of (team_a, team_b) -> count
    - games_per_team: dict of team -> game count
    """
    errors = []
    matchup_counts: dict[tuple[str, str], int] = {}
    games_per_team: dict[str, int] = {t: 0 for t in teams}

    for rnd in rounds:
        teams_in_round = set()
        for p in rnd.pairings:
            for t in (p.home, p.away):
                if t in teams_in_round:
                    errors.append(f"Round {rnd.number}: {t} appears twice")
                teams_in_round.add(t)
                games_per_team[t] = games_per_team.get(t, 0) + 1
            if BYE in (p.home, p.away):
                errors.append(f"Round {rnd.number}: bye emitted as a match")

            matchup_counts[p.key] = matchup_counts.get(p.key, 0) + 1

    # Check every pair plays exactly once per cycle
    for i, t1 in enumerate(teams):
        for t2 in teams[i + 1:]:
            key = (min(t1, t2), max(t1, t2))
            count = matchup_counts.get(key, 0)
            if count != cycles:
                errors.append(
                    f"{t1} vs {t2}: played {count} times (expected {cycles})"
                )

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "matchup_counts": matchup_counts,
        "games_per_team": games_per_team,
    }
