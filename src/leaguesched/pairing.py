"""Pairing generation for every match-generation type.

All functions take team ids and return ``Pairing`` lists (or group
membership). Randomness always comes from an explicit seed.
"""

import logging
import random
from typing import Iterable, Optional

from leaguesched.errors import InsufficientTeams, InvalidBracketSize, InvalidConstraint
from leaguesched.handlers import (
    SUPPORTED_BRACKET_SIZES, HandlerKey, validate_snake_pattern,
)
from leaguesched.models import MatchGenerationType, Pairing, PlayoffFormat, SeedingMethod
from leaguesched.roundrobin import round_robin_pairings

logger = logging.getLogger(__name__)

DEFAULT_SNAKE_PATTERN = [[1, 4, 5, 8], [2, 3, 6, 7]]

# Bracket position for each seed (index = seed - 1), so that the top seeds
# can only meet in the last rounds.
BRACKET_POSITIONS = {
    2: [0, 1],
    4: [0, 3, 2, 1],
    8: [0, 7, 4, 3, 2, 5, 6, 1],
    16: [0, 15, 8, 7, 4, 11, 12, 3, 2, 13, 10, 5, 6, 9, 14, 1],
    32: [0, 31, 16, 15, 8, 23, 24, 7, 4, 27, 20, 11, 12, 19, 28, 3,
         2, 29, 18, 13, 10, 21, 26, 5, 6, 25, 22, 9, 14, 17, 30, 1],
}

KNOCKOUT_STAGES = {
    "final", "semi-final", "quarter-final", "round-of-16", "round-of-32",
    "knockout", "third-place_playoff",
}


def _team_ids(standings: Iterable) -> list[str]:
    """Accept ranked team ids or StandingsRow objects."""
    return [getattr(s, "team_id", s) for s in standings]


def _require_teams(teams: list, required: int = 2):
    if len(teams) < required:
        raise InsufficientTeams(len(teams), required)


def poule_name(index: int) -> str:
    return f"poule_{chr(97 + index)}"


def group_name(index: int) -> str:
    return f"group_{chr(97 + index)}"


# ---------------------------------------------------------------------------
# Swiss
# ---------------------------------------------------------------------------

def snake_seed(standings: Iterable, pattern: list[list[int]] | None = None
               ) -> dict[str, list[str]]:
    """Split ranked teams into poules by 1-based rank pattern.

    Pattern [[1, 4, 5, 8], [2, 3, 6, 7]] puts 1st, 4th, 5th and 8th in
    poule_a and the rest in poule_b. Ranks beyond the table are skipped.
    """
    pattern = pattern if pattern is not None else DEFAULT_SNAKE_PATTERN
    errors = validate_snake_pattern(pattern)
    if errors:
        raise InvalidConstraint("; ".join(errors))

    ranked = _team_ids(standings)
    poules = {}
    for i, ranks in enumerate(pattern):
        poules[poule_name(i)] = [ranked[r - 1] for r in ranks if r <= len(ranked)]
    return poules


def swiss_pairing(standings: Iterable, pattern: list[list[int]] | None = None,
                  include_return_games: bool = False) -> dict[str, list[Pairing]]:
    """Re-seed poules from the current standings and round-robin each one.

    Called again for every new round with the updated standings; nothing
    is computed ahead of play.
    """
    ranked = _team_ids(standings)
    _require_teams(ranked)
    poules = snake_seed(ranked, pattern)

    result = {}
    for name, members in poules.items():
        _require_teams(members)
        result[name] = round_robin_pairings(
            members, include_return_games, group=name,
        )
    return result


def swiss_round(teams: list[str], standings: Iterable = (),
                previous: Iterable[tuple[str, str]] = (),
                seed: int | None = None) -> list[Pairing]:
    """One Swiss round: pair each team with the nearest-ranked unmet team.

    With no standings yet (first round) the draw is random. Teams missing
    from the standings rank after those present. With an odd team count the
    lowest unpaired team sits out.
    """
    _require_teams(teams)
    ranked = _team_ids(standings)
    played = {(min(a, b), max(a, b)) for a, b in previous}

    if not ranked:
        order = list(teams)
        random.Random(seed).shuffle(order)
    else:
        rank = {t: i for i, t in enumerate(ranked)}
        order = sorted(teams, key=lambda t: rank.get(t, len(ranked)))

    pairings = []
    paired: set[str] = set()
    for i, team in enumerate(order):
        if team in paired:
            continue
        candidates = [o for o in order[i + 1:] if o not in paired]
        if not candidates:
            break
        fresh = [o for o in candidates if (min(team, o), max(team, o)) not in played]
        opponent = (fresh or candidates)[0]
        if i % 2 == 0:
            pairings.append(Pairing(team, opponent))
        else:
            pairings.append(Pairing(opponent, team))
        paired.update((team, opponent))

    return pairings


# ---------------------------------------------------------------------------
# Knockout
# ---------------------------------------------------------------------------

def bracket_size_for(team_count: int) -> int:
    """Nearest supported bracket holding every team (a 2-team bracket is a final)."""
    for size in (2,) + SUPPORTED_BRACKET_SIZES:
        if team_count <= size:
            return size
    raise InvalidBracketSize(team_count, team_count)


def bracket_slots(teams: list[str], bracket_size: int | None = None,
                  seeding: SeedingMethod = SeedingMethod.SEEDED,
                  manual_order: Optional[list[Optional[str]]] = None,
                  seed: int | None = None) -> list[Optional[str]]:
    """Lay teams out in bracket positions; None marks a bye.

    ``teams`` is in seed order (best first) for seeded brackets.
    """
    _require_teams(teams)
    if bracket_size is None:
        size = bracket_size_for(len(teams))
    else:
        size = bracket_size
        if size not in SUPPORTED_BRACKET_SIZES or len(teams) > size:
            raise InvalidBracketSize(size, len(teams))

    match seeding:
        case SeedingMethod.MANUAL:
            if manual_order is None:
                order = list(teams) + [None] * (size - len(teams))
            else:
                order = list(manual_order)
            placed = [t for t in order if t is not None]
            if (len(order) != size or len(placed) != len(set(placed))
                    or set(placed) != set(teams)):
                raise InvalidConstraint(
                    f"manual bracket must fill all {size} positions with each "
                    f"team exactly once"
                )
            return order
        case SeedingMethod.RANDOM:
            seeded = list(teams)
            random.Random(seed).shuffle(seeded)
        case SeedingMethod.SEEDED:
            seeded = list(teams)

    slots: list[Optional[str]] = [None] * size
    for i, pos in enumerate(BRACKET_POSITIONS[size]):
        if i < len(seeded):
            slots[pos] = seeded[i]
    return slots


def bracket_pairings(slots: list[Optional[str]]) -> list[Pairing]:
    """Pairings for adjacent bracket positions; byes produce no pairing."""
    pairings = []
    for i in range(0, len(slots) - 1, 2):
        home, away = slots[i], slots[i + 1]
        if home is not None and away is not None:
            pairings.append(Pairing(home, away, bracket_position=i // 2))
    return pairings


def knockout(teams: list[str], bracket_size: int | None = None,
             seeding: SeedingMethod = SeedingMethod.SEEDED,
             manual_order: Optional[list[Optional[str]]] = None,
             seed: int | None = None) -> list[Pairing]:
    """First-round pairings of a single-elimination bracket.

    Later rounds depend on results and come from ``next_knockout_round``.
    """
    return bracket_pairings(
        bracket_slots(teams, bracket_size, seeding, manual_order, seed)
    )


def round_winners(slots: list[Optional[str]],
                  results: dict[int, str]) -> list[Optional[str]]:
    """Advancing team per bracket position (bye teams advance unplayed).

    ``results`` maps bracket position -> winning team id.
    """
    winners = []
    for pos in range(len(slots) // 2):
        home, away = slots[2 * pos], slots[2 * pos + 1]
        if home is not None and away is not None:
            winner = results.get(pos)
            if winner not in (home, away):
                raise InvalidConstraint(
                    f"bracket position {pos}: no valid result for {home} vs {away}"
                )
            winners.append(winner)
        else:
            winners.append(home if home is not None else away)
    return winners


def next_knockout_round(slots: list[Optional[str]], results: dict[int, str],
                        third_place: bool = False
                        ) -> tuple[list[Optional[str]], list[Pairing]]:
    """Build the next round once every result of the current one is known.

    Returns (next_slots, pairings). After the semi-finals, with
    ``third_place`` set, the losers' match is appended tagged
    ``group="third_place"``.
    """
    winners = round_winners(slots, results)
    pairings = bracket_pairings(winners)

    if third_place and len(slots) == 4:
        losers = []
        for pos in range(2):
            home, away = slots[2 * pos], slots[2 * pos + 1]
            if home is not None and away is not None:
                losers.append(away if winners[pos] == home else home)
        if len(losers) == 2:
            pairings.append(Pairing(losers[0], losers[1], group="third_place"))

    return winners, pairings


def playoff_legs(pairings: list[Pairing],
                 playoff_format: PlayoffFormat = PlayoffFormat.SINGLE_MATCH
                 ) -> list[Pairing]:
    """Expand knockout ties into the matches their format plays.

    Two-leg formats play the drawn tie as leg 1 and its mirror as leg 2.
    A best-of-3 decider depends on the first two results, so only its
    first two legs are generated here.
    """
    if playoff_format is PlayoffFormat.SINGLE_MATCH:
        return list(pairings)
    legs = []
    for p in pairings:
        legs.append(p)
        legs.append(p.mirrored(1))
    return legs


# ---------------------------------------------------------------------------
# Groups
# ---------------------------------------------------------------------------

def group_assignment(teams: list[str], group_count: int,
                     method: SeedingMethod = SeedingMethod.SEEDED,
                     seed: int | None = None) -> dict[str, list[str]]:
    """Serpentine distribution of teams (seed order) into groups.

    Emits membership only; matches come from ``group_pairings``.
    """
    _require_teams(teams)
    if group_count < 1:
        raise InvalidConstraint(f"group_count must be at least 1, got {group_count}")
    if len(teams) < 2 * group_count:
        raise InvalidConstraint(
            f"{len(teams)} teams cannot fill {group_count} groups of two or more"
        )

    order = list(teams)
    if method is SeedingMethod.RANDOM:
        random.Random(seed).shuffle(order)

    groups: dict[str, list[str]] = {group_name(g): [] for g in range(group_count)}
    index, direction = 0, 1
    for team in order:
        groups[group_name(index)].append(team)
        index += direction
        if index >= group_count:
            index, direction = group_count - 1, -1
        elif index < 0:
            index, direction = 0, 1
    return groups


def group_pairings(groups: dict[str, list[str]],
                   include_return_games: bool = False) -> list[Pairing]:
    pairings = []
    for name, members in groups.items():
        pairings += round_robin_pairings(members, include_return_games, group=name)
    return pairings


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

def determine_generation(stage: str, handler_key: HandlerKey,
                         explicit: MatchGenerationType | None = None
                         ) -> MatchGenerationType:
    """Pick the generation type for a stage: explicit, then stage name, then format."""
    if explicit is not None:
        return explicit
    if stage.startswith("group_"):
        return MatchGenerationType.ROUND_ROBIN
    if stage in KNOCKOUT_STAGES:
        return MatchGenerationType.KNOCKOUT

    match handler_key:
        case HandlerKey.KNOCKOUT:
            return MatchGenerationType.KNOCKOUT
        case HandlerKey.SWISS_SYSTEM:
            if stage == "regular_season":
                return MatchGenerationType.SWISS_PAIRING
            return MatchGenerationType.ROUND_ROBIN
        case HandlerKey.GROUPS_KNOCKOUT:
            if stage == "group_stage":
                return MatchGenerationType.ROUND_ROBIN
            return MatchGenerationType.KNOCKOUT
        case HandlerKey.LEAGUE_ONLY | HandlerKey.ROUND_ROBIN_FINAL:
            return MatchGenerationType.ROUND_ROBIN


def generate_pairings(generation: MatchGenerationType, teams: list[str], *,
                      include_return_games: bool = False,
                      standings: Iterable = (),
                      snake_pattern: list[list[int]] | None = None,
                      bracket_size: int | None = None,
                      seeding: SeedingMethod = SeedingMethod.SEEDED,
                      manual_order: Optional[list[Optional[str]]] = None,
                      group_count: int = 4,
                      grouping: SeedingMethod = SeedingMethod.SEEDED,
                      playoff_format: PlayoffFormat = PlayoffFormat.SINGLE_MATCH,
                      previous: Optional[Iterable[tuple[str, str]]] = None,
                      seed: int | None = None) -> list[Pairing]:
    """Pairings for one phase, whatever its generation type.

    For swiss phases, passing ``previous`` (the matchups already played,
    possibly none) switches from poule seeding to a single rematch-avoiding
    round.
    """
    _require_teams(teams)

    match generation:
        case MatchGenerationType.ROUND_ROBIN:
            pairings = round_robin_pairings(teams, include_return_games)
        case MatchGenerationType.SWISS_PAIRING if previous is not None:
            pairings = swiss_round(teams, standings, previous, seed)
        case MatchGenerationType.SWISS_PAIRING:
            ranked = _team_ids(standings) or list(teams)
            poules = swiss_pairing(ranked, snake_pattern, include_return_games)
            pairings = [p for members in poules.values() for p in members]
        case MatchGenerationType.KNOCKOUT:
            pairings = playoff_legs(
                knockout(teams, bracket_size, seeding, manual_order, seed),
                playoff_format,
            )
        case MatchGenerationType.GROUP_ASSIGNMENT:
            groups = group_assignment(teams, group_count, grouping, seed)
            pairings = group_pairings(groups, include_return_games)

    logger.debug("Generated %d %s pairings for %d teams",
                 len(pairings), generation.value, len(teams))
    return pairings
