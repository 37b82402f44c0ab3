"""Tournament formats: ordered phase lists and default settings.

Each format is one ``HandlerKey``. ``phases_for`` and ``default_settings``
dispatch over the enum with an exhaustive ``match``, so adding a format means
adding a case here rather than registering a string at runtime.
"""

import copy
from enum import Enum

from leaguesched.errors import InvalidBracketSize, InvalidConstraint
from leaguesched.models import (
    AdvancementRule, MatchGenerationType, PhaseConfig, PlayoffFormat,
    SeedingMethod, TieBreaker,
)

RR = MatchGenerationType.ROUND_ROBIN
KO = MatchGenerationType.KNOCKOUT
SWISS = MatchGenerationType.SWISS_PAIRING
GROUPS = MatchGenerationType.GROUP_ASSIGNMENT

SUPPORTED_BRACKET_SIZES = (4, 8, 16, 32)


class HandlerKey(Enum):
    LEAGUE_ONLY = "league_only"
    KNOCKOUT = "knockout"
    GROUPS_KNOCKOUT = "groups_knockout"
    SWISS_SYSTEM = "swiss_system"
    ROUND_ROBIN_FINAL = "round_robin_final"


LEGACY_HANDLER_KEYS = {
    "generate_playoffs": HandlerKey.SWISS_SYSTEM,
    "default": HandlerKey.LEAGUE_ONLY,
}

LEGACY_PHASE_IDS = {
    "Inizio Torneo": "start",
    "Fase 1": "regular_season",
    "Fase 2": "poule_a",
    "Fase 3": "final",
}


def normalize_handler_key(key: "str | HandlerKey | None") -> HandlerKey:
    """Map a stored handler key (possibly legacy or missing) to a HandlerKey."""
    if isinstance(key, HandlerKey):
        return key
    if not key:
        return HandlerKey.LEAGUE_ONLY
    try:
        return HandlerKey(key)
    except ValueError:
        return LEGACY_HANDLER_KEYS.get(key, HandlerKey.LEAGUE_ONLY)


def normalize_phase_id(phase_id: str) -> str:
    return LEGACY_PHASE_IDS.get(phase_id, phase_id)


# ---------------------------------------------------------------------------
# Phase lists
# ---------------------------------------------------------------------------

LEAGUE_ONLY_PHASES = (
    PhaseConfig("start", "tournament.phases.start", 0, RR,
                include_return_games=True),
    PhaseConfig("regular_season", "tournament.phases.regularSeason", 1, RR,
                include_return_games=True, is_terminal=True),
)

KNOCKOUT_PHASES = (
    PhaseConfig("start", "tournament.phases.start", 0, KO),
    PhaseConfig("quarter-final", "tournament.phases.quarterFinal", 1, KO,
                bracket_size=8,
                advancement_rules=[AdvancementRule(4, "semi-final")]),
    PhaseConfig("semi-final", "tournament.phases.semiFinal", 2, KO,
                bracket_size=4,
                advancement_rules=[AdvancementRule(2, "final")]),
    PhaseConfig("third-place_playoff", "tournament.phases.thirdPlace", 3, KO,
                is_terminal=True),
    PhaseConfig("final", "tournament.phases.final", 4, KO, is_terminal=True),
)

GROUPS_KNOCKOUT_PHASES = (
    PhaseConfig("start", "tournament.phases.start", 0, GROUPS),
    PhaseConfig("group_stage", "tournament.phases.groupStage", 1, RR,
                advancement_rules=[AdvancementRule(2, "knockout")]),
    PhaseConfig("knockout", "tournament.phases.knockout", 2, KO),
    PhaseConfig("final", "tournament.phases.final", 3, KO, is_terminal=True),
)

SWISS_SYSTEM_PHASES = (
    PhaseConfig("start", "tournament.phases.start", 0, SWISS),
    PhaseConfig("regular_season", "tournament.phases.phase1", 1, SWISS,
                advancement_rules=[
                    AdvancementRule(4, "poule_a", source="top"),
                    AdvancementRule(4, "poule_b", source="bottom"),
                ]),
    PhaseConfig("poule_a", "tournament.phases.pouleA", 2, RR,
                advancement_rules=[AdvancementRule(2, "final")]),
    PhaseConfig("poule_b", "tournament.phases.pouleB", 2, RR,
                is_terminal=True),
    PhaseConfig("final", "tournament.phases.final", 3, KO, is_terminal=True),
)

ROUND_ROBIN_FINAL_PHASES = (
    PhaseConfig("start", "tournament.phases.start", 0, RR),
    PhaseConfig("regular_season", "tournament.phases.regularSeason", 1, RR,
                include_return_games=True,
                advancement_rules=[AdvancementRule(4, "semi-final")]),
    PhaseConfig("semi-final", "tournament.phases.semiFinal", 2, KO,
                bracket_size=4,
                advancement_rules=[AdvancementRule(2, "final")]),
    PhaseConfig("final", "tournament.phases.final", 3, KO, is_terminal=True),
)


def phases_for(key: HandlerKey) -> list[PhaseConfig]:
    """Ordered phase list for a format. Returns copies callers may mutate."""
    match key:
        case HandlerKey.LEAGUE_ONLY:
            phases = LEAGUE_ONLY_PHASES
        case HandlerKey.KNOCKOUT:
            phases = KNOCKOUT_PHASES
        case HandlerKey.GROUPS_KNOCKOUT:
            phases = GROUPS_KNOCKOUT_PHASES
        case HandlerKey.SWISS_SYSTEM:
            phases = SWISS_SYSTEM_PHASES
        case HandlerKey.ROUND_ROBIN_FINAL:
            phases = ROUND_ROBIN_FINAL_PHASES
    return sorted(copy.deepcopy(list(phases)), key=lambda p: p.order)


def get_phase(key: HandlerKey, phase_id: str) -> PhaseConfig | None:
    phase_id = normalize_phase_id(phase_id)
    for phase in phases_for(key):
        if phase.id == phase_id:
            return phase
    return None


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

BASE_STANDINGS_SETTINGS = {
    "points_per_win": 3,
    "points_per_draw": 1,
    "points_per_loss": 0,
    "tie_breakers": ["head_to_head", "goal_difference", "goals_scored"],
}

KNOCKOUT_SETTINGS = {
    "bracket_size": 8,
    "seeding_method": SeedingMethod.SEEDED.value,
    "third_place_match": True,
}


def default_settings(key: HandlerKey) -> dict:
    """Default settings for a format (a fresh dict on every call)."""
    match key:
        case HandlerKey.LEAGUE_ONLY:
            settings = {**BASE_STANDINGS_SETTINGS, "double_round_robin": True}
        case HandlerKey.KNOCKOUT:
            settings = dict(KNOCKOUT_SETTINGS)
        case HandlerKey.GROUPS_KNOCKOUT:
            settings = {
                **BASE_STANDINGS_SETTINGS,
                "group_count": 4,
                "teams_per_group": 4,
                "advancing_per_group": 2,
                "double_round_robin": False,
                "knockout": dict(KNOCKOUT_SETTINGS),
            }
        case HandlerKey.SWISS_SYSTEM:
            settings = {
                **BASE_STANDINGS_SETTINGS,
                "phase1_rounds": 7,
                "snake_seeding_pattern": [[1, 4, 5, 8], [2, 3, 6, 7]],
                "poule_format": "round_robin",
                "double_round_robin": True,
                "final_stage_teams": 4,
            }
        case HandlerKey.ROUND_ROBIN_FINAL:
            settings = {
                **BASE_STANDINGS_SETTINGS,
                "double_round_robin": True,
                "playoff_teams": 4,
                "playoff_format": PlayoffFormat.SINGLE_MATCH.value,
                "third_place_match": True,
            }
    return copy.deepcopy(settings)


def check_bracket_size(size: int, teams: int | None = None) -> int:
    if size not in SUPPORTED_BRACKET_SIZES:
        raise InvalidBracketSize(size, teams)
    if teams is not None and teams > size:
        raise InvalidBracketSize(size, teams)
    return size


def validate_snake_pattern(pattern) -> list[str]:
    """Return error strings for a snake-seeding pattern (empty if valid)."""
    errors = []
    if not isinstance(pattern, list) or len(pattern) < 2:
        return ["snake_seeding_pattern needs at least two poules"]
    flat = []
    for row in pattern:
        if not isinstance(row, list) or not all(
                isinstance(r, int) and r >= 1 for r in row):
            errors.append(f"snake_seeding_pattern row {row!r} must be positive ranks")
            continue
        flat.extend(row)
    if len(flat) != len(set(flat)):
        errors.append("snake_seeding_pattern has duplicate positions")
    if len({len(row) for row in pattern if isinstance(row, list)}) > 1:
        errors.append("snake_seeding_pattern poules must have equal size")
    return errors


def validate_settings(key: HandlerKey, settings: dict,
                      team_count: int | None = None) -> dict:
    """Validate format settings.

    Returns dict with:
    - valid: bool
    - errors: list of error strings
    - warnings: list of warning strings
    """
    errors = []
    warnings = []
    merged = {**default_settings(key), **(settings or {})}

    for name in ("points_per_win", "points_per_draw", "points_per_loss"):
        if name in merged:
            v = merged[name]
            if not isinstance(v, int) or v < 0:
                errors.append(f"{name} must be a non-negative integer, got {v!r}")

    if "tie_breakers" in merged:
        tbs = merged["tie_breakers"]
        if not tbs:
            errors.append("at least one tie breaker is required")
        for tb in tbs:
            try:
                TieBreaker(tb)
            except ValueError:
                errors.append(f"unknown tie breaker {tb!r}")

    if "playoff_format" in merged:
        try:
            PlayoffFormat(merged["playoff_format"])
        except ValueError:
            errors.append(f"unknown playoff format {merged['playoff_format']!r}")

    match key:
        case HandlerKey.LEAGUE_ONLY:
            pass
        case HandlerKey.KNOCKOUT:
            errors += _knockout_errors(merged, team_count)
        case HandlerKey.GROUPS_KNOCKOUT:
            gc = merged["group_count"]
            if not isinstance(gc, int) or not 2 <= gc <= 8:
                errors.append(f"group_count must be between 2 and 8, got {gc!r}")
            adv = merged["advancing_per_group"]
            tpg = merged["teams_per_group"]
            if isinstance(adv, int) and isinstance(tpg, int) and adv >= tpg:
                errors.append("advancing_per_group must be below teams_per_group")
            errors += _knockout_errors(merged["knockout"], None)
            if team_count is not None and isinstance(gc, int) and team_count < 2 * gc:
                errors.append(f"{team_count} teams cannot fill {gc} groups")
        case HandlerKey.SWISS_SYSTEM:
            pattern = merged["snake_seeding_pattern"]
            errors += validate_snake_pattern(pattern)
            rounds = merged["phase1_rounds"]
            if not isinstance(rounds, int) or rounds < 1:
                errors.append(f"phase1_rounds must be at least 1, got {rounds!r}")
            if team_count is not None and not errors:
                required = max(r for row in pattern for r in row)
                if team_count < required:
                    errors.append(
                        f"swiss system needs {required} teams, got {team_count}"
                    )
                if rounds > team_count - 1:
                    warnings.append(
                        f"{rounds} swiss rounds exceed {team_count - 1} distinct opponents"
                    )
        case HandlerKey.ROUND_ROBIN_FINAL:
            pt = merged["playoff_teams"]
            if pt not in (2, 4, 8):
                errors.append(f"playoff_teams must be 2, 4 or 8, got {pt!r}")
            elif team_count is not None and team_count < pt:
                errors.append(f"{team_count} teams cannot fill {pt} playoff places")

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "warnings": warnings,
    }


def _knockout_errors(settings: dict, team_count: int | None) -> list[str]:
    errors = []
    size = settings.get("bracket_size")
    try:
        check_bracket_size(size, team_count)
    except InvalidBracketSize as e:
        errors.append(str(e))
    try:
        SeedingMethod(settings.get("seeding_method"))
    except ValueError:
        errors.append(f"unknown seeding method {settings.get('seeding_method')!r}")
    return errors


def require_valid_settings(key: HandlerKey, settings: dict,
                           team_count: int | None = None) -> dict:
    """Merge settings over the defaults, raising InvalidConstraint if invalid."""
    result = validate_settings(key, settings, team_count)
    if not result["valid"]:
        raise InvalidConstraint("; ".join(result["errors"]))
    return {**default_settings(key), **(settings or {})}
