"""Phase state machine.

Phase status is never stored: it is derived from the match rows each time it
is asked for, so readers never see a half-updated state. Advancement rules
select the teams for the next phase; invoking its generator is the caller's
job.
"""

import logging
from dataclasses import replace
from typing import Iterable, Optional

from leaguesched.errors import IllegalTransition, InsufficientTeams, InvalidConstraint
from leaguesched.handlers import normalize_phase_id
from leaguesched.models import (
    AdvancementRule, Match, MatchStatus, Pairing, PhaseConfig, PhaseState,
    PhaseStatus,
)

logger = logging.getLogger(__name__)

TRANSITIONS = {
    PhaseState.PENDING: {PhaseState.SCHEDULED},
    PhaseState.SCHEDULED: {PhaseState.IN_PROGRESS, PhaseState.COMPLETED},
    PhaseState.IN_PROGRESS: {PhaseState.COMPLETED},
    PhaseState.COMPLETED: set(),
}


def phase_matches(phase_id: str, matches: Iterable[Match]) -> list[Match]:
    phase_id = normalize_phase_id(phase_id)
    return [m for m in matches if normalize_phase_id(m.stage) == phase_id]


def phase_status(phase_id: str, matches: Iterable[Match]) -> PhaseStatus:
    """Status of one phase from its match rows.

    ``matches`` may hold the whole season; only rows whose stage is this
    phase are counted. Postponed and cancelled rows count toward the total.
    """
    rows = phase_matches(phase_id, matches)
    completed = sum(1 for m in rows if m.status is MatchStatus.COMPLETED)
    ongoing = sum(1 for m in rows if m.status is MatchStatus.ONGOING)
    scheduled = sum(1 for m in rows if m.status is MatchStatus.SCHEDULED)

    if not rows:
        state = PhaseState.PENDING
    elif completed == len(rows):
        state = PhaseState.COMPLETED
    elif completed > 0 or ongoing > 0:
        state = PhaseState.IN_PROGRESS
    else:
        state = PhaseState.SCHEDULED

    return PhaseStatus(
        phase_id=normalize_phase_id(phase_id),
        total_matches=len(rows),
        completed_matches=completed,
        scheduled_matches=scheduled,
        status=state,
    )


def season_phase_statuses(phases: list[PhaseConfig],
                          matches: list[Match]) -> list[PhaseStatus]:
    """Status for every phase in order.

    A phase without matches that comes before a phase with matches was
    skipped and is reported completed with ``implicit=True``.
    """
    ordered = sorted(phases, key=lambda p: p.order)
    statuses = [phase_status(p.id, matches) for p in ordered]

    last_with_matches = max(
        (ordered[i].order for i, s in enumerate(statuses) if s.total_matches),
        default=None,
    )
    if last_with_matches is not None:
        for phase, status in zip(ordered, statuses):
            if status.total_matches == 0 and phase.order < last_with_matches:
                status.status = PhaseState.COMPLETED
                status.implicit = True
    return statuses


def current_phase(phases: list[PhaseConfig],
                  statuses: list[PhaseStatus]) -> Optional[PhaseConfig]:
    """Lowest-order phase that is not completed, or None when all are."""
    by_id = {s.phase_id: s.status for s in statuses}
    for phase in sorted(phases, key=lambda p: p.order):
        if by_id.get(phase.id, PhaseState.PENDING) is not PhaseState.COMPLETED:
            return phase
    return None


def next_phase(phases: list[PhaseConfig], phase_id: str) -> Optional[PhaseConfig]:
    """Phase with the lowest order strictly after ``phase_id``."""
    phase_id = normalize_phase_id(phase_id)
    current = next((p for p in phases if p.id == phase_id), None)
    if current is None or current.is_terminal:
        return None
    later = [p for p in phases if p.order > current.order]
    if not later:
        return None
    return min(later, key=lambda p: p.order)


def can_transition(current: PhaseState, target: PhaseState) -> bool:
    return target in TRANSITIONS[current]


def transition(current: PhaseState, target: PhaseState) -> PhaseState:
    if not can_transition(current, target):
        raise IllegalTransition(
            f"Cannot move a phase from {current.value} to {target.value}"
        )
    return target


def close_phase(phase_id: str, matches: list[Match],
                forfeit_score: tuple[int, int] = (0, 0)) -> list[Match]:
    """Force-complete a phase.

    Returns completed copies of the phase's unfinished matches with the
    forfeit score; the caller persists them. Closing is irreversible, so a
    completed (or never scheduled) phase raises IllegalTransition.
    """
    status = phase_status(phase_id, matches)
    transition(status.status, PhaseState.COMPLETED)

    home, away = forfeit_score
    closed = [
        replace(m, status=MatchStatus.COMPLETED, home_score=home, away_score=away)
        for m in phase_matches(phase_id, matches)
        if m.status is not MatchStatus.COMPLETED
    ]
    logger.info("Closing phase %s: %d matches force-completed",
                status.phase_id, len(closed))
    return closed


def _ranked_ids(standings: Iterable) -> list[str]:
    return [getattr(s, "team_id", s) for s in standings]


def select_advancing_teams(standings: Iterable, rules: list[AdvancementRule],
                           group_standings: Optional[dict] = None
                           ) -> dict[str, list[str]]:
    """Teams each rule sends on, keyed by destination phase, in seed order.

    Rules with ``from_group`` read that group's table from
    ``group_standings``; the others read the overall ``standings``.
    """
    overall = _ranked_ids(standings)
    groups = group_standings or {}
    advancing: dict[str, list[str]] = {}

    for rule in rules:
        if rule.from_group is not None:
            if rule.from_group not in groups:
                raise InvalidConstraint(f"No standings for group {rule.from_group}")
            ranked = _ranked_ids(groups[rule.from_group])
        else:
            ranked = overall

        if rule.count < 1 or rule.count > len(ranked):
            raise InvalidConstraint(
                f"Cannot advance {rule.count} of {len(ranked)} teams to {rule.to_phase}"
            )
        if rule.source == "top":
            selected = ranked[:rule.count]
        elif rule.source == "bottom":
            selected = ranked[-rule.count:]
        else:
            raise InvalidConstraint(f"Unknown advancement source: {rule.source}")

        advancing.setdefault(rule.to_phase, []).extend(selected)
    return advancing


def swiss_final_pairings(poule_a: Iterable, poule_b: Iterable,
                         final_stage_teams: int = 2) -> list[Pairing]:
    """Final stage after the two swiss poules.

    Two teams: 1A vs 1B. Four teams: semi-finals 1A vs 2B and 1B vs 2A.
    """
    a = _ranked_ids(poule_a)
    b = _ranked_ids(poule_b)
    per_poule = final_stage_teams // 2
    if final_stage_teams not in (2, 4):
        raise InvalidConstraint(
            f"final_stage_teams must be 2 or 4, got {final_stage_teams}"
        )
    if len(a) < per_poule or len(b) < per_poule:
        raise InsufficientTeams(min(len(a), len(b)), per_poule)

    if final_stage_teams == 2:
        return [Pairing(a[0], b[0], round_number=1, bracket_position=0)]
    return [
        Pairing(a[0], b[1], round_number=1, bracket_position=0),
        Pairing(b[0], a[1], round_number=1, bracket_position=1),
    ]
