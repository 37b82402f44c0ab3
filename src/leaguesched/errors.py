"""Typed failures for the scheduling core.

Every error here is an input-validation failure: fatal for the current call
and reproducible with the same input. Soft constraint violations are reported
as quality metrics, never raised.
"""


class SchedulingError(Exception):
    """Base class for all scheduling failures."""


class InsufficientTeams(SchedulingError):
    def __init__(self, count: int, required: int = 2):
        self.count = count
        self.required = required
        super().__init__(
            f"At least {required} teams are required, got {count}"
        )


class InvalidBracketSize(SchedulingError):
    def __init__(self, size: int, teams: int | None = None):
        self.size = size
        self.teams = teams
        msg = f"Unsupported bracket size {size} (supported: 4, 8, 16, 32)"
        if teams is not None:
            msg += f" for {teams} teams"
        super().__init__(msg)


class InsufficientSlots(SchedulingError):
    def __init__(self, pairings: int, slots: int):
        self.pairings = pairings
        self.slots = slots
        super().__init__(
            f"Not enough available slots ({slots}) to schedule all "
            f"matches ({pairings})"
        )


class InvalidConstraint(SchedulingError):
    """A constraint or settings value is malformed."""


class IllegalTransition(SchedulingError):
    """A phase state change that the state machine does not allow."""


class ConfigError(SchedulingError):
    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("Config validation errors:\n  " + "\n  ".join(errors))


class InvalidMatch(SchedulingError, ValueError):
    """A match row whose home and away team are the same."""
