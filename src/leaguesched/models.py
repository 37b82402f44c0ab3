"""Data models for the league scheduling core."""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import Optional

from leaguesched.errors import InvalidMatch


class DayOfWeek(Enum):
    Mon = 0
    Tue = 1
    Wed = 2
    Thu = 3
    Fri = 4
    Sat = 5
    Sun = 6

    @classmethod
    def from_str(cls, s: str) -> "DayOfWeek":
        return cls[s.strip()[:3].capitalize()]

    @classmethod
    def from_js_index(cls, n: int) -> "DayOfWeek":
        """Backend convention: 0=Sunday, 1=Monday ... 6=Saturday."""
        return cls((n - 1) % 7)

    def is_weekday(self) -> bool:
        return self.value < 5

    def is_weekend(self) -> bool:
        return self.value >= 5


class MatchStatus(Enum):
    SCHEDULED = "scheduled"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    POSTPONED = "postponed"
    CANCELLED = "cancelled"


class MatchGenerationType(Enum):
    ROUND_ROBIN = "round_robin"
    SWISS_PAIRING = "swiss_pairing"
    KNOCKOUT = "knockout"
    GROUP_ASSIGNMENT = "group_assignment"


class SeedingMethod(Enum):
    SEEDED = "seeded"
    RANDOM = "random"
    MANUAL = "manual"


class PlayoffFormat(Enum):
    SINGLE_MATCH = "single_match"
    HOME_AWAY = "home_away"
    BEST_OF_3 = "best_of_3"


class TieBreaker(Enum):
    HEAD_TO_HEAD = "head_to_head"
    GOAL_DIFFERENCE = "goal_difference"
    GOALS_SCORED = "goals_scored"
    GOALS_AGAINST = "goals_against"
    WINS = "wins"
    FAIR_PLAY = "fair_play"


DEFAULT_TIE_BREAKERS = (
    TieBreaker.HEAD_TO_HEAD,
    TieBreaker.GOAL_DIFFERENCE,
    TieBreaker.GOALS_SCORED,
)


class PhaseState(Enum):
    PENDING = "pending"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


@dataclass
class Team:
    """A team taking part in a season."""
    id: str
    name: str = ""
    seed: Optional[int] = None
    attributes: dict = field(default_factory=dict)

    @property
    def label(self) -> str:
        return self.name or self.id


@dataclass
class Venue:
    id: str
    name: str = ""


@dataclass
class Match:
    """A proposed or persisted match row.

    Proposed matches (dry-run output) have ``id=None`` and are never
    referenced by id.
    """
    competition_id: str
    season_id: str
    stage: str
    home_team_id: str
    away_team_id: str
    venue_id: str = ""
    scheduled_at: Optional[datetime] = None
    referee_team_id: Optional[str] = None
    status: MatchStatus = MatchStatus.SCHEDULED
    home_score: int = 0
    away_score: int = 0
    id: Optional[str] = None
    group: Optional[str] = None
    home_fair_play: int = 0  # disciplinary points, lower is better
    away_fair_play: int = 0

    def __post_init__(self):
        if self.home_team_id == self.away_team_id:
            raise InvalidMatch(
                f"Match {self.home_team_id} vs {self.away_team_id}: "
                f"a team cannot play itself"
            )

    @property
    def is_completed(self) -> bool:
        return self.status is MatchStatus.COMPLETED

    def involves(self, team_id: str) -> bool:
        return team_id in (self.home_team_id, self.away_team_id)


@dataclass
class Pairing:
    """Two teams assigned to play each other, not yet bound to a slot."""
    home: str
    away: str
    round_number: int = 0
    group: Optional[str] = None
    bracket_position: Optional[int] = None

    @property
    def key(self) -> tuple[str, str]:
        """Unordered matchup key."""
        return (min(self.home, self.away), max(self.home, self.away))

    def involves(self, team_id: str) -> bool:
        return team_id in (self.home, self.away)

    def opponent(self, team_id: str) -> str:
        if team_id == self.home:
            return self.away
        return self.home

    def mirrored(self, round_offset: int = 0) -> "Pairing":
        return Pairing(
            home=self.away,
            away=self.home,
            round_number=self.round_number + round_offset,
            group=self.group,
            bracket_position=self.bracket_position,
        )


@dataclass
class Round:
    """A set of pairings where each team plays at most once."""
    number: int
    pairings: list[Pairing]
    bye_teams: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Slot:
    """A concrete (datetime, venue) able to host one match.

    ``teams`` restricts the slot to an event's declared team subset;
    None means any team may play in it.
    """
    starts_at: datetime
    venue_id: str
    teams: Optional[frozenset] = None

    @property
    def date(self) -> date:
        return self.starts_at.date()

    def admits(self, pairing: Pairing) -> bool:
        if self.teams is None:
            return True
        return pairing.home in self.teams and pairing.away in self.teams


@dataclass
class SlotRange:
    """Range-mode availability: every allowed day x time x venue."""
    start_date: date
    end_date: date
    time_slots: list[time]
    venue_ids: list[str]
    allowed_days: Optional[list[DayOfWeek]] = None  # None = every day


@dataclass
class EventDate:
    """Event-mode availability: one day's window at a set of venues.

    An empty ``team_ids`` list means every team may play at the event.
    """
    date: date
    start_time: time
    end_time: time
    venue_ids: list[str]
    team_ids: list[str] = field(default_factory=list)


@dataclass
class ConstraintSet:
    """Soft constraints supplied with each generation request."""
    avoid_repeats: bool = True
    balance_matches: bool = True
    avoid_back_to_back: bool = True
    auto_referee: bool = False
    target_matches_per_team: Optional[int] = None


@dataclass
class ScoreWeights:
    repeat: float = 1000.0
    back_to_back: float = 100.0
    unscheduled: float = 10000.0
    imbalance: float = 1.0


@dataclass
class Quality:
    repeat_violations: int = 0
    back_to_back_violations: int = 0
    unfilled_slots: int = 0
    unscheduled_pairings: int = 0
    match_imbalance_std_dev: float = 0.0


@dataclass
class Attempt:
    """One randomized pass of the optimizer and its score."""
    index: int
    seed: Optional[int]
    matches: list[Match]
    unscheduled: list[Pairing]
    quality: Quality
    score: float


@dataclass
class GenerationStats:
    attempts_run: int
    best_attempt_index: int
    best_score: float
    quality: Quality


@dataclass
class ScheduleResult:
    """Dry-run response: proposed matches plus generation stats."""
    matches: list[Match]
    stats: GenerationStats
    unscheduled: list[Pairing] = field(default_factory=list)


@dataclass
class AdvancementRule:
    count: int
    to_phase: str
    source: str = "top"  # "top" or "bottom"
    from_group: Optional[str] = None


@dataclass
class PhaseConstraints:
    allowed_days: list[DayOfWeek] = field(default_factory=list)
    time_slots: list[time] = field(default_factory=list)
    matches_per_day: Optional[int] = None
    rest_days_between_matches: Optional[int] = None
    home_away_balance: bool = False


@dataclass
class PhaseConfig:
    """One stage of a tournament format."""
    id: str
    name_key: str
    order: int
    generation: MatchGenerationType
    is_terminal: bool = False
    include_return_games: bool = False
    bracket_size: Optional[int] = None
    advancement_rules: list[AdvancementRule] = field(default_factory=list)
    constraints: Optional[PhaseConstraints] = None


@dataclass
class PhaseStatus:
    phase_id: str
    total_matches: int = 0
    completed_matches: int = 0
    scheduled_matches: int = 0
    status: PhaseState = PhaseState.PENDING
    implicit: bool = False  # completed only because a later phase has matches


@dataclass
class PointsConfig:
    points_per_win: int = 3
    points_per_draw: int = 1
    points_per_loss: int = 0


@dataclass
class StandingsRow:
    team_id: str
    played: int = 0
    wins: int = 0
    draws: int = 0
    losses: int = 0
    goals_for: int = 0
    goals_against: int = 0
    points: int = 0
    fair_play: int = 0

    @property
    def goal_difference(self) -> int:
        return self.goals_for - self.goals_against
