"""Config loading and validation for schedule requests."""

from datetime import date, time
from pathlib import Path

import yaml

from leaguesched.errors import ConfigError
from leaguesched.handlers import normalize_handler_key, normalize_phase_id, validate_settings
from leaguesched.models import (
    ConstraintSet, DayOfWeek, EventDate, MatchGenerationType, PhaseConstraints,
    PlayoffFormat, PointsConfig, ScoreWeights, SeedingMethod, SlotRange, Team,
    TieBreaker, Venue, DEFAULT_TIE_BREAKERS,
)
from leaguesched.scheduler import DEFAULT_ATTEMPTS, ScheduleRequest


def parse_time(s) -> time:
    """Parse time strings like '5:30pm', '10am', '17:00'.

    YAML 1.1 reads an unquoted ``17:00`` as the base-60 integer 1020, so
    integers are taken as minutes after midnight.
    """
    if isinstance(s, int):
        return time(s // 60, s % 60)
    s = str(s).strip()
    s_lower = s.lower()

    is_pm = s_lower.endswith("pm")
    is_am = s_lower.endswith("am")

    s_clean = s_lower
    if is_pm or is_am:
        s_clean = s_clean[:-2].strip()

    if ":" in s_clean:
        parts = s_clean.split(":")
        h = int(parts[0])
        m = int(parts[1])
    else:
        h = int(s_clean)
        m = 0

    if is_pm and h < 12:
        h += 12
    elif is_am and h == 12:
        h = 0

    return time(h, m)


def parse_date(s) -> date:
    """Parse date string YYYY-MM-DD (PyYAML may already have made it a date)."""
    if isinstance(s, date):
        return s
    parts = str(s).strip().split("-")
    return date(int(parts[0]), int(parts[1]), int(parts[2]))


def parse_date_range(s: str) -> tuple[date, date]:
    """Parse 'YYYY-MM-DD:YYYY-MM-DD' into (start, end) dates."""
    parts = s.split(":")
    return parse_date(parts[0]), parse_date(parts[1])


def parse_days(values) -> list[DayOfWeek]:
    """Day names ('Sat', 'sunday') or backend indexes (0=Sunday ... 6=Saturday)."""
    days = []
    for v in values:
        if isinstance(v, int):
            days.append(DayOfWeek.from_js_index(v))
        else:
            days.append(DayOfWeek.from_str(str(v)))
    return days


def _parse_enum(enum_cls, value, field_name: str, errors: list[str]):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(e.value for e in enum_cls)
        errors.append(f"{field_name}: unknown value {value!r} (expected one of {allowed})")
        return None


def _parse_teams(raw_teams, errors: list[str]) -> list[Team]:
    teams = []
    for entry in raw_teams or []:
        if isinstance(entry, dict):
            if "id" not in entry:
                errors.append(f"Team entry {entry!r} has no id")
                continue
            teams.append(Team(
                id=str(entry["id"]),
                name=str(entry.get("name", "")),
                seed=entry.get("seed"),
                attributes=dict(entry.get("attributes", {})),
            ))
        else:
            teams.append(Team(id=str(entry)))
    ids = [t.id for t in teams]
    for t in sorted({i for i in ids if ids.count(i) > 1}):
        errors.append(f"Team {t} listed more than once")
    return teams


def _parse_venues(raw_venues) -> list[Venue]:
    venues = []
    for entry in raw_venues or []:
        if isinstance(entry, dict):
            venues.append(Venue(id=str(entry["id"]), name=str(entry.get("name", ""))))
        else:
            venues.append(Venue(id=str(entry)))
    return venues


def _parse_slots(raw_slots: dict, team_ids: set[str], venue_ids: set[str],
                 errors: list[str]) -> tuple[SlotRange | None, list[EventDate]]:
    slot_range = None
    events = []

    if "range" in raw_slots:
        rr = raw_slots["range"]
        if "dates" in rr:
            start, end = parse_date_range(str(rr["dates"]))
        else:
            start, end = parse_date(rr["start_date"]), parse_date(rr["end_date"])
        if end < start:
            errors.append(f"slots.range: end date {end} is before start date {start}")
        venues = [str(v) for v in rr.get("venues", [])]
        for v in venues:
            if v not in venue_ids:
                errors.append(f"slots.range: unknown venue {v}")
        days = rr.get("days")
        slot_range = SlotRange(
            start_date=start,
            end_date=end,
            time_slots=[parse_time(t) for t in rr.get("times", [])],
            venue_ids=venues,
            allowed_days=parse_days(days) if days else None,
        )
        if not slot_range.time_slots:
            errors.append("slots.range: at least one time is required")

    for i, ev in enumerate(raw_slots.get("events", [])):
        event = EventDate(
            date=parse_date(ev["date"]),
            start_time=parse_time(ev.get("start", "9am")),
            end_time=parse_time(ev.get("end", "6pm")),
            venue_ids=[str(v) for v in ev.get("venues", sorted(venue_ids))],
            team_ids=[str(t) for t in ev.get("teams", [])],
        )
        if event.end_time <= event.start_time:
            errors.append(f"slots.events[{i}]: end time is not after start time")
        for v in event.venue_ids:
            if v not in venue_ids:
                errors.append(f"slots.events[{i}]: unknown venue {v}")
        for t in event.team_ids:
            if t not in team_ids:
                errors.append(f"slots.events[{i}]: unknown team {t}")
        events.append(event)

    if slot_range is None and not events:
        errors.append("slots: either range or events is required")
    return slot_range, events


def load_config(path: str | Path) -> dict:
    """Load and validate config YAML, returning structured data.

    Returns dict with:
    - request: ScheduleRequest ready for generate_schedule
    - name: display name of the season
    - handler: HandlerKey
    - points: PointsConfig
    - tie_breakers: list[TieBreaker]
    - team_names: dict[id -> display name]
    - output_prefix: default output directory

    Raises ConfigError listing every problem found.
    """
    path = Path(path)
    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    errors: list[str] = []

    season = raw.get("season", {})
    for key in ("competition_id", "season_id", "stage"):
        if key not in season:
            errors.append(f"season.{key} is required")
    handler = normalize_handler_key(season.get("handler"))
    stage = normalize_phase_id(str(season.get("stage", "")))

    teams = _parse_teams(raw.get("teams"), errors)
    if len(teams) < 2:
        errors.append(f"At least 2 teams are required, got {len(teams)}")
    team_ids = {t.id for t in teams}

    venues = _parse_venues(raw.get("venues"))
    if not venues:
        errors.append("At least one venue is required")
    venue_ids = {v.id for v in venues}

    slot_range, events = _parse_slots(raw.get("slots", {}), team_ids, venue_ids, errors)

    # Constraints
    cdata = raw.get("constraints", {})
    constraints = ConstraintSet(
        avoid_repeats=cdata.get("avoid_repeats", True),
        balance_matches=cdata.get("balance_matches", True),
        avoid_back_to_back=cdata.get("avoid_back_to_back", True),
        auto_referee=cdata.get("auto_referee", False),
        target_matches_per_team=cdata.get("target_matches_per_team"),
    )
    phase_constraints = None
    if "phase_constraints" in raw:
        pdata = raw["phase_constraints"]
        phase_constraints = PhaseConstraints(
            allowed_days=parse_days(pdata.get("allowed_days", [])),
            time_slots=[parse_time(t) for t in pdata.get("time_slots", [])],
            matches_per_day=pdata.get("matches_per_day"),
            rest_days_between_matches=pdata.get("rest_days_between_matches"),
            home_away_balance=pdata.get("home_away_balance", False),
        )

    generation = None
    if raw.get("generation") is not None:
        generation = _parse_enum(MatchGenerationType, raw["generation"], "generation", errors)
    seeding = _parse_enum(SeedingMethod, raw.get("seeding", "seeded"), "seeding", errors)
    grouping = _parse_enum(SeedingMethod, raw.get("grouping", "seeded"), "grouping", errors)

    playoff_format = None
    if raw.get("playoff_format") is not None:
        playoff_format = _parse_enum(PlayoffFormat, raw["playoff_format"],
                                     "playoff_format", errors)

    previous = raw.get("previous_pairings")
    if previous is not None:
        checked = []
        for pair in previous:
            if not isinstance(pair, list) or len(pair) != 2:
                errors.append(f"previous_pairings: expected [home, away], got {pair!r}")
                continue
            for t in pair:
                if str(t) not in team_ids:
                    errors.append(f"previous_pairings: unknown team {t}")
            checked.append((str(pair[0]), str(pair[1])))
        previous = checked

    manual_order = raw.get("manual_order")
    if manual_order is not None:
        for t in manual_order:
            if t is not None and str(t) not in team_ids:
                errors.append(f"manual_order: unknown team {t}")
        manual_order = [None if t is None else str(t) for t in manual_order]

    # Standings settings
    sdata = dict(raw.get("standings", {}))
    settings = dict(sdata)
    if raw.get("bracket_size") is not None:
        settings["bracket_size"] = raw["bracket_size"]
    if raw.get("snake_pattern") is not None:
        settings["snake_seeding_pattern"] = raw["snake_pattern"]
    if raw.get("group_count") is not None:
        settings["group_count"] = raw["group_count"]
    validation = validate_settings(handler, settings)
    errors.extend(validation["errors"])

    points = PointsConfig(
        points_per_win=sdata.get("points_per_win", 3),
        points_per_draw=sdata.get("points_per_draw", 1),
        points_per_loss=sdata.get("points_per_loss", 0),
    )
    wdata = raw.get("weights", {})
    weights = ScoreWeights(**{k: float(v) for k, v in wdata.items()
                              if k in ScoreWeights.__dataclass_fields__})
    for k in wdata:
        if k not in ScoreWeights.__dataclass_fields__:
            errors.append(f"weights: unknown weight {k}")

    if errors:
        raise ConfigError(errors)

    tie_breakers = list(DEFAULT_TIE_BREAKERS)
    if "tie_breakers" in sdata:
        tie_breakers = [TieBreaker(tb) for tb in sdata["tie_breakers"]]

    request = ScheduleRequest(
        competition_id=str(season["competition_id"]),
        season_id=str(season["season_id"]),
        stage=stage,
        teams=teams,
        venues=venues,
        handler=handler,
        generation=generation,
        slot_range=slot_range,
        events=events,
        match_minutes=raw.get("match_minutes", 90),
        break_minutes=raw.get("break_minutes", 0),
        constraints=constraints,
        phase_constraints=phase_constraints,
        attempts=raw.get("attempts", DEFAULT_ATTEMPTS),
        seed=raw.get("seed", 0),
        workers=raw.get("workers"),
        weights=weights,
        include_return_games=raw.get("include_return_games"),
        seeding=seeding,
        bracket_size=raw.get("bracket_size"),
        manual_order=manual_order,
        group_count=raw.get("group_count", 4),
        grouping=grouping,
        snake_pattern=raw.get("snake_pattern"),
        playoff_format=playoff_format,
        previous_pairings=previous,
    )

    return {
        "request": request,
        "name": season.get("name", ""),
        "handler": handler,
        "points": points,
        "tie_breakers": tie_breakers,
        "team_names": {t.id: t.label for t in teams},
        "output_prefix": raw.get("output", "output"),
    }
