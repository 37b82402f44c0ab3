"""Slot allocation: expand availability into discrete (datetime, venue) slots.

Two sources are supported. Range mode crosses every allowed day in a date
window with configured kick-off times and venues. Event mode lays out
back-to-back slots inside one day's window per venue, for single-day and
weekend tournaments where only a subset of teams attends.

Degenerate input (end before start, zero-length windows) yields an empty
list; the optimizer reports ``InsufficientSlots`` once pairings exceed it.
"""

from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional

from leaguesched.models import DayOfWeek, EventDate, Slot, SlotRange


def _minutes(t: time) -> int:
    return t.hour * 60 + t.minute


def build_range_slots(start_date: date, end_date: date,
                      time_slots: Iterable[time],
                      venue_ids: list[str],
                      allowed_days: Optional[Iterable[DayOfWeek]] = None) -> list[Slot]:
    """One slot per allowed day x time x venue, in chronological order."""
    times = sorted(set(time_slots))
    allowed = set(allowed_days) if allowed_days is not None else None

    slots = []
    current = start_date
    while current <= end_date:
        if allowed is None or DayOfWeek(current.weekday()) in allowed:
            for t in times:
                for venue_id in venue_ids:
                    slots.append(Slot(datetime.combine(current, t), venue_id))
        current += timedelta(days=1)
    return slots


def slots_per_venue(start: time, end: time, match_minutes: int,
                    break_minutes: int = 0) -> int:
    """How many matches fit in a window at one venue."""
    window = _minutes(end) - _minutes(start)
    interval = match_minutes + break_minutes
    if match_minutes <= 0 or interval <= 0 or window <= 0:
        return 0
    return window // interval


def build_event_slots(events: Iterable[EventDate], match_minutes: int,
                      break_minutes: int = 0) -> list[Slot]:
    """Sequential slots per venue for each event, restricted to its teams."""
    slots = []
    for event in events:
        per_venue = slots_per_venue(event.start_time, event.end_time,
                                    match_minutes, break_minutes)
        teams = frozenset(event.team_ids) if event.team_ids else None
        start = datetime.combine(event.date, event.start_time)
        step = timedelta(minutes=match_minutes + break_minutes)
        for k in range(per_venue):
            for venue_id in event.venue_ids:
                slots.append(Slot(start + k * step, venue_id, teams))
    slots.sort(key=lambda s: s.starts_at)
    return slots


def build_slots(slot_range: Optional[SlotRange] = None,
                events: Optional[list[EventDate]] = None,
                match_minutes: int = 90, break_minutes: int = 0) -> list[Slot]:
    """Slots from whichever source is configured (events win over a range)."""
    if events:
        return build_event_slots(events, match_minutes, break_minutes)
    if slot_range is not None:
        return build_range_slots(
            slot_range.start_date, slot_range.end_date,
            slot_range.time_slots, slot_range.venue_ids,
            slot_range.allowed_days,
        )
    return []
