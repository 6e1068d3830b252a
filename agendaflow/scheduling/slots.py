"""Slot generator: expands one schedule day into discrete time slots.

Pure functions over "HH:MM" strings and TimeSlot models; no I/O.
"""

from __future__ import annotations

from collections.abc import Iterable

from agendaflow.models.enums import UnavailableReason
from agendaflow.schemas.availability import TimeSlot
from agendaflow.schemas.schedule import DaySchedule


def time_to_minutes(hhmm: str) -> int:
    """Convert "HH:MM" to minutes since midnight."""
    hours, minutes = hhmm.split(":")
    return int(hours) * 60 + int(minutes)


def minutes_to_time(minutes: int) -> str:
    """Convert minutes since midnight to "HH:MM" (24:00 is the end of day)."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def add_minutes(hhmm: str, minutes: int) -> str:
    return minutes_to_time(time_to_minutes(hhmm) + minutes)


def generate_time_slots(
    day: DaySchedule,
    slot_duration: int,
    buffer_minutes: int = 0,
) -> list[TimeSlot]:
    """Generate the slots of one schedule day.

    Slots step through [start_time, end_time) every ``slot_duration`` minutes
    (plus ``buffer_minutes`` of idle time between slots). The last slot is
    clipped to the closing time rather than dropped. A slot overlapping any
    break is unavailable with reason ``break``.

    Args:
        day: The schedule entry for the date.
        slot_duration: Minutes per slot, must be positive.
        buffer_minutes: Idle minutes between consecutive slots.

    Returns:
        Slots ordered by start time; empty for closed or zero-length days.
    """
    if slot_duration <= 0:
        msg = f"slot_duration must be positive, got {slot_duration}"
        raise ValueError(msg)
    if not day.is_available:
        return []

    start = time_to_minutes(day.start_time)
    end = time_to_minutes(day.end_time)
    breaks = [(time_to_minutes(b.start_time), time_to_minutes(b.end_time)) for b in day.breaks]

    slots: list[TimeSlot] = []
    current = start
    while current < end:
        slot_end = min(current + slot_duration, end)
        in_break = any(current < brk_end and slot_end > brk_start for brk_start, brk_end in breaks)
        slots.append(TimeSlot(
            start_time=minutes_to_time(current),
            end_time=minutes_to_time(slot_end),
            is_available=not in_break,
            reason_unavailable=UnavailableReason.BREAK.value if in_break else None,
        ))
        current += slot_duration + buffer_minutes
    return slots


def overlapping(slots: Iterable[TimeSlot], start: int, end: int) -> list[TimeSlot]:
    """Slots sharing at least one minute with [start, end), by start time."""
    return sorted(
        (s for s in slots if s.start_minutes < end and s.end_minutes > start),
        key=lambda s: s.start_minutes,
    )


def window_is_free(slots: Iterable[TimeSlot], start: int, end: int) -> bool:
    """True if [start, end) is covered without gaps by available slots."""
    covered = start
    for slot in overlapping(slots, start, end):
        if not slot.is_available or slot.start_minutes > covered:
            return False
        covered = max(covered, slot.end_minutes)
    return covered >= end
