"""Weekly schedule schemas: the template slots are generated from.

Stored as JSON on Staff.schedule / Resource.schedule and validated on the way
in and out.
"""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field, model_validator

from agendaflow.models.enums import Weekday

HHMM_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$|^24:00$"


def _minutes(hhmm: str) -> int:
    hours, minutes = hhmm.split(":")
    return int(hours) * 60 + int(minutes)


class BreakPeriod(BaseModel):
    """A half-open [start_time, end_time) pause inside a working day."""

    start_time: str = Field(pattern=HHMM_PATTERN)
    end_time: str = Field(pattern=HHMM_PATTERN)

    @model_validator(mode="after")
    def _ordered(self) -> BreakPeriod:
        if _minutes(self.start_time) >= _minutes(self.end_time):
            msg = f"Break {self.start_time}-{self.end_time} must end after it starts"
            raise ValueError(msg)
        return self


class DaySchedule(BaseModel):
    """Opening hours for one weekday.

    A day with ``start_time == end_time`` is accepted and yields no slots.
    Overlapping breaks are allowed but redundant.
    """

    is_available: bool = False
    start_time: str = Field(default="09:00", pattern=HHMM_PATTERN)
    end_time: str = Field(default="17:00", pattern=HHMM_PATTERN)
    breaks: list[BreakPeriod] = Field(default_factory=list)

    @model_validator(mode="after")
    def _within_hours(self) -> DaySchedule:
        start, end = _minutes(self.start_time), _minutes(self.end_time)
        if start > end:
            msg = f"Day closes ({self.end_time}) before it opens ({self.start_time})"
            raise ValueError(msg)
        for brk in self.breaks:
            if _minutes(brk.start_time) < start or _minutes(brk.end_time) > end:
                msg = f"Break {brk.start_time}-{brk.end_time} falls outside {self.start_time}-{self.end_time}"
                raise ValueError(msg)
        return self


class WeeklySchedule(BaseModel):
    """One DaySchedule per weekday; omitted days are closed."""

    monday: DaySchedule = Field(default_factory=DaySchedule)
    tuesday: DaySchedule = Field(default_factory=DaySchedule)
    wednesday: DaySchedule = Field(default_factory=DaySchedule)
    thursday: DaySchedule = Field(default_factory=DaySchedule)
    friday: DaySchedule = Field(default_factory=DaySchedule)
    saturday: DaySchedule = Field(default_factory=DaySchedule)
    sunday: DaySchedule = Field(default_factory=DaySchedule)

    def for_date(self, day: date) -> DaySchedule:
        """Return the schedule entry that applies on ``day``."""
        weekday = list(Weekday)[day.weekday()]
        return getattr(self, weekday.value)
