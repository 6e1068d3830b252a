"""Pydantic schemas for slots, generation options, and availability results."""

from __future__ import annotations

import uuid
from datetime import date

from pydantic import BaseModel, ConfigDict, Field, model_validator

from agendaflow.config import settings
from agendaflow.models.enums import EntityType


class TimeSlot(BaseModel):
    """One bookable window inside an availability record."""

    start_time: str
    end_time: str
    is_available: bool = True
    booked_appointment_id: str | None = None
    reason_unavailable: str | None = None
    custom_reason: str | None = None

    @property
    def start_minutes(self) -> int:
        hours, minutes = self.start_time.split(":")
        return int(hours) * 60 + int(minutes)

    @property
    def end_minutes(self) -> int:
        hours, minutes = self.end_time.split(":")
        return int(hours) * 60 + int(minutes)

    @property
    def duration_minutes(self) -> int:
        return self.end_minutes - self.start_minutes

    def to_record(self) -> dict:
        """Serialize for the JSON column, dropping unset optional fields."""
        return self.model_dump(exclude_none=True)


class GenerationOptions(BaseModel):
    """Date range and slot sizing for availability generation."""

    start_date: date
    end_date: date
    slot_duration: int = Field(
        default_factory=lambda: settings.booking.default_slot_duration,
        gt=0,
        le=24 * 60,
        description="Minutes per slot",
    )
    override: bool = Field(default=False, description="Regenerate dates that already have records")
    buffer_minutes: int = Field(default=0, ge=0, description="Idle gap between consecutive slots")

    @model_validator(mode="after")
    def _range(self) -> GenerationOptions:
        if self.end_date < self.start_date:
            msg = f"end_date {self.end_date} is before start_date {self.start_date}"
            raise ValueError(msg)
        return self


class AvailableSlotResult(BaseModel):
    """Bookable slots of one entity on one date."""

    entity_type: EntityType
    entity_id: uuid.UUID
    entity_name: str
    date: date
    slots: list[TimeSlot]


class AvailabilityRead(BaseModel):
    """Calendar view of a stored availability record."""

    model_config = ConfigDict(from_attributes=True)

    org_id: str
    entity_type: EntityType
    entity_id: uuid.UUID
    date: date
    time_slots: list[TimeSlot]
    is_active: bool
    override: bool
    version: int
