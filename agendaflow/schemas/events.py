"""SystemEvent schema: the event type published by every state change.

Subscribers (the audit logger, and any notification dispatcher wired in by the
host application) consume these events asynchronously.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """All event types emitted by the system."""

    # Availability
    AVAILABILITY_GENERATED = "availability.generated"
    SLOT_BOOKED = "slot.booked"
    SLOT_RELEASED = "slot.released"
    SLOT_BLOCKED = "slot.blocked"

    # Appointments
    APPOINTMENT_CREATED = "appointment.created"
    APPOINTMENT_UPDATED = "appointment.updated"
    APPOINTMENT_CANCELLED = "appointment.cancelled"
    APPOINTMENT_RESCHEDULED = "appointment.rescheduled"
    APPOINTMENT_STATUS_CHANGED = "appointment.status_changed"
    BOOKING_CONFLICT = "booking.conflict"

    # Organization
    CONFIGURATION_UPDATED = "configuration.updated"

    # System
    SYSTEM_STARTUP = "system.startup"
    SYSTEM_SHUTDOWN = "system.shutdown"


class SystemEvent(BaseModel):
    """Immutable event record. Persisted verbatim by the audit subscriber."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    event_type: EventType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Context (system events carry no tenant)
    org_id: str | None = None
    actor_id: str | None = None

    # Flexible payload
    data: dict[str, Any] = Field(default_factory=dict)

    # Metadata
    source_module: str | None = Field(default=None, description="Module that emitted this event")

    model_config = {"frozen": True}
