"""SQLAlchemy ORM models for agendaflow.

Import all models here so Alembic and Base.metadata.create_all() discover them.
"""

from __future__ import annotations

from agendaflow.models.appointment import Appointment
from agendaflow.models.audit import AuditLog
from agendaflow.models.availability import Availability
from agendaflow.models.base import Base
from agendaflow.models.business_configuration import BusinessConfiguration
from agendaflow.models.enums import (
    AppointmentModel,
    AppointmentStatus,
    AssignmentType,
    CancelledBy,
    EntityType,
    IndustryType,
    ResourceType,
    UnavailableReason,
    Weekday,
)
from agendaflow.models.resource import Resource
from agendaflow.models.staff import Staff

__all__ = [
    # Base
    "Base",
    # Models
    "Appointment",
    "AuditLog",
    "Availability",
    "BusinessConfiguration",
    "Resource",
    "Staff",
    # Enums
    "AppointmentModel",
    "AppointmentStatus",
    "AssignmentType",
    "CancelledBy",
    "EntityType",
    "IndustryType",
    "ResourceType",
    "UnavailableReason",
    "Weekday",
]
