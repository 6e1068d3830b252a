"""Domain enums used across SQLAlchemy models and Pydantic schemas.

All enums use str mixin for JSON serialization; columns store the `.value`.
"""

from __future__ import annotations

from enum import Enum


class EntityType(str, Enum):
    """The unit availability is tracked against."""

    STAFF = "staff"
    RESOURCE = "resource"


class ResourceType(str, Enum):
    """Kinds of bookable resources."""

    EQUIPMENT = "equipment"
    ROOM = "room"
    FACILITY = "facility"


class IndustryType(str, Enum):
    """Industry templates; they drive the default business configuration."""

    BEAUTY_SALON = "beauty_salon"
    MEDICAL_CLINIC = "medical_clinic"
    HYPERBARIC_CENTER = "hyperbaric_center"
    FITNESS_CENTER = "fitness_center"
    CONSULTANT = "consultant"
    CUSTOM = "custom"


class AppointmentModel(str, Enum):
    """Who an appointment is assigned to."""

    PROFESSIONAL_BASED = "professional_based"
    RESOURCE_BASED = "resource_based"
    HYBRID = "hybrid"


class AssignmentType(str, Enum):
    """Which entities an appointment holds."""

    STAFF_ONLY = "staff_only"
    RESOURCE_ONLY = "resource_only"
    STAFF_AND_RESOURCE = "staff_and_resource"


class AppointmentStatus(str, Enum):
    """Appointment lifecycle states."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"
    RESCHEDULED = "rescheduled"


class UnavailableReason(str, Enum):
    """Why a slot cannot be booked. Callers may also pass free-form reasons."""

    BREAK = "break"
    BOOKED = "booked"
    BLOCKED = "blocked"
    MAINTENANCE = "maintenance"
    VACATION = "vacation"
    CUSTOM = "custom"


class CancelledBy(str, Enum):
    """Who cancelled an appointment. Only clients are charged a penalty."""

    CLIENT = "client"
    STAFF = "staff"
    ADMIN = "admin"


class Weekday(str, Enum):
    """Keys of a weekly schedule, in `date.weekday()` order."""

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"
