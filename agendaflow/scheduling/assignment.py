"""Assignment engine: picks the staff member and/or resource for a booking.

The organization's appointment model selects the strategy:

- professional_based: one staff member (preferred one if free, else the first
  free staff member in enumeration order).
- resource_based: the same over resources.
- hybrid: both when ``require_resource_assignment`` is set; otherwise the
  caller's single preference, or staff first and resources second.

"First free" has no fairness guarantee across entities.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date

from sqlalchemy.ext.asyncio import AsyncSession

from agendaflow.errors import (
    BookingError,
    ClientError,
    NoAvailabilityFound,
    NoResourceAvailable,
    NoStaffAvailable,
    ResourceUnavailable,
    StaffUnavailable,
)
from agendaflow.models.business_configuration import BusinessConfiguration
from agendaflow.models.enums import AppointmentModel, AssignmentType, EntityType
from agendaflow.scheduling.availability import AvailabilityService, availability_service
from agendaflow.schemas.appointment import Assignment

logger = logging.getLogger(__name__)


class AssignmentEngine:
    """Resolves an Assignment for a requested time window."""

    def __init__(self, availability: AvailabilityService = availability_service) -> None:
        self._availability = availability

    async def assign(
        self,
        db: AsyncSession,
        config: BusinessConfiguration,
        day: date,
        start_time: str,
        duration: int,
        *,
        preferred_staff_id: uuid.UUID | None = None,
        preferred_resource_id: uuid.UUID | None = None,
        required_specialties: list[str] | None = None,
    ) -> Assignment:
        """Choose entities free for [start_time, start_time + duration) on ``day``.

        Raises:
            StaffUnavailable / ResourceUnavailable: The preferred entity is busy.
            NoStaffAvailable / NoResourceAvailable / NoAvailabilityFound:
                Nothing of the needed kind is free.
        """
        window = _Window(config.org_id, day, start_time, duration, required_specialties)
        model = AppointmentModel(config.appointment_model)

        if model is AppointmentModel.PROFESSIONAL_BASED:
            staff_id = await self._pick_staff(db, window, preferred_staff_id)
            assignment = Assignment(staff_id=staff_id, assignment_type=AssignmentType.STAFF_ONLY)
        elif model is AppointmentModel.RESOURCE_BASED:
            resource_id = await self._pick_resource(db, window, preferred_resource_id)
            assignment = Assignment(resource_id=resource_id, assignment_type=AssignmentType.RESOURCE_ONLY)
        elif model is AppointmentModel.HYBRID:
            assignment = await self._assign_hybrid(
                db, window, config, preferred_staff_id, preferred_resource_id
            )
        else:  # pragma: no cover - enum is exhaustive
            msg = f"Invalid appointment model configuration: {config.appointment_model}"
            raise ClientError(msg)

        logger.info(
            "Assignment for org=%s %s %s (%d min): %s staff=%s resource=%s",
            config.org_id, day, start_time, duration,
            assignment.assignment_type.value, assignment.staff_id, assignment.resource_id,
        )
        return assignment

    async def _assign_hybrid(
        self,
        db: AsyncSession,
        window: _Window,
        config: BusinessConfiguration,
        preferred_staff_id: uuid.UUID | None,
        preferred_resource_id: uuid.UUID | None,
    ) -> Assignment:
        if config.require_resource_assignment:
            staff_id = await self._pick_staff(db, window, preferred_staff_id)
            resource_id = await self._pick_resource(db, window, preferred_resource_id)
            return Assignment(
                staff_id=staff_id,
                resource_id=resource_id,
                assignment_type=AssignmentType.STAFF_AND_RESOURCE,
            )

        if preferred_staff_id is not None:
            staff_id = await self._pick_staff(db, window, preferred_staff_id)
            return Assignment(staff_id=staff_id, assignment_type=AssignmentType.STAFF_ONLY)
        if preferred_resource_id is not None:
            resource_id = await self._pick_resource(db, window, preferred_resource_id)
            return Assignment(resource_id=resource_id, assignment_type=AssignmentType.RESOURCE_ONLY)

        try:
            staff_id = await self._pick_staff(db, window, None)
            return Assignment(staff_id=staff_id, assignment_type=AssignmentType.STAFF_ONLY)
        except NoStaffAvailable:
            pass
        try:
            resource_id = await self._pick_resource(db, window, None)
            return Assignment(resource_id=resource_id, assignment_type=AssignmentType.RESOURCE_ONLY)
        except NoResourceAvailable:
            pass
        msg = f"No availability found on {window.day} at {window.start_time}"
        raise NoAvailabilityFound(msg)

    async def _pick_staff(
        self, db: AsyncSession, window: _Window, preferred_id: uuid.UUID | None
    ) -> uuid.UUID:
        return await self._pick(
            db, window, EntityType.STAFF, preferred_id,
            none_free=NoStaffAvailable, preferred_busy=StaffUnavailable,
        )

    async def _pick_resource(
        self, db: AsyncSession, window: _Window, preferred_id: uuid.UUID | None
    ) -> uuid.UUID:
        return await self._pick(
            db, window, EntityType.RESOURCE, preferred_id,
            none_free=NoResourceAvailable, preferred_busy=ResourceUnavailable,
        )

    async def _pick(
        self,
        db: AsyncSession,
        window: _Window,
        entity_type: EntityType,
        preferred_id: uuid.UUID | None,
        *,
        none_free: type[BookingError],
        preferred_busy: type[BookingError],
    ) -> uuid.UUID:
        if preferred_id is not None:
            free = await self._availability.is_entity_free(
                db, window.org_id, entity_type, preferred_id,
                window.day, window.start_time, window.duration,
            )
            if not free:
                msg = f"Selected {entity_type.value} {preferred_id} is not available on {window.day} at {window.start_time}"
                raise preferred_busy(msg)
            return preferred_id

        # Specialties only narrow staff
        specialties = window.specialties if entity_type is EntityType.STAFF else None
        candidates = await self._availability.find_free_entities(
            db, window.org_id, entity_type, window.day, window.start_time, window.duration, specialties
        )
        if not candidates:
            msg = f"No {entity_type.value} available on {window.day} at {window.start_time}"
            raise none_free(msg)
        return candidates[0]


@dataclass(frozen=True)
class _Window:
    """The requested time window, passed through the strategy helpers."""

    org_id: str
    day: date
    start_time: str
    duration: int
    specialties: list[str] | None


# Module-level singleton
assignment_engine = AssignmentEngine()
