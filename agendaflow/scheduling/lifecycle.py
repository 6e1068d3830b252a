"""Appointment lifecycle: create, update, cancel, reschedule, status changes.

Every booking path reserves slots under the appointment's real id, which is
generated before reservation, so held slots can always be released later.
Reservation runs inside the caller's unit of work: a failed booking rolls the
session back, which also undoes any slot reservations it made.

Concurrent writers to the same availability record surface here as
``ConcurrentModification``; the whole attempt (assignment included) is retried
with exponential backoff and only then reported as ``BookingConflict``.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from datetime import UTC, date, datetime
from typing import TypeVar

from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from agendaflow.config import settings
from agendaflow.errors import (
    AppointmentNotFound,
    AvailabilityNotFound,
    BookingConflict,
    CancellationNotAllowed,
    ClientError,
    ConcurrentModification,
    InvalidTransition,
)
from agendaflow.events import emit
from agendaflow.models.appointment import Appointment
from agendaflow.models.enums import AppointmentStatus, AssignmentType, CancelledBy, EntityType
from agendaflow.organizations.configuration import BusinessConfigurationService, configuration_service
from agendaflow.scheduling.assignment import AssignmentEngine, assignment_engine
from agendaflow.scheduling.availability import AvailabilityService, availability_service
from agendaflow.scheduling.policy import as_aware, cancellation_penalty, validate_timing
from agendaflow.scheduling.states import TERMINAL_STATES, ensure_transition
from agendaflow.schemas.appointment import (
    AppointmentStats,
    AppointmentUpdate,
    Assignment,
    CancellationInfo,
    CreateAppointmentRequest,
    ReschedulingRecord,
)
from agendaflow.schemas.events import EventType, SystemEvent

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Fields whose change moves the held slots
_SLOT_FIELDS = frozenset({"scheduled_at", "duration", "staff_id", "resource_id", "assignment_type"})

# Columns that cannot be cleared by an update
_REQUIRED_FIELDS = frozenset({"scheduled_at", "duration", "assignment_type", "client_info", "service_info"})


def slot_window(scheduled_at: datetime) -> tuple[date, str]:
    """Wall-clock (date, HH:MM) of an appointment time, in its own timezone."""
    return scheduled_at.date(), scheduled_at.strftime("%H:%M")


def _held_entities(appointment: Appointment) -> list[tuple[EntityType, uuid.UUID]]:
    held: list[tuple[EntityType, uuid.UUID]] = []
    if appointment.staff_id is not None:
        held.append((EntityType.STAFF, appointment.staff_id))
    if appointment.resource_id is not None:
        held.append((EntityType.RESOURCE, appointment.resource_id))
    return held


class AppointmentService:
    """Appointment state machine on top of assignment and slot reservation."""

    def __init__(
        self,
        availability: AvailabilityService = availability_service,
        assignment: AssignmentEngine = assignment_engine,
        configurations: BusinessConfigurationService = configuration_service,
    ) -> None:
        self._availability = availability
        self._assignment = assignment
        self._configurations = configurations

    # ── Create ───────────────────────────────────────────────────────

    async def create_appointment(
        self,
        db: AsyncSession,
        request: CreateAppointmentRequest,
        now: datetime | None = None,
    ) -> Appointment:
        """Validate, assign, reserve, and persist a new appointment.

        Initial status is ``confirmed`` unless the organization requires
        confirmation, in which case it is ``pending``.

        Raises:
            ConfigurationMissing: The organization has no configuration.
            PastBooking / AdvanceLimitExceeded: Timing policy violated.
            NoAvailability / PreferredUnavailable: No valid assignment.
            BookingConflict: The window kept being taken by concurrent bookings,
                or was taken between assignment and reservation.
        """
        org_id = request.org_id
        config = await self._configurations.require(db, org_id)
        validate_timing(request.scheduled_at, config, now)

        appointment_id = uuid.uuid4()
        day, start_time = slot_window(request.scheduled_at)

        async def attempt() -> Appointment:
            # Reloaded per attempt: a rollback expires every loaded object
            config = await self._configurations.require(db, org_id)
            assignment = await self._assignment.assign(
                db, config, day, start_time, request.duration,
                preferred_staff_id=request.preferred_staff_id,
                preferred_resource_id=request.preferred_resource_id,
                required_specialties=request.required_specialties,
            )
            initial = (
                AppointmentStatus.PENDING if config.require_confirmation
                else AppointmentStatus.CONFIRMED
            )

            async def persist() -> Appointment:
                await self._reserve(db, org_id, assignment, day, start_time, request.duration, appointment_id)
                appointment = Appointment(
                    id=appointment_id,
                    org_id=org_id,
                    staff_id=assignment.staff_id,
                    resource_id=assignment.resource_id,
                    assignment_type=assignment.assignment_type.value,
                    client_info=request.client_info.model_dump(mode="json"),
                    service_info=request.service_info.model_dump(mode="json"),
                    scheduled_at=request.scheduled_at,
                    duration=request.duration,
                    slot_date=day,
                    start_time=start_time,
                    status=initial.value,
                    notes=request.notes,
                    custom_fields=request.custom_fields,
                    rescheduling_history=[],
                )
                db.add(appointment)
                await db.flush()
                return appointment

            return await self._compensated(db, org_id, "create", persist)

        appointment = await self._with_retries(db, org_id, "create", attempt)

        await emit(SystemEvent(
            event_type=EventType.APPOINTMENT_CREATED,
            org_id=org_id,
            data={
                "appointment_id": str(appointment.id),
                "staff_id": str(appointment.staff_id) if appointment.staff_id else None,
                "resource_id": str(appointment.resource_id) if appointment.resource_id else None,
                "scheduled_at": as_aware(appointment.scheduled_at).isoformat(),
                "status": appointment.status,
            },
            source_module="scheduling.lifecycle",
        ), db)
        logger.info(
            "Appointment created: id=%s org=%s %s %s staff=%s resource=%s status=%s",
            appointment.id, org_id, day, start_time,
            appointment.staff_id, appointment.resource_id, appointment.status,
        )
        return appointment

    # ── Update ───────────────────────────────────────────────────────

    async def update_appointment(
        self,
        db: AsyncSession,
        org_id: str,
        appointment_id: uuid.UUID,
        updates: AppointmentUpdate,
    ) -> Appointment:
        """Apply a partial update, moving the held slots if time or assignment changed.

        Business timing rules are not re-checked here; ``reschedule_appointment``
        is the validated path for moving an appointment in time.
        """
        fields = updates.model_fields_set
        cleared = sorted(name for name in fields & _REQUIRED_FIELDS if getattr(updates, name) is None)
        if cleared:
            msg = f"Cannot clear required appointment fields: {', '.join(cleared)}"
            raise ClientError(msg)

        async def attempt() -> Appointment:
            appointment = await self._require(db, org_id, appointment_id)
            moves = {
                name for name in fields & _SLOT_FIELDS
                if getattr(updates, name) != _current_value(appointment, name)
            }
            status = AppointmentStatus(appointment.status)
            if moves and status in TERMINAL_STATES:
                msg = f"Cannot move a {status.value} appointment ({', '.join(sorted(moves))})"
                raise InvalidTransition(msg)

            async def persist() -> Appointment:
                if moves:
                    assignment = _merged_assignment(appointment, updates, fields)
                    duration = updates.duration if "duration" in fields else appointment.duration
                    if "scheduled_at" in moves:
                        scheduled_at = updates.scheduled_at
                        day, start_time = slot_window(scheduled_at)
                    else:
                        # Stored wall-clock window; the reloaded timestamp may be in another zone
                        scheduled_at = appointment.scheduled_at
                        day, start_time = appointment.slot_date, appointment.start_time

                    await self._release(db, appointment)
                    await self._reserve(db, org_id, assignment, day, start_time, duration, appointment.id)

                    appointment.staff_id = assignment.staff_id
                    appointment.resource_id = assignment.resource_id
                    appointment.assignment_type = assignment.assignment_type.value
                    appointment.scheduled_at = scheduled_at
                    appointment.duration = duration
                    appointment.slot_date = day
                    appointment.start_time = start_time

                for name in fields - _SLOT_FIELDS:
                    value = getattr(updates, name)
                    if hasattr(value, "model_dump"):
                        value = value.model_dump(mode="json")
                    setattr(appointment, name, value)
                await db.flush()
                return appointment

            return await self._compensated(db, org_id, "update", persist)

        appointment = await self._with_retries(db, org_id, "update", attempt)

        await emit(SystemEvent(
            event_type=EventType.APPOINTMENT_UPDATED,
            org_id=org_id,
            data={"appointment_id": str(appointment.id), "fields": sorted(fields)},
            source_module="scheduling.lifecycle",
        ), db)
        logger.info("Appointment updated: id=%s fields=%s", appointment.id, sorted(fields))
        return appointment

    # ── Cancel ───────────────────────────────────────────────────────

    async def cancel_appointment(
        self,
        db: AsyncSession,
        org_id: str,
        appointment_id: uuid.UUID,
        cancelled_by: CancelledBy,
        reason: str | None = None,
        now: datetime | None = None,
    ) -> Appointment:
        """Release the held slots and mark the appointment cancelled.

        Raises:
            CancellationNotAllowed: A client cancels where the organization's
                policy forbids cancellation.
            InvalidTransition: The appointment is already terminal.
        """
        async def attempt() -> Appointment:
            appointment = await self._require(db, org_id, appointment_id)
            ensure_transition(AppointmentStatus(appointment.status), AppointmentStatus.CANCELLED)

            config = await self._configurations.get(db, org_id)
            if cancelled_by is CancelledBy.CLIENT and config is not None and not config.allow_cancellation:
                raise CancellationNotAllowed()

            penalty = cancellation_penalty(config, cancelled_by, appointment.scheduled_at, now)

            async def persist() -> Appointment:
                await self._release(db, appointment)
                appointment.status = AppointmentStatus.CANCELLED.value
                appointment.cancellation_info = CancellationInfo(
                    cancelled_at=now or datetime.now(UTC),
                    cancelled_by=cancelled_by,
                    reason=reason,
                    penalty_applied=penalty,
                ).model_dump(mode="json")
                await db.flush()
                return appointment

            return await self._compensated(db, org_id, "cancel", persist)

        appointment = await self._with_retries(db, org_id, "cancel", attempt)

        await emit(SystemEvent(
            event_type=EventType.APPOINTMENT_CANCELLED,
            org_id=org_id,
            actor_id=cancelled_by.value,
            data={
                "appointment_id": str(appointment.id),
                "reason": reason,
                "penalty_applied": appointment.cancellation_info["penalty_applied"],
            },
            source_module="scheduling.lifecycle",
        ), db)
        logger.info(
            "Appointment cancelled: id=%s by=%s penalty=%s%%",
            appointment.id, cancelled_by.value, appointment.cancellation_info["penalty_applied"],
        )
        return appointment

    # ── Reschedule ───────────────────────────────────────────────────

    async def reschedule_appointment(
        self,
        db: AsyncSession,
        org_id: str,
        appointment_id: uuid.UUID,
        new_datetime: datetime,
        rescheduled_by: str,
        reason: str | None = None,
        now: datetime | None = None,
    ) -> Appointment:
        """Move the appointment, keeping its assignment, and append to its history.

        Raises:
            PastBooking / AdvanceLimitExceeded: The new time violates policy.
            SlotUnavailable: An assigned entity is busy at the new time.
        """
        config = await self._configurations.require(db, org_id)
        validate_timing(new_datetime, config, now)
        day, start_time = slot_window(new_datetime)

        async def attempt() -> Appointment:
            appointment = await self._require(db, org_id, appointment_id)
            ensure_transition(AppointmentStatus(appointment.status), AppointmentStatus.RESCHEDULED)
            assignment = Assignment(
                staff_id=appointment.staff_id,
                resource_id=appointment.resource_id,
                assignment_type=AssignmentType(appointment.assignment_type),
            )

            async def persist() -> Appointment:
                await self._release(db, appointment)
                await self._reserve(db, org_id, assignment, day, start_time, appointment.duration, appointment.id)

                record = ReschedulingRecord(
                    previous_datetime=as_aware(appointment.scheduled_at),
                    new_datetime=new_datetime,
                    rescheduled_at=now or datetime.now(UTC),
                    rescheduled_by=rescheduled_by,
                    reason=reason,
                )
                appointment.rescheduling_history = [
                    *(appointment.rescheduling_history or []),
                    record.model_dump(mode="json"),
                ]
                appointment.scheduled_at = new_datetime
                appointment.slot_date = day
                appointment.start_time = start_time
                appointment.status = AppointmentStatus.RESCHEDULED.value
                await db.flush()
                return appointment

            return await self._compensated(db, org_id, "reschedule", persist)

        appointment = await self._with_retries(db, org_id, "reschedule", attempt)

        await emit(SystemEvent(
            event_type=EventType.APPOINTMENT_RESCHEDULED,
            org_id=org_id,
            actor_id=rescheduled_by,
            data={
                "appointment_id": str(appointment.id),
                "new_datetime": new_datetime.isoformat(),
                "reason": reason,
            },
            source_module="scheduling.lifecycle",
        ), db)
        logger.info("Appointment rescheduled: id=%s to %s %s", appointment.id, day, start_time)
        return appointment

    # ── Status changes ───────────────────────────────────────────────

    async def confirm_appointment(self, db: AsyncSession, org_id: str, appointment_id: uuid.UUID) -> Appointment:
        return await self._change_status(db, org_id, appointment_id, AppointmentStatus.CONFIRMED)

    async def complete_appointment(self, db: AsyncSession, org_id: str, appointment_id: uuid.UUID) -> Appointment:
        return await self._change_status(db, org_id, appointment_id, AppointmentStatus.COMPLETED)

    async def mark_no_show(self, db: AsyncSession, org_id: str, appointment_id: uuid.UUID) -> Appointment:
        return await self._change_status(db, org_id, appointment_id, AppointmentStatus.NO_SHOW)

    async def _change_status(
        self,
        db: AsyncSession,
        org_id: str,
        appointment_id: uuid.UUID,
        target: AppointmentStatus,
    ) -> Appointment:
        appointment = await self._require(db, org_id, appointment_id)
        previous = AppointmentStatus(appointment.status)
        ensure_transition(previous, target)

        appointment.status = target.value
        await db.flush()

        await emit(SystemEvent(
            event_type=EventType.APPOINTMENT_STATUS_CHANGED,
            org_id=org_id,
            data={
                "appointment_id": str(appointment.id),
                "from": previous.value,
                "to": target.value,
            },
            source_module="scheduling.lifecycle",
        ), db)
        logger.info("Appointment %s: %s -> %s", appointment.id, previous.value, target.value)
        return appointment

    # ── Queries ──────────────────────────────────────────────────────

    async def get_appointment(
        self, db: AsyncSession, org_id: str, appointment_id: uuid.UUID
    ) -> Appointment | None:
        """Return the organization's appointment, or None if not found."""
        result = await db.execute(
            select(Appointment).where(
                Appointment.id == appointment_id,
                Appointment.org_id == org_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_appointments_by_date_range(
        self,
        db: AsyncSession,
        org_id: str,
        start_date: date,
        end_date: date,
        staff_id: uuid.UUID | None = None,
        resource_id: uuid.UUID | None = None,
        status: AppointmentStatus | None = None,
    ) -> list[Appointment]:
        """Appointments whose date falls in [start_date, end_date], earliest first."""
        stmt = select(Appointment).where(
            Appointment.org_id == org_id,
            Appointment.slot_date >= start_date,
            Appointment.slot_date <= end_date,
        )
        if staff_id is not None:
            stmt = stmt.where(Appointment.staff_id == staff_id)
        if resource_id is not None:
            stmt = stmt.where(Appointment.resource_id == resource_id)
        if status is not None:
            stmt = stmt.where(Appointment.status == status.value)

        result = await db.execute(stmt.order_by(Appointment.slot_date, Appointment.start_time))
        return list(result.scalars().all())

    async def get_appointment_stats(
        self, db: AsyncSession, org_id: str, start_date: date, end_date: date
    ) -> AppointmentStats:
        """Count appointments per status over a date range."""
        result = await db.execute(
            select(Appointment.status, func.count(Appointment.id))
            .where(
                Appointment.org_id == org_id,
                Appointment.slot_date >= start_date,
                Appointment.slot_date <= end_date,
            )
            .group_by(Appointment.status)
        )
        counts = {status: count for status, count in result.all()}
        return AppointmentStats(total=sum(counts.values()), **counts)

    # ── Internals ────────────────────────────────────────────────────

    async def _require(self, db: AsyncSession, org_id: str, appointment_id: uuid.UUID) -> Appointment:
        appointment = await self.get_appointment(db, org_id, appointment_id)
        if appointment is None:
            msg = f"Appointment {appointment_id} not found"
            raise AppointmentNotFound(msg)
        return appointment

    async def _reserve(
        self,
        db: AsyncSession,
        org_id: str,
        assignment: Assignment,
        day: date,
        start_time: str,
        duration: int,
        appointment_id: uuid.UUID,
    ) -> None:
        if assignment.staff_id is not None:
            await self._availability.book_slot(
                db, org_id, EntityType.STAFF, assignment.staff_id,
                day, start_time, duration, str(appointment_id),
            )
        if assignment.resource_id is not None:
            await self._availability.book_slot(
                db, org_id, EntityType.RESOURCE, assignment.resource_id,
                day, start_time, duration, str(appointment_id),
            )

    async def _release(self, db: AsyncSession, appointment: Appointment) -> None:
        for entity_type, entity_id in _held_entities(appointment):
            try:
                await self._availability.release_slot(
                    db, appointment.org_id, entity_type, entity_id,
                    appointment.slot_date, str(appointment.id),
                )
            except AvailabilityNotFound:
                logger.warning(
                    "No availability to release for appointment %s: %s %s on %s",
                    appointment.id, entity_type.value, entity_id, appointment.slot_date,
                )

    async def _compensated(
        self,
        db: AsyncSession,
        org_id: str,
        action: str,
        persist: Callable[[], Awaitable[T]],
    ) -> T:
        """Run reservation + persistence; on failure undo the whole unit of work."""
        try:
            return await persist()
        except ConcurrentModification:
            raise
        except Exception as exc:
            # Rolling back releases every slot reserved in this attempt
            try:
                await db.rollback()
            except Exception:
                logger.exception(
                    "Rollback after failed appointment %s for org=%s failed; slots may stay booked",
                    action, org_id,
                )
                raise
            logger.warning(
                "Appointment %s for org=%s rolled back: %s: %s",
                action, org_id, type(exc).__name__, exc,
            )
            raise

    async def _with_retries(
        self,
        db: AsyncSession,
        org_id: str,
        action: str,
        attempt: Callable[[], Awaitable[T]],
    ) -> T:
        attempts = settings.booking.max_reservation_attempts
        for number in range(1, attempts + 1):
            try:
                return await attempt()
            except ConcurrentModification as exc:
                await db.rollback()
                logger.warning(
                    "Concurrent modification during %s for org=%s (attempt %d/%d): %s",
                    action, org_id, number, attempts, exc,
                )
                if number < attempts:
                    await asyncio.sleep(settings.booking.retry_backoff_seconds * 2 ** (number - 1))

        await emit(SystemEvent(
            event_type=EventType.BOOKING_CONFLICT,
            org_id=org_id,
            data={"action": action, "attempts": attempts},
            source_module="scheduling.lifecycle",
        ))
        msg = f"Could not {action} the appointment after {attempts} attempts: the time slot keeps changing"
        raise BookingConflict(msg)


def _current_value(appointment: Appointment, name: str) -> object:
    value = getattr(appointment, name)
    if name == "assignment_type":
        return AssignmentType(value)
    if name == "scheduled_at":
        return as_aware(value)
    return value


def _merged_assignment(
    appointment: Appointment, updates: AppointmentUpdate, fields: set[str]
) -> Assignment:
    try:
        return Assignment(
            staff_id=updates.staff_id if "staff_id" in fields else appointment.staff_id,
            resource_id=updates.resource_id if "resource_id" in fields else appointment.resource_id,
            assignment_type=(
                updates.assignment_type if "assignment_type" in fields
                else AssignmentType(appointment.assignment_type)
            ),
        )
    except ValidationError as exc:
        msg = "Updated staff/resource ids do not match the assignment type"
        raise ClientError(msg) from exc


# Module-level singleton
appointment_service = AppointmentService()
