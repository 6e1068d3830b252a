"""Availability service: generation, queries, and slot-level mutations.

Generation expands each entity's weekly schedule into per-date records.
Queries find bookable slots for one entity, all staff (optionally filtered by
specialty), all resources, or the whole organization.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, timedelta
from typing import Literal

from sqlalchemy.ext.asyncio import AsyncSession

from agendaflow.config import settings
from agendaflow.errors import ClientError, EntityNotFound
from agendaflow.events import emit
from agendaflow.models.availability import Availability
from agendaflow.models.enums import EntityType, UnavailableReason
from agendaflow.scheduling.directory import (
    Entity,
    EntityDirectory,
    entity_directory,
    entity_schedule,
)
from agendaflow.scheduling.slots import add_minutes, generate_time_slots, overlapping
from agendaflow.scheduling.store import AvailabilityStore, availability_store, load_slots
from agendaflow.schemas.availability import AvailableSlotResult, GenerationOptions, TimeSlot
from agendaflow.schemas.events import EventType, SystemEvent

logger = logging.getLogger(__name__)

ALL_ENTITIES = "all"


def dates_between(start_date: date, end_date: date) -> list[date]:
    """Every date from start_date to end_date, inclusive."""
    return [start_date + timedelta(days=n) for n in range((end_date - start_date).days + 1)]


def _carry_bookings(new_slots: list[TimeSlot], old_slots: list[TimeSlot]) -> list[TimeSlot]:
    """Keep existing bookings when a date is regenerated over."""
    booked = [s for s in old_slots if s.booked_appointment_id]
    if not booked:
        return new_slots
    carried: list[TimeSlot] = []
    for slot in new_slots:
        holder = next(iter(overlapping(booked, slot.start_minutes, slot.end_minutes)), None)
        if holder is not None:
            slot = slot.model_copy(update={
                "is_available": False,
                "booked_appointment_id": holder.booked_appointment_id,
                "reason_unavailable": UnavailableReason.BOOKED.value,
            })
        carried.append(slot)
    return carried


class AvailabilityService:
    """Generation and lookup of bookable slots."""

    def __init__(
        self,
        store: AvailabilityStore = availability_store,
        directory: EntityDirectory = entity_directory,
    ) -> None:
        self._store = store
        self._directory = directory

    # ── Generation ───────────────────────────────────────────────────

    async def generate_availability(
        self,
        db: AsyncSession,
        org_id: str,
        entity_type: EntityType | None,
        entity_id: uuid.UUID | Literal["all"],
        options: GenerationOptions,
    ) -> int:
        """Generate records for one entity, or for every active entity.

        Args:
            entity_type: Type of ``entity_id``; with ``"all"``, None means
                both staff and resources.
            entity_id: An entity id, or ``"all"``.

        Returns:
            Number of availability records created or regenerated.
        """
        span = (options.end_date - options.start_date).days + 1
        if span > settings.booking.max_generation_days:
            msg = f"Cannot generate {span} days at once (max {settings.booking.max_generation_days})"
            raise ClientError(msg)

        if entity_id == ALL_ENTITIES:
            types = [entity_type] if entity_type else [EntityType.STAFF, EntityType.RESOURCE]
            written = 0
            for etype in types:
                for entity in await self._directory.list_entities(db, org_id, etype):
                    written += await self._generate_for(db, org_id, etype, entity, options)
        else:
            if entity_type is None:
                msg = "entity_type is required when generating for a single entity"
                raise ClientError(msg)
            entity = await self._directory.get_entity(db, org_id, entity_type, entity_id)
            if entity is None or not entity.is_active:
                msg = f"{entity_type.value.capitalize()} {entity_id} not found or inactive"
                raise EntityNotFound(msg)
            written = await self._generate_for(db, org_id, entity_type, entity, options)

        await emit(SystemEvent(
            event_type=EventType.AVAILABILITY_GENERATED,
            org_id=org_id,
            data={
                "entity_type": entity_type.value if entity_type else None,
                "entity_id": str(entity_id),
                "start_date": options.start_date.isoformat(),
                "end_date": options.end_date.isoformat(),
                "records": written,
            },
            source_module="scheduling.availability",
        ), db)
        return written

    async def _generate_for(
        self,
        db: AsyncSession,
        org_id: str,
        entity_type: EntityType,
        entity: Entity,
        options: GenerationOptions,
    ) -> int:
        schedule = entity_schedule(entity)
        written = 0
        for day in dates_between(options.start_date, options.end_date):
            day_schedule = schedule.for_date(day)
            if not day_schedule.is_available:
                continue

            existing = await self._store.get(db, org_id, entity_type, entity.id, day)
            if existing is not None and not options.override:
                continue

            slots = generate_time_slots(day_schedule, options.slot_duration, options.buffer_minutes)
            if existing is not None:
                await self._store.update(
                    db, org_id, entity_type, entity.id, day,
                    time_slots=_carry_bookings(slots, load_slots(existing)),
                    is_active=True,
                    override=True,
                )
            else:
                await self._store.create(
                    db, org_id, entity_type, entity.id, day, slots, override=options.override
                )
            written += 1

        logger.info(
            "Availability generated: %s %s %s..%s (%d records)",
            entity_type.value, entity.id, options.start_date, options.end_date, written,
        )
        return written

    # ── Queries ──────────────────────────────────────────────────────

    async def find_available_slots(
        self,
        db: AsyncSession,
        org_id: str,
        day: date,
        duration: int,
        entity_type: EntityType | None = None,
        entity_id: uuid.UUID | None = None,
        required_specialties: list[str] | None = None,
    ) -> list[AvailableSlotResult]:
        """Bookable slots of at least ``duration`` minutes on ``day``.

        Four request shapes:
            entity_type + entity_id: that entity only.
            entity_type=staff: every active staff member, narrowed to those
                sharing a required specialty when given.
            entity_type=resource: every active resource.
            neither: all staff results followed by all resource results.

        Only entities with at least one fitting slot are returned, in
        directory enumeration order.
        """
        if entity_type is not None and entity_id is not None:
            slots = await self._store.available_slots(db, org_id, entity_type, entity_id, day, duration)
            if not slots:
                return []
            name = await self._directory.entity_name(db, org_id, entity_type, entity_id)
            return [AvailableSlotResult(
                entity_type=entity_type,
                entity_id=entity_id,
                entity_name=name,
                date=day,
                slots=slots,
            )]

        if entity_type is None:
            staff_results = await self.find_available_slots(
                db, org_id, day, duration, EntityType.STAFF,
                required_specialties=required_specialties,
            )
            resource_results = await self.find_available_slots(
                db, org_id, day, duration, EntityType.RESOURCE,
            )
            return staff_results + resource_results

        results: list[AvailableSlotResult] = []
        for entity in await self._directory.list_entities(db, org_id, entity_type, required_specialties):
            slots = await self._store.available_slots(db, org_id, entity_type, entity.id, day, duration)
            if slots:
                results.append(AvailableSlotResult(
                    entity_type=entity_type,
                    entity_id=entity.id,
                    entity_name=entity.display_name,
                    date=day,
                    slots=slots,
                ))
        return results

    async def is_entity_free(
        self,
        db: AsyncSession,
        org_id: str,
        entity_type: EntityType,
        entity_id: uuid.UUID,
        day: date,
        start_time: str,
        duration: int,
    ) -> bool:
        """True if the entity could take [start_time, start_time + duration) now."""
        return await self._store.is_window_free(db, org_id, entity_type, entity_id, day, start_time, duration)

    async def find_free_entities(
        self,
        db: AsyncSession,
        org_id: str,
        entity_type: EntityType,
        day: date,
        start_time: str,
        duration: int,
        required_specialties: list[str] | None = None,
    ) -> list[uuid.UUID]:
        """Active entities free for the whole window, in enumeration order."""
        free: list[uuid.UUID] = []
        for entity in await self._directory.list_entities(db, org_id, entity_type, required_specialties):
            if await self._store.is_window_free(db, org_id, entity_type, entity.id, day, start_time, duration):
                free.append(entity.id)
        return free

    async def get_entity_availability(
        self,
        db: AsyncSession,
        org_id: str,
        entity_type: EntityType,
        entity_id: uuid.UUID,
        start_date: date,
        end_date: date,
    ) -> list[Availability]:
        """Calendar view: stored records in [start_date, end_date], by date."""
        return await self._store.get_range(db, org_id, entity_type, entity_id, start_date, end_date)

    # ── Mutations ────────────────────────────────────────────────────

    async def book_slot(
        self,
        db: AsyncSession,
        org_id: str,
        entity_type: EntityType,
        entity_id: uuid.UUID,
        day: date,
        start_time: str,
        duration: int,
        appointment_id: str,
    ) -> Availability:
        """Reserve [start_time, start_time + duration) for an appointment."""
        end_time = add_minutes(start_time, duration)
        record = await self._store.book_slot(
            db, org_id, entity_type, entity_id, day, start_time, end_time, appointment_id
        )
        await emit(SystemEvent(
            event_type=EventType.SLOT_BOOKED,
            org_id=org_id,
            data={
                "entity_type": entity_type.value,
                "entity_id": str(entity_id),
                "date": day.isoformat(),
                "start_time": start_time,
                "end_time": end_time,
                "appointment_id": appointment_id,
            },
            source_module="scheduling.availability",
        ), db)
        return record

    async def release_slot(
        self,
        db: AsyncSession,
        org_id: str,
        entity_type: EntityType,
        entity_id: uuid.UUID,
        day: date,
        appointment_id: str,
    ) -> int:
        """Free every slot held by ``appointment_id`` on ``day``."""
        released = await self._store.release_slot(db, org_id, entity_type, entity_id, day, appointment_id)
        if released:
            await emit(SystemEvent(
                event_type=EventType.SLOT_RELEASED,
                org_id=org_id,
                data={
                    "entity_type": entity_type.value,
                    "entity_id": str(entity_id),
                    "date": day.isoformat(),
                    "appointment_id": appointment_id,
                    "slots": released,
                },
                source_module="scheduling.availability",
            ), db)
        return released

    async def block_time_slot(
        self,
        db: AsyncSession,
        org_id: str,
        entity_type: EntityType,
        entity_id: uuid.UUID,
        day: date,
        start_time: str,
        end_time: str,
        reason: str,
        custom_reason: str | None = None,
    ) -> int:
        """Manual blackout (vacation, maintenance) of slots inside a window.

        Raises:
            AvailabilityNotFound: Availability must be generated before blocking.
        """
        blocked = await self._store.block_slots(
            db, org_id, entity_type, entity_id, day, start_time, end_time, reason, custom_reason
        )
        logger.info(
            "Slots blocked: %s %s %s %s-%s reason=%s (%d slots)",
            entity_type.value, entity_id, day, start_time, end_time, reason, blocked,
        )
        await emit(SystemEvent(
            event_type=EventType.SLOT_BLOCKED,
            org_id=org_id,
            data={
                "entity_type": entity_type.value,
                "entity_id": str(entity_id),
                "date": day.isoformat(),
                "start_time": start_time,
                "end_time": end_time,
                "reason": reason,
                "slots": blocked,
            },
            source_module="scheduling.availability",
        ), db)
        return blocked


# Module-level singleton
availability_service = AvailabilityService()
