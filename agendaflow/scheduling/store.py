"""Availability store: per (entity, date) slot records with versioned writes.

Every mutation is read-modify-write on the whole slot list, so each write is
conditional on the record version that was read (the mapper's
version_id_col). A writer working from stale state gets
``ConcurrentModification`` instead of silently overwriting another booking.
Mutations flush immediately; committing is the caller's unit of work.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import date
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from agendaflow.errors import (
    AvailabilityNotFound,
    ConcurrentModification,
    DuplicateRecord,
    SlotUnavailable,
)
from agendaflow.models.availability import Availability
from agendaflow.models.enums import EntityType, UnavailableReason
from agendaflow.scheduling.slots import add_minutes, overlapping, time_to_minutes, window_is_free
from agendaflow.schemas.availability import TimeSlot

logger = logging.getLogger(__name__)


def load_slots(record: Availability) -> list[TimeSlot]:
    """Decode the JSON slot list of a record."""
    return [TimeSlot.model_validate(raw) for raw in record.time_slots]


class AvailabilityStore:
    """Keyed-record access to Availability rows."""

    async def create(
        self,
        db: AsyncSession,
        org_id: str,
        entity_type: EntityType,
        entity_id: uuid.UUID,
        day: date,
        time_slots: list[TimeSlot],
        *,
        override: bool = False,
    ) -> Availability:
        """Insert a new record. Raises DuplicateRecord if one already exists."""
        if await self.get(db, org_id, entity_type, entity_id, day) is not None:
            msg = f"Availability already exists for {entity_type.value} {entity_id} on {day}"
            raise DuplicateRecord(msg)

        record = Availability(
            org_id=org_id,
            entity_type=entity_type.value,
            entity_id=entity_id,
            date=day,
            time_slots=[slot.to_record() for slot in time_slots],
            is_active=True,
            override=override,
        )
        db.add(record)
        try:
            await db.flush()
        except IntegrityError as exc:
            # Lost an insert race on the (entity, date) unique key
            msg = f"Availability already exists for {entity_type.value} {entity_id} on {day}"
            raise DuplicateRecord(msg) from exc
        return record

    async def get(
        self,
        db: AsyncSession,
        org_id: str,
        entity_type: EntityType,
        entity_id: uuid.UUID,
        day: date,
    ) -> Availability | None:
        """Point lookup. Returns None when nothing was generated for the date."""
        result = await db.execute(
            select(Availability).where(
                Availability.org_id == org_id,
                Availability.entity_type == entity_type.value,
                Availability.entity_id == entity_id,
                Availability.date == day,
            )
        )
        return result.scalar_one_or_none()

    async def get_range(
        self,
        db: AsyncSession,
        org_id: str,
        entity_type: EntityType,
        entity_id: uuid.UUID,
        start_date: date,
        end_date: date,
    ) -> list[Availability]:
        """Inclusive date-range lookup, ordered by date."""
        result = await db.execute(
            select(Availability)
            .where(
                Availability.org_id == org_id,
                Availability.entity_type == entity_type.value,
                Availability.entity_id == entity_id,
                Availability.date.between(start_date, end_date),
            )
            .order_by(Availability.date)
        )
        return list(result.scalars().all())

    async def update(
        self,
        db: AsyncSession,
        org_id: str,
        entity_type: EntityType,
        entity_id: uuid.UUID,
        day: date,
        **fields: Any,
    ) -> Availability:
        """Replace fields of an existing record (time_slots given as TimeSlot list)."""
        record = await self._require(db, org_id, entity_type, entity_id, day)
        slots = fields.pop("time_slots", None)
        for name, value in fields.items():
            setattr(record, name, value)
        if slots is not None:
            record.time_slots = [slot.to_record() for slot in slots]
        await self._flush(db, record)
        return record

    async def book_slot(
        self,
        db: AsyncSession,
        org_id: str,
        entity_type: EntityType,
        entity_id: uuid.UUID,
        day: date,
        start_time: str,
        end_time: str,
        appointment_id: str,
    ) -> Availability:
        """Mark every slot overlapping [start_time, end_time) as booked.

        Raises:
            AvailabilityNotFound: Nothing was generated for the date.
            SlotUnavailable: Part of the window is booked, blocked, or not covered.
            ConcurrentModification: The record changed since it was read.
        """
        record = await self._require(db, org_id, entity_type, entity_id, day)
        start, end = time_to_minutes(start_time), time_to_minutes(end_time)
        slots = load_slots(record)

        if not record.is_active or not window_is_free(slots, start, end):
            msg = f"{entity_type.value} {entity_id} is not free {day} {start_time}-{end_time}"
            raise SlotUnavailable(msg)

        targets = {s.start_time for s in overlapping(slots, start, end)}
        record.time_slots = [
            (
                slot.model_copy(update={
                    "is_available": False,
                    "booked_appointment_id": appointment_id,
                    "reason_unavailable": UnavailableReason.BOOKED.value,
                })
                if slot.start_time in targets
                else slot
            ).to_record()
            for slot in slots
        ]
        await self._flush(db, record)
        logger.info(
            "Slot booked: %s %s %s %s-%s appointment=%s",
            entity_type.value, entity_id, day, start_time, end_time, appointment_id,
        )
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
        """Free every slot held by ``appointment_id``. Idempotent.

        Slots blocked while booked lose the booking but stay blocked.

        Returns:
            Number of slots released (0 when nothing was held).
        """
        record = await self._require(db, org_id, entity_type, entity_id, day)
        released = self._rewrite(
            record,
            lambda slot: (
                slot.booked_appointment_id == appointment_id
                and slot.reason_unavailable == UnavailableReason.BOOKED.value
            ),
            {
                "is_available": True,
                "booked_appointment_id": None,
                "reason_unavailable": None,
                "custom_reason": None,
            },
        )
        released += self._rewrite(
            record,
            lambda slot: slot.booked_appointment_id == appointment_id,
            {"booked_appointment_id": None},
        )
        if released:
            await self._flush(db, record)
            logger.info(
                "Slot released: %s %s %s appointment=%s (%d slots)",
                entity_type.value, entity_id, day, appointment_id, released,
            )
        return released

    async def block_slots(
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
        """Mark slots wholly inside [start_time, end_time) unavailable for ``reason``.

        A booked slot keeps its appointment id so the booking stays visible,
        but releasing it later leaves the block in place.
        """
        record = await self._require(db, org_id, entity_type, entity_id, day)
        start, end = time_to_minutes(start_time), time_to_minutes(end_time)
        blocked = self._rewrite(
            record,
            lambda slot: slot.start_minutes >= start and slot.end_minutes <= end,
            {"is_available": False, "reason_unavailable": reason, "custom_reason": custom_reason},
        )
        if blocked:
            await self._flush(db, record)
        return blocked

    async def available_slots(
        self,
        db: AsyncSession,
        org_id: str,
        entity_type: EntityType,
        entity_id: uuid.UUID,
        day: date,
        duration: int,
    ) -> list[TimeSlot]:
        """Available slots at least ``duration`` minutes long."""
        record = await self.get(db, org_id, entity_type, entity_id, day)
        if record is None or not record.is_active:
            return []
        return [s for s in load_slots(record) if s.is_available and s.duration_minutes >= duration]

    async def find_first_fitting_slot(
        self,
        db: AsyncSession,
        org_id: str,
        entity_type: EntityType,
        entity_id: uuid.UUID,
        day: date,
        duration: int,
        preferred_start_time: str | None = None,
    ) -> TimeSlot | None:
        """First available slot of at least ``duration`` minutes.

        With ``preferred_start_time``, a slot that starts at or before it and
        still covers ``preferred_start_time + duration`` wins; otherwise the
        first fitting slot is returned.
        """
        slots = await self.available_slots(db, org_id, entity_type, entity_id, day, duration)
        if not slots:
            return None
        if preferred_start_time is not None:
            wanted_end = time_to_minutes(add_minutes(preferred_start_time, duration))
            wanted_start = time_to_minutes(preferred_start_time)
            for slot in slots:
                if slot.start_minutes <= wanted_start and slot.end_minutes >= wanted_end:
                    return slot
        return slots[0]

    async def is_window_free(
        self,
        db: AsyncSession,
        org_id: str,
        entity_type: EntityType,
        entity_id: uuid.UUID,
        day: date,
        start_time: str,
        duration: int,
    ) -> bool:
        """True if [start_time, start_time + duration) could be booked right now."""
        record = await self.get(db, org_id, entity_type, entity_id, day)
        if record is None or not record.is_active:
            return False
        start = time_to_minutes(start_time)
        return window_is_free(load_slots(record), start, start + duration)

    # ── Internals ────────────────────────────────────────────────────

    async def _require(
        self,
        db: AsyncSession,
        org_id: str,
        entity_type: EntityType,
        entity_id: uuid.UUID,
        day: date,
    ) -> Availability:
        record = await self.get(db, org_id, entity_type, entity_id, day)
        if record is None:
            msg = f"No availability for {entity_type.value} {entity_id} on {day}"
            raise AvailabilityNotFound(msg)
        return record

    @staticmethod
    def _rewrite(
        record: Availability,
        matches: Callable[[TimeSlot], bool],
        changes: dict[str, Any],
    ) -> int:
        """Apply ``changes`` to matching slots; returns how many changed."""
        count = 0
        rewritten: list[dict[str, Any]] = []
        for slot in load_slots(record):
            if matches(slot):
                slot = slot.model_copy(update=changes)
                count += 1
            rewritten.append(slot.to_record())
        if count:
            record.time_slots = rewritten
        return count

    @staticmethod
    async def _flush(db: AsyncSession, record: Availability) -> None:
        # Read the key before flushing; a failed flush leaves the instance unusable
        key = f"{record.entity_type} {record.entity_id} on {record.date}"
        try:
            await db.flush()
        except StaleDataError as exc:
            logger.warning("Concurrent write on availability for %s", key)
            msg = f"Availability for {key} changed concurrently"
            raise ConcurrentModification(msg) from exc


# Module-level singleton
availability_store = AvailabilityStore()
