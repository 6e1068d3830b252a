"""Appointment model: a client booking held against staff and/or resource slots."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any

from sqlalchemy import JSON, Date, DateTime, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from agendaflow.models.base import Base, TimestampMixin
from agendaflow.models.enums import AppointmentStatus


class Appointment(TimestampMixin, Base):
    """A booked appointment owned by an organization. Never hard-deleted."""

    __tablename__ = "appointments"

    org_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # Assignment
    staff_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), index=True)
    resource_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), index=True)
    assignment_type: Mapped[str] = mapped_column(String(30), nullable=False)

    # Who and what
    client_info: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    service_info: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    # Scheduling
    scheduled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False, comment="Minutes")
    slot_date: Mapped[date] = mapped_column(
        Date, nullable=False, index=True, comment="Wall-clock date of the held slots"
    )
    start_time: Mapped[str] = mapped_column(String(5), nullable=False, comment="HH:MM of the held slots")

    status: Mapped[str] = mapped_column(
        String(20), default=AppointmentStatus.PENDING.value, nullable=False
    )

    notes: Mapped[str | None] = mapped_column(String(1000))
    custom_fields: Mapped[dict[str, Any] | None] = mapped_column(JSON)

    cancellation_info: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    rescheduling_history: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)

    def __repr__(self) -> str:
        return f"<Appointment id={self.id} status={self.status} at={self.scheduled_at}>"
