"""Availability model: the generated slot list of one entity on one date.

`version` is the mapper's version_id_col: every UPDATE is conditional on the
version that was read, so two writers racing on the same record cannot both
succeed.
"""

from __future__ import annotations

import datetime as dt
import uuid
from typing import Any

from sqlalchemy import JSON, Boolean, Date, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from agendaflow.models.base import Base, TimestampMixin


class Availability(TimestampMixin, Base):
    """Slots for a (entity_type, entity_id, date) key. Never deleted."""

    __tablename__ = "availability"
    __table_args__ = (
        UniqueConstraint("entity_type", "entity_id", "date", name="uq_availability_entity_date"),
    )

    org_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    entity_type: Mapped[str] = mapped_column(String(20), nullable=False)
    entity_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, index=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)

    # Ordered list of TimeSlot dicts; always replaced wholesale, never mutated in place
    time_slots: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    override: Mapped[bool] = mapped_column(
        Boolean, default=False, comment="Regenerated over existing data"
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Availability {self.entity_type}:{self.entity_id} date={self.date} v={self.version}>"
