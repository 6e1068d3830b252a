"""Resource model: rooms, equipment, and facilities that can be booked."""

from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from agendaflow.models.base import Base, TimestampMixin
from agendaflow.models.enums import ResourceType


class Resource(TimestampMixin, Base):
    """A bookable resource with a weekly schedule."""

    __tablename__ = "resources"

    org_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    resource_type: Mapped[str] = mapped_column(
        String(20), default=ResourceType.ROOM.value, nullable=False
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(String(1000))

    schedule: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    @property
    def display_name(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"<Resource name={self.name} type={self.resource_type}>"
