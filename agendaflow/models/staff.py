"""Staff model: professionals who can be assigned appointments."""

from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from agendaflow.models.base import Base, TimestampMixin


class Staff(TimestampMixin, Base):
    """A staff member with a weekly schedule."""

    __tablename__ = "staff"

    org_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # Profile
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(20))
    role: Mapped[str] = mapped_column(String(50), nullable=False, comment="doctor, stylist, therapist, ...")

    # Skills
    specialties: Mapped[list[str] | None] = mapped_column(JSON)

    # Weekly schedule keyed by weekday name, see schemas.schedule.WeeklySchedule
    schedule: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self) -> str:
        return f"<Staff name={self.display_name} active={self.is_active}>"
