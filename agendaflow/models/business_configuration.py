"""BusinessConfiguration model: per-organization appointment model and booking policy."""

from __future__ import annotations

from sqlalchemy import JSON, Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from agendaflow.models.base import Base, TimestampMixin
from agendaflow.models.enums import AppointmentModel, IndustryType


class BusinessConfiguration(TimestampMixin, Base):
    """How an organization books: who gets assigned and which policies apply."""

    __tablename__ = "business_configurations"

    org_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    industry_type: Mapped[str] = mapped_column(
        String(30), default=IndustryType.CUSTOM.value, nullable=False
    )
    appointment_model: Mapped[str] = mapped_column(
        String(30), default=AppointmentModel.HYBRID.value, nullable=False
    )

    # Assignment
    allow_client_selection: Mapped[bool] = mapped_column(Boolean, default=True)
    require_resource_assignment: Mapped[bool] = mapped_column(Boolean, default=False)
    auto_assign_resources: Mapped[bool] = mapped_column(Boolean, default=True)

    # Booking window
    buffer_between_appointments: Mapped[int] = mapped_column(
        Integer, default=15, comment="Idle minutes between generated slots"
    )
    max_advance_booking_days: Mapped[int] = mapped_column(Integer, default=30)

    # Cancellation policy
    allow_cancellation: Mapped[bool] = mapped_column(Boolean, default=True)
    cancellation_hours_before: Mapped[int] = mapped_column(Integer, default=24)
    cancellation_penalty_percentage: Mapped[int] = mapped_column(Integer, default=0)

    # Notifications
    require_confirmation: Mapped[bool] = mapped_column(Boolean, default=True)
    send_reminders: Mapped[bool] = mapped_column(Boolean, default=True)
    reminder_hours: Mapped[list[int] | None] = mapped_column(JSON)

    def __repr__(self) -> str:
        return f"<BusinessConfiguration org={self.org_id} model={self.appointment_model}>"
