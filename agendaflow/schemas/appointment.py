"""Pydantic schemas for appointment requests, assignments, and read models."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from agendaflow.models.enums import AppointmentStatus, AssignmentType, CancelledBy


class ClientInfo(BaseModel):
    name: str
    email: str
    phone: str | None = None
    is_returning_client: bool = False
    client_id: str | None = None


class ServiceInfo(BaseModel):
    name: str
    description: str | None = None
    price: Decimal | None = None
    duration: int = Field(gt=0, description="Minutes")
    category: str | None = None


class CreateAppointmentRequest(BaseModel):
    """Everything needed to book one appointment."""

    org_id: str
    client_info: ClientInfo
    service_info: ServiceInfo
    scheduled_at: datetime
    duration: int = Field(gt=0, description="Minutes")
    preferred_staff_id: uuid.UUID | None = None
    preferred_resource_id: uuid.UUID | None = None
    required_specialties: list[str] | None = None
    custom_fields: dict[str, Any] | None = None
    notes: str | None = Field(default=None, max_length=1000)


class Assignment(BaseModel):
    """Entities chosen for an appointment.

    The populated ids always agree with ``assignment_type``.
    """

    staff_id: uuid.UUID | None = None
    resource_id: uuid.UUID | None = None
    assignment_type: AssignmentType

    @model_validator(mode="after")
    def _consistent(self) -> Assignment:
        expected = {
            AssignmentType.STAFF_ONLY: (True, False),
            AssignmentType.RESOURCE_ONLY: (False, True),
            AssignmentType.STAFF_AND_RESOURCE: (True, True),
        }[self.assignment_type]
        if (self.staff_id is not None, self.resource_id is not None) != expected:
            msg = f"Assignment ids do not match {self.assignment_type.value}"
            raise ValueError(msg)
        return self


class AppointmentUpdate(BaseModel):
    """Partial update. Only fields explicitly set are applied."""

    scheduled_at: datetime | None = None
    duration: int | None = Field(default=None, gt=0)
    staff_id: uuid.UUID | None = None
    resource_id: uuid.UUID | None = None
    assignment_type: AssignmentType | None = None
    client_info: ClientInfo | None = None
    service_info: ServiceInfo | None = None
    notes: str | None = Field(default=None, max_length=1000)
    custom_fields: dict[str, Any] | None = None


class CancellationInfo(BaseModel):
    cancelled_at: datetime
    cancelled_by: CancelledBy
    reason: str | None = None
    penalty_applied: int = 0


class ReschedulingRecord(BaseModel):
    previous_datetime: datetime
    new_datetime: datetime
    rescheduled_at: datetime
    rescheduled_by: str
    reason: str | None = None


class AppointmentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    org_id: str
    staff_id: uuid.UUID | None
    resource_id: uuid.UUID | None
    assignment_type: AssignmentType
    client_info: ClientInfo
    service_info: ServiceInfo
    scheduled_at: datetime
    duration: int
    status: AppointmentStatus
    notes: str | None = None
    cancellation_info: CancellationInfo | None = None
    rescheduling_history: list[ReschedulingRecord] = Field(default_factory=list)


class AppointmentStats(BaseModel):
    """Per-status counts over a date range."""

    total: int = 0
    pending: int = 0
    confirmed: int = 0
    completed: int = 0
    cancelled: int = 0
    no_show: int = 0
    rescheduled: int = 0
