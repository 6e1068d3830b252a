"""HTTP surface: FastAPI router over the booking core.

Every route is tenant-scoped by the ``org_id`` path parameter, which must
match the caller's token. Domain errors are rendered as
``{"error": code, "detail": message}`` with the error's status code.
"""

# ruff: noqa: B008 -- Depends() in function defaults is standard FastAPI

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Literal

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from agendaflow.auth import Identity, require_org, verify_token
from agendaflow.db.engine import get_session
from agendaflow.errors import BookingError, ClientError
from agendaflow.models.enums import AppointmentStatus, CancelledBy, EntityType, UnavailableReason
from agendaflow.scheduling.availability import ALL_ENTITIES, availability_service
from agendaflow.scheduling.lifecycle import appointment_service
from agendaflow.schemas.appointment import AppointmentRead, CreateAppointmentRequest
from agendaflow.schemas.availability import AvailabilityRead, AvailableSlotResult, GenerationOptions
from agendaflow.schemas.schedule import HHMM_PATTERN

router = APIRouter(prefix="/orgs/{org_id}", tags=["booking"])


# ── Request bodies ───────────────────────────────────────────────────


class GenerateRequest(BaseModel):
    entity_type: EntityType | None = None
    entity_id: uuid.UUID | Literal["all"] = ALL_ENTITIES
    options: GenerationOptions


class BlockRequest(BaseModel):
    entity_type: EntityType
    entity_id: uuid.UUID
    date: date
    start_time: str = Field(pattern=HHMM_PATTERN)
    end_time: str = Field(pattern=HHMM_PATTERN)
    reason: UnavailableReason = UnavailableReason.BLOCKED
    custom_reason: str | None = None


class CancelRequest(BaseModel):
    cancelled_by: CancelledBy
    reason: str | None = None


class RescheduleRequest(BaseModel):
    new_datetime: datetime
    reason: str | None = None


class StatusRequest(BaseModel):
    status: Literal["confirmed", "completed", "no_show"]


class GenerateResult(BaseModel):
    records: int


class BlockResult(BaseModel):
    blocked: int = Field(description="Number of slots blocked")


# ── Availability ─────────────────────────────────────────────────────


@router.get("/availability", response_model=list[AvailableSlotResult])
async def find_availability(
    org_id: str,
    day: date = Query(alias="date"),
    duration: int = Query(gt=0),
    entity_type: EntityType | None = None,
    entity_id: uuid.UUID | None = None,
    specialties: list[str] | None = Query(default=None),
    db: AsyncSession = Depends(get_session),
    identity: Identity = Depends(verify_token),
) -> list[AvailableSlotResult]:
    require_org(org_id, identity)
    return await availability_service.find_available_slots(
        db, org_id, day, duration, entity_type, entity_id, specialties
    )


@router.get("/availability/calendar", response_model=list[AvailabilityRead])
async def availability_calendar(
    org_id: str,
    entity_type: EntityType,
    entity_id: uuid.UUID,
    start_date: date,
    end_date: date,
    db: AsyncSession = Depends(get_session),
    identity: Identity = Depends(verify_token),
) -> list[AvailabilityRead]:
    require_org(org_id, identity)
    if end_date < start_date:
        msg = "end_date must not be before start_date"
        raise ClientError(msg)
    records = await availability_service.get_entity_availability(
        db, org_id, entity_type, entity_id, start_date, end_date
    )
    return [AvailabilityRead.model_validate(r) for r in records]


@router.post("/availability/generate", response_model=GenerateResult)
async def generate_availability(
    org_id: str,
    body: GenerateRequest,
    db: AsyncSession = Depends(get_session),
    identity: Identity = Depends(verify_token),
) -> GenerateResult:
    require_org(org_id, identity)
    records = await availability_service.generate_availability(
        db, org_id, body.entity_type, body.entity_id, body.options
    )
    return GenerateResult(records=records)


@router.post("/availability/block", response_model=BlockResult)
async def block_availability(
    org_id: str,
    body: BlockRequest,
    db: AsyncSession = Depends(get_session),
    identity: Identity = Depends(verify_token),
) -> BlockResult:
    require_org(org_id, identity)
    blocked = await availability_service.block_time_slot(
        db, org_id, body.entity_type, body.entity_id, body.date,
        body.start_time, body.end_time, body.reason.value, body.custom_reason,
    )
    return BlockResult(blocked=blocked)


# ── Appointments ─────────────────────────────────────────────────────


@router.post("/appointments", response_model=AppointmentRead, status_code=201)
async def create_appointment(
    org_id: str,
    body: CreateAppointmentRequest,
    db: AsyncSession = Depends(get_session),
    identity: Identity = Depends(verify_token),
) -> AppointmentRead:
    require_org(org_id, identity)
    if body.org_id != org_id:
        msg = "Request org_id does not match the URL"
        raise ClientError(msg)
    appointment = await appointment_service.create_appointment(db, body)
    return AppointmentRead.model_validate(appointment)


@router.get("/appointments", response_model=list[AppointmentRead])
async def list_appointments(
    org_id: str,
    start_date: date,
    end_date: date,
    staff_id: uuid.UUID | None = None,
    resource_id: uuid.UUID | None = None,
    status: AppointmentStatus | None = None,
    db: AsyncSession = Depends(get_session),
    identity: Identity = Depends(verify_token),
) -> list[AppointmentRead]:
    require_org(org_id, identity)
    appointments = await appointment_service.get_appointments_by_date_range(
        db, org_id, start_date, end_date, staff_id, resource_id, status
    )
    return [AppointmentRead.model_validate(a) for a in appointments]


@router.post("/appointments/{appointment_id}/cancel", response_model=AppointmentRead)
async def cancel_appointment(
    org_id: str,
    appointment_id: uuid.UUID,
    body: CancelRequest,
    db: AsyncSession = Depends(get_session),
    identity: Identity = Depends(verify_token),
) -> AppointmentRead:
    require_org(org_id, identity)
    appointment = await appointment_service.cancel_appointment(
        db, org_id, appointment_id, body.cancelled_by, body.reason
    )
    return AppointmentRead.model_validate(appointment)


@router.post("/appointments/{appointment_id}/reschedule", response_model=AppointmentRead)
async def reschedule_appointment(
    org_id: str,
    appointment_id: uuid.UUID,
    body: RescheduleRequest,
    db: AsyncSession = Depends(get_session),
    identity: Identity = Depends(verify_token),
) -> AppointmentRead:
    require_org(org_id, identity)
    appointment = await appointment_service.reschedule_appointment(
        db, org_id, appointment_id, body.new_datetime, identity.user_id, body.reason
    )
    return AppointmentRead.model_validate(appointment)


@router.post("/appointments/{appointment_id}/status", response_model=AppointmentRead)
async def change_status(
    org_id: str,
    appointment_id: uuid.UUID,
    body: StatusRequest,
    db: AsyncSession = Depends(get_session),
    identity: Identity = Depends(verify_token),
) -> AppointmentRead:
    require_org(org_id, identity)
    actions = {
        "confirmed": appointment_service.confirm_appointment,
        "completed": appointment_service.complete_appointment,
        "no_show": appointment_service.mark_no_show,
    }
    appointment = await actions[body.status](db, org_id, appointment_id)
    return AppointmentRead.model_validate(appointment)


# ── Error rendering ──────────────────────────────────────────────────


async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "detail": exc.message},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BookingError, booking_error_handler)  # type: ignore[arg-type]
