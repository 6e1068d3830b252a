"""Booking policy checks: advance window, past bookings, cancellation penalty."""

from __future__ import annotations

import math
from datetime import UTC, datetime

from agendaflow.errors import AdvanceLimitExceeded, PastBooking
from agendaflow.models.business_configuration import BusinessConfiguration
from agendaflow.models.enums import CancelledBy


def as_aware(moment: datetime) -> datetime:
    """Naive datetimes (as SQLite returns them) are taken to be UTC."""
    return moment if moment.tzinfo is not None else moment.replace(tzinfo=UTC)


def validate_timing(
    scheduled_at: datetime,
    config: BusinessConfiguration,
    now: datetime | None = None,
) -> None:
    """Reject bookings in the past or beyond the advance-booking window.

    The window counts calendar days in the appointment's own timezone, so
    any time on the last allowed day is accepted.

    Raises:
        PastBooking: ``scheduled_at`` is before now.
        AdvanceLimitExceeded: The appointment date is more than
            ``max_advance_booking_days`` days after today.
    """
    scheduled_at = as_aware(scheduled_at)
    now = as_aware(now or datetime.now(UTC))

    if scheduled_at < now:
        msg = f"Cannot book appointments in the past ({scheduled_at.isoformat()})"
        raise PastBooking(msg)

    today = now.astimezone(scheduled_at.tzinfo).date()
    days_in_advance = (scheduled_at.date() - today).days
    if days_in_advance > config.max_advance_booking_days:
        msg = f"Appointments can only be booked {config.max_advance_booking_days} days in advance"
        raise AdvanceLimitExceeded(msg)


def hours_until(scheduled_at: datetime, now: datetime | None = None) -> int:
    """Whole hours until the appointment, rounded up."""
    delta = as_aware(scheduled_at) - as_aware(now or datetime.now(UTC))
    return math.ceil(delta.total_seconds() / 3600)


def cancellation_penalty(
    config: BusinessConfiguration | None,
    cancelled_by: CancelledBy,
    scheduled_at: datetime,
    now: datetime | None = None,
) -> int:
    """Penalty percentage owed for a cancellation.

    Only client cancellations inside the policy's notice period are charged.
    """
    if config is None or cancelled_by is not CancelledBy.CLIENT:
        return 0
    if hours_until(scheduled_at, now) < config.cancellation_hours_before:
        return config.cancellation_penalty_percentage or 0
    return 0
