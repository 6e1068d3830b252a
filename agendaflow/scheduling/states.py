"""Appointment status transition table.

Only transitions listed here are legal; terminal states have no entry.
"""

from __future__ import annotations

from agendaflow.errors import InvalidTransition
from agendaflow.models.enums import AppointmentStatus

# {current_status: {allowed next statuses}}
TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset({
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.RESCHEDULED,
    }),
    AppointmentStatus.CONFIRMED: frozenset({
        AppointmentStatus.COMPLETED,
        AppointmentStatus.NO_SHOW,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.RESCHEDULED,
    }),
    AppointmentStatus.RESCHEDULED: frozenset({
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.NO_SHOW,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.RESCHEDULED,
    }),
}

TERMINAL_STATES = frozenset(status for status in AppointmentStatus if status not in TRANSITIONS)


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def ensure_transition(current: AppointmentStatus, target: AppointmentStatus) -> None:
    """Raise InvalidTransition unless ``current -> target`` is allowed."""
    if not can_transition(current, target):
        allowed = sorted(s.value for s in TRANSITIONS.get(current, frozenset()))
        msg = f"Invalid transition: {current.value} -> {target.value} (allowed: {allowed})"
        raise InvalidTransition(msg)
