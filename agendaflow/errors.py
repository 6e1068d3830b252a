"""Booking error taxonomy.

Each error carries a stable ``code`` and the HTTP status the API layer
answers with. Callers tell apart three user-facing situations:

- nothing is available (``NoAvailability``): pick another time
- the exact window was just taken (``BookingConflict``): refresh and retry
- anything else that is not a ``BookingError``: system error, try later
"""

from __future__ import annotations


class BookingError(Exception):
    """Base class for all domain errors raised by the booking core."""

    code = "booking_error"
    status_code = 400

    def __init__(self, message: str | None = None) -> None:
        self.message = message or (self.__doc__ or self.code).strip().splitlines()[0]
        super().__init__(self.message)


# ── Client errors (400) ──────────────────────────────────────────────


class ClientError(BookingError):
    """The request violates a business rule."""

    code = "client_error"


class ConfigurationMissing(ClientError):
    """The organization has no business configuration."""

    code = "configuration_missing"


class PastBooking(ClientError):
    """Appointments cannot be booked in the past."""

    code = "past_booking"


class AdvanceLimitExceeded(ClientError):
    """The appointment is further ahead than the booking window allows."""

    code = "advance_limit_exceeded"


class InvalidSchedule(ClientError):
    """The entity's schedule cannot produce slots."""

    code = "invalid_schedule"


class InvalidTransition(ClientError):
    """The appointment cannot move to the requested status."""

    code = "invalid_transition"


class CancellationNotAllowed(ClientError):
    """The organization does not allow client cancellations."""

    code = "cancellation_not_allowed"


class DuplicateRecord(ClientError):
    """An availability record already exists for this entity and date."""

    code = "duplicate_record"
    status_code = 409


# ── Not found (404) ──────────────────────────────────────────────────


class NotFound(BookingError):
    code = "not_found"
    status_code = 404


class AvailabilityNotFound(NotFound):
    """No availability was generated for this entity and date."""

    code = "availability_not_found"


class AppointmentNotFound(NotFound):
    """Appointment not found."""

    code = "appointment_not_found"


class EntityNotFound(NotFound):
    """Staff member or resource not found or inactive."""

    code = "entity_not_found"


# ── No assignment possible (409) ─────────────────────────────────────


class NoAvailability(BookingError):
    """Nothing is available for the requested time."""

    code = "no_availability"
    status_code = 409


class NoStaffAvailable(NoAvailability):
    """No staff available for the requested time."""

    code = "no_staff_available"


class NoResourceAvailable(NoAvailability):
    """No resources available for the requested time."""

    code = "no_resource_available"


class NoAvailabilityFound(NoAvailability):
    """No availability found for the requested time."""

    code = "no_availability_found"


class PreferredUnavailable(BookingError):
    """The requested staff member or resource is not available."""

    code = "preferred_unavailable"
    status_code = 409


class StaffUnavailable(PreferredUnavailable):
    """Selected staff member is not available."""

    code = "staff_unavailable"


class ResourceUnavailable(PreferredUnavailable):
    """Selected resource is not available."""

    code = "resource_unavailable"


# ── Conflicts ────────────────────────────────────────────────────────


class BookingConflict(BookingError):
    """The time slot was taken by another booking. Refresh and retry."""

    code = "booking_conflict"
    status_code = 409


class SlotUnavailable(BookingConflict):
    """Time slot is no longer available."""

    code = "slot_unavailable"


class ConcurrentModification(BookingError):
    """The availability record changed between read and write.

    Retryable. The lifecycle manager retries and never lets this escape to
    the API layer.
    """

    code = "concurrent_modification"
    status_code = 409
