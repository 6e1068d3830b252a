"""Tests for booking timing and cancellation penalty rules."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest

from agendaflow.errors import AdvanceLimitExceeded, PastBooking
from agendaflow.models.business_configuration import BusinessConfiguration
from agendaflow.models.enums import CancelledBy
from agendaflow.scheduling.policy import as_aware, cancellation_penalty, hours_until, validate_timing

NOW = datetime(2026, 3, 2, 10, 0, tzinfo=UTC)


def _config(**overrides) -> BusinessConfiguration:
    values = {
        "org_id": "org-test",
        "max_advance_booking_days": 30,
        "cancellation_hours_before": 24,
        "cancellation_penalty_percentage": 50,
    }
    values.update(overrides)
    return BusinessConfiguration(**values)


class TestValidateTiming:
    def test_past_rejected(self):
        with pytest.raises(PastBooking):
            validate_timing(NOW - timedelta(minutes=1), _config(), NOW)

    def test_last_allowed_day_late_evening(self):
        last = (NOW + timedelta(days=30)).replace(hour=23, minute=59)
        validate_timing(last, _config(), NOW)

    def test_one_day_past_the_window(self):
        too_far = (NOW + timedelta(days=31)).replace(hour=9, minute=0)
        with pytest.raises(AdvanceLimitExceeded):
            validate_timing(too_far, _config(), NOW)

    def test_window_counts_days_in_appointment_timezone(self):
        rome = timezone(timedelta(hours=1))
        last = (NOW + timedelta(days=30)).astimezone(rome).replace(hour=23, minute=59)
        validate_timing(last, _config(), NOW)

    def test_naive_treated_as_utc(self):
        assert as_aware(datetime(2026, 1, 1, 9, 0)).tzinfo is UTC


class TestCancellationPenalty:
    def test_client_inside_notice_period(self):
        at = NOW + timedelta(hours=5)
        assert cancellation_penalty(_config(), CancelledBy.CLIENT, at, NOW) == 50

    def test_client_outside_notice_period(self):
        at = NOW + timedelta(hours=48)
        assert cancellation_penalty(_config(), CancelledBy.CLIENT, at, NOW) == 0

    def test_staff_never_penalized(self):
        at = NOW + timedelta(hours=1)
        assert cancellation_penalty(_config(), CancelledBy.STAFF, at, NOW) == 0

    def test_without_configuration(self):
        assert cancellation_penalty(None, CancelledBy.CLIENT, NOW, NOW) == 0

    def test_hours_rounded_up(self):
        assert hours_until(NOW + timedelta(minutes=61), NOW) == 2
