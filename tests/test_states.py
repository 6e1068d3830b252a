"""Tests for the appointment status transition table."""

from __future__ import annotations

import pytest

from agendaflow.errors import InvalidTransition
from agendaflow.models.enums import AppointmentStatus as S
from agendaflow.scheduling.states import TERMINAL_STATES, can_transition, ensure_transition


class TestTransitions:
    @pytest.mark.parametrize(("current", "target"), [
        (S.PENDING, S.CONFIRMED),
        (S.PENDING, S.CANCELLED),
        (S.CONFIRMED, S.COMPLETED),
        (S.CONFIRMED, S.NO_SHOW),
        (S.CONFIRMED, S.RESCHEDULED),
        (S.RESCHEDULED, S.RESCHEDULED),
        (S.RESCHEDULED, S.CONFIRMED),
    ])
    def test_allowed(self, current, target):
        assert can_transition(current, target)

    @pytest.mark.parametrize(("current", "target"), [
        (S.COMPLETED, S.PENDING),
        (S.CANCELLED, S.CONFIRMED),
        (S.NO_SHOW, S.CANCELLED),
        (S.PENDING, S.COMPLETED),
        (S.CONFIRMED, S.PENDING),
    ])
    def test_rejected(self, current, target):
        assert not can_transition(current, target)
        with pytest.raises(InvalidTransition):
            ensure_transition(current, target)

    def test_terminal_states(self):
        assert TERMINAL_STATES == {S.COMPLETED, S.CANCELLED, S.NO_SHOW}

    def test_cancel_reachable_from_every_open_state(self):
        for status in S:
            if status not in TERMINAL_STATES:
                assert can_transition(status, S.CANCELLED)
