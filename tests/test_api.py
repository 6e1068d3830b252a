"""Tests for the HTTP router and token identity.

Covers:
- Bearer token issue/decode and tenant checks (401/403)
- Route wiring to the availability and appointment services
- Domain errors rendered as {"error", "detail"} with their status codes
"""

from __future__ import annotations

import uuid
from datetime import UTC, date, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from jose import jwt

from agendaflow.api import register_error_handlers, router
from agendaflow.auth import Identity, decode_token, issue_token
from agendaflow.db.engine import get_session
from agendaflow.errors import NoAvailabilityFound, SlotUnavailable
from agendaflow.models.appointment import Appointment
from agendaflow.models.availability import Availability
from agendaflow.models.enums import CancelledBy, EntityType
from agendaflow.schemas.availability import AvailableSlotResult, TimeSlot

ORG = "org-test"
SECRET = "s3cret"


def _appointment(**overrides) -> Appointment:
    values = {
        "id": uuid.uuid4(),
        "org_id": ORG,
        "staff_id": uuid.uuid4(),
        "resource_id": None,
        "assignment_type": "staff_only",
        "client_info": {"name": "Marta Bianchi", "email": "marta@example.com"},
        "service_info": {"name": "Haircut", "duration": 30},
        "scheduled_at": datetime(2025, 3, 10, 10, 0, tzinfo=UTC),
        "duration": 30,
        "slot_date": date(2025, 3, 10),
        "start_time": "10:00",
        "status": "confirmed",
        "rescheduling_history": [],
    }
    values.update(overrides)
    return Appointment(**values)


def _auth(org_id: str = ORG) -> dict[str, str]:
    token = issue_token(Identity(user_id="user-1", org_id=org_id, role="admin"), secret=SECRET)
    return {"Authorization": f"Bearer {token}"}


# ── Tokens ───────────────────────────────────────────────────────────


class TestTokens:
    def test_round_trip(self):
        identity = Identity(user_id="u1", org_id=ORG, role="staff")
        assert decode_token(issue_token(identity, secret=SECRET), secret=SECRET) == identity

    def test_wrong_secret(self):
        token = issue_token(Identity(user_id="u1", org_id=ORG, role="staff"), secret=SECRET)
        assert decode_token(token, secret="other") is None

    def test_expired(self):
        token = issue_token(
            Identity(user_id="u1", org_id=ORG, role="staff"),
            secret=SECRET,
            expires_delta=timedelta(seconds=-30),
        )
        assert decode_token(token, secret=SECRET) is None

    def test_expiry_claim_present(self):
        token = issue_token(Identity(user_id="u1", org_id=ORG, role="staff"), secret=SECRET)
        assert "exp" in jwt.get_unverified_claims(token)

    def test_tampered_payload(self):
        token = issue_token(Identity(user_id="u1", org_id=ORG, role="staff"), secret=SECRET)
        forged = issue_token(Identity(user_id="u1", org_id="org-other", role="staff"), secret=SECRET)
        header, _, signature = token.split(".")
        mixed = f"{header}.{forged.split('.')[1]}.{signature}"
        assert decode_token(mixed, secret=SECRET) is None

    def test_missing_identity_claims(self):
        token = jwt.encode({"sub": "u1", "exp": datetime.now(UTC) + timedelta(minutes=5)}, SECRET, algorithm="HS256")
        assert decode_token(token, secret=SECRET) is None

    def test_malformed(self):
        assert decode_token("garbage", secret=SECRET) is None


# ── Fixtures ─────────────────────────────────────────────────────────


@pytest.fixture
def mock_settings():
    with patch("agendaflow.auth.settings") as mock:
        mock.security.token_secret = SECRET
        mock.security.token_algorithm = "HS256"
        mock.security.token_ttl_minutes = 60
        yield mock


@pytest.fixture
def mock_services():
    with (
        patch("agendaflow.api.availability_service") as availability,
        patch("agendaflow.api.appointment_service") as appointments,
    ):
        for name in (
            "find_available_slots", "get_entity_availability", "generate_availability", "block_time_slot",
        ):
            setattr(availability, name, AsyncMock())
        for name in (
            "create_appointment", "get_appointments_by_date_range", "cancel_appointment",
            "reschedule_appointment", "confirm_appointment", "complete_appointment", "mark_no_show",
        ):
            setattr(appointments, name, AsyncMock())
        yield {"availability": availability, "appointments": appointments}


@pytest.fixture
def mock_db():
    return MagicMock()


@pytest.fixture
def client(mock_settings, mock_services, mock_db):
    test_app = FastAPI()
    test_app.include_router(router)
    register_error_handlers(test_app)

    async def fake_get():
        yield mock_db
    test_app.dependency_overrides[get_session] = fake_get
    return TestClient(test_app)


# ── Auth ─────────────────────────────────────────────────────────────


class TestAuth:
    def test_401_without_token(self, client):
        resp = client.get("/orgs/org-test/appointments", params={"start_date": "2025-03-10", "end_date": "2025-03-10"})
        assert resp.status_code == 401

    def test_401_bad_token(self, client):
        resp = client.get(
            "/orgs/org-test/appointments",
            params={"start_date": "2025-03-10", "end_date": "2025-03-10"},
            headers={"Authorization": "Bearer nope.nope"},
        )
        assert resp.status_code == 401

    def test_403_other_org(self, client):
        resp = client.get(
            "/orgs/org-test/appointments",
            params={"start_date": "2025-03-10", "end_date": "2025-03-10"},
            headers=_auth("org-other"),
        )
        assert resp.status_code == 403

    def test_503_without_secret(self, client, mock_settings):
        mock_settings.security.token_secret = ""
        resp = client.get(
            "/orgs/org-test/appointments",
            params={"start_date": "2025-03-10", "end_date": "2025-03-10"},
            headers=_auth(),
        )
        assert resp.status_code == 503


# ── Availability routes ──────────────────────────────────────────────


class TestAvailabilityRoutes:
    def test_find(self, client, mock_services, mock_db):
        staff_id = uuid.uuid4()
        mock_services["availability"].find_available_slots.return_value = [AvailableSlotResult(
            entity_type=EntityType.STAFF,
            entity_id=staff_id,
            entity_name="Ada Rossi",
            date=date(2025, 3, 10),
            slots=[TimeSlot(start_time="09:00", end_time="09:30")],
        )]
        resp = client.get(
            "/orgs/org-test/availability",
            params={"date": "2025-03-10", "duration": 30, "entity_type": "staff", "specialties": ["color", "cut"]},
            headers=_auth(),
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body[0]["entity_name"] == "Ada Rossi"
        assert body[0]["slots"][0]["start_time"] == "09:00"
        mock_services["availability"].find_available_slots.assert_awaited_once_with(
            mock_db, ORG, date(2025, 3, 10), 30, EntityType.STAFF, None, ["color", "cut"]
        )

    def test_calendar(self, client, mock_services, mock_db):
        staff_id = uuid.uuid4()
        mock_services["availability"].get_entity_availability.return_value = [Availability(
            org_id=ORG,
            entity_type="staff",
            entity_id=staff_id,
            date=date(2025, 3, 10),
            time_slots=[
                {"start_time": "09:00", "end_time": "09:30", "is_available": True},
                {"start_time": "09:30", "end_time": "10:00", "is_available": False,
                 "booked_appointment_id": "appt-1"},
            ],
            is_active=True,
            override=False,
            version=2,
        )]
        resp = client.get(
            "/orgs/org-test/availability/calendar",
            params={
                "entity_type": "staff", "entity_id": str(staff_id),
                "start_date": "2025-03-10", "end_date": "2025-03-16",
            },
            headers=_auth(),
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body[0]["version"] == 2
        assert body[0]["time_slots"][1]["booked_appointment_id"] == "appt-1"
        mock_services["availability"].get_entity_availability.assert_awaited_once_with(
            mock_db, ORG, EntityType.STAFF, staff_id, date(2025, 3, 10), date(2025, 3, 16)
        )

    def test_calendar_inverted_range(self, client, mock_services):
        resp = client.get(
            "/orgs/org-test/availability/calendar",
            params={
                "entity_type": "staff", "entity_id": str(uuid.uuid4()),
                "start_date": "2025-03-16", "end_date": "2025-03-10",
            },
            headers=_auth(),
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "client_error"
        mock_services["availability"].get_entity_availability.assert_not_awaited()

    def test_generate_all(self, client, mock_services):
        mock_services["availability"].generate_availability.return_value = 12
        resp = client.post(
            "/orgs/org-test/availability/generate",
            json={"options": {"start_date": "2025-03-10", "end_date": "2025-03-16", "slot_duration": 30}},
            headers=_auth(),
        )
        assert resp.status_code == 200
        assert resp.json() == {"records": 12}
        args = mock_services["availability"].generate_availability.await_args.args
        assert args[2:4] == (None, "all")

    def test_generate_invalid_range(self, client):
        resp = client.post(
            "/orgs/org-test/availability/generate",
            json={"options": {"start_date": "2025-03-16", "end_date": "2025-03-10", "slot_duration": 30}},
            headers=_auth(),
        )
        assert resp.status_code == 422

    def test_block(self, client, mock_services):
        mock_services["availability"].block_time_slot.return_value = 2
        resp = client.post(
            "/orgs/org-test/availability/block",
            json={
                "entity_type": "resource",
                "entity_id": str(uuid.uuid4()),
                "date": "2025-03-10",
                "start_time": "12:00",
                "end_time": "13:00",
                "reason": "maintenance",
            },
            headers=_auth(),
        )
        assert resp.status_code == 200
        assert resp.json() == {"blocked": 2}

    def test_block_rejects_malformed_times(self, client, mock_services):
        resp = client.post(
            "/orgs/org-test/availability/block",
            json={
                "entity_type": "staff",
                "entity_id": str(uuid.uuid4()),
                "date": "2025-03-10",
                "start_time": "9am",
                "end_time": "10:00",
            },
            headers=_auth(),
        )
        assert resp.status_code == 422
        mock_services["availability"].block_time_slot.assert_not_awaited()


# ── Appointment routes ───────────────────────────────────────────────


class TestAppointmentRoutes:
    def _create_body(self, org_id: str = ORG) -> dict:
        return {
            "org_id": org_id,
            "client_info": {"name": "Marta Bianchi", "email": "marta@example.com"},
            "service_info": {"name": "Haircut", "duration": 30},
            "scheduled_at": "2025-03-10T10:00:00+00:00",
            "duration": 30,
        }

    def test_create(self, client, mock_services):
        appointment = _appointment()
        mock_services["appointments"].create_appointment.return_value = appointment
        resp = client.post("/orgs/org-test/appointments", json=self._create_body(), headers=_auth())
        assert resp.status_code == 201
        assert resp.json()["id"] == str(appointment.id)
        assert resp.json()["status"] == "confirmed"

    def test_create_body_for_other_org(self, client, mock_services):
        resp = client.post("/orgs/org-test/appointments", json=self._create_body("org-other"), headers=_auth())
        assert resp.status_code == 400
        assert resp.json()["error"] == "client_error"
        mock_services["appointments"].create_appointment.assert_not_called()

    def test_nothing_available_is_409(self, client, mock_services):
        mock_services["appointments"].create_appointment.side_effect = NoAvailabilityFound()
        resp = client.post("/orgs/org-test/appointments", json=self._create_body(), headers=_auth())
        assert resp.status_code == 409
        assert resp.json() == {
            "error": "no_availability_found",
            "detail": "No availability found for the requested time.",
        }

    def test_slot_taken_is_distinct(self, client, mock_services):
        mock_services["appointments"].create_appointment.side_effect = SlotUnavailable("taken")
        resp = client.post("/orgs/org-test/appointments", json=self._create_body(), headers=_auth())
        assert resp.status_code == 409
        assert resp.json()["error"] == "slot_unavailable"

    def test_list(self, client, mock_services):
        mock_services["appointments"].get_appointments_by_date_range.return_value = [_appointment(), _appointment()]
        resp = client.get(
            "/orgs/org-test/appointments",
            params={"start_date": "2025-03-10", "end_date": "2025-03-11", "status": "confirmed"},
            headers=_auth(),
        )
        assert resp.status_code == 200
        assert len(resp.json()) == 2

    def test_cancel(self, client, mock_services, mock_db):
        appointment = _appointment(
            status="cancelled",
            cancellation_info={
                "cancelled_at": "2025-03-09T10:00:00+00:00",
                "cancelled_by": "client",
                "penalty_applied": 50,
            },
        )
        mock_services["appointments"].cancel_appointment.return_value = appointment
        resp = client.post(
            f"/orgs/org-test/appointments/{appointment.id}/cancel",
            json={"cancelled_by": "client", "reason": "sick"},
            headers=_auth(),
        )
        assert resp.status_code == 200
        assert resp.json()["cancellation_info"]["penalty_applied"] == 50
        mock_services["appointments"].cancel_appointment.assert_awaited_once_with(
            mock_db, ORG, appointment.id, CancelledBy.CLIENT, "sick"
        )

    def test_reschedule_records_caller(self, client, mock_services):
        appointment = _appointment(status="rescheduled")
        mock_services["appointments"].reschedule_appointment.return_value = appointment
        resp = client.post(
            f"/orgs/org-test/appointments/{appointment.id}/reschedule",
            json={"new_datetime": "2025-03-11T10:00:00+00:00"},
            headers=_auth(),
        )
        assert resp.status_code == 200
        assert mock_services["appointments"].reschedule_appointment.await_args.args[4] == "user-1"

    @pytest.mark.parametrize(("status", "method"), [
        ("confirmed", "confirm_appointment"),
        ("completed", "complete_appointment"),
        ("no_show", "mark_no_show"),
    ])
    def test_status(self, client, mock_services, status, method):
        appointment = _appointment(status=status)
        getattr(mock_services["appointments"], method).return_value = appointment
        resp = client.post(
            f"/orgs/org-test/appointments/{appointment.id}/status",
            json={"status": status},
            headers=_auth(),
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == status

    def test_status_cannot_cancel(self, client):
        resp = client.post(
            f"/orgs/org-test/appointments/{uuid.uuid4()}/status",
            json={"status": "cancelled"},
            headers=_auth(),
        )
        assert resp.status_code == 422
