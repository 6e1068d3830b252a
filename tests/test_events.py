"""Tests for the event bus, commit-staged events and the audit subscriber."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy import select

from agendaflow.audit import audit_on_event
from agendaflow.events import emit, start_event_system, stop_event_system, subscribe, unsubscribe
from agendaflow.models.audit import AuditLog
from agendaflow.schemas.events import EventType, SystemEvent


def _event(event_type: EventType = EventType.SLOT_BOOKED) -> SystemEvent:
    return SystemEvent(
        event_type=event_type,
        org_id="org-test",
        data={"appointment_id": "apt-1"},
        source_module="tests",
    )


# ── Bus ──────────────────────────────────────────────────────────────


class TestEventBus:
    @pytest.mark.asyncio()
    async def test_subscribers_receive_in_order(self):
        seen: list[EventType] = []

        async def on_any(event: SystemEvent) -> None:
            seen.append(event.event_type)

        subscribe(on_any)
        try:
            await start_event_system()
            await emit(_event(EventType.SLOT_BOOKED))
            await emit(_event(EventType.APPOINTMENT_CANCELLED))
            await stop_event_system()
        finally:
            unsubscribe(on_any)

        assert seen == [EventType.SLOT_BOOKED, EventType.APPOINTMENT_CANCELLED]

    @pytest.mark.asyncio()
    async def test_failing_handler_isolated(self):
        delivered = asyncio.Event()

        async def broken(event: SystemEvent) -> None:
            raise RuntimeError("boom")

        async def healthy(event: SystemEvent) -> None:
            delivered.set()

        subscribe(broken)
        subscribe(healthy)
        try:
            await emit(_event())
            await asyncio.wait_for(delivered.wait(), timeout=1)
            await stop_event_system()
        finally:
            unsubscribe(broken)
            unsubscribe(healthy)

    def test_events_are_immutable(self):
        event = _event()
        with pytest.raises(ValueError):
            event.org_id = "other"


# ── Session-staged events ────────────────────────────────────────────


class TestStagedEvents:
    @pytest.mark.asyncio()
    async def test_published_on_commit(self, db):
        seen: list[EventType] = []

        async def on_any(event: SystemEvent) -> None:
            seen.append(event.event_type)

        subscribe(on_any)
        try:
            await db.execute(select(AuditLog))
            await emit(_event(EventType.SLOT_BOOKED), db)
            await asyncio.sleep(0)
            assert seen == []

            await db.commit()
            await stop_event_system()
        finally:
            unsubscribe(on_any)

        assert seen == [EventType.SLOT_BOOKED]

    @pytest.mark.asyncio()
    async def test_discarded_on_rollback(self, db):
        seen: list[EventType] = []

        async def on_any(event: SystemEvent) -> None:
            seen.append(event.event_type)

        subscribe(on_any)
        try:
            await db.execute(select(AuditLog))
            await emit(_event(EventType.SLOT_BOOKED), db)
            await db.rollback()

            await db.execute(select(AuditLog))
            await emit(_event(EventType.APPOINTMENT_CREATED), db)
            await db.commit()
            await stop_event_system()
        finally:
            unsubscribe(on_any)

        assert seen == [EventType.APPOINTMENT_CREATED]


# ── Audit ────────────────────────────────────────────────────────────


class TestAuditSubscriber:
    @pytest.mark.asyncio()
    async def test_persists_event(self, db, session_factory):
        with patch("agendaflow.audit.async_session_factory", session_factory):
            await audit_on_event(_event(EventType.APPOINTMENT_CREATED))

        rows = (await db.execute(select(AuditLog))).scalars().all()
        assert len(rows) == 1
        assert rows[0].event_type == "appointment.created"
        assert rows[0].org_id == "org-test"
        assert rows[0].source_module == "tests"
        assert rows[0].data == {"appointment_id": "apt-1"}

    @pytest.mark.asyncio()
    async def test_never_raises(self):
        broken = MagicMock(side_effect=RuntimeError("db down"))
        with patch("agendaflow.audit.async_session_factory", broken):
            await audit_on_event(_event())
