"""Shared fixtures: a file-backed SQLite database and row factories."""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

import agendaflow.models  # noqa: F401
from agendaflow.events import stop_event_system
from agendaflow.models.base import Base
from agendaflow.models.business_configuration import BusinessConfiguration
from agendaflow.models.enums import AppointmentModel, IndustryType
from agendaflow.models.resource import Resource
from agendaflow.models.staff import Staff
from agendaflow.organizations.configuration import industry_settings

ORG = "org-test"

_WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


def weekly_schedule(
    start: str = "09:00",
    end: str = "17:00",
    breaks: list[tuple[str, str]] | None = None,
    closed: tuple[str, ...] = (),
) -> dict[str, Any]:
    """Same opening hours every day except the ``closed`` weekdays."""
    day = {
        "is_available": True,
        "start_time": start,
        "end_time": end,
        "breaks": [{"start_time": s, "end_time": e} for s, e in breaks or []],
    }
    return {name: ({"is_available": False} if name in closed else day) for name in _WEEKDAYS}


# ── Database ─────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'agendaflow.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session
    # Services emit events; drain the worker started on this test's loop
    await stop_event_system()


# ── Factories ────────────────────────────────────────────────────────


@pytest.fixture
def make_config(db: AsyncSession) -> Callable[..., Awaitable[BusinessConfiguration]]:
    async def factory(
        model: AppointmentModel = AppointmentModel.PROFESSIONAL_BASED,
        org_id: str = ORG,
        **overrides: Any,
    ) -> BusinessConfiguration:
        values = {
            **industry_settings(IndustryType.CUSTOM),
            "appointment_model": model.value,
            "require_confirmation": False,
            **overrides,
        }
        config = BusinessConfiguration(org_id=org_id, **values)
        db.add(config)
        await db.commit()
        return config
    return factory


@pytest.fixture
def make_staff(db: AsyncSession) -> Callable[..., Awaitable[Staff]]:
    created = 0

    async def factory(
        first_name: str = "Ada",
        last_name: str = "Rossi",
        *,
        org_id: str = ORG,
        specialties: list[str] | None = None,
        schedule: dict[str, Any] | None = None,
        is_active: bool = True,
        role: str = "stylist",
    ) -> Staff:
        nonlocal created
        created += 1
        staff = Staff(
            id=uuid.uuid4(),
            org_id=org_id,
            first_name=first_name,
            last_name=last_name,
            email=f"{first_name.lower()}.{last_name.lower()}@example.com",
            role=role,
            specialties=specialties,
            schedule=schedule or weekly_schedule(),
            is_active=is_active,
            # Enumeration order follows creation order
            created_at=datetime(2025, 1, 1, tzinfo=UTC) + timedelta(minutes=created),
        )
        db.add(staff)
        await db.commit()
        return staff
    return factory


@pytest.fixture
def make_resource(db: AsyncSession) -> Callable[..., Awaitable[Resource]]:
    created = 0

    async def factory(
        name: str = "Room 1",
        *,
        org_id: str = ORG,
        schedule: dict[str, Any] | None = None,
        is_active: bool = True,
    ) -> Resource:
        nonlocal created
        created += 1
        resource = Resource(
            id=uuid.uuid4(),
            org_id=org_id,
            name=name,
            resource_type="room",
            schedule=schedule or weekly_schedule(),
            is_active=is_active,
            created_at=datetime(2025, 1, 1, tzinfo=UTC) + timedelta(minutes=created),
        )
        db.add(resource)
        await db.commit()
        return resource
    return factory
