"""Read-only staff and resource directory used by availability and assignment.

Enumeration order is creation order; "first available" assignment inherits it.
"""

from __future__ import annotations

import logging
import uuid

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agendaflow.errors import InvalidSchedule
from agendaflow.models.enums import EntityType
from agendaflow.models.resource import Resource
from agendaflow.models.staff import Staff
from agendaflow.schemas.schedule import WeeklySchedule

logger = logging.getLogger(__name__)

Entity = Staff | Resource


class EntityDirectory:
    """Lookups over Staff and Resource rows of one organization."""

    async def get_staff(self, db: AsyncSession, org_id: str, staff_id: uuid.UUID) -> Staff | None:
        result = await db.execute(
            select(Staff).where(Staff.org_id == org_id, Staff.id == staff_id)
        )
        return result.scalar_one_or_none()

    async def get_resource(
        self, db: AsyncSession, org_id: str, resource_id: uuid.UUID
    ) -> Resource | None:
        result = await db.execute(
            select(Resource).where(Resource.org_id == org_id, Resource.id == resource_id)
        )
        return result.scalar_one_or_none()

    async def get_entity(
        self,
        db: AsyncSession,
        org_id: str,
        entity_type: EntityType,
        entity_id: uuid.UUID,
    ) -> Entity | None:
        if entity_type is EntityType.STAFF:
            return await self.get_staff(db, org_id, entity_id)
        return await self.get_resource(db, org_id, entity_id)

    async def list_staff(
        self,
        db: AsyncSession,
        org_id: str,
        *,
        active_only: bool = True,
        role: str | None = None,
        specialties: list[str] | None = None,
    ) -> list[Staff]:
        """Staff of an organization.

        Args:
            role: Keep only this role.
            specialties: Keep staff sharing at least one of these specialties.
        """
        query = select(Staff).where(Staff.org_id == org_id)
        if active_only:
            query = query.where(Staff.is_active.is_(True))
        if role:
            query = query.where(Staff.role == role)
        result = await db.execute(query.order_by(Staff.created_at, Staff.id))
        staff = list(result.scalars().all())

        # JSON arrays are not portably queryable; filter in Python
        if specialties:
            wanted = set(specialties)
            staff = [s for s in staff if wanted.intersection(s.specialties or [])]
        return staff

    async def list_resources(
        self,
        db: AsyncSession,
        org_id: str,
        *,
        active_only: bool = True,
        resource_type: str | None = None,
    ) -> list[Resource]:
        query = select(Resource).where(Resource.org_id == org_id)
        if active_only:
            query = query.where(Resource.is_active.is_(True))
        if resource_type:
            query = query.where(Resource.resource_type == resource_type)
        result = await db.execute(query.order_by(Resource.created_at, Resource.id))
        return list(result.scalars().all())

    async def list_entities(
        self,
        db: AsyncSession,
        org_id: str,
        entity_type: EntityType,
        specialties: list[str] | None = None,
    ) -> list[Entity]:
        """Active entities of one type; specialties only narrow staff."""
        if entity_type is EntityType.STAFF:
            return list(await self.list_staff(db, org_id, specialties=specialties))
        return list(await self.list_resources(db, org_id))

    async def entity_name(
        self,
        db: AsyncSession,
        org_id: str,
        entity_type: EntityType,
        entity_id: uuid.UUID,
    ) -> str:
        entity = await self.get_entity(db, org_id, entity_type, entity_id)
        if entity is None:
            return "Unknown Staff" if entity_type is EntityType.STAFF else "Unknown Resource"
        return entity.display_name


def entity_schedule(entity: Entity) -> WeeklySchedule:
    """Validated weekly schedule of a staff member or resource.

    Raises:
        InvalidSchedule: The stored schedule is malformed.
    """
    try:
        return WeeklySchedule.model_validate(entity.schedule)
    except ValidationError as exc:
        msg = f"Invalid schedule for {entity.display_name} ({entity.id}): {exc.error_count()} error(s)"
        raise InvalidSchedule(msg) from exc


# Module-level singleton
entity_directory = EntityDirectory()
