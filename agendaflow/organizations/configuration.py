"""Business configuration access and per-industry defaults."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agendaflow.errors import ClientError, ConfigurationMissing
from agendaflow.events import emit
from agendaflow.models.business_configuration import BusinessConfiguration
from agendaflow.models.enums import AppointmentModel, IndustryType
from agendaflow.schemas.events import EventType, SystemEvent

logger = logging.getLogger(__name__)

_BASE_SETTINGS: dict[str, Any] = {
    "allow_client_selection": True,
    "require_resource_assignment": False,
    "auto_assign_resources": True,
    "buffer_between_appointments": 15,
    "max_advance_booking_days": 30,
    "allow_cancellation": True,
    "cancellation_hours_before": 24,
    "cancellation_penalty_percentage": 0,
    "require_confirmation": True,
    "send_reminders": True,
    "reminder_hours": [24, 2],
}

# Industry template -> appointment model and the settings it overrides
INDUSTRY_DEFAULTS: dict[IndustryType, tuple[AppointmentModel, dict[str, Any]]] = {
    IndustryType.BEAUTY_SALON: (AppointmentModel.PROFESSIONAL_BASED, {
        "buffer_between_appointments": 10,
    }),
    IndustryType.MEDICAL_CLINIC: (AppointmentModel.PROFESSIONAL_BASED, {
        "allow_client_selection": False,
        "buffer_between_appointments": 20,
        "cancellation_hours_before": 48,
        "cancellation_penalty_percentage": 25,
    }),
    IndustryType.HYPERBARIC_CENTER: (AppointmentModel.RESOURCE_BASED, {
        "allow_client_selection": False,
        "require_resource_assignment": True,
        "buffer_between_appointments": 30,
        "max_advance_booking_days": 14,
    }),
    IndustryType.FITNESS_CENTER: (AppointmentModel.HYBRID, {
        "require_resource_assignment": True,
        "buffer_between_appointments": 5,
    }),
    IndustryType.CONSULTANT: (AppointmentModel.PROFESSIONAL_BASED, {
        "allow_client_selection": False,
        "buffer_between_appointments": 0,
        "max_advance_booking_days": 60,
    }),
    IndustryType.CUSTOM: (AppointmentModel.HYBRID, {}),
}


def industry_settings(industry: IndustryType) -> dict[str, Any]:
    """Column values of the default configuration for an industry."""
    model, overrides = INDUSTRY_DEFAULTS[industry]
    return {
        **_BASE_SETTINGS,
        **overrides,
        "industry_type": industry.value,
        "appointment_model": model.value,
    }


def default_business_configuration(org_id: str, industry: IndustryType) -> BusinessConfiguration:
    """Unsaved configuration with the industry's defaults."""
    return BusinessConfiguration(org_id=org_id, **industry_settings(industry))


_UPDATABLE_FIELDS = frozenset(BusinessConfiguration.__table__.columns.keys()) - {
    "id", "org_id", "created_at", "updated_at",
}


class BusinessConfigurationService:
    """Read and write an organization's BusinessConfiguration."""

    async def get(self, db: AsyncSession, org_id: str) -> BusinessConfiguration | None:
        result = await db.execute(
            select(BusinessConfiguration).where(BusinessConfiguration.org_id == org_id)
        )
        return result.scalar_one_or_none()

    async def require(self, db: AsyncSession, org_id: str) -> BusinessConfiguration:
        config = await self.get(db, org_id)
        if config is None:
            msg = f"Business configuration not found for organization {org_id}"
            raise ConfigurationMissing(msg)
        return config

    async def create_default(
        self, db: AsyncSession, org_id: str, industry: IndustryType
    ) -> BusinessConfiguration:
        config = default_business_configuration(org_id, industry)
        db.add(config)
        await db.flush()
        logger.info("Business configuration created: org=%s industry=%s", org_id, industry.value)
        return config

    async def update(self, db: AsyncSession, org_id: str, **fields: Any) -> BusinessConfiguration:
        unknown = sorted(set(fields) - _UPDATABLE_FIELDS)
        if unknown:
            msg = f"Unknown configuration fields: {', '.join(unknown)}"
            raise ClientError(msg)
        config = await self.require(db, org_id)
        for name, value in fields.items():
            setattr(config, name, value)
        await db.flush()

        await emit(SystemEvent(
            event_type=EventType.CONFIGURATION_UPDATED,
            org_id=org_id,
            data={"fields": sorted(fields)},
            source_module="organizations.configuration",
        ), db)
        return config


# Module-level singleton
configuration_service = BusinessConfigurationService()
