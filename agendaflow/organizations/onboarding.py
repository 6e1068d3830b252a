"""Onboarding configuration pipeline.

Completed onboarding steps are applied to the organization's
BusinessConfiguration by an explicit, ordered list of appliers. Steps run in
step-number order whatever order they arrive in, and the whole pipeline runs
synchronously inside the caller's unit of work.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from agendaflow.errors import ClientError
from agendaflow.models.business_configuration import BusinessConfiguration
from agendaflow.models.enums import AppointmentModel, IndustryType
from agendaflow.organizations.configuration import (
    BusinessConfigurationService,
    configuration_service,
    default_business_configuration,
    industry_settings,
)

logger = logging.getLogger(__name__)


class CompletedStep(BaseModel):
    """One finished onboarding step and the data the user entered."""

    step_number: int = Field(ge=1)
    data: dict[str, Any] = Field(default_factory=dict)


class IndustryStep(BaseModel):
    industry_type: IndustryType


class BookingRulesStep(BaseModel):
    appointment_model: AppointmentModel
    allow_client_selection: bool = True
    require_resource_assignment: bool = False
    buffer_between_appointments: int = Field(default=15, ge=0)
    max_advance_booking_days: int = Field(default=30, ge=0)


class CancellationStep(BaseModel):
    allow_cancellation: bool = True
    cancellation_hours_before: int = Field(default=24, ge=0)
    cancellation_penalty_percentage: int = Field(default=0, ge=0, le=100)


class NotificationStep(BaseModel):
    require_confirmation: bool = False
    send_reminders: bool = True
    reminder_hours: list[int] = Field(default_factory=lambda: [24, 2])


StepApplier = Callable[[BusinessConfiguration, dict[str, Any]], None]


def _apply_industry(config: BusinessConfiguration, data: dict[str, Any]) -> None:
    step = IndustryStep.model_validate(data)
    for name, value in industry_settings(step.industry_type).items():
        setattr(config, name, value)


def _apply_model_fields(schema: type[BaseModel]) -> StepApplier:
    def apply(config: BusinessConfiguration, data: dict[str, Any]) -> None:
        step = schema.model_validate(data)
        for name, value in step.model_dump(mode="json").items():
            setattr(config, name, value)
    apply.__name__ = f"apply_{schema.__name__}"
    return apply


# Ordered pipeline: {step_number: (name, applier)}
PIPELINE: dict[int, tuple[str, StepApplier]] = {
    1: ("industry", _apply_industry),
    2: ("booking_rules", _apply_model_fields(BookingRulesStep)),
    3: ("cancellation_policy", _apply_model_fields(CancellationStep)),
    4: ("notifications", _apply_model_fields(NotificationStep)),
}


class OnboardingPipeline:
    """Applies completed onboarding steps to the business configuration."""

    def __init__(self, configurations: BusinessConfigurationService = configuration_service) -> None:
        self._configurations = configurations

    async def apply(
        self,
        db: AsyncSession,
        org_id: str,
        steps: list[CompletedStep],
        on_applied: Callable[[int, str], Awaitable[None]] | None = None,
    ) -> BusinessConfiguration:
        """Apply ``steps`` in step-number order and return the configuration.

        Creates a custom-industry configuration first if the organization has
        none. Unknown step numbers are rejected before anything is applied.

        Args:
            on_applied: Optional async callback ``(step_number, step_name)``
                run after each step, in order.
        """
        unknown = sorted({s.step_number for s in steps} - PIPELINE.keys())
        if unknown:
            msg = f"Unknown onboarding step numbers: {unknown}"
            raise ClientError(msg)

        config = await self._configurations.get(db, org_id)
        if config is None:
            config = default_business_configuration(org_id, IndustryType.CUSTOM)
            db.add(config)

        for step in sorted(steps, key=lambda s: s.step_number):
            name, applier = PIPELINE[step.step_number]
            applier(config, step.data)
            logger.info("Onboarding step applied: org=%s step=%d (%s)", org_id, step.step_number, name)
            if on_applied is not None:
                await on_applied(step.step_number, name)

        await db.flush()
        return config


# Module-level singleton
onboarding_pipeline = OnboardingPipeline()
