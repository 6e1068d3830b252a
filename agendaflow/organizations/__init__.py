"""Organization-level configuration: industry defaults and onboarding pipeline."""

from agendaflow.organizations.configuration import configuration_service, default_business_configuration
from agendaflow.organizations.onboarding import CompletedStep, onboarding_pipeline

__all__ = [
    "configuration_service",
    "default_business_configuration",
    "CompletedStep",
    "onboarding_pipeline",
]
