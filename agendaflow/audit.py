"""Audit log subscriber: persists every SystemEvent to the audit_log table.

Registered as a global subscriber at startup. Never raises: failures are
logged and never propagate to the event system.
"""

from __future__ import annotations

import logging

from agendaflow.db.engine import async_session_factory
from agendaflow.models.audit import AuditLog
from agendaflow.schemas.events import SystemEvent

logger = logging.getLogger(__name__)


async def audit_on_event(event: SystemEvent) -> None:
    """Write a SystemEvent to the audit_log table."""
    try:
        async with async_session_factory() as db:
            db.add(AuditLog(
                event_type=event.event_type.value,
                org_id=event.org_id,
                actor_id=event.actor_id,
                source_module=event.source_module,
                data=event.data,
            ))
            await db.commit()
    except Exception:
        logger.exception(
            "Failed to persist audit event: %s (org=%s)",
            event.event_type.value,
            event.org_id,
        )
