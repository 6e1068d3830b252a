"""AuditLog model: immutable trail of every SystemEvent."""

from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from agendaflow.models.base import Base, TimestampMixin


class AuditLog(TimestampMixin, Base):
    """One persisted SystemEvent."""

    __tablename__ = "audit_log"

    event_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    org_id: Mapped[str | None] = mapped_column(String(64), index=True)
    actor_id: Mapped[str | None] = mapped_column(String(100), comment="User ID or 'system'")
    source_module: Mapped[str | None] = mapped_column(String(100))
    data: Mapped[dict[str, Any] | None] = mapped_column(JSON)

    def __repr__(self) -> str:
        return f"<AuditLog {self.event_type} org={self.org_id}>"
