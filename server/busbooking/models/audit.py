"""Audit log model definition."""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import JSON, CheckConstraint, DateTime, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base, utcnow


class AuditEvent(str, Enum):
    """Audited booking events."""
    BOOKING_CREATED = "BOOKING_CREATED"
    BOOKING_CANCELLED = "BOOKING_CANCELLED"
    MANUAL_BOOKING_CREATED = "MANUAL_BOOKING_CREATED"


class AuditLog(Base):
    """Audit trail entry for a user or operator action."""

    __tablename__ = "audit_logs"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    actor_id: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    details: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    ip: Mapped[str | None] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow,
        server_default=func.now(),
        index=True
    )

    __table_args__ = (
        CheckConstraint("length(event_type) > 0", name="ck_audit_log_event_type_not_empty"),
    )

    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, actor='{self.actor_id}', event='{self.event_type}')>"
