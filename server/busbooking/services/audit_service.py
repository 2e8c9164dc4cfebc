"""Audit sink for booking events."""

from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.observability import get_logger
from ..models.audit import AuditEvent, AuditLog

audit_logger = get_logger(__name__)


class AuditService:
    """Writes audit records after the audited change has committed."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(
        self,
        actor_id: Optional[str],
        event_type: AuditEvent | str,
        details: Dict[str, Any],
        ip: Optional[str] = None,
    ) -> Optional[AuditLog]:
        """
        Persist one audit record in a session of its own.

        A failed write is logged and rolled back; it never fails the caller,
        whose own transaction is already committed, and never expires the
        caller's objects.
        """
        event = event_type.value if isinstance(event_type, AuditEvent) else event_type
        entry = AuditLog(actor_id=actor_id, event_type=event, details=details, ip=ip)

        async with AsyncSession(bind=self.db.bind, expire_on_commit=False) as session:
            try:
                session.add(entry)
                await session.commit()
            except Exception as e:
                audit_logger.error(
                    "audit_record_failed",
                    actor_id=actor_id,
                    event_type=event,
                    error=str(e),
                )
                await session.rollback()
                return None

        audit_logger.info("audit_recorded", actor_id=actor_id, event_type=event)
        return entry
