"""Audit service: append-only trail of state transitions."""

from typing import Any, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import AuditAction, AuditLog


class AuditService:
    """Service for audit logging."""

    def __init__(self, session: AsyncSession):
        self.session = session

    def log_event(
        self,
        organization_id: UUID,
        action: AuditAction,
        resource_type: str,
        resource_id: UUID,
        user_id: UUID | None = None,
        details: dict[str, Any] | None = None,
    ) -> AuditLog:
        """Add an audit row to the current transaction."""
        entry = AuditLog(
            organization_id=organization_id,
            user_id=user_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            details=details or {},
        )
        self.session.add(entry)
        # Don't flush here - let it be part of the transaction
        return entry

    async def get_resource_history(
        self,
        organization_id: UUID,
        resource_type: str,
        resource_id: UUID,
    ) -> Sequence[AuditLog]:
        """Audit entries for one resource, oldest first."""
        result = await self.session.execute(
            select(AuditLog)
            .where(
                AuditLog.organization_id == organization_id,
                AuditLog.resource_type == resource_type,
                AuditLog.resource_id == resource_id,
            )
            .order_by(AuditLog.created_at)
        )
        return result.scalars().all()
