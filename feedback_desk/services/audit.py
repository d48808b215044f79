"""Audit service: read access to the append-only audit trail."""

from datetime import datetime
from typing import Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import AuditAction, AuditLog, User
from .state_machine import Operation, require_permission


class AuditService:
    """Query service for the audit log. Writes go through the dispatcher."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_audit_log(
        self,
        actor: User,
        user_id: str | None = None,
        action: AuditAction | None = None,
        entity_type: str | None = None,
        entity_id: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[Sequence[AuditLog], int]:
        """Query the audit log with filters, newest first."""
        require_permission(Operation.READ_AUDIT_LOG, actor.role)

        query = select(AuditLog)

        if user_id:
            query = query.where(AuditLog.user_id == user_id)
        if action:
            query = query.where(AuditLog.action == action)
        if entity_type:
            query = query.where(AuditLog.entity_type == entity_type)
        if entity_id:
            query = query.where(AuditLog.entity_id == entity_id)
        if start_date:
            query = query.where(AuditLog.created_at >= start_date)
        if end_date:
            query = query.where(AuditLog.created_at <= end_date)

        # Count total
        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.session.execute(count_query)).scalar_one()

        # Get results
        query = query.order_by(AuditLog.created_at.desc()).limit(limit).offset(offset)
        result = await self.session.execute(query)

        return result.scalars().all(), total

    async def get_entity_history(self, entity_id: str) -> Sequence[AuditLog]:
        """Every audit entry for one ticket, oldest first."""
        result = await self.session.execute(
            select(AuditLog)
            .where(AuditLog.entity_id == entity_id)
            .order_by(AuditLog.created_at.asc())
        )
        return result.scalars().all()
