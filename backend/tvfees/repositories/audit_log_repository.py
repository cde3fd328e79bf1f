"""Repository for AuditLog operations."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from tvfees.models.audit_log import AuditLog


class AuditLogRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        *,
        resource_type: str,
        resource_id: UUID,
        action: str,
        changes: dict[str, Any],
        actor_id: str | None = None,
        actor_role: str | None = None,
    ) -> AuditLog:
        audit_log = AuditLog(
            resource_type=resource_type,
            resource_id=resource_id,
            action=action,
            changes=changes,
            actor_id=actor_id,
            actor_role=actor_role,
        )
        self.db.add(audit_log)
        self.db.flush()
        return audit_log

    def get_by_resource(
        self,
        resource_type: str,
        resource_id: UUID,
        skip: int = 0,
        limit: int = 100,
    ) -> list[AuditLog]:
        return (
            self.db.query(AuditLog)
            .filter(
                AuditLog.resource_type == resource_type,
                AuditLog.resource_id == resource_id,
            )
            .order_by(AuditLog.created_at.asc())
            .offset(skip)
            .limit(limit)
            .all()
        )
