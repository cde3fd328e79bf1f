"""Audit service for recording state changes to payments and wallets."""

from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from tvfees.core.auth import Principal
from tvfees.repositories.audit_log_repository import AuditLogRepository


class AuditService:
    """Service for recording audit trail entries inside the caller's transaction."""

    def __init__(self, db: Session):
        self.repo = AuditLogRepository(db)

    def log(
        self,
        resource_type: str,
        resource_id: UUID,
        action: str,
        actor: Principal | None,
        changes: dict[str, Any] | None = None,
    ) -> None:
        self.repo.create(
            resource_type=resource_type,
            resource_id=resource_id,
            action=action,
            changes=_jsonable(changes or {}),
            actor_id=str(actor.user_id) if actor else None,
            actor_role=actor.role.value if actor else None,
        )

    def log_status_change(
        self,
        resource_type: str,
        resource_id: UUID,
        old_status: str,
        new_status: str,
        actor: Principal | None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        """Log a status change event."""
        changes: dict[str, Any] = {"status": {"old": old_status, "new": new_status}}
        if extra:
            changes.update(extra)
        self.log(resource_type, resource_id, "status_changed", actor, changes)


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    return str(value)
