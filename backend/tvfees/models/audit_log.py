"""AuditLog model for tracking state changes to payments and wallets."""

from sqlalchemy import JSON, Column, DateTime, String, func

from tvfees.core.database import Base
from tvfees.models.shared import UUIDType, generate_uuid


class AuditLog(Base):
    """AuditLog model - records who changed what, inside the same transaction."""

    __tablename__ = "audit_logs"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    resource_type = Column(String(50), nullable=False, index=True)
    resource_id = Column(UUIDType, nullable=False, index=True)
    action = Column(String(50), nullable=False, index=True)
    changes = Column(JSON, nullable=False, default=dict)
    actor_id = Column(String(255), nullable=True)
    actor_role = Column(String(20), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
