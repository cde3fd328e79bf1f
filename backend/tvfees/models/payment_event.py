"""PaymentEvent model: outbox of state-change events for external consumers."""

from enum import Enum

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text, func

from tvfees.core.database import Base
from tvfees.models.shared import UUIDType, generate_uuid


class EventStatus(str, Enum):
    PENDING = "pending"
    DELIVERED = "delivered"
    FAILED = "failed"


class PaymentEvent(Base):
    """An event written in the same transaction as the change it describes."""

    __tablename__ = "payment_events"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    event_type = Column(String(50), nullable=False, index=True)
    resource_type = Column(String(50), nullable=False)
    resource_id = Column(UUIDType, nullable=False, index=True)
    payload = Column(JSON, nullable=False, default=dict)
    status = Column(String(20), nullable=False, default=EventStatus.PENDING.value, index=True)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    delivered_at = Column(DateTime(timezone=True), nullable=True)
