"""PaymentEvent repository for data access."""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from tvfees.models.payment_event import EventStatus, PaymentEvent


class PaymentEventRepository:
    """Repository for PaymentEvent model."""

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        *,
        event_type: str,
        resource_type: str,
        resource_id: UUID,
        payload: dict[str, Any],
    ) -> PaymentEvent:
        event = PaymentEvent(
            event_type=event_type,
            resource_type=resource_type,
            resource_id=resource_id,
            payload=payload,
            status=EventStatus.PENDING.value,
        )
        self.db.add(event)
        self.db.flush()
        return event

    def get_by_id(self, event_id: UUID) -> PaymentEvent | None:
        return self.db.query(PaymentEvent).filter(PaymentEvent.id == event_id).first()

    def get_by_resource(self, resource_id: UUID) -> list[PaymentEvent]:
        return (
            self.db.query(PaymentEvent)
            .filter(PaymentEvent.resource_id == resource_id)
            .order_by(PaymentEvent.created_at.asc())
            .all()
        )

    def get_deliverable(self, max_attempts: int, limit: int = 100) -> list[PaymentEvent]:
        """Pending or failed events that still have attempts left, oldest first."""
        return (
            self.db.query(PaymentEvent)
            .filter(
                PaymentEvent.status.in_([EventStatus.PENDING.value, EventStatus.FAILED.value]),
                PaymentEvent.attempts < max_attempts,
            )
            .order_by(PaymentEvent.created_at.asc())
            .limit(limit)
            .all()
        )

    def mark_delivered(self, event: PaymentEvent) -> None:
        event.status = EventStatus.DELIVERED.value  # type: ignore[assignment]
        event.attempts = int(event.attempts) + 1  # type: ignore[assignment]
        event.delivered_at = datetime.now(UTC)  # type: ignore[assignment]
        event.last_error = None  # type: ignore[assignment]
        self.db.flush()

    def mark_failed(self, event: PaymentEvent, error: str) -> None:
        event.status = EventStatus.FAILED.value  # type: ignore[assignment]
        event.attempts = int(event.attempts) + 1  # type: ignore[assignment]
        event.last_error = error[:1000]  # type: ignore[assignment]
        self.db.flush()
