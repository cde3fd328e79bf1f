"""State-change events for notification, receipt rendering and reporting consumers.

Events are recorded in the ``payment_events`` outbox inside the same
transaction as the change they describe, then delivered later by the worker
with an HMAC-signed POST. Delivery never touches ledger state.
"""

import hashlib
import hmac
import json
import logging
from typing import Any
from uuid import UUID

import httpx
from sqlalchemy.orm import Session

from tvfees.core.config import settings
from tvfees.core.database import atomic
from tvfees.models.payment_event import PaymentEvent
from tvfees.repositories.payment_event_repository import PaymentEventRepository

logger = logging.getLogger(__name__)

PAYMENT_CREATED = "payment.created"
PAYMENT_READY_FOR_REVIEW = "payment.ready_for_review"
PAYMENT_APPROVED = "payment.approved"
PAYMENT_REJECTED = "payment.rejected"
WALLET_CREDITED = "wallet.credited"
WALLET_DEBITED = "wallet.debited"

EVENT_TYPES = [
    PAYMENT_CREATED,
    PAYMENT_READY_FOR_REVIEW,
    PAYMENT_APPROVED,
    PAYMENT_REJECTED,
    WALLET_CREDITED,
    WALLET_DEBITED,
]


def generate_hmac_signature(payload_bytes: bytes, secret: str) -> str:
    """Hex-encoded HMAC-SHA256 signature of an event payload."""
    return hmac.new(
        secret.encode("utf-8"),
        payload_bytes,
        hashlib.sha256,
    ).hexdigest()


class EventService:
    """Service for recording and delivering state-change events."""

    def __init__(self, db: Session):
        self.db = db
        self.repo = PaymentEventRepository(db)

    def record(
        self,
        event_type: str,
        resource_type: str,
        resource_id: UUID,
        payload: dict[str, Any] | None = None,
    ) -> PaymentEvent:
        """Write an event to the outbox. Call inside the transaction being described."""
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown event type '{event_type}'")
        body = json.loads(json.dumps(payload or {}, default=str))
        return self.repo.create(
            event_type=event_type,
            resource_type=resource_type,
            resource_id=resource_id,
            payload=body,
        )

    def deliver(self, event: PaymentEvent) -> bool:
        """POST one event to the configured endpoint and record the outcome."""
        envelope = {
            "id": str(event.id),
            "type": event.event_type,
            "resource_type": event.resource_type,
            "resource_id": str(event.resource_id),
            "data": event.payload,
        }
        payload_bytes = json.dumps(envelope, default=str).encode("utf-8")
        headers = {
            "Content-Type": "application/json",
            "X-Tvfees-Signature": generate_hmac_signature(
                payload_bytes, settings.EVENT_WEBHOOK_SECRET
            ),
            "X-Tvfees-Event-Id": str(event.id),
        }

        try:
            with httpx.Client(timeout=30.0) as client:
                resp = client.post(
                    settings.EVENT_WEBHOOK_URL, content=payload_bytes, headers=headers
                )
        except httpx.HTTPError as exc:
            logger.warning("Event delivery failed for %s: %s", event.id, exc)
            with atomic(self.db):
                self.repo.mark_failed(event, str(exc))
            return False

        with atomic(self.db):
            if 200 <= resp.status_code < 300:
                self.repo.mark_delivered(event)
                return True
            self.repo.mark_failed(event, f"HTTP {resp.status_code}: {resp.text[:500]}")
        logger.warning("Event %s rejected by endpoint with HTTP %d", event.id, resp.status_code)
        return False

    def deliver_pending(self, limit: int = 100) -> int:
        """Deliver pending and retryable failed events. Returns the number delivered."""
        if not settings.event_delivery_enabled:
            return 0

        delivered = 0
        for event in self.repo.get_deliverable(settings.EVENT_MAX_ATTEMPTS, limit=limit):
            if self.deliver(event):
                delivered += 1
        return delivered
