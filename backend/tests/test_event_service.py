"""Tests for the event outbox and its delivery."""

import json
import uuid
from decimal import Decimal
from unittest.mock import MagicMock, patch

import httpx
import pytest

from tvfees.core.config import settings
from tvfees.core.database import atomic
from tvfees.models.payment_event import EventStatus
from tvfees.services.event_service import (
    EVENT_TYPES,
    PAYMENT_CREATED,
    EventService,
    generate_hmac_signature,
)

WEBHOOK_URL = "https://notify.example.com/tvfees"


@pytest.fixture
def service(db_session):
    return EventService(db_session)


@pytest.fixture
def event(db_session, service):
    with atomic(db_session):
        return service.record(
            PAYMENT_CREATED,
            "payment",
            uuid.uuid4(),
            {"total_amount": Decimal("1200.00"), "status": "incomplete"},
        )


def mock_http_client(response=None, error=None):
    mock_client = MagicMock()
    mock_client.__enter__ = MagicMock(return_value=mock_client)
    mock_client.__exit__ = MagicMock(return_value=False)
    if error is not None:
        mock_client.post.side_effect = error
    else:
        mock_client.post.return_value = response
    return mock_client


def http_response(status_code, text="OK"):
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    return response


class TestRecord:
    def test_payload_is_json_safe(self, event):
        assert event.status == EventStatus.PENDING.value
        assert event.attempts == 0
        assert event.payload == {"total_amount": "1200.00", "status": "incomplete"}

    def test_unknown_type_refused(self, service):
        with pytest.raises(ValueError, match="Unknown event type"):
            service.record("payment.exploded", "payment", uuid.uuid4(), {})

    def test_known_types(self):
        assert "payment.approved" in EVENT_TYPES
        assert "wallet.debited" in EVENT_TYPES


class TestSignature:
    def test_matches_hmac_sha256(self):
        signature = generate_hmac_signature(b'{"a":1}', "secret")
        assert len(signature) == 64
        assert signature == generate_hmac_signature(b'{"a":1}', "secret")
        assert signature != generate_hmac_signature(b'{"a":1}', "other")


class TestDeliver:
    def test_success_marks_delivered(self, service, event):
        mock_client = mock_http_client(http_response(200))

        with (
            patch.object(settings, "EVENT_WEBHOOK_URL", WEBHOOK_URL),
            patch("tvfees.services.event_service.httpx.Client", return_value=mock_client),
        ):
            assert service.deliver(event) is True

        assert event.status == EventStatus.DELIVERED.value
        assert event.attempts == 1
        assert event.delivered_at is not None

        args, kwargs = mock_client.post.call_args
        assert args[0] == WEBHOOK_URL
        body = kwargs["content"]
        envelope = json.loads(body)
        assert envelope["type"] == PAYMENT_CREATED
        assert envelope["data"]["total_amount"] == "1200.00"
        headers = kwargs["headers"]
        assert headers["X-Tvfees-Event-Id"] == str(event.id)
        assert headers["X-Tvfees-Signature"] == generate_hmac_signature(
            body, settings.EVENT_WEBHOOK_SECRET
        )

    def test_error_status_marks_failed(self, service, event):
        mock_client = mock_http_client(http_response(502, "Bad Gateway"))

        with patch("tvfees.services.event_service.httpx.Client", return_value=mock_client):
            assert service.deliver(event) is False

        assert event.status == EventStatus.FAILED.value
        assert event.attempts == 1
        assert event.last_error == "HTTP 502: Bad Gateway"

    def test_connection_error_marks_failed(self, service, event):
        mock_client = mock_http_client(error=httpx.ConnectError("Connection refused"))

        with patch("tvfees.services.event_service.httpx.Client", return_value=mock_client):
            assert service.deliver(event) is False

        assert event.status == EventStatus.FAILED.value
        assert "Connection refused" in event.last_error


class TestDeliverPending:
    def test_disabled_without_url(self, service, event):
        with (
            patch.object(settings, "EVENT_WEBHOOK_URL", ""),
            patch("tvfees.services.event_service.httpx.Client") as mock_client_cls,
        ):
            assert service.deliver_pending() == 0
        mock_client_cls.assert_not_called()
        assert event.status == EventStatus.PENDING.value

    def test_delivers_pending_events(self, db_session, service, event):
        with atomic(db_session):
            service.record("wallet.credited", "user", uuid.uuid4(), {"amount": "5.00"})
        mock_client = mock_http_client(http_response(204, ""))

        with (
            patch.object(settings, "EVENT_WEBHOOK_URL", WEBHOOK_URL),
            patch("tvfees.services.event_service.httpx.Client", return_value=mock_client),
        ):
            assert service.deliver_pending() == 2
            assert service.deliver_pending() == 0

        assert mock_client.post.call_count == 2

    def test_gives_up_after_max_attempts(self, service, event):
        mock_client = mock_http_client(http_response(500, "boom"))

        with (
            patch.object(settings, "EVENT_WEBHOOK_URL", WEBHOOK_URL),
            patch.object(settings, "EVENT_MAX_ATTEMPTS", 2),
            patch("tvfees.services.event_service.httpx.Client", return_value=mock_client),
        ):
            for _ in range(4):
                service.deliver_pending()

        assert event.attempts == 2
        assert mock_client.post.call_count == 2
