"""Tests for AuditLogRepository and AuditService."""

from decimal import Decimal
from uuid import uuid4

import pytest

from tvfees.repositories.audit_log_repository import AuditLogRepository
from tvfees.services.audit_service import AuditService


@pytest.fixture
def repo(db_session):
    return AuditLogRepository(db_session)


@pytest.fixture
def service(db_session):
    return AuditService(db_session)


class TestAuditLogRepository:
    def test_create(self, repo):
        resource_id = uuid4()
        log = repo.create(
            resource_type="payment",
            resource_id=resource_id,
            action="created",
            changes={"total_amount": "100.00"},
            actor_id="someone",
            actor_role="collector",
        )
        assert log.id is not None
        assert log.resource_id == resource_id
        assert log.changes == {"total_amount": "100.00"}
        assert log.actor_role == "collector"

    def test_get_by_resource_filters_type(self, repo):
        resource_id = uuid4()
        repo.create(resource_type="payment", resource_id=resource_id, action="created", changes={})
        repo.create(resource_type="user", resource_id=resource_id, action="credit", changes={})
        repo.create(resource_type="payment", resource_id=uuid4(), action="created", changes={})

        logs = repo.get_by_resource("payment", resource_id)
        assert [log.action for log in logs] == ["created"]


class TestAuditService:
    def test_log_records_actor(self, service, repo, collector):
        resource_id = uuid4()
        service.log("payment", resource_id, "created", collector, {"method": "cash"})

        log = repo.get_by_resource("payment", resource_id)[0]
        assert log.actor_id == str(collector.user_id)
        assert log.actor_role == "collector"
        assert log.changes == {"method": "cash"}

    def test_system_actor(self, service, repo):
        resource_id = uuid4()
        service.log("user", resource_id, "debit", None)

        log = repo.get_by_resource("user", resource_id)[0]
        assert log.actor_id is None
        assert log.actor_role is None
        assert log.changes == {}

    def test_non_json_values_stringified(self, service, repo, admin):
        resource_id = uuid4()
        other_id = uuid4()
        service.log(
            "payment",
            resource_id,
            "created",
            admin,
            {"amount": Decimal("12.50"), "ids": (other_id,), "flag": True},
        )

        log = repo.get_by_resource("payment", resource_id)[0]
        assert log.changes == {"amount": "12.50", "ids": [str(other_id)], "flag": True}

    def test_log_status_change(self, service, repo, admin):
        resource_id = uuid4()
        service.log_status_change(
            "payment", resource_id, "pending", "approved", admin, {"receipt_number": "RCP2024001"}
        )

        log = repo.get_by_resource("payment", resource_id)[0]
        assert log.action == "status_changed"
        assert log.changes == {
            "status": {"old": "pending", "new": "approved"},
            "receipt_number": "RCP2024001",
        }
