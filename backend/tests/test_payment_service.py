"""Tests for PaymentService: intents, review and resolution."""

import uuid
from decimal import Decimal
from unittest.mock import patch

import pytest

from tests.conftest import make_user
from tvfees.core.auth import Principal
from tvfees.core.database import get_db
from tvfees.core.errors import (
    AllocationConflict,
    InsufficientFunds,
    InvalidStateTransition,
    NotFoundError,
    PermissionDenied,
    ValidationError,
)
from tvfees.models.audit_log import AuditLog
from tvfees.models.payment import PaymentMethod, PaymentStatus
from tvfees.models.payment_event import PaymentEvent
from tvfees.models.user import UserRole
from tvfees.models.wallet_transaction import TransactionKind, WalletTransaction
from tvfees.repositories.payment_event_repository import PaymentEventRepository
from tvfees.repositories.payment_repository import PaymentRepository
from tvfees.repositories.wallet_transaction_repository import WalletTransactionRepository
from tvfees.schemas.payment import PaymentIntentCreate
from tvfees.services.payment_service import PaymentService
from tvfees.services.receipt_allocator import ReceiptAllocator
from tvfees.services.redirect_builder import (
    LaunchStrategy,
    RedirectLauncher,
    parse_deep_link,
)
from tvfees.services.wallet_ledger import WalletLedger

UTR = "UTR1234567890"
PROOF = "proofs/2024/screenshot.png"


@pytest.fixture
def service(db_session):
    return PaymentService(db_session)


@pytest.fixture
def ledger(db_session):
    return WalletLedger(db_session)


def intent(user_id, method, service_year=2024, **kwargs):
    kwargs.setdefault("base_amount", Decimal("1000"))
    return PaymentIntentCreate(user_id=user_id, method=method, service_year=service_year, **kwargs)


def principal_for(user):
    return Principal(user_id=user.id, role=UserRole.USER)


def cash_pending(service, collector, user, year=2024, amount=Decimal("1000")):
    return service.create_intent(
        intent(user.id, PaymentMethod.CASH, year, base_amount=amount), collector
    ).payment


class TestScenarios:
    def test_wallet_payment_approved_with_first_receipt(
        self, service, ledger, user, user_principal, admin
    ):
        ledger.credit(user.id, Decimal("1500"), actor=admin)

        result = service.create_intent(intent(user.id, PaymentMethod.WALLET), user_principal)

        assert result.payment.status == PaymentStatus.PENDING.value
        assert result.payment.wallet_debit_applied is True
        assert result.redirect is None
        assert ledger.get_balance(user.id) == Decimal("500.00")

        approved = service.approve(result.payment.id, admin)

        assert approved.status == PaymentStatus.APPROVED.value
        assert approved.receipt_number == "RCP2024001"
        assert approved.resolved_by == admin.user_id
        assert approved.resolved_at is not None
        assert ledger.get_balance(user.id) == Decimal("500.00")

        receipt = service.get_receipt(approved.id, user_principal)
        assert receipt.receipt_number == "RCP2024001"
        assert receipt.amount == Decimal("1000.00")

    def test_combined_payment_rejected_refunds_wallet_part(
        self, db_session, service, ledger, user, user_principal, admin
    ):
        ledger.credit(user.id, Decimal("700"), actor=admin)

        result = service.create_intent(
            intent(
                user.id,
                PaymentMethod.COMBINED,
                extra_charges=Decimal("200"),
                wallet_amount_used=Decimal("700"),
                external_amount_paid=Decimal("500"),
            ),
            user_principal,
        )
        payment_id = result.payment.id

        assert result.payment.total_amount == Decimal("1200.00")
        assert result.payment.status == PaymentStatus.INCOMPLETE.value
        assert ledger.get_balance(user.id) == Decimal("0.00")
        assert parse_deep_link(result.redirect.deep_link)["am"] == "500.00"

        service.mark_ready_for_review(payment_id, UTR, PROOF, user_principal)
        rejected = service.reject(payment_id, admin, "Screenshot does not match amount")

        assert rejected.status == PaymentStatus.REJECTED.value
        assert rejected.rejection_reason == "Screenshot does not match amount"
        assert rejected.receipt_number is None
        assert ledger.get_balance(user.id) == Decimal("700.00")

        refund = (
            db_session.query(WalletTransaction)
            .filter(WalletTransaction.kind == TransactionKind.REFUND.value)
            .one()
        )
        assert refund.amount == Decimal("700.00")
        assert refund.reference_id == str(payment_id)
        legs = WalletTransactionRepository(db_session).get_by_reference(str(payment_id))
        assert [t.kind for t in legs] == ["payment", "refund"]
        assert ledger.verify(user.id).consistent

    def test_redirect_payment_hidden_until_review_ready(
        self, service, user, user_principal, admin
    ):
        result = service.create_intent(
            intent(user.id, PaymentMethod.EXTERNAL_REDIRECT), user_principal
        )
        payment_id = result.payment.id

        assert result.payment.status == PaymentStatus.INCOMPLETE.value
        assert service.review_queue(admin) == []

        updated = service.mark_ready_for_review(payment_id, UTR, PROOF, user_principal)

        assert updated.status == PaymentStatus.PENDING.value
        assert updated.external_transaction_ref == UTR
        assert updated.proof_reference == PROOF
        assert [p.id for p in service.review_queue(admin)] == [payment_id]


class TestCreateIntent:
    def test_redirect_link_fields(self, service, user, user_principal):
        result = service.create_intent(
            intent(user.id, PaymentMethod.EXTERNAL_REDIRECT, wire_surcharge=Decimal("50")),
            user_principal,
        )
        fields = parse_deep_link(result.redirect.deep_link)

        assert fields["pa"] == "tvchannel@upi"
        assert fields["am"] == "1050.00"
        assert fields["cu"] == "INR"
        assert len(fields["tid"]) <= 35
        assert len(fields["tr"]) <= 35
        assert fields["tr"].startswith("TVS_")
        assert result.redirect.launched is False
        assert result.redirect.manual_instructions is not None

    def test_failed_launch_does_not_block_intent(self, service, user, user_principal):
        launcher = RedirectLauncher([LaunchStrategy("app_chooser", lambda url: False)])
        result = service.create_intent(
            intent(user.id, PaymentMethod.EXTERNAL_REDIRECT), user_principal, launcher=launcher
        )
        assert result.payment.status == PaymentStatus.INCOMPLETE.value
        assert result.redirect.launched is False
        assert "Payee ID" in result.redirect.manual_instructions

    def test_successful_launch_stays_incomplete(self, service, user, user_principal):
        launcher = RedirectLauncher([LaunchStrategy("app_chooser", lambda url: True)])
        result = service.create_intent(
            intent(user.id, PaymentMethod.EXTERNAL_REDIRECT), user_principal, launcher=launcher
        )
        assert result.redirect.launched is True
        assert result.payment.status == PaymentStatus.INCOMPLETE.value

    def test_redirect_with_reference_and_proof_is_pending(self, service, user, user_principal):
        result = service.create_intent(
            intent(
                user.id,
                PaymentMethod.EXTERNAL_REDIRECT,
                external_transaction_ref=UTR,
                proof_reference=PROOF,
            ),
            user_principal,
        )
        assert result.payment.status == PaymentStatus.PENDING.value
        assert result.redirect is None

    def test_cash_by_collector_is_pending(self, service, user, collector):
        payment = cash_pending(service, collector, user)
        assert payment.status == PaymentStatus.PENDING.value
        assert payment.created_by == collector.user_id

    def test_cash_by_user_refused(self, service, user, user_principal):
        with pytest.raises(PermissionDenied):
            service.create_intent(intent(user.id, PaymentMethod.CASH), user_principal)

    def test_cannot_pay_for_someone_else(self, db_session, service, user):
        other = make_user(db_session, name="Ravi")
        with pytest.raises(PermissionDenied):
            service.create_intent(
                intent(user.id, PaymentMethod.EXTERNAL_REDIRECT), principal_for(other)
            )

    def test_insufficient_wallet_aborts_creation(
        self, service, ledger, user, user_principal, admin
    ):
        ledger.credit(user.id, Decimal("100"), actor=admin)

        with pytest.raises(InsufficientFunds):
            service.create_intent(intent(user.id, PaymentMethod.WALLET), user_principal)

        assert service.list_payments(admin) == []
        assert ledger.get_balance(user.id) == Decimal("100.00")

    def test_combined_split_must_match_total(self, service, user, user_principal):
        with pytest.raises(ValidationError):
            service.create_intent(
                intent(
                    user.id,
                    PaymentMethod.COMBINED,
                    wallet_amount_used=Decimal("600"),
                    external_amount_paid=Decimal("300"),
                ),
                user_principal,
            )

    def test_combined_requires_both_parts(self, service, user, user_principal):
        with pytest.raises(ValidationError):
            service.create_intent(
                intent(user.id, PaymentMethod.COMBINED, wallet_amount_used=Decimal("1000")),
                user_principal,
            )

    def test_combined_without_external_part_is_pending(
        self, service, ledger, user, user_principal, admin
    ):
        ledger.credit(user.id, Decimal("1000"), actor=admin)

        result = service.create_intent(
            intent(
                user.id,
                PaymentMethod.COMBINED,
                wallet_amount_used=Decimal("1000"),
                external_amount_paid=Decimal("0"),
            ),
            user_principal,
        )

        assert result.payment.status == PaymentStatus.PENDING.value
        assert result.redirect is None
        assert ledger.get_balance(user.id) == Decimal("0.00")
        assert service.approve(result.payment.id, admin).status == PaymentStatus.APPROVED.value

    def test_wallet_payment_cannot_have_external_part(self, service, user, user_principal):
        with pytest.raises(ValidationError):
            service.create_intent(
                intent(user.id, PaymentMethod.WALLET, external_amount_paid=Decimal("10")),
                user_principal,
            )

    def test_zero_total_rejected(self, service, user, collector):
        with pytest.raises(ValidationError):
            service.create_intent(
                intent(user.id, PaymentMethod.CASH, base_amount=Decimal("0")), collector
            )

    def test_malformed_reference_rejected(self, service, user, user_principal):
        with pytest.raises(ValidationError):
            service.create_intent(
                intent(
                    user.id, PaymentMethod.EXTERNAL_REDIRECT, external_transaction_ref="abc"
                ),
                user_principal,
            )

    def test_duplicate_year_guard(self, service, user, collector, admin):
        first = cash_pending(service, collector, user)
        with pytest.raises(ValidationError):
            cash_pending(service, collector, user)

        service.reject(first.id, admin, "Counterfeit note")
        second = cash_pending(service, collector, user)
        assert second.status == PaymentStatus.PENDING.value

    def test_inactive_user_rejected(self, db_session, service, user, collector):
        user.is_active = False
        db_session.commit()
        with pytest.raises(ValidationError):
            cash_pending(service, collector, user)

    def test_unknown_user(self, service, collector):
        with pytest.raises(NotFoundError):
            service.create_intent(intent(uuid.uuid4(), PaymentMethod.CASH), collector)

    def test_only_collectors_defer_debit(self, service, user, user_principal):
        with pytest.raises(PermissionDenied):
            service.create_intent(
                intent(
                    user.id,
                    PaymentMethod.COMBINED,
                    wallet_amount_used=Decimal("500"),
                    external_amount_paid=Decimal("500"),
                    defer_wallet_debit=True,
                ),
                user_principal,
            )

    def test_creation_records_event_and_audit(self, db_session, service, user, collector):
        payment = cash_pending(service, collector, user)
        events = (
            db_session.query(PaymentEvent).filter(PaymentEvent.resource_id == payment.id).all()
        )
        assert [e.event_type for e in events] == ["payment.created"]
        audit = db_session.query(AuditLog).filter(AuditLog.resource_id == payment.id).one()
        assert audit.action == "created"
        assert audit.actor_id == str(collector.user_id)


class TestMarkReadyForReview:
    def test_requires_valid_reference(self, service, user, user_principal):
        payment = service.create_intent(
            intent(user.id, PaymentMethod.EXTERNAL_REDIRECT), user_principal
        ).payment
        with pytest.raises(ValidationError):
            service.mark_ready_for_review(payment.id, "12 34", PROOF, user_principal)
        with pytest.raises(ValidationError):
            service.mark_ready_for_review(payment.id, UTR, "  ", user_principal)
        assert service.get(payment.id, user_principal).status == PaymentStatus.INCOMPLETE.value

    def test_only_from_incomplete(self, service, user, collector):
        payment = cash_pending(service, collector, user)
        with pytest.raises(InvalidStateTransition):
            service.mark_ready_for_review(payment.id, UTR, PROOF, collector)

    def test_other_user_refused(self, db_session, service, user, user_principal):
        other = make_user(db_session, name="Ravi")
        payment = service.create_intent(
            intent(user.id, PaymentMethod.EXTERNAL_REDIRECT), user_principal
        ).payment
        with pytest.raises(PermissionDenied):
            service.mark_ready_for_review(payment.id, UTR, PROOF, principal_for(other))

    def test_unknown_payment(self, service, user_principal):
        with pytest.raises(NotFoundError):
            service.mark_ready_for_review(uuid.uuid4(), UTR, PROOF, user_principal)


class TestResolution:
    def test_terminal_states_never_change(self, db_session, service, user, collector, admin):
        other = make_user(db_session, name="Ravi")
        approved = cash_pending(service, collector, user)
        rejected = cash_pending(service, collector, other)
        service.approve(approved.id, admin)
        service.reject(rejected.id, admin, "Duplicate entry")

        for payment_id in (approved.id, rejected.id):
            with pytest.raises(InvalidStateTransition):
                service.approve(payment_id, admin)
            with pytest.raises(InvalidStateTransition):
                service.reject(payment_id, admin, "again")
            with pytest.raises(InvalidStateTransition):
                service.mark_ready_for_review(payment_id, UTR, PROOF, admin)

        assert service.get(approved.id, admin).status == PaymentStatus.APPROVED.value
        assert service.get(approved.id, admin).receipt_number == "RCP2024001"
        assert service.get(rejected.id, admin).status == PaymentStatus.REJECTED.value

    def test_incomplete_cannot_be_approved(self, service, user, user_principal, admin):
        payment = service.create_intent(
            intent(user.id, PaymentMethod.EXTERNAL_REDIRECT), user_principal
        ).payment
        with pytest.raises(InvalidStateTransition) as exc_info:
            service.approve(payment.id, admin)
        assert exc_info.value.context["current_status"] == "incomplete"

    def test_receipts_increase_in_approval_order(self, db_session, service, collector, admin):
        users = [make_user(db_session, name=f"Subscriber {i}") for i in range(3)]
        payments = [cash_pending(service, collector, u) for u in users]

        numbers = [service.approve(p.id, admin).receipt_number for p in reversed(payments)]

        assert numbers == ["RCP2024001", "RCP2024002", "RCP2024003"]

    def test_receipt_numbers_scoped_by_year(self, service, user, collector, admin):
        first = cash_pending(service, collector, user, year=2024)
        second = cash_pending(service, collector, user, year=2025)
        assert service.approve(first.id, admin).receipt_number == "RCP2024001"
        assert service.approve(second.id, admin).receipt_number == "RCP2025001"

    def test_only_admin_resolves(self, service, user, collector):
        payment = cash_pending(service, collector, user)
        with pytest.raises(PermissionDenied):
            service.approve(payment.id, collector)
        with pytest.raises(PermissionDenied):
            service.reject(payment.id, collector, "no")

    def test_reject_requires_reason(self, service, user, collector, admin):
        payment = cash_pending(service, collector, user)
        with pytest.raises(ValidationError):
            service.reject(payment.id, admin, "   ")
        assert service.get(payment.id, admin).status == PaymentStatus.PENDING.value

    def test_stale_second_resolver_loses(self, service, user, collector, admin):
        payment = cash_pending(service, collector, user)

        gen = get_db()
        other_db = next(gen)
        try:
            PaymentService(other_db).approve(payment.id, admin)
        finally:
            for _ in gen:
                pass

        with pytest.raises(InvalidStateTransition):
            service.reject(payment.id, admin, "Too late")
        assert service.get(payment.id, admin).status == PaymentStatus.APPROVED.value

    def test_conditional_update_refuses_wrong_state(self, db_session, service, user, collector):
        payment = cash_pending(service, collector, user)
        repo = PaymentRepository(db_session)

        assert not repo.transition(payment.id, PaymentStatus.INCOMPLETE, PaymentStatus.PENDING)
        assert repo.transition(payment.id, PaymentStatus.PENDING, PaymentStatus.REJECTED)
        assert not repo.transition(payment.id, PaymentStatus.PENDING, PaymentStatus.APPROVED)
        db_session.rollback()

    def test_approval_retries_allocation_once(self, service, user, collector, admin):
        payment = cash_pending(service, collector, user)
        original = ReceiptAllocator.allocate
        attempts = []

        def flaky(self, service_year):
            attempts.append(service_year)
            if len(attempts) == 1:
                raise AllocationConflict("raced", service_year=service_year)
            return original(self, service_year)

        with patch.object(ReceiptAllocator, "allocate", flaky):
            approved = service.approve(payment.id, admin)

        assert attempts == [2024, 2024]
        assert approved.receipt_number == "RCP2024001"

    def test_repeated_conflict_surfaces_retryable(self, service, user, collector, admin):
        payment = cash_pending(service, collector, user)

        with patch.object(
            ReceiptAllocator, "allocate", side_effect=AllocationConflict("raced")
        ) as allocate:
            with pytest.raises(AllocationConflict) as exc_info:
                service.approve(payment.id, admin)

        assert allocate.call_count == 2
        assert exc_info.value.retryable is True
        assert service.get(payment.id, admin).status == PaymentStatus.PENDING.value

    def test_deferred_debit_applied_on_approval(self, service, ledger, user, collector, admin):
        ledger.credit(user.id, Decimal("700"), actor=admin)
        payment = service.create_intent(
            intent(
                user.id,
                PaymentMethod.COMBINED,
                extra_charges=Decimal("200"),
                wallet_amount_used=Decimal("700"),
                external_amount_paid=Decimal("500"),
                external_transaction_ref=UTR,
                proof_reference=PROOF,
                defer_wallet_debit=True,
            ),
            collector,
        ).payment

        assert payment.status == PaymentStatus.PENDING.value
        assert payment.wallet_debit_applied is False
        assert ledger.get_balance(user.id) == Decimal("700.00")

        approved = service.approve(payment.id, admin)

        assert approved.wallet_debit_applied is True
        assert approved.wallet_transaction_id is not None
        assert ledger.get_balance(user.id) == Decimal("0.00")

    def test_deferred_debit_shortfall_blocks_approval(
        self, service, ledger, user, collector, admin
    ):
        ledger.credit(user.id, Decimal("100"), actor=admin)
        payment = service.create_intent(
            intent(
                user.id,
                PaymentMethod.COMBINED,
                wallet_amount_used=Decimal("400"),
                external_amount_paid=Decimal("600"),
                external_transaction_ref=UTR,
                proof_reference=PROOF,
                defer_wallet_debit=True,
            ),
            collector,
        ).payment

        with pytest.raises(InsufficientFunds):
            service.approve(payment.id, admin)

        assert service.get(payment.id, admin).status == PaymentStatus.PENDING.value
        with pytest.raises(NotFoundError):
            service.get_receipt(payment.id, admin)

        ledger.credit(user.id, Decimal("300"), actor=admin)
        assert service.approve(payment.id, admin).receipt_number == "RCP2024001"

    def test_approval_emits_event(self, db_session, service, user, collector, admin):
        payment = cash_pending(service, collector, user)
        service.approve(payment.id, admin)

        events = PaymentEventRepository(db_session).get_by_resource(payment.id)
        assert {e.event_type for e in events} == {"payment.created", "payment.approved"}
        approved_event = next(e for e in events if e.event_type == "payment.approved")
        assert approved_event.payload["receipt_number"] == "RCP2024001"


class TestAbandonedAttempts:
    def test_abandoned_redirect_does_not_block_year(
        self, service, user, user_principal, collector
    ):
        abandoned = service.create_intent(
            intent(user.id, PaymentMethod.EXTERNAL_REDIRECT), user_principal
        ).payment

        cash = cash_pending(service, collector, user)

        assert cash.status == PaymentStatus.PENDING.value
        assert service.get(abandoned.id, collector).status == PaymentStatus.INCOMPLETE.value

    def test_only_one_attempt_reaches_review(self, service, user, user_principal):
        first = service.create_intent(
            intent(user.id, PaymentMethod.EXTERNAL_REDIRECT), user_principal
        ).payment
        second = service.create_intent(
            intent(user.id, PaymentMethod.EXTERNAL_REDIRECT), user_principal
        ).payment

        service.mark_ready_for_review(first.id, UTR, PROOF, user_principal)
        with pytest.raises(ValidationError):
            service.mark_ready_for_review(second.id, "UTR9876543210", PROOF, user_principal)
        assert service.get(second.id, user_principal).status == PaymentStatus.INCOMPLETE.value

    def test_cancel_refunds_wallet_part(
        self, db_session, service, ledger, user, user_principal, admin
    ):
        ledger.credit(user.id, Decimal("400"), actor=admin)
        payment = service.create_intent(
            intent(
                user.id,
                PaymentMethod.COMBINED,
                wallet_amount_used=Decimal("400"),
                external_amount_paid=Decimal("600"),
            ),
            user_principal,
        ).payment
        assert ledger.get_balance(user.id) == Decimal("0.00")

        cancelled = service.cancel(payment.id, user_principal)

        assert cancelled.status == PaymentStatus.REJECTED.value
        assert cancelled.rejection_reason == "Cancelled before review"
        assert cancelled.resolved_by == user.id
        assert ledger.get_balance(user.id) == Decimal("400.00")
        events = PaymentEventRepository(db_session).get_by_resource(payment.id)
        rejected = next(e for e in events if e.event_type == "payment.rejected")
        assert rejected.payload["previous_status"] == "incomplete"
        assert ledger.verify(user.id).consistent

    def test_cancel_with_reason_by_staff(self, service, user, user_principal, collector):
        payment = service.create_intent(
            intent(user.id, PaymentMethod.EXTERNAL_REDIRECT), user_principal
        ).payment

        cancelled = service.cancel(payment.id, collector, "  Subscriber paid in cash  ")

        assert cancelled.rejection_reason == "Subscriber paid in cash"

    def test_cancel_refused_for_other_user(self, db_session, service, user, user_principal):
        other = make_user(db_session, name="Ravi")
        payment = service.create_intent(
            intent(user.id, PaymentMethod.EXTERNAL_REDIRECT), user_principal
        ).payment

        with pytest.raises(PermissionDenied):
            service.cancel(payment.id, principal_for(other))

    def test_pending_payment_cannot_be_cancelled(self, service, user, collector):
        payment = cash_pending(service, collector, user)
        with pytest.raises(InvalidStateTransition):
            service.cancel(payment.id, collector)
        assert service.get(payment.id, collector).status == PaymentStatus.PENDING.value


class TestQueries:
    def test_review_queue_oldest_first(self, db_session, service, collector, admin):
        users = [make_user(db_session, name=f"Subscriber {i}") for i in range(3)]
        payments = [cash_pending(service, collector, u) for u in users]

        assert [p.id for p in service.review_queue(admin)] == [p.id for p in payments]

    def test_review_queue_staff_only(self, service, user_principal):
        with pytest.raises(PermissionDenied):
            service.review_queue(user_principal)

    def test_user_sees_only_own_payments(self, db_session, service, user, collector):
        other = make_user(db_session, name="Ravi")
        mine = cash_pending(service, collector, user)
        cash_pending(service, collector, other)

        listed = service.list_payments(principal_for(user))
        assert [p.id for p in listed] == [mine.id]
        with pytest.raises(PermissionDenied):
            service.list_payments(principal_for(user), user_id=other.id)
        with pytest.raises(PermissionDenied):
            service.get(mine.id, principal_for(other))

    def test_list_filters(self, db_session, service, user, collector, user_principal):
        cash_pending(service, collector, user, year=2023)
        service.create_intent(
            intent(user.id, PaymentMethod.EXTERNAL_REDIRECT, 2024), user_principal
        )

        assert len(service.list_payments(collector, method=PaymentMethod.CASH)) == 1
        assert len(service.list_payments(collector, status=PaymentStatus.INCOMPLETE)) == 1
        assert len(service.list_payments(collector, service_year=2023)) == 1
        assert len(service.list_for_user(user.id, user_principal)) == 2

    def test_statistics(self, db_session, service, collector, admin):
        users = [make_user(db_session, name=f"Subscriber {i}") for i in range(4)]
        approved = cash_pending(service, collector, users[0])
        rejected = cash_pending(service, collector, users[1], amount=Decimal("800"))
        cash_pending(service, collector, users[2], amount=Decimal("1200"))
        service.create_intent(
            intent(users[3].id, PaymentMethod.EXTERNAL_REDIRECT), principal_for(users[3])
        )
        service.approve(approved.id, admin)
        service.reject(rejected.id, admin, "Wrong year")

        stats = service.statistics(2024, admin)

        assert stats.total_payments == 4
        assert stats.approved_payments == 1
        assert stats.rejected_payments == 1
        assert stats.pending_payments == 1
        assert stats.incomplete_payments == 1
        assert stats.approved_revenue == Decimal("1000.00")
        assert stats.pending_amount == Decimal("1200.00")
        assert stats.approval_rate == Decimal("50.00")

    def test_statistics_empty_year(self, service, admin):
        stats = service.statistics(2030, admin)
        assert stats.total_payments == 0
        assert stats.approval_rate == Decimal("0.00")

    def test_receipt_missing_for_pending(self, service, user, collector):
        payment = cash_pending(service, collector, user)
        with pytest.raises(NotFoundError):
            service.get_receipt(payment.id, collector)

    def test_receipt_by_number(self, db_session, service, user, collector, admin):
        payment = service.approve(cash_pending(service, collector, user).id, admin)

        receipt = service.get_receipt_by_number("RCP2024001", principal_for(user))

        assert receipt.payment_id == payment.id
        with pytest.raises(NotFoundError):
            service.get_receipt_by_number("RCP2024999", admin)
        other = make_user(db_session, name="Ravi")
        with pytest.raises(PermissionDenied):
            service.get_receipt_by_number("RCP2024001", principal_for(other))

    def test_receipts_listed_newest_first(self, db_session, service, user, collector, admin):
        other = make_user(db_session, name="Ravi")
        service.approve(cash_pending(service, collector, user, year=2023).id, admin)
        service.approve(cash_pending(service, collector, other).id, admin)
        service.approve(cash_pending(service, collector, user).id, admin)

        listed = service.list_receipts(principal_for(user))

        assert [r.receipt_number for r in listed] == ["RCP2024002", "RCP2023001"]
        assert [r.receipt_number for r in service.list_receipts(admin, user_id=other.id)] == [
            "RCP2024001"
        ]
        with pytest.raises(PermissionDenied):
            service.list_receipts(principal_for(user), user_id=other.id)
