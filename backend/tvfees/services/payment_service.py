"""Payment intents and the approval state machine.

    INCOMPLETE -> PENDING -> APPROVED | REJECTED
    INCOMPLETE -> REJECTED  (cancelled before review)

Every status write is a conditional ``UPDATE ... WHERE status = :expected``,
so of two concurrent resolvers exactly one wins. APPROVED and REJECTED are
terminal.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tvfees.core.auth import Principal
from tvfees.core.config import settings
from tvfees.core.database import atomic
from tvfees.core.errors import (
    AllocationConflict,
    InvalidStateTransition,
    NotFoundError,
    PermissionDenied,
    ValidationError,
)
from tvfees.models.payment import Payment, PaymentMethod, PaymentStatus
from tvfees.models.receipt import Receipt
from tvfees.models.shared import generate_uuid, quantize
from tvfees.models.wallet_transaction import TransactionKind
from tvfees.repositories.payment_repository import PaymentRepository
from tvfees.repositories.receipt_repository import ReceiptRepository
from tvfees.repositories.user_repository import UserRepository
from tvfees.repositories.wallet_transaction_repository import WalletTransactionRepository
from tvfees.schemas.payment import PaymentIntentCreate
from tvfees.services.audit_service import AuditService
from tvfees.services.event_service import (
    PAYMENT_APPROVED,
    PAYMENT_CREATED,
    PAYMENT_READY_FOR_REVIEW,
    PAYMENT_REJECTED,
    EventService,
)
from tvfees.services.fee_calculator import check_total
from tvfees.services.receipt_allocator import ReceiptAllocator
from tvfees.services.redirect_builder import (
    DeepLinkRequest,
    RedirectLauncher,
    RedirectOutcome,
    is_valid_external_reference,
    prepare_redirect,
    safe_reference,
)
from tvfees.services.wallet_ledger import WalletLedger

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
REFERENCE_PREFIX = "TVS"


@dataclass
class IntentResult:
    payment: Payment
    redirect: RedirectOutcome | None = None


@dataclass
class PaymentStatistics:
    service_year: int
    total_payments: int
    incomplete_payments: int
    pending_payments: int
    approved_payments: int
    rejected_payments: int
    approved_revenue: Decimal
    pending_amount: Decimal
    approval_rate: Decimal


@dataclass(frozen=True)
class _Split:
    wallet: Decimal
    external: Decimal


class PaymentService:
    """Service for the payment lifecycle."""

    def __init__(self, db: Session):
        self.db = db
        self.repo = PaymentRepository(db)
        self.user_repo = UserRepository(db)
        self.receipt_repo = ReceiptRepository(db)
        self.txn_repo = WalletTransactionRepository(db)
        self.ledger = WalletLedger(db)
        self.allocator = ReceiptAllocator(db)
        self.audit = AuditService(db)
        self.events = EventService(db)

    # Intent creation

    def _split(self, data: PaymentIntentCreate, total: Decimal) -> _Split:
        """Work out how much of ``total`` comes from the wallet and from outside."""
        wallet_part, external_part = (
            quantize(value) if value is not None else None
            for value in (data.wallet_amount_used, data.external_amount_paid)
        )

        if data.method == PaymentMethod.COMBINED:
            if wallet_part is None or external_part is None:
                raise ValidationError(
                    "Combined payments need both wallet_amount_used and external_amount_paid"
                )
            if wallet_part < 0 or external_part < 0:
                raise ValidationError(
                    "Combined payment parts cannot be negative",
                    wallet_amount_used=wallet_part,
                    external_amount_paid=external_part,
                )
            if wallet_part + external_part != total:
                raise ValidationError(
                    "Combined payment parts must add up to the total",
                    wallet_amount_used=wallet_part,
                    external_amount_paid=external_part,
                    total_amount=total,
                )
            return _Split(wallet=wallet_part, external=external_part)

        if data.method == PaymentMethod.WALLET:
            if wallet_part not in (None, total) or external_part not in (None, ZERO):
                raise ValidationError("Wallet payments are paid entirely from the wallet")
            return _Split(wallet=total, external=ZERO)

        if wallet_part not in (None, ZERO):
            raise ValidationError(
                f"{data.method.value} payments cannot use the wallet", method=data.method.value
            )
        if data.method == PaymentMethod.EXTERNAL_REDIRECT:
            if external_part not in (None, total):
                raise ValidationError("Redirect payments are paid entirely outside the wallet")
            return _Split(wallet=ZERO, external=total)
        return _Split(wallet=ZERO, external=ZERO)

    def _initial_status(self, data: PaymentIntentCreate, split: _Split) -> PaymentStatus:
        if data.method in (PaymentMethod.CASH, PaymentMethod.WALLET):
            return PaymentStatus.PENDING
        # A combined payment with nothing to pay outside has no reference to wait for.
        if data.method == PaymentMethod.COMBINED and split.external == 0:
            return PaymentStatus.PENDING
        if data.external_transaction_ref and data.proof_reference:
            return PaymentStatus.PENDING
        return PaymentStatus.INCOMPLETE

    def create_intent(
        self,
        data: PaymentIntentCreate,
        actor: Principal,
        launcher: RedirectLauncher | None = None,
    ) -> IntentResult:
        """Create a payment for one service year.

        CASH needs a collector or admin and is PENDING at once. WALLET debits
        the full total now and is PENDING. EXTERNAL_REDIRECT and COMBINED stay
        INCOMPLETE until a transaction reference and proof are supplied; the
        wallet part of a COMBINED payment is debited now unless the collector
        defers it to approval. A COMBINED payment with no external part is
        PENDING at once. The redirect is prepared after commit and can never
        fail the intent.

        Only PENDING or APPROVED payments block a service year, so several
        INCOMPLETE attempts may exist side by side.
        """
        if not actor.is_staff and data.user_id != actor.user_id:
            raise PermissionDenied("Cannot create payments for another user", user_id=data.user_id)
        if data.method == PaymentMethod.CASH and not actor.is_staff:
            raise PermissionDenied("Cash payments are recorded by collectors or admins")
        if data.defer_wallet_debit and (
            data.method != PaymentMethod.COMBINED or not actor.is_staff
        ):
            raise PermissionDenied(
                "Only collectors may defer the wallet part of a combined payment"
            )
        if data.external_transaction_ref and not is_valid_external_reference(
            data.external_transaction_ref
        ):
            raise ValidationError(
                "Transaction reference must be 8-50 letters or digits",
                external_transaction_ref=data.external_transaction_ref,
            )

        total = check_total(
            data.base_amount, data.late_fee, data.wire_surcharge, data.extra_charges
        )
        if total <= 0:
            raise ValidationError("Payment total must be positive", total_amount=total)
        split = self._split(data, total)
        status = self._initial_status(data, split)
        debit_now = split.wallet > 0 and not data.defer_wallet_debit
        combined = data.method == PaymentMethod.COMBINED

        payment_id = generate_uuid()
        with atomic(self.db):
            user = self.user_repo.get_for_update(data.user_id)
            if not user:
                raise NotFoundError("User not found", user_id=data.user_id)
            if not user.is_active:
                raise ValidationError("User is not active", user_id=data.user_id)
            if self.repo.has_open_payment(data.user_id, data.service_year):
                raise ValidationError(
                    "User already has a payment for this service year",
                    user_id=data.user_id,
                    service_year=data.service_year,
                )

            wallet_txn = None
            if debit_now:
                wallet_txn = self.ledger.debit(
                    data.user_id,
                    split.wallet,
                    reference=str(payment_id),
                    description=f"Subscription fee {data.service_year}",
                    actor=actor,
                    kind=TransactionKind.PAYMENT,
                )

            payment = self.repo.create(
                id=payment_id,
                user_id=data.user_id,
                base_amount=quantize(data.base_amount),
                late_fee=quantize(data.late_fee),
                wire_surcharge=quantize(data.wire_surcharge),
                extra_charges=quantize(data.extra_charges),
                total_amount=total,
                currency=settings.CURRENCY,
                method=data.method.value,
                status=status.value,
                service_year=data.service_year,
                external_transaction_ref=data.external_transaction_ref,
                proof_reference=data.proof_reference,
                wallet_amount_used=split.wallet if combined else None,
                external_amount_paid=split.external if combined else None,
                wallet_debit_applied=wallet_txn is not None,
                wallet_transaction_id=wallet_txn.id if wallet_txn else None,
                notes=data.notes,
                created_by=actor.user_id,
            )
            self.audit.log(
                "payment",
                payment_id,
                "created",
                actor,
                {"method": data.method.value, "status": status.value, "total_amount": total},
            )
            self.events.record(PAYMENT_CREATED, "payment", payment_id, self._event_payload(payment))

        logger.info(
            "Created %s payment %s for user %s (%s, total %s)",
            data.method.value,
            payment_id,
            data.user_id,
            status.value,
            total,
        )

        redirect = None
        if status == PaymentStatus.INCOMPLETE and split.external > 0:
            redirect = self._redirect(payment, split.external, launcher)
        return IntentResult(payment=payment, redirect=redirect)

    def _redirect(
        self, payment: Payment, amount: Decimal, launcher: RedirectLauncher | None
    ) -> RedirectOutcome:
        stamp = int(datetime.now(UTC).timestamp() * 1000)
        entity = payment.id.hex  # type: ignore[union-attr]
        request = DeepLinkRequest(
            payee_id=settings.PAYEE_ID,
            payee_name=settings.PAYEE_NAME,
            merchant_code=settings.MERCHANT_CATEGORY_CODE,
            transaction_id=safe_reference(REFERENCE_PREFIX, entity, stamp, separator=""),
            transaction_ref=safe_reference(REFERENCE_PREFIX, entity, stamp),
            note=f"TV subscription {payment.service_year}",
            amount=amount,
            currency=str(payment.currency),
            scheme=settings.REDIRECT_SCHEME,
        )
        return prepare_redirect(request, launcher)

    # Transitions

    def mark_ready_for_review(
        self,
        payment_id: UUID,
        external_ref: str,
        proof_ref: str,
        actor: Principal,
    ) -> Payment:
        """INCOMPLETE -> PENDING once the transaction reference and proof are in."""
        if not is_valid_external_reference(external_ref):
            raise ValidationError(
                "Transaction reference must be 8-50 letters or digits",
                external_transaction_ref=external_ref,
            )
        if not proof_ref or not proof_ref.strip():
            raise ValidationError("Proof of payment is required")

        with atomic(self.db):
            payment = self._get_locked(payment_id)
            self._check_access(payment, actor)
            self._expect(payment, PaymentStatus.INCOMPLETE, PaymentStatus.PENDING)
            self.user_repo.get_for_update(payment.user_id)  # type: ignore[arg-type]
            if self.repo.has_open_payment(
                payment.user_id,  # type: ignore[arg-type]
                int(payment.service_year),  # type: ignore[arg-type]
                exclude_id=payment_id,
            ):
                raise ValidationError(
                    "User already has a payment for this service year",
                    user_id=payment.user_id,
                    service_year=payment.service_year,
                )
            if not self.repo.transition(
                payment_id,
                PaymentStatus.INCOMPLETE,
                PaymentStatus.PENDING,
                external_transaction_ref=external_ref.strip(),
                proof_reference=proof_ref.strip(),
            ):
                raise self._lost_race(payment_id, PaymentStatus.PENDING)
            self.audit.log_status_change(
                "payment",
                payment_id,
                PaymentStatus.INCOMPLETE.value,
                PaymentStatus.PENDING.value,
                actor,
                {"external_transaction_ref": external_ref.strip()},
            )
            self.events.record(
                PAYMENT_READY_FOR_REVIEW,
                "payment",
                payment_id,
                {"payment_id": payment_id, "external_transaction_ref": external_ref.strip()},
            )

        return self.repo.refresh(payment)

    def approve(self, payment_id: UUID, actor: Principal) -> Payment:
        """PENDING -> APPROVED, issuing the receipt. Retries once on an allocation race."""
        if not actor.is_admin:
            raise PermissionDenied("Only admins can approve payments")

        try:
            return self._approve_once(payment_id, actor)
        except AllocationConflict:
            logger.warning("Receipt allocation conflict approving %s, retrying once", payment_id)
        return self._approve_once(payment_id, actor)

    def _approve_once(self, payment_id: UUID, actor: Principal) -> Payment:
        with atomic(self.db):
            payment = self._get_locked(payment_id)
            self._expect(payment, PaymentStatus.PENDING, PaymentStatus.APPROVED)
            if not self.repo.transition(
                payment_id,
                PaymentStatus.PENDING,
                PaymentStatus.APPROVED,
                resolved_by=actor.user_id,
                resolved_at=datetime.now(UTC),
            ):
                raise self._lost_race(payment_id, PaymentStatus.APPROVED)

            extra: dict[str, object] = {}
            wallet_part = Decimal(str(payment.wallet_amount_used or 0))
            if (
                payment.method == PaymentMethod.COMBINED.value
                and wallet_part > 0
                and not payment.wallet_debit_applied
            ):
                txn = self.ledger.debit(
                    payment.user_id,  # type: ignore[arg-type]
                    wallet_part,
                    reference=str(payment_id),
                    description=f"Subscription fee {payment.service_year}",
                    actor=actor,
                    kind=TransactionKind.PAYMENT,
                )
                self.repo.set_fields(
                    payment_id, wallet_debit_applied=True, wallet_transaction_id=txn.id
                )
                extra["deferred_wallet_debit"] = wallet_part

            allocated = self.allocator.allocate(int(payment.service_year))  # type: ignore[arg-type]
            try:
                self.receipt_repo.create(
                    payment_id=payment_id,
                    user_id=payment.user_id,  # type: ignore[arg-type]
                    service_year=allocated.service_year,
                    sequence_number=allocated.sequence_number,
                    receipt_number=allocated.receipt_number,
                    amount=quantize(payment.total_amount),  # type: ignore[arg-type]
                    method=str(payment.method),
                )
                self.repo.set_fields(payment_id, receipt_number=allocated.receipt_number)
            except IntegrityError as exc:
                raise AllocationConflict(
                    "Receipt number already issued",
                    receipt_number=allocated.receipt_number,
                ) from exc

            extra["receipt_number"] = allocated.receipt_number
            self.audit.log_status_change(
                "payment",
                payment_id,
                PaymentStatus.PENDING.value,
                PaymentStatus.APPROVED.value,
                actor,
                extra,
            )
            self.events.record(
                PAYMENT_APPROVED,
                "payment",
                payment_id,
                {
                    "payment_id": payment_id,
                    "user_id": payment.user_id,
                    "receipt_number": allocated.receipt_number,
                    "total_amount": payment.total_amount,
                    "service_year": payment.service_year,
                },
            )

        logger.info(
            "Payment %s approved by %s with receipt %s",
            payment_id,
            actor.user_id,
            allocated.receipt_number,
        )
        return self.repo.refresh(payment)

    def reject(self, payment_id: UUID, actor: Principal, reason: str) -> Payment:
        """PENDING -> REJECTED, refunding any wallet debit already applied."""
        if not actor.is_admin:
            raise PermissionDenied("Only admins can reject payments")
        if not reason or not reason.strip():
            raise ValidationError("A rejection reason is required")
        return self._reject(payment_id, actor, reason.strip(), PaymentStatus.PENDING)

    def cancel(
        self, payment_id: UUID, actor: Principal, reason: str | None = None
    ) -> Payment:
        """INCOMPLETE -> REJECTED for an abandoned attempt, refunding any wallet part.

        The payer or staff may cancel. Once a payment is PENDING only an admin
        can resolve it.
        """
        with atomic(self.db):
            payment = self._get_locked(payment_id)
            self._check_access(payment, actor)
            return self._reject(
                payment_id,
                actor,
                (reason or "").strip() or "Cancelled before review",
                PaymentStatus.INCOMPLETE,
            )

    def _reject(
        self, payment_id: UUID, actor: Principal, reason: str, expected: PaymentStatus
    ) -> Payment:
        with atomic(self.db):
            payment = self._get_locked(payment_id)
            self._expect(payment, expected, PaymentStatus.REJECTED)
            if not self.repo.transition(
                payment_id,
                expected,
                PaymentStatus.REJECTED,
                resolved_by=actor.user_id,
                resolved_at=datetime.now(UTC),
                rejection_reason=reason,
            ):
                raise self._lost_race(payment_id, PaymentStatus.REJECTED)

            extra: dict[str, object] = {"reason": reason}
            if payment.wallet_debit_applied and payment.wallet_transaction_id:
                debit = self.txn_repo.get_by_id(
                    payment.wallet_transaction_id  # type: ignore[arg-type]
                )
                if debit is None:
                    raise NotFoundError(
                        "Wallet debit for payment is missing",
                        wallet_transaction_id=payment.wallet_transaction_id,
                    )
                refund = self.ledger.credit(
                    payment.user_id,  # type: ignore[arg-type]
                    Decimal(str(debit.amount)),
                    reference=str(payment_id),
                    description=f"Refund for rejected payment {payment_id}",
                    actor=actor,
                    kind=TransactionKind.REFUND,
                )
                extra["refund_transaction_id"] = refund.id
                extra["refund_amount"] = refund.amount

            self.audit.log_status_change(
                "payment",
                payment_id,
                expected.value,
                PaymentStatus.REJECTED.value,
                actor,
                extra,
            )
            self.events.record(
                PAYMENT_REJECTED,
                "payment",
                payment_id,
                {
                    "payment_id": payment_id,
                    "user_id": payment.user_id,
                    "previous_status": expected.value,
                    **extra,
                },
            )

        logger.info(
            "Payment %s rejected from %s by %s", payment_id, expected.value, actor.user_id
        )
        return self.repo.refresh(payment)

    # Queries

    def get(self, payment_id: UUID, actor: Principal) -> Payment:
        payment = self.repo.get_by_id(payment_id)
        if not payment:
            raise NotFoundError("Payment not found", payment_id=payment_id)
        self._check_access(payment, actor)
        return payment

    def list_payments(
        self,
        actor: Principal,
        status: PaymentStatus | None = None,
        method: PaymentMethod | None = None,
        service_year: int | None = None,
        user_id: UUID | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list[Payment]:
        """List payments; plain users only ever see their own."""
        if not actor.is_staff:
            if user_id is not None and user_id != actor.user_id:
                raise PermissionDenied("Cannot list another user's payments")
            user_id = actor.user_id
        return self.repo.get_all(
            skip=skip,
            limit=limit,
            user_id=user_id,
            status=status,
            method=method,
            service_year=service_year,
        )

    def list_for_user(
        self, user_id: UUID, actor: Principal, skip: int = 0, limit: int = 100
    ) -> list[Payment]:
        return self.list_payments(actor, user_id=user_id, skip=skip, limit=limit)

    def review_queue(self, actor: Principal, skip: int = 0, limit: int = 100) -> list[Payment]:
        """PENDING payments, oldest first."""
        if not actor.is_staff:
            raise PermissionDenied("Only staff can view the review queue")
        return self.repo.get_review_queue(skip=skip, limit=limit)

    def statistics(self, service_year: int, actor: Principal) -> PaymentStatistics:
        if not actor.is_staff:
            raise PermissionDenied("Only staff can view payment statistics")

        totals = self.repo.status_totals(service_year)

        def count(status: PaymentStatus) -> int:
            return totals.get(status.value, (0, ZERO))[0]

        def amount(status: PaymentStatus) -> Decimal:
            return quantize(totals.get(status.value, (0, ZERO))[1])

        approved = count(PaymentStatus.APPROVED)
        resolved = approved + count(PaymentStatus.REJECTED)
        rate = quantize(Decimal(approved) * 100 / resolved) if resolved else Decimal("0.00")
        return PaymentStatistics(
            service_year=service_year,
            total_payments=sum(c for c, _ in totals.values()),
            incomplete_payments=count(PaymentStatus.INCOMPLETE),
            pending_payments=count(PaymentStatus.PENDING),
            approved_payments=approved,
            rejected_payments=count(PaymentStatus.REJECTED),
            approved_revenue=amount(PaymentStatus.APPROVED),
            pending_amount=amount(PaymentStatus.PENDING),
            approval_rate=rate,
        )

    def get_receipt(self, payment_id: UUID, actor: Principal) -> Receipt:
        self.get(payment_id, actor)
        receipt = self.receipt_repo.get_by_payment_id(payment_id)
        if not receipt:
            raise NotFoundError("Receipt not found", payment_id=payment_id)
        return receipt

    def get_receipt_by_number(self, receipt_number: str, actor: Principal) -> Receipt:
        receipt = self.receipt_repo.get_by_number(receipt_number.strip())
        if not receipt:
            raise NotFoundError("Receipt not found", receipt_number=receipt_number)
        if not actor.is_staff and receipt.user_id != actor.user_id:
            raise PermissionDenied("Cannot view another user's receipt")
        return receipt

    def list_receipts(
        self,
        actor: Principal,
        user_id: UUID | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list[Receipt]:
        """Receipts for one user, newest first. Plain users only see their own."""
        if user_id is None:
            user_id = actor.user_id
        elif not actor.is_staff and user_id != actor.user_id:
            raise PermissionDenied("Cannot list another user's receipts")
        return self.receipt_repo.get_by_user(user_id, skip=skip, limit=limit)

    # Helpers

    def _get_locked(self, payment_id: UUID) -> Payment:
        payment = self.repo.get_for_update(payment_id)
        if not payment:
            raise NotFoundError("Payment not found", payment_id=payment_id)
        return payment

    @staticmethod
    def _check_access(payment: Payment, actor: Principal) -> None:
        if not actor.is_staff and payment.user_id != actor.user_id:
            raise PermissionDenied("Cannot access another user's payment", payment_id=payment.id)

    @staticmethod
    def _expect(payment: Payment, expected: PaymentStatus, target: PaymentStatus) -> None:
        if payment.status != expected.value:
            raise InvalidStateTransition(
                f"Cannot move payment from {payment.status} to {target.value}",
                payment_id=payment.id,
                current_status=payment.status,
                target_status=target.value,
            )

    def _lost_race(self, payment_id: UUID, target: PaymentStatus) -> InvalidStateTransition:
        logger.warning(
            "Payment %s changed state concurrently; %s refused", payment_id, target.value
        )
        return InvalidStateTransition(
            "Payment was resolved concurrently",
            payment_id=payment_id,
            target_status=target.value,
        )

    @staticmethod
    def _event_payload(payment: Payment) -> dict[str, object]:
        return {
            "payment_id": payment.id,
            "user_id": payment.user_id,
            "method": payment.method,
            "status": payment.status,
            "service_year": payment.service_year,
            "total_amount": payment.total_amount,
        }
