"""Prepaid wallet ledger.

The ``wallet_transactions`` table is the source of truth; ``users.wallet_balance``
is a cache rewritten only here, in the same transaction as the ledger row that
justifies it.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from tvfees.core.auth import Principal
from tvfees.core.database import atomic
from tvfees.core.errors import InsufficientFunds, NotFoundError, ValidationError
from tvfees.models.payment import PaymentMethod
from tvfees.models.shared import quantize
from tvfees.models.user import User
from tvfees.models.wallet_transaction import (
    TransactionDirection,
    TransactionKind,
    WalletTransaction,
)
from tvfees.repositories.user_repository import UserRepository
from tvfees.repositories.wallet_transaction_repository import WalletTransactionRepository
from tvfees.services.audit_service import AuditService
from tvfees.services.event_service import WALLET_CREDITED, WALLET_DEBITED, EventService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BalancePlan:
    balance_before: Decimal
    balance_after: Decimal
    amount: Decimal


@dataclass
class WalletSummary:
    user_id: UUID
    balance: Decimal
    window_days: int
    total_credits: Decimal
    total_debits: Decimal
    transaction_count: int
    recent_transactions: list[WalletTransaction]


@dataclass
class LedgerVerification:
    user_id: UUID
    cached_balance: Decimal
    ledger_balance: Decimal
    last_balance_after: Decimal

    @property
    def consistent(self) -> bool:
        return self.cached_balance == self.ledger_balance == self.last_balance_after


def _positive_amount(amount: Decimal) -> Decimal:
    value = quantize(amount)
    if value <= 0:
        raise ValidationError("Amount must be positive", amount=amount)
    return value


def plan_credit(balance: Decimal, amount: Decimal) -> BalancePlan:
    value = _positive_amount(amount)
    before = quantize(balance)
    return BalancePlan(balance_before=before, balance_after=before + value, amount=value)


def plan_debit(balance: Decimal, amount: Decimal) -> BalancePlan:
    """Plan a debit, refusing anything that would take the balance below zero."""
    value = _positive_amount(amount)
    before = quantize(balance)
    if value > before:
        raise InsufficientFunds(
            "Insufficient wallet balance", balance=before, requested=value
        )
    return BalancePlan(balance_before=before, balance_after=before - value, amount=value)


@dataclass(frozen=True)
class PaymentSplitPlan:
    total_amount: Decimal
    wallet_balance: Decimal
    wallet_amount: Decimal
    remaining_amount: Decimal
    can_pay_fully: bool
    suggested_method: PaymentMethod


def plan_split(balance: Decimal, total: Decimal) -> PaymentSplitPlan:
    """How much of ``total`` the wallet covers and what is left to pay outside."""
    value = quantize(total)
    if value <= 0:
        raise ValidationError("Total must be positive", total=total)
    available = max(quantize(balance), Decimal("0.00"))
    wallet_amount = min(available, value)
    remaining = value - wallet_amount
    if remaining == 0:
        method = PaymentMethod.WALLET
    elif wallet_amount > 0:
        method = PaymentMethod.COMBINED
    else:
        method = PaymentMethod.EXTERNAL_REDIRECT
    return PaymentSplitPlan(
        total_amount=value,
        wallet_balance=available,
        wallet_amount=wallet_amount,
        remaining_amount=remaining,
        can_pay_fully=remaining == 0,
        suggested_method=method,
    )


class WalletLedger:
    """Atomic credit, debit and transfer over the wallet ledger."""

    def __init__(self, db: Session):
        self.db = db
        self.user_repo = UserRepository(db)
        self.txn_repo = WalletTransactionRepository(db)
        self.audit = AuditService(db)
        self.events = EventService(db)

    def _lock_user(self, user_id: UUID, allow_inactive: bool = False) -> User:
        user = self.user_repo.get_for_update(user_id)
        return self._check_owner(user, user_id, allow_inactive)

    @staticmethod
    def _check_owner(user: User | None, user_id: UUID, allow_inactive: bool = False) -> User:
        if user is None:
            raise NotFoundError("User not found", user_id=user_id)
        if not user.is_active and not allow_inactive:
            raise ValidationError("User is not active", user_id=user_id)
        return user

    def _apply(
        self,
        user: User,
        plan: BalancePlan,
        direction: TransactionDirection,
        kind: TransactionKind,
        reference: str | None,
        description: str | None,
        actor: Principal | None,
    ) -> WalletTransaction:
        txn = self.txn_repo.create(
            user_id=user.id,  # type: ignore[arg-type]
            amount=plan.amount,
            direction=direction,
            kind=kind,
            balance_before=plan.balance_before,
            balance_after=plan.balance_after,
            reference_id=reference,
            description=description,
            created_by=actor.user_id if actor else None,
        )
        self.user_repo.set_wallet_balance(user, plan.balance_after)

        payload = {
            "user_id": user.id,
            "transaction_id": txn.id,
            "amount": plan.amount,
            "kind": kind.value,
            "balance_after": plan.balance_after,
            "reference": reference,
        }
        self.events.record(
            WALLET_CREDITED if direction == TransactionDirection.CREDIT else WALLET_DEBITED,
            "wallet",
            user.id,  # type: ignore[arg-type]
            payload,
        )
        self.audit.log(
            "wallet",
            user.id,  # type: ignore[arg-type]
            direction.value,
            actor,
            {
                "transaction_id": txn.id,
                "kind": kind.value,
                "amount": plan.amount,
                "balance": {"old": plan.balance_before, "new": plan.balance_after},
            },
        )
        logger.info(
            "Wallet %s %s of %s for user %s (balance %s -> %s)",
            kind.value,
            direction.value,
            plan.amount,
            user.id,
            plan.balance_before,
            plan.balance_after,
        )
        return txn

    def credit(
        self,
        user_id: UUID,
        amount: Decimal,
        reference: str | None = None,
        description: str | None = None,
        actor: Principal | None = None,
        kind: TransactionKind = TransactionKind.TOP_UP,
    ) -> WalletTransaction:
        """Credit a wallet. Refunds are accepted even for deactivated users."""
        with atomic(self.db):
            user = self._lock_user(user_id, allow_inactive=kind == TransactionKind.REFUND)
            plan = plan_credit(Decimal(str(user.wallet_balance)), amount)
            return self._apply(
                user, plan, TransactionDirection.CREDIT, kind, reference, description, actor
            )

    def debit(
        self,
        user_id: UUID,
        amount: Decimal,
        reference: str | None = None,
        description: str | None = None,
        actor: Principal | None = None,
        kind: TransactionKind = TransactionKind.PAYMENT,
    ) -> WalletTransaction:
        """Debit a wallet. Raises InsufficientFunds before anything is written."""
        with atomic(self.db):
            user = self._lock_user(user_id)
            plan = plan_debit(Decimal(str(user.wallet_balance)), amount)
            return self._apply(
                user, plan, TransactionDirection.DEBIT, kind, reference, description, actor
            )

    def transfer(
        self,
        from_user_id: UUID,
        to_user_id: UUID,
        amount: Decimal,
        reference: str | None = None,
        actor: Principal | None = None,
    ) -> tuple[WalletTransaction, WalletTransaction]:
        """Move funds between two wallets. Both legs commit or neither does."""
        if from_user_id == to_user_id:
            raise ValidationError("Cannot transfer to the same wallet", user_id=from_user_id)

        with atomic(self.db):
            locked = self.user_repo.get_many_for_update([from_user_id, to_user_id])
            sender = self._check_owner(locked.get(from_user_id), from_user_id)
            recipient = self._check_owner(locked.get(to_user_id), to_user_id)

            out_plan = plan_debit(Decimal(str(sender.wallet_balance)), amount)
            in_plan = plan_credit(Decimal(str(recipient.wallet_balance)), amount)

            debit_txn = self._apply(
                sender,
                out_plan,
                TransactionDirection.DEBIT,
                TransactionKind.TRANSFER_OUT,
                reference,
                f"Transfer to {to_user_id}",
                actor,
            )
            credit_txn = self._apply(
                recipient,
                in_plan,
                TransactionDirection.CREDIT,
                TransactionKind.TRANSFER_IN,
                reference,
                f"Transfer from {from_user_id}",
                actor,
            )
            return debit_txn, credit_txn

    def reverse(
        self, transaction_id: UUID, reason: str, actor: Principal | None = None
    ) -> WalletTransaction:
        """Offset a top-up or adjustment with an equal row in the opposite direction.

        The original row is never touched. Payment, refund and transfer rows
        are corrected through their own operations.
        """
        if not reason or not reason.strip():
            raise ValidationError("Reversal reason is required", transaction_id=transaction_id)

        original = self.txn_repo.get_by_id(transaction_id)
        if original is None:
            raise NotFoundError("Wallet transaction not found", transaction_id=transaction_id)
        kind = TransactionKind(original.kind)
        if kind not in (TransactionKind.TOP_UP, TransactionKind.ADJUSTMENT):
            raise ValidationError(
                "Only top-ups and adjustments can be reversed",
                transaction_id=transaction_id,
                kind=kind.value,
            )

        with atomic(self.db):
            user = self._lock_user(original.user_id, allow_inactive=True)  # type: ignore[arg-type]
            if self.txn_repo.get_reversal_of(transaction_id) is not None:
                raise ValidationError(
                    "Transaction already reversed", transaction_id=transaction_id
                )
            balance = Decimal(str(user.wallet_balance))
            amount = Decimal(str(original.amount))
            if original.direction == TransactionDirection.CREDIT.value:
                direction = TransactionDirection.DEBIT
                plan = plan_debit(balance, amount)
            else:
                direction = TransactionDirection.CREDIT
                plan = plan_credit(balance, amount)
            txn = self._apply(
                user,
                plan,
                direction,
                TransactionKind.ADJUSTMENT,
                str(original.id),
                f"Reversal: {reason.strip()}",
                actor,
            )
            logger.info("Reversed wallet transaction %s with %s", original.id, txn.id)
            return txn

    def get_balance(self, user_id: UUID) -> Decimal:
        user = self.user_repo.get_by_id(user_id)
        if not user:
            raise NotFoundError("User not found", user_id=user_id)
        return quantize(user.wallet_balance)  # type: ignore[arg-type]

    def plan_payment_split(self, user_id: UUID, total: Decimal) -> PaymentSplitPlan:
        """Suggest how to pay ``total`` given the current wallet balance."""
        return plan_split(self.get_balance(user_id), total)

    def list_transactions(
        self,
        user_id: UUID,
        kind: TransactionKind | None = None,
        direction: TransactionDirection | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list[WalletTransaction]:
        if not self.user_repo.get_by_id(user_id):
            raise NotFoundError("User not found", user_id=user_id)
        return self.txn_repo.get_by_user_id(
            user_id,
            skip=skip,
            limit=limit,
            kind=kind,
            direction=direction,
            start_date=start_date,
            end_date=end_date,
        )

    def summary(self, user_id: UUID, days: int = 30) -> WalletSummary:
        """Credits, debits and movement count over the last ``days`` days."""
        if days <= 0:
            raise ValidationError("days must be positive", days=days)
        balance = self.get_balance(user_id)
        since = datetime.now(UTC) - timedelta(days=days)
        credits, debits, count = self.txn_repo.totals(user_id, start_date=since)
        return WalletSummary(
            user_id=user_id,
            balance=balance,
            window_days=days,
            total_credits=quantize(credits),
            total_debits=quantize(debits),
            transaction_count=count,
            recent_transactions=self.txn_repo.get_by_user_id(user_id, limit=5),
        )

    def verify(self, user_id: UUID) -> LedgerVerification:
        """Recompute the balance from the ledger and compare it with the cache."""
        cached = self.get_balance(user_id)
        credits, debits, _ = self.txn_repo.totals(user_id)
        latest = self.txn_repo.get_latest_for_user(user_id)
        last_after = Decimal("0.00")
        if latest is not None:
            last_after = quantize(latest.balance_after)  # type: ignore[arg-type]
        result = LedgerVerification(
            user_id=user_id,
            cached_balance=cached,
            ledger_balance=quantize(credits - debits),
            last_balance_after=last_after,
        )
        if not result.consistent:
            logger.warning(
                "Wallet drift for user %s: cached=%s ledger=%s last=%s",
                user_id,
                result.cached_balance,
                result.ledger_balance,
                result.last_balance_after,
            )
        return result
