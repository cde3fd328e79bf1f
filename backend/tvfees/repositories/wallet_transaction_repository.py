"""WalletTransaction repository for data access.

Ledger rows are append-only: there is deliberately no update or delete here.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from tvfees.models.wallet_transaction import (
    TransactionDirection,
    TransactionKind,
    WalletTransaction,
)


class WalletTransactionRepository:
    """Repository for WalletTransaction model."""

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        *,
        user_id: UUID,
        amount: Decimal,
        direction: TransactionDirection,
        kind: TransactionKind,
        balance_before: Decimal,
        balance_after: Decimal,
        reference_id: str | None = None,
        description: str | None = None,
        created_by: UUID | None = None,
    ) -> WalletTransaction:
        """Append a ledger row. The caller must hold the owner's row lock."""
        txn = WalletTransaction(
            user_id=user_id,
            sequence=self.next_sequence(user_id),
            amount=amount,
            direction=direction.value,
            kind=kind.value,
            balance_before=balance_before,
            balance_after=balance_after,
            reference_id=reference_id,
            description=description,
            created_by=created_by,
        )
        self.db.add(txn)
        self.db.flush()
        return txn

    def get_by_id(self, transaction_id: UUID) -> WalletTransaction | None:
        """Get a wallet transaction by ID."""
        return (
            self.db.query(WalletTransaction).filter(WalletTransaction.id == transaction_id).first()
        )

    def get_by_user_id(
        self,
        user_id: UUID,
        skip: int = 0,
        limit: int = 100,
        kind: TransactionKind | None = None,
        direction: TransactionDirection | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> list[WalletTransaction]:
        """Get transactions for a user, newest first."""
        query = self.db.query(WalletTransaction).filter(WalletTransaction.user_id == user_id)
        if kind:
            query = query.filter(WalletTransaction.kind == kind.value)
        if direction:
            query = query.filter(WalletTransaction.direction == direction.value)
        if start_date:
            query = query.filter(WalletTransaction.created_at >= start_date)
        if end_date:
            query = query.filter(WalletTransaction.created_at <= end_date)

        return (
            query.order_by(WalletTransaction.sequence.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def get_by_reference(self, reference_id: str) -> list[WalletTransaction]:
        return (
            self.db.query(WalletTransaction)
            .filter(WalletTransaction.reference_id == reference_id)
            .order_by(WalletTransaction.created_at.asc(), WalletTransaction.sequence.asc())
            .all()
        )

    def get_reversal_of(self, transaction_id: UUID) -> WalletTransaction | None:
        """The adjustment row that reverses ``transaction_id``, if any."""
        return (
            self.db.query(WalletTransaction)
            .filter(
                WalletTransaction.kind == TransactionKind.ADJUSTMENT.value,
                WalletTransaction.reference_id == str(transaction_id),
            )
            .first()
        )

    def get_latest_for_user(self, user_id: UUID) -> WalletTransaction | None:
        """Get the most recent ledger row for a user."""
        return (
            self.db.query(WalletTransaction)
            .filter(WalletTransaction.user_id == user_id)
            .order_by(WalletTransaction.sequence.desc())
            .first()
        )

    def next_sequence(self, user_id: UUID) -> int:
        current = (
            self.db.query(func.max(WalletTransaction.sequence))
            .filter(WalletTransaction.user_id == user_id)
            .scalar()
        )
        return int(current or 0) + 1

    def totals(
        self, user_id: UUID, start_date: datetime | None = None
    ) -> tuple[Decimal, Decimal, int]:
        """Sum credits and debits for a user. Returns (credits, debits, count)."""
        credit_sum = func.coalesce(
            func.sum(
                case(
                    (
                        WalletTransaction.direction == TransactionDirection.CREDIT.value,
                        WalletTransaction.amount,
                    ),
                    else_=Decimal("0"),
                )
            ),
            Decimal("0"),
        )
        debit_sum = func.coalesce(
            func.sum(
                case(
                    (
                        WalletTransaction.direction == TransactionDirection.DEBIT.value,
                        WalletTransaction.amount,
                    ),
                    else_=Decimal("0"),
                )
            ),
            Decimal("0"),
        )
        query = self.db.query(
            credit_sum.label("credits"),
            debit_sum.label("debits"),
            func.count(WalletTransaction.id).label("count"),
        ).filter(WalletTransaction.user_id == user_id)
        if start_date:
            query = query.filter(WalletTransaction.created_at >= start_date)

        row = query.one()
        return Decimal(str(row.credits)), Decimal(str(row.debits)), int(row.count)
