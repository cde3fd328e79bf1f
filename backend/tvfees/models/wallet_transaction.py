"""WalletTransaction model: the append-only prepaid balance ledger."""

from enum import Enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    func,
)

from tvfees.core.database import Base
from tvfees.models.shared import Money, UUIDType, generate_uuid


class TransactionDirection(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class TransactionKind(str, Enum):
    TOP_UP = "top_up"
    PAYMENT = "payment"
    REFUND = "refund"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"
    ADJUSTMENT = "adjustment"


class WalletTransaction(Base):
    """One immutable balance movement. Corrections are new offsetting rows."""

    __tablename__ = "wallet_transactions"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_wallet_transactions_amount_positive"),
        CheckConstraint("balance_after >= 0", name="ck_wallet_transactions_balance_after"),
        UniqueConstraint("user_id", "sequence", name="uq_wallet_transactions_user_sequence"),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    user_id = Column(
        UUIDType, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    sequence = Column(Integer, nullable=False)
    amount = Column(Money(), nullable=False)
    direction = Column(String(10), nullable=False)
    kind = Column(String(20), nullable=False)
    balance_before = Column(Money(), nullable=False)
    balance_after = Column(Money(), nullable=False)
    reference_id = Column(String(255), nullable=True, index=True)
    description = Column(String(255), nullable=True)
    created_by = Column(UUIDType, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
