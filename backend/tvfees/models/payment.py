"""Payment model: one subscription fee payment and its approval lifecycle."""

from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, func

from tvfees.core.database import Base
from tvfees.models.shared import Money, UUIDType, generate_uuid, utc_now


class PaymentStatus(str, Enum):
    """Payment status enum."""

    INCOMPLETE = "incomplete"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PaymentMethod(str, Enum):
    """Channels a payment can arrive through."""

    EXTERNAL_REDIRECT = "external_redirect"
    CASH = "cash"
    WALLET = "wallet"
    COMBINED = "combined"


class Payment(Base):
    """Payment model - tracks a fee payment from intent to approval or rejection."""

    __tablename__ = "payments"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    user_id = Column(
        UUIDType, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )

    # Amounts
    base_amount = Column(Money(), nullable=False, default=0)
    late_fee = Column(Money(), nullable=False, default=0)
    wire_surcharge = Column(Money(), nullable=False, default=0)
    extra_charges = Column(Money(), nullable=False, default=0)
    total_amount = Column(Money(), nullable=False)
    currency = Column(String(3), nullable=False, default="INR")

    method = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default=PaymentStatus.INCOMPLETE.value, index=True)
    service_year = Column(Integer, nullable=False, index=True)

    # Channel details
    external_transaction_ref = Column(String(64), nullable=True, index=True)
    proof_reference = Column(Text, nullable=True)
    wallet_amount_used = Column(Money(), nullable=True)
    external_amount_paid = Column(Money(), nullable=True)
    wallet_debit_applied = Column(Boolean, nullable=False, default=False)
    wallet_transaction_id = Column(
        UUIDType, ForeignKey("wallet_transactions.id", ondelete="RESTRICT"), nullable=True
    )

    # Resolution
    receipt_number = Column(String(32), nullable=True, unique=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    resolved_by = Column(UUIDType, nullable=True)
    rejection_reason = Column(Text, nullable=True)

    notes = Column(Text, nullable=True)
    created_by = Column(UUIDType, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
