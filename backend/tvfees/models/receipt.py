"""Receipt and per-year receipt sequence models."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint, func

from tvfees.core.database import Base
from tvfees.models.shared import Money, UUIDType, generate_uuid


class ReceiptSequence(Base):
    """Last issued receipt sequence number for a service year."""

    __tablename__ = "receipt_sequences"

    service_year = Column(Integer, primary_key=True, autoincrement=False)
    last_value = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Receipt(Base):
    """Receipt issued when a payment is approved."""

    __tablename__ = "receipts"
    __table_args__ = (
        UniqueConstraint("service_year", "sequence_number", name="uq_receipts_year_sequence"),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    payment_id = Column(
        UUIDType,
        ForeignKey("payments.id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
    )
    user_id = Column(
        UUIDType, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    service_year = Column(Integer, nullable=False, index=True)
    sequence_number = Column(Integer, nullable=False)
    receipt_number = Column(String(32), nullable=False, unique=True)
    amount = Column(Money(), nullable=False)
    method = Column(String(20), nullable=False)

    generated_at = Column(DateTime(timezone=True), server_default=func.now())
