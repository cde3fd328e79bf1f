"""Receipt and receipt-sequence repository for data access."""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from tvfees.models.receipt import Receipt, ReceiptSequence


class ReceiptRepository:
    """Repository for Receipt and ReceiptSequence models."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_payment_id(self, payment_id: UUID) -> Receipt | None:
        return self.db.query(Receipt).filter(Receipt.payment_id == payment_id).first()

    def get_by_number(self, receipt_number: str) -> Receipt | None:
        return self.db.query(Receipt).filter(Receipt.receipt_number == receipt_number).first()

    def get_by_user(self, user_id: UUID, skip: int = 0, limit: int = 100) -> list[Receipt]:
        """Receipts for a user, newest first."""
        return (
            self.db.query(Receipt)
            .filter(Receipt.user_id == user_id)
            .order_by(Receipt.service_year.desc(), Receipt.sequence_number.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def max_sequence(self, service_year: int) -> int:
        current = (
            self.db.query(func.max(Receipt.sequence_number))
            .filter(Receipt.service_year == service_year)
            .scalar()
        )
        return int(current or 0)

    def get_sequence_for_update(self, service_year: int) -> ReceiptSequence | None:
        return (
            self.db.query(ReceiptSequence)
            .filter(ReceiptSequence.service_year == service_year)
            .with_for_update()
            .first()
        )

    def create_sequence(self, service_year: int, last_value: int) -> ReceiptSequence:
        sequence = ReceiptSequence(service_year=service_year, last_value=last_value)
        self.db.add(sequence)
        self.db.flush()
        return sequence

    def increment_sequence(self, service_year: int) -> int:
        """Atomically bump the year's counter and return the new value."""
        self.db.execute(
            update(ReceiptSequence)
            .where(ReceiptSequence.service_year == service_year)
            .values(last_value=ReceiptSequence.last_value + 1)
            .execution_options(synchronize_session=False)
        )
        value = (
            self.db.query(ReceiptSequence.last_value)
            .filter(ReceiptSequence.service_year == service_year)
            .scalar()
        )
        return int(value)

    def create(
        self,
        *,
        payment_id: UUID,
        user_id: UUID,
        service_year: int,
        sequence_number: int,
        receipt_number: str,
        amount: Decimal,
        method: str,
    ) -> Receipt:
        receipt = Receipt(
            payment_id=payment_id,
            user_id=user_id,
            service_year=service_year,
            sequence_number=sequence_number,
            receipt_number=receipt_number,
            amount=amount,
            method=method,
        )
        self.db.add(receipt)
        self.db.flush()
        return receipt
