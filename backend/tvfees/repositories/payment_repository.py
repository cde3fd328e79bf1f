"""Payment repository for data access."""

from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from tvfees.models.payment import Payment, PaymentMethod, PaymentStatus


class PaymentRepository:
    """Repository for Payment model."""

    def __init__(self, db: Session):
        self.db = db

    def get_all(
        self,
        skip: int = 0,
        limit: int = 100,
        user_id: UUID | None = None,
        status: PaymentStatus | None = None,
        method: PaymentMethod | None = None,
        service_year: int | None = None,
    ) -> list[Payment]:
        """Get all payments with optional filters, newest first."""
        query = self.db.query(Payment)

        if user_id:
            query = query.filter(Payment.user_id == user_id)
        if status:
            query = query.filter(Payment.status == status.value)
        if method:
            query = query.filter(Payment.method == method.value)
        if service_year:
            query = query.filter(Payment.service_year == service_year)

        return query.order_by(Payment.created_at.desc()).offset(skip).limit(limit).all()

    def get_review_queue(self, skip: int = 0, limit: int = 100) -> list[Payment]:
        """PENDING payments, oldest first. INCOMPLETE payments are never listed."""
        return (
            self.db.query(Payment)
            .filter(Payment.status == PaymentStatus.PENDING.value)
            .order_by(Payment.created_at.asc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def get_by_id(self, payment_id: UUID) -> Payment | None:
        """Get a payment by ID."""
        return self.db.query(Payment).filter(Payment.id == payment_id).first()

    def get_for_update(self, payment_id: UUID) -> Payment | None:
        return (
            self.db.query(Payment)
            .filter(Payment.id == payment_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    def has_open_payment(
        self, user_id: UUID, service_year: int, exclude_id: UUID | None = None
    ) -> bool:
        """Whether the service year already has a PENDING or APPROVED payment.

        INCOMPLETE payments do not count; an abandoned redirect never blocks
        the year.
        """
        query = self.db.query(Payment.id).filter(
            Payment.user_id == user_id,
            Payment.service_year == service_year,
            Payment.status.in_([PaymentStatus.PENDING.value, PaymentStatus.APPROVED.value]),
        )
        if exclude_id is not None:
            query = query.filter(Payment.id != exclude_id)
        return query.first() is not None

    def get_approved_years(self, user_id: UUID, start_year: int, end_year: int) -> set[int]:
        """Service years in [start_year, end_year) with an approved payment."""
        rows = (
            self.db.query(Payment.service_year)
            .filter(
                Payment.user_id == user_id,
                Payment.status == PaymentStatus.APPROVED.value,
                Payment.service_year >= start_year,
                Payment.service_year < end_year,
            )
            .distinct()
            .all()
        )
        return {int(row.service_year) for row in rows}

    def create(self, **values: Any) -> Payment:
        """Create a new payment."""
        payment = Payment(**values)
        self.db.add(payment)
        self.db.flush()
        return payment

    def transition(
        self,
        payment_id: UUID,
        from_status: PaymentStatus,
        to_status: PaymentStatus,
        **values: Any,
    ) -> bool:
        """Conditionally move a payment between states.

        Issues ``UPDATE ... WHERE id = :id AND status = :from_status`` so two
        concurrent resolvers cannot both succeed. Returns False when no row
        matched.
        """
        result = self.db.execute(
            update(Payment)
            .where(Payment.id == payment_id, Payment.status == from_status.value)
            .values(status=to_status.value, **values)
            .execution_options(synchronize_session=False)
        )
        self.db.flush()
        return result.rowcount == 1  # type: ignore[attr-defined]

    def set_fields(self, payment_id: UUID, **values: Any) -> None:
        self.db.execute(
            update(Payment)
            .where(Payment.id == payment_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        self.db.flush()

    def refresh(self, payment: Payment) -> Payment:
        self.db.refresh(payment)
        return payment

    def status_totals(self, service_year: int) -> dict[str, tuple[int, Decimal]]:
        """Count and amount of payments per status for a service year."""
        rows = (
            self.db.query(
                Payment.status,
                func.count(Payment.id).label("count"),
                func.coalesce(func.sum(Payment.total_amount), Decimal("0")).label("amount"),
            )
            .filter(Payment.service_year == service_year)
            .group_by(Payment.status)
            .all()
        )
        return {str(row.status): (int(row.count), Decimal(str(row.amount))) for row in rows}
