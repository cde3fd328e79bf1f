"""Fee quotes built from configured rates and the user's payment history."""

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from tvfees.core.config import settings
from tvfees.core.errors import NotFoundError, ValidationError
from tvfees.repositories.payment_repository import PaymentRepository
from tvfees.repositories.user_repository import UserRepository
from tvfees.services.fee_calculator import FeeBreakdown, FeeInput, calculate_fee


@dataclass(frozen=True)
class FeeQuote:
    user_id: UUID
    service_year: int
    overdue_years: int
    wire_length_m: Decimal
    wire_rate_per_m: Decimal
    late_fee_percent: Decimal
    has_approved_payment: bool
    breakdown: FeeBreakdown


class FeeQuoteService:
    def __init__(self, db: Session):
        self.user_repo = UserRepository(db)
        self.payment_repo = PaymentRepository(db)

    def overdue_years(self, user_id: UUID, subscribed_since: int | None, service_year: int) -> int:
        """Years before ``service_year`` since subscription start with no approved payment."""
        if subscribed_since is None or subscribed_since >= service_year:
            return 0
        paid = self.payment_repo.get_approved_years(user_id, subscribed_since, service_year)
        return (service_year - subscribed_since) - len(paid)

    def quote(
        self,
        user_id: UUID,
        service_year: int,
        wire_length_m: Decimal = Decimal("0"),
        extra_charges: Decimal = Decimal("0"),
        base_amount: Decimal | None = None,
    ) -> FeeQuote:
        user = self.user_repo.get_by_id(user_id)
        if not user:
            raise NotFoundError("User not found", user_id=user_id)
        if not user.is_active:
            raise ValidationError("User is not active", user_id=user_id)

        overdue = self.overdue_years(
            user_id, user.subscribed_since_year, service_year  # type: ignore[arg-type]
        )
        breakdown = calculate_fee(
            FeeInput(
                base_amount=settings.DEFAULT_YEARLY_FEE if base_amount is None else base_amount,
                wire_length_m=wire_length_m,
                wire_rate_per_m=settings.WIRE_CHARGE_PER_METER,
                late_fee_percent=settings.LATE_FEE_PERCENT,
                overdue_years=overdue,
                extra_charges=extra_charges,
            )
        )
        already_paid = bool(
            self.payment_repo.get_approved_years(user_id, service_year, service_year + 1)
        )
        return FeeQuote(
            user_id=user_id,
            service_year=service_year,
            overdue_years=overdue,
            wire_length_m=wire_length_m,
            wire_rate_per_m=settings.WIRE_CHARGE_PER_METER,
            late_fee_percent=settings.LATE_FEE_PERCENT,
            has_approved_payment=already_paid,
            breakdown=breakdown,
        )
