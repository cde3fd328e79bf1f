"""Tests for FeeQuoteService."""

import uuid
from decimal import Decimal

import pytest

from tests.conftest import make_user
from tvfees.core.errors import NotFoundError
from tvfees.models.payment import Payment, PaymentMethod, PaymentStatus
from tvfees.services.fee_quote_service import FeeQuoteService


def _payment(db, user, year, status):
    db.add(
        Payment(
            user_id=user.id,
            base_amount=Decimal("1000"),
            total_amount=Decimal("1000"),
            method=PaymentMethod.CASH.value,
            status=status.value,
            service_year=year,
        )
    )
    db.commit()


class TestFeeQuote:
    def test_new_subscriber_pays_base_and_wire(self, db_session):
        user = make_user(db_session, subscribed_since_year=2024)
        quote = FeeQuoteService(db_session).quote(user.id, 2024, wire_length_m=Decimal("10"))
        assert quote.overdue_years == 0
        assert quote.breakdown.base_amount == Decimal("1000.00")
        assert quote.breakdown.wire_surcharge == Decimal("50.00")
        assert quote.breakdown.total_amount == Decimal("1050.00")
        assert quote.has_approved_payment is False

    def test_unpaid_years_accrue_late_fee(self, db_session):
        user = make_user(db_session, subscribed_since_year=2021)
        _payment(db_session, user, 2022, PaymentStatus.APPROVED)
        _payment(db_session, user, 2023, PaymentStatus.REJECTED)

        quote = FeeQuoteService(db_session).quote(user.id, 2024)

        # 2021 and 2023 unpaid
        assert quote.overdue_years == 2
        assert quote.breakdown.late_fee == Decimal("200.00")
        assert quote.breakdown.total_amount == Decimal("1200.00")

    def test_reports_existing_approval(self, db_session):
        user = make_user(db_session, subscribed_since_year=2024)
        _payment(db_session, user, 2024, PaymentStatus.APPROVED)
        quote = FeeQuoteService(db_session).quote(user.id, 2024)
        assert quote.has_approved_payment is True

    def test_base_amount_override(self, db_session):
        user = make_user(db_session)
        quote = FeeQuoteService(db_session).quote(user.id, 2024, base_amount=Decimal("1500"))
        assert quote.breakdown.total_amount == Decimal("1500.00")

    def test_unknown_user(self, db_session):
        with pytest.raises(NotFoundError):
            FeeQuoteService(db_session).quote(uuid.uuid4(), 2024)
