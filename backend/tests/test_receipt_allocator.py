"""Tests for ReceiptAllocator."""

from decimal import Decimal
from unittest.mock import patch

import pytest

from tvfees.core.errors import AllocationConflict, ValidationError
from tvfees.models.payment import Payment, PaymentMethod, PaymentStatus
from tvfees.models.receipt import ReceiptSequence
from tvfees.repositories.receipt_repository import ReceiptRepository
from tvfees.services.receipt_allocator import ReceiptAllocator, format_receipt_number


class TestFormat:
    def test_default_format(self):
        assert format_receipt_number(2024, 1) == "RCP2024001"

    def test_sequence_grows_past_width(self):
        assert format_receipt_number(2024, 1000) == "RCP20241000"

    def test_custom_prefix_and_width(self):
        assert format_receipt_number(2025, 7, prefix="TV", width=5) == "TV202500007"


class TestAllocate:
    def test_first_allocation_creates_sequence(self, db_session):
        allocated = ReceiptAllocator(db_session).allocate(2024)
        db_session.commit()

        assert allocated.sequence_number == 1
        assert allocated.receipt_number == "RCP2024001"
        row = db_session.get(ReceiptSequence, 2024)
        assert row.last_value == 1

    def test_allocations_strictly_increase(self, db_session):
        allocator = ReceiptAllocator(db_session)
        numbers = []
        for _ in range(5):
            numbers.append(allocator.allocate(2024).sequence_number)
            db_session.commit()
        assert numbers == [1, 2, 3, 4, 5]

    def test_years_are_independent(self, db_session):
        allocator = ReceiptAllocator(db_session)
        assert allocator.allocate(2024).receipt_number == "RCP2024001"
        assert allocator.allocate(2025).receipt_number == "RCP2025001"
        assert allocator.allocate(2024).receipt_number == "RCP2024002"

    def test_seeds_from_existing_receipts(self, db_session, user):
        payment = Payment(
            user_id=user.id,
            base_amount=Decimal("1000"),
            total_amount=Decimal("1000"),
            method=PaymentMethod.CASH.value,
            status=PaymentStatus.APPROVED.value,
            service_year=2023,
        )
        db_session.add(payment)
        db_session.flush()
        ReceiptRepository(db_session).create(
            payment_id=payment.id,
            user_id=user.id,
            service_year=2023,
            sequence_number=7,
            receipt_number="RCP2023007",
            amount=Decimal("1000"),
            method=PaymentMethod.CASH.value,
        )
        db_session.commit()

        assert ReceiptAllocator(db_session).allocate(2023).receipt_number == "RCP2023008"

    def test_racing_first_use_is_allocation_conflict(self, db_session):
        ReceiptRepository(db_session).create_sequence(2024, 0)
        db_session.commit()
        # The competing insert came from another session
        db_session.expunge_all()

        allocator = ReceiptAllocator(db_session)
        with patch.object(allocator.repo, "get_sequence_for_update", return_value=None):
            with pytest.raises(AllocationConflict) as exc_info:
                allocator.allocate(2024)
        db_session.rollback()

        assert exc_info.value.retryable is True
        assert exc_info.value.to_dict()["retryable"] is True

    def test_invalid_year(self, db_session):
        with pytest.raises(ValidationError):
            ReceiptAllocator(db_session).allocate(0)
