"""Year-scoped sequential receipt numbers."""

import logging
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tvfees.core.config import settings
from tvfees.core.errors import AllocationConflict, ValidationError
from tvfees.repositories.receipt_repository import ReceiptRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AllocatedReceiptNumber:
    service_year: int
    sequence_number: int
    receipt_number: str


def format_receipt_number(
    service_year: int,
    sequence_number: int,
    prefix: str | None = None,
    width: int | None = None,
) -> str:
    """``RCP2024001`` for year 2024, sequence 1 with the default prefix and width."""
    prefix = settings.RECEIPT_PREFIX if prefix is None else prefix
    width = settings.RECEIPT_SEQUENCE_WIDTH if width is None else width
    return f"{prefix}{service_year}{sequence_number:0{width}d}"


class ReceiptAllocator:
    """Issues receipt numbers inside the caller's approval transaction.

    The per-year ``receipt_sequences`` row is locked and bumped with a single
    UPDATE, so concurrent approvals in the same year serialize on it and get
    strictly increasing numbers in commit order.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = ReceiptRepository(db)

    def allocate(self, service_year: int) -> AllocatedReceiptNumber:
        if service_year <= 0:
            raise ValidationError("Invalid service year", service_year=service_year)

        try:
            if self.repo.get_sequence_for_update(service_year) is None:
                # First receipt of the year: seed from whatever already exists.
                self.repo.create_sequence(service_year, self.repo.max_sequence(service_year))
            sequence_number = self.repo.increment_sequence(service_year)
        except IntegrityError as exc:
            logger.warning("Receipt sequence race for year %s: %s", service_year, exc.orig)
            raise AllocationConflict(
                "Receipt number allocation raced with another approval",
                service_year=service_year,
            ) from exc

        return AllocatedReceiptNumber(
            service_year=service_year,
            sequence_number=sequence_number,
            receipt_number=format_receipt_number(service_year, sequence_number),
        )
