"""Fee calculation schemas."""

from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field


class FeeCalculationRequest(BaseModel):
    base_amount: Decimal
    wire_length_m: Decimal = Decimal("0")
    wire_rate_per_m: Decimal = Decimal("0")
    late_fee_percent: Decimal = Decimal("0")
    overdue_years: int = 0
    extra_charges: Decimal = Decimal("0")


class FeeBreakdownResponse(BaseModel):
    base_amount: Decimal
    wire_surcharge: Decimal
    late_fee: Decimal
    extra_charges: Decimal
    total_amount: Decimal


class FeeQuoteResponse(FeeBreakdownResponse):
    user_id: UUID
    service_year: int
    overdue_years: int
    wire_length_m: Decimal
    wire_rate_per_m: Decimal
    late_fee_percent: Decimal
    has_approved_payment: bool = Field(
        description="Whether the user already has an approved payment for this service year"
    )
