"""Payment schemas."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from tvfees.models.payment import PaymentMethod


class PaymentIntentCreate(BaseModel):
    """Schema for creating a payment intent.

    Amount components are taken as given; use the fee quote endpoint to
    compute them from configured rates.
    """

    user_id: UUID
    method: PaymentMethod
    service_year: int = Field(ge=2000, le=2100)
    base_amount: Decimal = Field(ge=0)
    late_fee: Decimal = Field(default=Decimal("0"), ge=0)
    wire_surcharge: Decimal = Field(default=Decimal("0"), ge=0)
    extra_charges: Decimal = Field(default=Decimal("0"), ge=0)
    wallet_amount_used: Decimal | None = Field(default=None, ge=0)
    external_amount_paid: Decimal | None = Field(default=None, ge=0)
    external_transaction_ref: str | None = Field(default=None, max_length=64)
    proof_reference: str | None = None
    defer_wallet_debit: bool = False
    notes: str | None = Field(default=None, max_length=1000)


class ReadyForReviewRequest(BaseModel):
    external_transaction_ref: str = Field(min_length=1, max_length=64)
    proof_reference: str = Field(min_length=1)


class RejectPaymentRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=1000)


class CancelPaymentRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=1000)


class PaymentResponse(BaseModel):
    """Schema for payment response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    base_amount: Decimal
    late_fee: Decimal
    wire_surcharge: Decimal
    extra_charges: Decimal
    total_amount: Decimal
    currency: str
    method: str
    status: str
    service_year: int
    external_transaction_ref: str | None = None
    proof_reference: str | None = None
    wallet_amount_used: Decimal | None = None
    external_amount_paid: Decimal | None = None
    wallet_debit_applied: bool
    receipt_number: str | None = None
    resolved_at: datetime | None = None
    resolved_by: UUID | None = None
    rejection_reason: str | None = None
    notes: str | None = None
    created_by: UUID | None = None
    created_at: datetime
    updated_at: datetime


class RedirectResponse(BaseModel):
    """Launch details for the payment-app redirect channel."""

    deep_link: str
    intent_link: str
    launched: bool
    strategy: str | None = None
    message: str
    manual_instructions: str | None = None


class PaymentIntentResponse(BaseModel):
    payment: PaymentResponse
    redirect: RedirectResponse | None = None


class ReceiptResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    payment_id: UUID
    user_id: UUID
    service_year: int
    sequence_number: int
    receipt_number: str
    amount: Decimal
    method: str
    generated_at: datetime


class PaymentStatisticsResponse(BaseModel):
    service_year: int
    total_payments: int
    incomplete_payments: int
    pending_payments: int
    approved_payments: int
    rejected_payments: int
    approved_revenue: Decimal
    pending_amount: Decimal
    approval_rate: Decimal
