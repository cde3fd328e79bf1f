"""WalletTransaction schemas."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class WalletCreditRequest(BaseModel):
    amount: Decimal = Field(gt=0)
    reference: str | None = Field(default=None, max_length=255)
    description: str = Field(default="Wallet top-up", max_length=255)


class WalletTransferRequest(BaseModel):
    from_user_id: UUID
    to_user_id: UUID
    amount: Decimal = Field(gt=0)
    reference: str | None = Field(default=None, max_length=255)


class WalletTransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    amount: Decimal
    direction: str
    kind: str
    balance_before: Decimal
    balance_after: Decimal
    reference_id: str | None = None
    description: str | None = None
    created_by: UUID | None = None
    created_at: datetime


class WalletTransferResponse(BaseModel):
    debit: WalletTransactionResponse
    credit: WalletTransactionResponse


class WalletBalanceResponse(BaseModel):
    user_id: UUID
    balance: Decimal


class WalletSummaryResponse(BaseModel):
    user_id: UUID
    balance: Decimal
    window_days: int
    total_credits: Decimal
    total_debits: Decimal
    transaction_count: int
    recent_transactions: list[WalletTransactionResponse]


class LedgerVerificationResponse(BaseModel):
    user_id: UUID
    cached_balance: Decimal
    ledger_balance: Decimal
    last_balance_after: Decimal
    consistent: bool


class WalletReversalRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=255)


class PaymentSplitResponse(BaseModel):
    total_amount: Decimal
    wallet_balance: Decimal
    wallet_amount: Decimal
    remaining_amount: Decimal
    can_pay_fully: bool
    suggested_method: str
