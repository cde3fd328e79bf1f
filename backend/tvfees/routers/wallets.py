"""Wallet API endpoints."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from tvfees.core.auth import Principal, get_current_principal, require_roles
from tvfees.core.database import get_db
from tvfees.core.errors import PaymentCoreError, http_error
from tvfees.models.user import UserRole
from tvfees.models.wallet_transaction import (
    TransactionDirection,
    TransactionKind,
    WalletTransaction,
)
from tvfees.schemas.wallet_transaction import (
    LedgerVerificationResponse,
    PaymentSplitResponse,
    WalletBalanceResponse,
    WalletCreditRequest,
    WalletReversalRequest,
    WalletSummaryResponse,
    WalletTransactionResponse,
    WalletTransferRequest,
    WalletTransferResponse,
)
from tvfees.services.wallet_ledger import WalletLedger

router = APIRouter()


def _check_owner(principal: Principal, user_id: UUID) -> None:
    if not principal.is_staff and principal.user_id != user_id:
        raise HTTPException(status_code=403, detail="Cannot access another user's wallet")


@router.get(
    "/{user_id}",
    response_model=WalletBalanceResponse,
    summary="Get wallet balance",
    responses={403: {"description": "Not your wallet"}, 404: {"description": "User not found"}},
)
async def get_balance(
    user_id: UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> WalletBalanceResponse:
    _check_owner(principal, user_id)
    try:
        balance = WalletLedger(db).get_balance(user_id)
    except PaymentCoreError as e:
        raise http_error(e) from None
    return WalletBalanceResponse(user_id=user_id, balance=balance)


@router.get(
    "/{user_id}/transactions",
    response_model=list[WalletTransactionResponse],
    summary="List wallet transactions",
    responses={403: {"description": "Not your wallet"}, 404: {"description": "User not found"}},
)
async def list_transactions(
    user_id: UUID,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    kind: TransactionKind | None = None,
    direction: TransactionDirection | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> list[WalletTransaction]:
    """Ledger rows for a user, newest first."""
    _check_owner(principal, user_id)
    try:
        return WalletLedger(db).list_transactions(
            user_id,
            kind=kind,
            direction=direction,
            start_date=start_date,
            end_date=end_date,
            skip=skip,
            limit=limit,
        )
    except PaymentCoreError as e:
        raise http_error(e) from None


@router.get(
    "/{user_id}/summary",
    response_model=WalletSummaryResponse,
    summary="Wallet activity summary",
)
async def wallet_summary(
    user_id: UUID,
    days: int = Query(default=30, ge=1, le=3650),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> WalletSummaryResponse:
    _check_owner(principal, user_id)
    try:
        result = WalletLedger(db).summary(user_id, days=days)
    except PaymentCoreError as e:
        raise http_error(e) from None
    return WalletSummaryResponse(
        user_id=result.user_id,
        balance=result.balance,
        window_days=result.window_days,
        total_credits=result.total_credits,
        total_debits=result.total_debits,
        transaction_count=result.transaction_count,
        recent_transactions=[
            WalletTransactionResponse.model_validate(t) for t in result.recent_transactions
        ],
    )


@router.get(
    "/{user_id}/verify",
    response_model=LedgerVerificationResponse,
    summary="Verify cached balance against the ledger",
)
async def verify_wallet(
    user_id: UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles(UserRole.ADMIN)),
) -> LedgerVerificationResponse:
    try:
        result = WalletLedger(db).verify(user_id)
    except PaymentCoreError as e:
        raise http_error(e) from None
    return LedgerVerificationResponse(
        user_id=result.user_id,
        cached_balance=result.cached_balance,
        ledger_balance=result.ledger_balance,
        last_balance_after=result.last_balance_after,
        consistent=result.consistent,
    )


@router.get(
    "/{user_id}/payment-split",
    response_model=PaymentSplitResponse,
    summary="Plan how much of a total the wallet covers",
    responses={
        400: {"description": "Total must be positive"},
        403: {"description": "Not your wallet"},
        404: {"description": "User not found"},
    },
)
async def payment_split(
    user_id: UUID,
    total: Decimal = Query(gt=0),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> PaymentSplitResponse:
    """Wallet share, remainder and the suggested payment method for ``total``."""
    _check_owner(principal, user_id)
    try:
        plan = WalletLedger(db).plan_payment_split(user_id, total)
    except PaymentCoreError as e:
        raise http_error(e) from None
    return PaymentSplitResponse(
        total_amount=plan.total_amount,
        wallet_balance=plan.wallet_balance,
        wallet_amount=plan.wallet_amount,
        remaining_amount=plan.remaining_amount,
        can_pay_fully=plan.can_pay_fully,
        suggested_method=plan.suggested_method.value,
    )


@router.post(
    "/{user_id}/credit",
    response_model=WalletTransactionResponse,
    status_code=201,
    summary="Top up a wallet",
    responses={
        400: {"description": "Invalid amount or inactive user"},
        403: {"description": "Collector or admin role required"},
        404: {"description": "User not found"},
    },
)
async def credit_wallet(
    user_id: UUID,
    data: WalletCreditRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles(UserRole.COLLECTOR, UserRole.ADMIN)),
) -> WalletTransaction:
    """Record a top-up collected by staff."""
    try:
        return WalletLedger(db).credit(
            user_id,
            data.amount,
            reference=data.reference,
            description=data.description,
            actor=principal,
        )
    except PaymentCoreError as e:
        raise http_error(e) from None


@router.post(
    "/transfer",
    response_model=WalletTransferResponse,
    status_code=201,
    summary="Transfer between wallets",
    responses={
        400: {"description": "Invalid amount or same wallet"},
        402: {"description": "Insufficient funds in source wallet"},
        403: {"description": "Not your wallet"},
    },
)
async def transfer(
    data: WalletTransferRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> WalletTransferResponse:
    """Move funds between two wallets. Both legs commit or neither does."""
    if not principal.is_admin and principal.user_id != data.from_user_id:
        raise HTTPException(status_code=403, detail="Cannot transfer from another user's wallet")
    try:
        debit, credit = WalletLedger(db).transfer(
            data.from_user_id,
            data.to_user_id,
            data.amount,
            reference=data.reference,
            actor=principal,
        )
    except PaymentCoreError as e:
        raise http_error(e) from None
    return WalletTransferResponse(
        debit=WalletTransactionResponse.model_validate(debit),
        credit=WalletTransactionResponse.model_validate(credit),
    )


@router.post(
    "/transactions/{transaction_id}/reverse",
    response_model=WalletTransactionResponse,
    status_code=201,
    summary="Reverse a top-up or adjustment",
    responses={
        400: {"description": "Missing reason, kind not reversible or already reversed"},
        402: {"description": "Balance too low to take the credit back"},
        403: {"description": "Admin role required"},
        404: {"description": "Transaction not found"},
    },
)
async def reverse_transaction(
    transaction_id: UUID,
    data: WalletReversalRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles(UserRole.ADMIN)),
) -> WalletTransaction:
    """Write an offsetting adjustment that references the original row."""
    try:
        return WalletLedger(db).reverse(transaction_id, data.reason, actor=principal)
    except PaymentCoreError as e:
        raise http_error(e) from None
