"""Payment API endpoints."""

from dataclasses import asdict
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tvfees.core.auth import Principal, get_current_principal, require_roles
from tvfees.core.database import get_db
from tvfees.core.errors import PaymentCoreError, http_error
from tvfees.models.payment import Payment, PaymentMethod, PaymentStatus
from tvfees.models.receipt import Receipt
from tvfees.models.user import UserRole
from tvfees.schemas.payment import (
    CancelPaymentRequest,
    PaymentIntentCreate,
    PaymentIntentResponse,
    PaymentResponse,
    PaymentStatisticsResponse,
    ReadyForReviewRequest,
    ReceiptResponse,
    RedirectResponse,
    RejectPaymentRequest,
)
from tvfees.services.payment_service import PaymentService

router = APIRouter()


@router.post(
    "/",
    response_model=PaymentIntentResponse,
    status_code=201,
    summary="Create payment intent",
    responses={
        400: {"description": "Invalid amounts, split or duplicate payment"},
        402: {"description": "Insufficient wallet balance"},
        403: {"description": "Role not allowed for this method"},
        404: {"description": "User not found"},
    },
)
async def create_payment(
    data: PaymentIntentCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> PaymentIntentResponse:
    """Create a payment. Redirect payments return the deep link to open on the device."""
    try:
        result = PaymentService(db).create_intent(data, principal)
    except PaymentCoreError as e:
        raise http_error(e) from None

    redirect = None
    if result.redirect is not None:
        redirect = RedirectResponse(
            deep_link=result.redirect.deep_link,
            intent_link=result.redirect.intent_link,
            launched=result.redirect.launched,
            strategy=result.redirect.strategy,
            message=result.redirect.message,
            manual_instructions=result.redirect.manual_instructions,
        )
    return PaymentIntentResponse(
        payment=PaymentResponse.model_validate(result.payment), redirect=redirect
    )


@router.get(
    "/",
    response_model=list[PaymentResponse],
    summary="List payments",
)
async def list_payments(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    status: PaymentStatus | None = None,
    method: PaymentMethod | None = None,
    service_year: int | None = None,
    user_id: UUID | None = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> list[Payment]:
    try:
        return PaymentService(db).list_payments(
            principal,
            status=status,
            method=method,
            service_year=service_year,
            user_id=user_id,
            skip=skip,
            limit=limit,
        )
    except PaymentCoreError as e:
        raise http_error(e) from None


@router.get(
    "/review-queue",
    response_model=list[PaymentResponse],
    summary="Pending payments awaiting review",
)
async def review_queue(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles(UserRole.COLLECTOR, UserRole.ADMIN)),
) -> list[Payment]:
    """PENDING payments, oldest first."""
    try:
        return PaymentService(db).review_queue(principal, skip=skip, limit=limit)
    except PaymentCoreError as e:
        raise http_error(e) from None


@router.get(
    "/statistics",
    response_model=PaymentStatisticsResponse,
    summary="Payment statistics for a service year",
)
async def statistics(
    service_year: int = Query(ge=2000, le=2100),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles(UserRole.COLLECTOR, UserRole.ADMIN)),
) -> PaymentStatisticsResponse:
    try:
        stats = PaymentService(db).statistics(service_year, principal)
    except PaymentCoreError as e:
        raise http_error(e) from None
    return PaymentStatisticsResponse(**asdict(stats))


@router.get(
    "/{payment_id}",
    response_model=PaymentResponse,
    summary="Get payment",
    responses={403: {"description": "Not your payment"}, 404: {"description": "Not found"}},
)
async def get_payment(
    payment_id: UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Payment:
    try:
        return PaymentService(db).get(payment_id, principal)
    except PaymentCoreError as e:
        raise http_error(e) from None


@router.post(
    "/{payment_id}/ready-for-review",
    response_model=PaymentResponse,
    summary="Submit transaction reference and proof",
    responses={
        400: {"description": "Malformed transaction reference or missing proof"},
        409: {"description": "Payment is not INCOMPLETE"},
    },
)
async def ready_for_review(
    payment_id: UUID,
    data: ReadyForReviewRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Payment:
    try:
        return PaymentService(db).mark_ready_for_review(
            payment_id, data.external_transaction_ref, data.proof_reference, principal
        )
    except PaymentCoreError as e:
        raise http_error(e) from None


@router.post(
    "/{payment_id}/approve",
    response_model=PaymentResponse,
    summary="Approve payment",
    responses={
        402: {"description": "Deferred wallet debit could not be applied"},
        403: {"description": "Admin role required"},
        409: {"description": "Payment is not PENDING, or receipt allocation raced"},
    },
)
async def approve_payment(
    payment_id: UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles(UserRole.ADMIN)),
) -> Payment:
    try:
        return PaymentService(db).approve(payment_id, principal)
    except PaymentCoreError as e:
        raise http_error(e) from None


@router.post(
    "/{payment_id}/reject",
    response_model=PaymentResponse,
    summary="Reject payment",
    responses={
        403: {"description": "Admin role required"},
        409: {"description": "Payment is not PENDING"},
    },
)
async def reject_payment(
    payment_id: UUID,
    data: RejectPaymentRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles(UserRole.ADMIN)),
) -> Payment:
    try:
        return PaymentService(db).reject(payment_id, principal, data.reason)
    except PaymentCoreError as e:
        raise http_error(e) from None


@router.post(
    "/{payment_id}/cancel",
    response_model=PaymentResponse,
    summary="Cancel an abandoned payment",
    responses={
        403: {"description": "Not your payment"},
        409: {"description": "Payment is not INCOMPLETE"},
    },
)
async def cancel_payment(
    payment_id: UUID,
    data: CancelPaymentRequest | None = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Payment:
    """Close an INCOMPLETE payment so the service year can be paid another way."""
    try:
        return PaymentService(db).cancel(
            payment_id, principal, data.reason if data is not None else None
        )
    except PaymentCoreError as e:
        raise http_error(e) from None


@router.get(
    "/{payment_id}/receipt",
    response_model=ReceiptResponse,
    summary="Get receipt for an approved payment",
)
async def get_receipt(
    payment_id: UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Receipt:
    try:
        return PaymentService(db).get_receipt(payment_id, principal)
    except PaymentCoreError as e:
        raise http_error(e) from None
