"""Receipt lookup endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tvfees.core.auth import Principal, get_current_principal
from tvfees.core.database import get_db
from tvfees.core.errors import PaymentCoreError, http_error
from tvfees.models.receipt import Receipt
from tvfees.schemas.payment import ReceiptResponse
from tvfees.services.payment_service import PaymentService

router = APIRouter()


@router.get(
    "/",
    response_model=list[ReceiptResponse],
    summary="List receipts for a user",
    responses={403: {"description": "Not your receipts"}},
)
async def list_receipts(
    user_id: UUID | None = None,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> list[Receipt]:
    """Newest first. Without ``user_id`` the caller's own receipts are listed."""
    try:
        return PaymentService(db).list_receipts(principal, user_id=user_id, skip=skip, limit=limit)
    except PaymentCoreError as e:
        raise http_error(e) from None


@router.get(
    "/{receipt_number}",
    response_model=ReceiptResponse,
    summary="Look up a receipt by number",
    responses={403: {"description": "Not your receipt"}, 404: {"description": "Not found"}},
)
async def get_receipt(
    receipt_number: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Receipt:
    try:
        return PaymentService(db).get_receipt_by_number(receipt_number, principal)
    except PaymentCoreError as e:
        raise http_error(e) from None
