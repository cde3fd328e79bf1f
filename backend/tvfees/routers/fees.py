"""Fee calculation API endpoints."""

from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from tvfees.core.auth import Principal, get_current_principal
from tvfees.core.database import get_db
from tvfees.core.errors import PaymentCoreError, http_error
from tvfees.schemas.fee import FeeBreakdownResponse, FeeCalculationRequest, FeeQuoteResponse
from tvfees.services.fee_calculator import FeeBreakdown, FeeInput, calculate_fee
from tvfees.services.fee_quote_service import FeeQuoteService

router = APIRouter()


def _breakdown(breakdown: FeeBreakdown) -> dict[str, Decimal]:
    return {
        "base_amount": breakdown.base_amount,
        "wire_surcharge": breakdown.wire_surcharge,
        "late_fee": breakdown.late_fee,
        "extra_charges": breakdown.extra_charges,
        "total_amount": breakdown.total_amount,
    }


@router.post(
    "/calculate",
    response_model=FeeBreakdownResponse,
    summary="Calculate fee",
    responses={
        400: {"description": "Negative or malformed fee input"},
        401: {"description": "Missing or invalid token"},
    },
)
async def calculate(
    data: FeeCalculationRequest,
    principal: Principal = Depends(get_current_principal),
) -> FeeBreakdownResponse:
    """Compute a fee breakdown from explicit rates."""
    try:
        breakdown = calculate_fee(FeeInput(**data.model_dump()))
    except PaymentCoreError as e:
        raise http_error(e) from None
    return FeeBreakdownResponse(**_breakdown(breakdown))


@router.get(
    "/quote/{user_id}",
    response_model=FeeQuoteResponse,
    summary="Quote a user's fee",
    responses={
        401: {"description": "Missing or invalid token"},
        403: {"description": "Quote for another user"},
        404: {"description": "User not found"},
    },
)
async def quote(
    user_id: UUID,
    service_year: int = Query(ge=2000, le=2100),
    wire_length_m: Decimal = Query(default=Decimal("0"), ge=0),
    extra_charges: Decimal = Query(default=Decimal("0"), ge=0),
    base_amount: Decimal | None = Query(default=None, ge=0),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> FeeQuoteResponse:
    """Quote the amount due using configured rates and overdue history."""
    if not principal.is_staff and principal.user_id != user_id:
        raise HTTPException(status_code=403, detail="Cannot quote fees for another user")

    try:
        result = FeeQuoteService(db).quote(
            user_id,
            service_year,
            wire_length_m=wire_length_m,
            extra_charges=extra_charges,
            base_amount=base_amount,
        )
    except PaymentCoreError as e:
        raise http_error(e) from None

    return FeeQuoteResponse(
        **_breakdown(result.breakdown),
        user_id=result.user_id,
        service_year=result.service_year,
        overdue_years=result.overdue_years,
        wire_length_m=result.wire_length_m,
        wire_rate_per_m=result.wire_rate_per_m,
        late_fee_percent=result.late_fee_percent,
        has_approved_payment=result.has_approved_payment,
    )
