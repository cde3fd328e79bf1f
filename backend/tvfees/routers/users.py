"""User API endpoints.

Identity lives with the external provider; these endpoints only register
ledger owners and expose their wallet cache.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from tvfees.core.auth import Principal, get_current_principal, require_roles
from tvfees.core.database import atomic, get_db
from tvfees.models.user import User, UserRole
from tvfees.repositories.user_repository import UserRepository
from tvfees.schemas.user import UserCreate, UserResponse

router = APIRouter()


@router.post(
    "/",
    response_model=UserResponse,
    status_code=201,
    summary="Register user",
    responses={
        400: {"description": "Phone number already registered"},
        403: {"description": "Admin role required"},
    },
)
async def create_user(
    data: UserCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles(UserRole.ADMIN)),
) -> User:
    """Register a user with an empty wallet."""
    repo = UserRepository(db)
    if data.phone and repo.get_by_phone(data.phone):
        raise HTTPException(status_code=400, detail="Phone number already registered")
    if data.id and repo.get_by_id(data.id):
        raise HTTPException(status_code=400, detail="User already exists")
    with atomic(db):
        user = repo.create(data)
    return user


@router.get(
    "/{user_id}",
    response_model=UserResponse,
    summary="Get user",
    responses={
        403: {"description": "Not your account"},
        404: {"description": "User not found"},
    },
)
async def get_user(
    user_id: UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> User:
    if not principal.is_staff and principal.user_id != user_id:
        raise HTTPException(status_code=403, detail="Cannot view another user")
    user = UserRepository(db).get_by_id(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user
