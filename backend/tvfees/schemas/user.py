"""User schemas."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from tvfees.models.user import UserRole


class UserCreate(BaseModel):
    id: UUID | None = None
    name: str = Field(min_length=1, max_length=255)
    phone: str | None = Field(default=None, max_length=20)
    role: UserRole = UserRole.USER
    subscribed_since_year: int | None = Field(default=None, ge=2000, le=2100)


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    phone: str | None = None
    role: str
    wallet_balance: Decimal
    is_active: bool
    subscribed_since_year: int | None = None
    created_at: datetime
