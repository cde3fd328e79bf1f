"""User model: the wallet owner and payer."""

from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, Integer, String, func

from tvfees.core.database import Base
from tvfees.models.shared import Money, UUIDType, generate_uuid


class UserRole(str, Enum):
    USER = "user"
    COLLECTOR = "collector"
    ADMIN = "admin"


class User(Base):
    """User model.

    ``wallet_balance`` is a read cache of the ledger; only the wallet ledger
    service writes it, in the same transaction as the ledger row.
    """

    __tablename__ = "users"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=True, unique=True)
    role = Column(String(20), nullable=False, default=UserRole.USER.value)
    wallet_balance = Column(Money(), nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    subscribed_since_year = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
