"""User repository for data access."""

from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from tvfees.models.user import User
from tvfees.schemas.user import UserCreate


class UserRepository:
    """Repository for User model."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, user_id: UUID) -> User | None:
        """Get a user by ID."""
        return self.db.query(User).filter(User.id == user_id).first()

    def get_for_update(self, user_id: UUID) -> User | None:
        """Get a user by ID, locking the row until the transaction ends."""
        return (
            self.db.query(User)
            .filter(User.id == user_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    def get_many_for_update(self, user_ids: list[UUID]) -> dict[UUID, User]:
        """Lock several users in a stable id order so concurrent transfers cannot deadlock."""
        locked: dict[UUID, User] = {}
        for user_id in sorted(set(user_ids), key=str):
            user = self.get_for_update(user_id)
            if user is not None:
                locked[user_id] = user
        return locked

    def get_by_phone(self, phone: str) -> User | None:
        return self.db.query(User).filter(User.phone == phone).first()

    def create(self, data: UserCreate) -> User:
        """Create a new user with an empty wallet."""
        user = User(
            name=data.name,
            phone=data.phone,
            role=data.role.value,
            subscribed_since_year=data.subscribed_since_year,
            wallet_balance=Decimal("0"),
        )
        if data.id is not None:
            user.id = data.id  # type: ignore[assignment]
        self.db.add(user)
        self.db.flush()
        return user

    def set_wallet_balance(self, user: User, balance: Decimal) -> None:
        """Overwrite the cached balance. Only the wallet ledger may call this."""
        user.wallet_balance = balance  # type: ignore[assignment]
        self.db.flush()
