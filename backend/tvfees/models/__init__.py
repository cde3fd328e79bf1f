from tvfees.models.audit_log import AuditLog
from tvfees.models.payment import Payment, PaymentMethod, PaymentStatus
from tvfees.models.payment_event import EventStatus, PaymentEvent
from tvfees.models.receipt import Receipt, ReceiptSequence
from tvfees.models.user import User, UserRole
from tvfees.models.wallet_transaction import (
    TransactionDirection,
    TransactionKind,
    WalletTransaction,
)

__all__ = [
    "AuditLog",
    "EventStatus",
    "Payment",
    "PaymentEvent",
    "PaymentMethod",
    "PaymentStatus",
    "Receipt",
    "ReceiptSequence",
    "TransactionDirection",
    "TransactionKind",
    "User",
    "UserRole",
    "WalletTransaction",
]
