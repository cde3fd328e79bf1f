from tvfees.repositories.audit_log_repository import AuditLogRepository
from tvfees.repositories.payment_event_repository import PaymentEventRepository
from tvfees.repositories.payment_repository import PaymentRepository
from tvfees.repositories.receipt_repository import ReceiptRepository
from tvfees.repositories.user_repository import UserRepository
from tvfees.repositories.wallet_transaction_repository import WalletTransactionRepository

__all__ = [
    "AuditLogRepository",
    "PaymentEventRepository",
    "PaymentRepository",
    "ReceiptRepository",
    "UserRepository",
    "WalletTransactionRepository",
]
