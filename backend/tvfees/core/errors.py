"""Typed errors raised by the fee, ledger, receipt and payment services.

Every error carries a ``kind`` and a ``context`` dict so callers can build
user-facing messages without parsing strings.
"""

from typing import Any

from fastapi import HTTPException


class PaymentCoreError(Exception):
    kind = "error"
    retryable = False

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        detail: dict[str, Any] = {
            "kind": self.kind,
            "message": self.message,
            "context": {k: str(v) for k, v in self.context.items()},
        }
        if self.retryable:
            detail["retryable"] = True
        return detail


class ValidationError(PaymentCoreError):
    """Malformed input, rejected before any write."""

    kind = "validation_error"


class NotFoundError(PaymentCoreError):
    kind = "not_found"


class PermissionDenied(PaymentCoreError):
    kind = "permission_denied"


class InsufficientFunds(PaymentCoreError):
    """Wallet debit refused; nothing was written."""

    kind = "insufficient_funds"


class InvalidStateTransition(PaymentCoreError):
    kind = "invalid_state_transition"


class AllocationConflict(PaymentCoreError):
    """Two approvals raced for the same receipt slot."""

    kind = "allocation_conflict"
    retryable = True


class ExternalRedirectUnavailable(PaymentCoreError):
    """Every launch strategy failed; the caller degrades to manual instructions."""

    kind = "external_redirect_unavailable"


STATUS_CODES: dict[type[PaymentCoreError], int] = {
    ValidationError: 400,
    InsufficientFunds: 402,
    PermissionDenied: 403,
    NotFoundError: 404,
    InvalidStateTransition: 409,
    AllocationConflict: 409,
    ExternalRedirectUnavailable: 503,
}


def http_error(exc: PaymentCoreError) -> HTTPException:
    """Translate a core error into the HTTP error routers raise."""
    status_code = next(
        (code for cls, code in STATUS_CODES.items() if isinstance(exc, cls)),
        500,
    )
    return HTTPException(status_code=status_code, detail=exc.to_dict())
