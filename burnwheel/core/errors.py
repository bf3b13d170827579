"""Error Hierarchy — typed, categorized exceptions for all Burnwheel failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Admission errors (400/409) never mutate state; they are safe to return immediately
    - Transient external errors (503) carry retry_after_ms so callers can retry
    - to_response() produces the REST envelope; no internal details leaked

Design Decisions:
    - Single hierarchy with BurnwheelError base: FastAPI global handler catches all (ADR: uniform error shape)
    - AdmissionError subclasses map 1:1 to client-facing reasons (duplicate, not found, ...)
    - Buyback errors are ordinary exceptions in the hierarchy but never reach HTTP:
      the round engine logs them (ADR: buyback is best-effort relative to payout)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    BUSINESS_RULE = "business_rule"
    RESOURCE_NOT_FOUND = "resource_not_found"
    DATABASE = "database"
    EXTERNAL_API = "external_api"
    INTERNAL = "internal"
    CONFLICT = "conflict"
    TIMEOUT = "timeout"
    AUTHORIZATION = "authorization"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    round_id: str | None = None
    reference: str | None = None
    user_message: str | None = None
    debug_info: dict[str, Any] | None = None
    retry_after_ms: int | None = None


class BurnwheelError(Exception):
    """Base exception for all Burnwheel errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "round_id": self.context.round_id,
                    "reference": self.context.reference,
                    "retry_after_ms": self.context.retry_after_ms,
                },
            }
        }


# ─── Admission Errors (400/409) ─────────────────────────────────

class AdmissionError(BurnwheelError):
    """Contribution could not be admitted. Nothing was mutated."""


class DuplicateReferenceError(AdmissionError):
    """Payment reference was already admitted (replay guard hit)."""
    def __init__(self, reference: str, context: ErrorContext | None = None):
        super().__init__(
            "Payment reference already processed",
            "DUPLICATE_REFERENCE", ErrorCategory.CONFLICT,
            ErrorSeverity.WARNING, context, 409,
        )
        self.reference = reference


class PaymentNotFoundError(AdmissionError):
    """Payment not found or not yet confirmed — caller may retry later."""
    def __init__(self, reference: str, context: ErrorContext | None = None):
        super().__init__(
            "Payment not found / not confirmed yet",
            "PAYMENT_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.WARNING, context, 400,
        )
        self.reference = reference


class PaymentFailedError(AdmissionError):
    """Payment settled with an on-ledger error."""
    def __init__(self, reference: str, context: ErrorContext | None = None):
        super().__init__(
            "Payment failed on ledger",
            "PAYMENT_FAILED", ErrorCategory.VALIDATION,
            ErrorSeverity.WARNING, context, 400,
        )
        self.reference = reference


class NoMatchingTransferError(AdmissionError):
    """Payment contains no transfer to the receiving address."""
    def __init__(self, receiving_address: str, context: ErrorContext | None = None):
        super().__init__(
            "No transfer to the receiving address found",
            "NO_MATCHING_TRANSFER", ErrorCategory.VALIDATION,
            ErrorSeverity.WARNING, context, 400,
        )
        self.receiving_address = receiving_address


class AmountMismatchError(AdmissionError):
    """Matched transfer total differs from the declared amount."""
    def __init__(self, found: int, expected: int, context: ErrorContext | None = None):
        super().__init__(
            f"Incorrect amount. Found {found}, expected {expected}",
            "AMOUNT_MISMATCH", ErrorCategory.VALIDATION,
            ErrorSeverity.WARNING, context, 400,
        )
        self.found = found
        self.expected = expected


class RoundClosedError(AdmissionError):
    """Current round is no longer accepting contributions."""
    def __init__(self, status: str, context: ErrorContext | None = None):
        super().__init__(
            f"Round is not accepting contributions (status: {status})",
            "ROUND_CLOSED", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.WARNING, context, 400,
        )
        self.status = status


class InvalidAdmissionError(AdmissionError):
    """Malformed admission request (empty reference, non-positive amount)."""
    def __init__(self, message: str, field: str, context: ErrorContext | None = None):
        super().__init__(
            message, "VALIDATION_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.field = field


# ─── Settlement Errors ──────────────────────────────────────────

class ReconciliationError(BurnwheelError):
    """Reconciliation requested for a round that is not awaiting it."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "RECONCILIATION_NOT_APPLICABLE", ErrorCategory.CONFLICT,
            ErrorSeverity.ERROR, context, 409,
        )


class AdminAuthError(BurnwheelError):
    """Missing or wrong admin secret."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "Forbidden", "FORBIDDEN", ErrorCategory.AUTHORIZATION,
            ErrorSeverity.WARNING, context, 403,
        )


# ─── Buyback Errors (best-effort, never surfaced over HTTP) ─────

class BuybackError(BurnwheelError):
    """Buyback/burn cycle failed. Round and payout are unaffected."""
    def __init__(self, message: str, code: str, context: ErrorContext | None = None):
        super().__init__(
            message, code, ErrorCategory.EXTERNAL_API,
            ErrorSeverity.WARNING, context, 502,
        )


class QuoteUnavailableError(BuybackError):
    """Venue returned no conversion quote."""
    def __init__(self, amount: int, context: ErrorContext | None = None):
        super().__init__(
            f"No quote available for {amount}", "QUOTE_UNAVAILABLE", context,
        )
        self.amount = amount


class SwapFailedError(BuybackError):
    """Venue rejected the swap submission."""
    def __init__(self, reason: str, context: ErrorContext | None = None):
        super().__init__(f"Swap rejected: {reason}", "SWAP_FAILED", context)
        self.reason = reason


class BuybackSetupError(BuybackError):
    """Burn-receiving account could not be resolved or created."""
    def __init__(self, reason: str, context: ErrorContext | None = None):
        super().__init__(
            f"Burn account setup failed: {reason}", "BUYBACK_SETUP_FAILED", context,
        )


# ─── Infrastructure Errors (500-level) ──────────────────────────

class DatabaseError(BurnwheelError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation


class ExternalServiceError(BurnwheelError):
    """Ledger or venue call failed in a way that may succeed on retry."""
    def __init__(
        self,
        service: str,
        message: str,
        error_type: str,
        retry_after_ms: int | None = None,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.retry_after_ms = retry_after_ms
        category = (
            ErrorCategory.TIMEOUT if error_type == "timeout"
            else ErrorCategory.EXTERNAL_API
        )
        super().__init__(
            f"{service} error ({error_type}): {message}",
            f"{service.upper()}_UNAVAILABLE", category,
            ErrorSeverity.ERROR, ctx, 503,
        )
        self.service = service
        self.error_type = error_type


class LedgerUnavailableError(ExternalServiceError):
    """Ledger RPC or payout gateway timed out / failed transiently."""
    def __init__(
        self,
        message: str,
        error_type: str,
        retry_after_ms: int | None = None,
        context: ErrorContext | None = None,
    ):
        super().__init__("ledger", message, error_type, retry_after_ms, context)


class VenueUnavailableError(ExternalServiceError):
    """Swap venue timed out / failed transiently."""
    def __init__(
        self,
        message: str,
        error_type: str,
        retry_after_ms: int | None = None,
        context: ErrorContext | None = None,
    ):
        super().__init__("venue", message, error_type, retry_after_ms, context)


class PayoutSubmissionError(BurnwheelError):
    """Payout submission outcome unknown — must be reconciled, never blindly retried."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            f"Payout submission failed: {message}",
            "PAYOUT_UNCERTAIN", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.CRITICAL, context, 502,
        )
