"""Admission Enforcement — pure verification of an inbound payment against a claim.

Invariants:
    - Never mutates state; raises a typed AdmissionError on the first failed rule
    - Rule order: request shape -> replay guard -> resolved -> succeeded -> match -> amount
    - The participant is the source of the matched transfer to the receiving address

Design Decisions:
    - Separated from the service so every rule is testable without a ledger or DB
    - Amount compared against the SUM of matching transfers (split payments allowed,
      under-payment and spoofed amounts rejected)
"""

from burnwheel.core.errors import (
    AmountMismatchError,
    DuplicateReferenceError,
    ErrorContext,
    InvalidAdmissionError,
    NoMatchingTransferError,
    PaymentFailedError,
    PaymentNotFoundError,
)
from burnwheel.core.repository_protocols import ResolvedPayment
from burnwheel.core.round_state import ReplayGuard


def validate_admission_request(reference: str, expected_amount: int) -> None:
    """Preconditions: non-empty reference, positive integer amount."""
    if not isinstance(reference, str) or not reference.strip():
        raise InvalidAdmissionError("Missing payment reference", "reference")
    if (
        isinstance(expected_amount, bool)
        or not isinstance(expected_amount, int)
        or expected_amount <= 0
    ):
        raise InvalidAdmissionError(
            "expected_amount must be a positive integer", "expected_amount",
        )


def check_not_replayed(guard: ReplayGuard, reference: str) -> None:
    if reference in guard:
        raise DuplicateReferenceError(
            reference, ErrorContext(reference=reference),
        )


def match_payment(
    payment: ResolvedPayment | None,
    reference: str,
    receiving_address: str,
    expected_amount: int,
) -> tuple[str, int]:
    """Return (participant, amount) for a verified payment. Pure."""
    ctx = ErrorContext(reference=reference)
    if payment is None:
        raise PaymentNotFoundError(reference, ctx)
    if not payment.succeeded:
        raise PaymentFailedError(reference, ctx)

    found = 0
    participant: str | None = None
    for transfer in payment.transfers:
        if transfer.destination == receiving_address:
            found += transfer.amount
            participant = transfer.source

    if participant is None:
        raise NoMatchingTransferError(receiving_address, ctx)
    if found != expected_amount:
        raise AmountMismatchError(found, expected_amount, ctx)
    return participant, found
