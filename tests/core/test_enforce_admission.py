"""Admission Enforcement — tests for pure payment verification rules.

Tests cover:
    - Request shape: empty reference, non-positive / non-int / bool amounts
    - Replay guard hit → DuplicateReferenceError
    - Missing, failed, non-matching and mismatched payments
    - Split transfers summed; participant taken from the matched transfer
"""

import pytest

from burnwheel.core.enforce_admission import (
    check_not_replayed, match_payment, validate_admission_request,
)
from burnwheel.core.errors import (
    AmountMismatchError,
    DuplicateReferenceError,
    InvalidAdmissionError,
    NoMatchingTransferError,
    PaymentFailedError,
    PaymentNotFoundError,
)
from burnwheel.core.repository_protocols import ResolvedPayment, Transfer
from burnwheel.core.round_state import ReplayGuard

HOUSE = "HOUSE"


def _payment(*transfers: Transfer, succeeded: bool = True) -> ResolvedPayment:
    return ResolvedPayment(reference="sig-1", succeeded=succeeded, transfers=transfers)


# ─── validate_admission_request ──────────────────────────────────

@pytest.mark.parametrize("reference", ["", "   "])
def test_rejects_blank_reference(reference):
    with pytest.raises(InvalidAdmissionError) as exc:
        validate_admission_request(reference, 100)
    assert exc.value.field == "reference"


@pytest.mark.parametrize("amount", [0, -5, 1.5, True, "100"])
def test_rejects_bad_amount(amount):
    with pytest.raises(InvalidAdmissionError) as exc:
        validate_admission_request("sig-1", amount)
    assert exc.value.field == "expected_amount"


def test_accepts_valid_request():
    validate_admission_request("sig-1", 1)


# ─── check_not_replayed ──────────────────────────────────────────

def test_replayed_reference_rejected():
    guard = ReplayGuard(["sig-1"])
    with pytest.raises(DuplicateReferenceError) as exc:
        check_not_replayed(guard, "sig-1")
    assert exc.value.http_status == 409


def test_fresh_reference_passes():
    check_not_replayed(ReplayGuard(["sig-1"]), "sig-2")


# ─── match_payment ───────────────────────────────────────────────

def test_unresolved_payment_not_found():
    with pytest.raises(PaymentNotFoundError):
        match_payment(None, "sig-1", HOUSE, 100)


def test_failed_payment_rejected():
    with pytest.raises(PaymentFailedError):
        match_payment(
            _payment(Transfer("alice", HOUSE, 100), succeeded=False),
            "sig-1", HOUSE, 100,
        )


def test_transfer_elsewhere_rejected():
    with pytest.raises(NoMatchingTransferError):
        match_payment(
            _payment(Transfer("alice", "SOMEONE", 100)), "sig-1", HOUSE, 100,
        )


def test_amount_mismatch_reports_found_and_expected():
    with pytest.raises(AmountMismatchError) as exc:
        match_payment(_payment(Transfer("alice", HOUSE, 90)), "sig-1", HOUSE, 100)
    assert exc.value.found == 90
    assert exc.value.expected == 100
    assert "Found 90, expected 100" in exc.value.message


def test_overpayment_also_mismatch():
    with pytest.raises(AmountMismatchError):
        match_payment(_payment(Transfer("alice", HOUSE, 150)), "sig-1", HOUSE, 100)


def test_matching_payment_returns_participant_and_amount():
    participant, amount = match_payment(
        _payment(Transfer("alice", HOUSE, 100)), "sig-1", HOUSE, 100,
    )
    assert participant == "alice"
    assert amount == 100


def test_split_transfers_are_summed():
    participant, amount = match_payment(
        _payment(
            Transfer("alice", HOUSE, 60),
            Transfer("alice", "fee-collector", 5),
            Transfer("alice", HOUSE, 40),
        ),
        "sig-1", HOUSE, 100,
    )
    assert (participant, amount) == ("alice", 100)
