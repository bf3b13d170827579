"""Contribution Ledger — verified, idempotent admission of inbound payments.

Invariants:
    - A reference is admitted at most once: replay guard in memory, UNIQUE constraint on disk
    - The ledger is consulted OUTSIDE the state lock; the lock is held only for the
      final re-check, the DB write and the in-memory append
    - Persist first, mutate second: a failed write leaves memory untouched
    - Admissions land in lock-acquisition order

Design Decisions:
    - Pure rule checks live in core/enforce_admission.py; this class only sequences IO
    - Fast replay check before the ledger round-trip avoids a lookup for obvious replays;
      the second check under the lock closes the race between two concurrent requests
"""

import asyncio
import logging

from burnwheel.core.clock import Clock, utc_now
from burnwheel.core.domain_types import DEFAULT_REPLAY_GUARD_CAPACITY
from burnwheel.core.enforce_admission import (
    check_not_replayed, match_payment, validate_admission_request,
)
from burnwheel.core.errors import ErrorContext, RoundClosedError
from burnwheel.core.repository_protocols import LedgerClient
from burnwheel.core.round_state import Contribution, EngineState
from burnwheel.core.round_summary import summarize_round
from burnwheel.services.state_repository import StateRepository

logger = logging.getLogger(__name__)


class ContributionLedger:
    """Admits contributions into the current round."""

    def __init__(
        self,
        state: EngineState,
        lock: asyncio.Lock,
        repository: StateRepository,
        ledger: LedgerClient,
        receiving_address: str,
        guard_capacity: int = DEFAULT_REPLAY_GUARD_CAPACITY,
        clock: Clock = utc_now,
    ):
        self.state = state
        self.lock = lock
        self.repository = repository
        self.ledger = ledger
        self.receiving_address = receiving_address
        self.guard_capacity = guard_capacity
        self.clock = clock

    async def admit(self, reference: str, expected_amount: int) -> dict:
        """Verify a payment and credit it to the current round.

        Returns the updated current-round summary. Raises an AdmissionError
        subclass on rejection, LedgerUnavailableError on ledger outage.
        """
        validate_admission_request(reference, expected_amount)
        reference = reference.strip()
        check_not_replayed(self.state.replay_guard, reference)

        payment = await self.ledger.get_payment(reference)
        participant, amount = match_payment(
            payment, reference, self.receiving_address, expected_amount,
        )

        async with self.lock:
            check_not_replayed(self.state.replay_guard, reference)
            current = self.state.registry.current
            if not current.is_open:
                raise RoundClosedError(
                    current.status.value,
                    ErrorContext(reference=reference, round_id=str(current.id)),
                )

            now = self.clock()
            contribution = Contribution(
                reference=reference,
                participant=participant,
                amount=amount,
                admitted_at=now,
            )
            await self.repository.save_admission(
                current.id, contribution, current.entries_count,
                self.guard_capacity,
            )
            current.append(contribution)
            self.state.replay_guard.add(reference)
            summary = summarize_round(current, now)

        logger.info(
            f"Admitted {amount} from {participant} into round #{current.number}",
            extra={
                "round_id": str(current.id),
                "reference": reference,
                "participant": participant,
                "amount": amount,
            },
        )
        return summary
