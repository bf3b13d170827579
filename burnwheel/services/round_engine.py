"""Round Engine — timer-driven settlement of the current round.

Invariants:
    - At most one settlement in flight: the settlement lock; a tick that finds it
      held returns BUSY without waiting
    - The state lock guards registry mutations and is never held across ledger or
      venue calls
    - Persist first, mutate second, for every transition
    - status SETTLING + pending_payout are durable BEFORE the payout is submitted;
      a failed submission leaves the round SETTLING until reconcile() resolves it
    - A deferral never changes the payout amount; it only moves closes_at
    - In memory, pending_payout is None  =>  storage still holds the round as OPEN
    - Any failure before pending_payout is stored returns the round to OPEN; a
      round is never left SETTLING without a durable pending payout

Design Decisions:
    - Reserve shortfall and ledger outages before submission defer the round
      (ADR: delay is recoverable, a reduced or double payout is not)
    - Buyback and the payout feed are best-effort: their failures are logged and
      never block completion or rollover
    - A stranded COMPLETE round (crash between completion and archive) is rolled
      over on startup and on the next tick
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import datetime

from burnwheel.core.clock import Clock, utc_now
from burnwheel.core.domain_types import RoundStatus, SettlementOutcome
from burnwheel.core.enforce_round import (
    DueCheck, SettlementPolicy, evaluate_due, reserve_sufficient, split_pot,
)
from burnwheel.core.errors import (
    BurnwheelError,
    DatabaseError,
    ErrorContext,
    ExternalServiceError,
    ReconciliationError,
)
from burnwheel.core.feed_records import PayoutRecord
from burnwheel.core.repository_protocols import LedgerClient
from burnwheel.core.round_state import EngineState, PendingPayout, Round, new_round
from burnwheel.core.round_summary import summarize_round
from burnwheel.core.weighted_selection import RandomSource, select_winner
from burnwheel.services.buyback import BuybackOrchestrator
from burnwheel.services.feed_log import FeedLog
from burnwheel.services.state_repository import StateRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Deferral:
    outcome: SettlementOutcome
    closes_at: datetime


class RoundEngine:
    """Round lifecycle: defer, settle, pay, buy back, archive, open next."""

    def __init__(
        self,
        state: EngineState,
        lock: asyncio.Lock,
        repository: StateRepository,
        ledger: LedgerClient,
        policy: SettlementPolicy,
        house_address: str,
        buyback: BuybackOrchestrator | None = None,
        payout_feed: FeedLog | None = None,
        rng: RandomSource | None = None,
        clock: Clock = utc_now,
    ):
        self.state = state
        self.lock = lock
        self.repository = repository
        self.ledger = ledger
        self.policy = policy
        self.house_address = house_address
        self.buyback = buyback
        self.payout_feed = payout_feed
        self.rng = rng
        self.clock = clock
        self._settlement_lock = asyncio.Lock()

    @property
    def registry(self):
        return self.state.registry

    # ─── Reads ──────────────────────────────────────────────────

    def current_summary(self) -> dict:
        return summarize_round(self.registry.current, self.clock())

    def history(self, limit: int) -> list[dict]:
        """Completed rounds, newest first."""
        now = self.clock()
        return [summarize_round(r, now) for r in self.registry.history[:limit]]

    # ─── Scheduled entry point ──────────────────────────────────

    async def tick(self) -> SettlementOutcome:
        """Advance the current round if it is due. Safe to call at any rate."""
        if self._settlement_lock.locked():
            return SettlementOutcome.BUSY
        async with self._settlement_lock:
            outcome = await self._tick()
        if outcome not in (SettlementOutcome.IDLE, SettlementOutcome.BUSY):
            logger.info(
                f"Tick outcome: {outcome.value}",
                extra={"outcome": outcome.value},
            )
        return outcome

    async def _tick(self) -> SettlementOutcome:
        now = self.clock()
        async with self.lock:
            current = self.registry.current
            if current.status == RoundStatus.COMPLETE:
                stranded = True
            else:
                stranded = False
                check = evaluate_due(current, now, self.policy)
                if check in (DueCheck.NOT_OPEN, DueCheck.NOT_DUE):
                    return SettlementOutcome.IDLE
                if check == DueCheck.BELOW_QUORUM:
                    await self._defer(current, now + self.policy.round_interval)
                    logger.info(
                        f"Round #{current.number} below quorum "
                        f"({current.unique_participants}/"
                        f"{self.policy.min_participants}), extended",
                        extra={"round_id": str(current.id)},
                    )
                    return SettlementOutcome.DEFERRED_QUORUM
                # Freeze contributions: admissions now fail with RoundClosed
                current.status = RoundStatus.SETTLING

        if stranded:
            await self._rollover(now)
            return SettlementOutcome.ROLLED_OVER
        return await self._settle(current, now)

    # ─── Settlement ─────────────────────────────────────────────

    async def _settle(self, current: Round, now: datetime) -> SettlementOutcome:
        ctx = {"round_id": str(current.id)}

        try:
            plan = await self._plan_payout(current, now)
        except asyncio.CancelledError:
            async with self.lock:
                current.status = RoundStatus.OPEN
            raise
        except Exception as e:
            # Nothing sent yet: any failure here is safe to defer
            logger.error(
                f"Settlement of round #{current.number} failed before payout: {e}",
                extra={**ctx, "error_code": type(e).__name__},
                exc_info=True,
            )
            plan = _Deferral(
                SettlementOutcome.DEFERRED_TRANSIENT, now + self.policy.reserve_retry,
            )

        if isinstance(plan, _Deferral):
            async with self.lock:
                await self._defer(current, plan.closes_at)
            return plan.outcome

        pending = plan
        try:
            await self.repository.save_round(
                replace(current, pending_payout=pending, settlement_started_at=now),
            )
        except BaseException:
            async with self.lock:
                current.status = RoundStatus.OPEN
            raise
        async with self.lock:
            current.pending_payout = pending
            current.settlement_started_at = now

        payout = pending.payout_amount
        try:
            reference = await self.ledger.submit_payment(pending.participant, payout)
        except BurnwheelError as e:
            logger.critical(
                f"Payout of {payout} to {pending.participant} has unknown outcome; "
                f"round #{current.number} held for reconciliation: {e.message}",
                extra={
                    **ctx, "participant": pending.participant,
                    "amount": payout, "error_code": e.code,
                },
            )
            return SettlementOutcome.PAYOUT_UNCERTAIN

        if not await self._finish(current, pending, reference, self.clock()):
            return SettlementOutcome.PAYOUT_UNCERTAIN
        await self._after_payout(current)
        return SettlementOutcome.COMPLETED

    async def _plan_payout(
        self, current: Round, now: datetime,
    ) -> PendingPayout | _Deferral:
        """Draw, split and check the reserve. No state is touched here."""
        ctx = {"round_id": str(current.id)}

        selected = select_winner(
            current.contributions, self.policy.concentration_cap, self.rng,
        )
        if selected is None:
            logger.warning(f"Round #{current.number} has no eligible winner", extra=ctx)
            return _Deferral(
                SettlementOutcome.DEFERRED_NO_WINNER, now + self.policy.round_interval,
            )

        payout, buyback_amount = split_pot(current.pot_total, self.policy.payout_share)
        retry_at = now + self.policy.reserve_retry

        try:
            balance = await self.ledger.get_balance(self.house_address)
        except ExternalServiceError as e:
            logger.warning(
                f"Balance check failed, settlement deferred: {e.message}",
                extra={**ctx, "error_code": e.code},
            )
            return _Deferral(SettlementOutcome.DEFERRED_TRANSIENT, retry_at)

        if not reserve_sufficient(balance, payout, self.policy):
            logger.warning(
                f"Insufficient reserve: balance {balance}, payout {payout}, "
                f"required reserve {self.policy.min_reserve + self.policy.fee_buffer}",
                extra={**ctx, "amount": payout},
            )
            return _Deferral(SettlementOutcome.DEFERRED_RESERVE, retry_at)

        return PendingPayout(
            participant=selected.participant,
            contribution_amount=selected.amount,
            payout_amount=payout,
            buyback_amount=buyback_amount,
        )

    async def _defer(self, round_: Round, closes_at: datetime) -> None:
        """Return the round to OPEN with a new deadline. Caller holds the state lock."""
        reopened = replace(
            round_,
            status=RoundStatus.OPEN,
            closes_at=closes_at,
            pending_payout=None,
            settlement_started_at=None,
        )
        try:
            await self.repository.save_round(reopened)
        except DatabaseError:
            if round_.pending_payout is None:
                round_.status = RoundStatus.OPEN
            raise
        round_.status = RoundStatus.OPEN
        round_.closes_at = closes_at
        round_.pending_payout = None
        round_.settlement_started_at = None

    async def _finish(
        self,
        round_: Round,
        pending: PendingPayout,
        reference: str,
        now: datetime,
    ) -> bool:
        """Record the completed payout. False if the completion could not be stored."""
        sealed = replace(round_, contributions=list(round_.contributions))
        sealed.complete(pending.to_winner(), reference, pending.buyback_amount, now)
        try:
            await self.repository.save_round(sealed)
        except DatabaseError as e:
            logger.critical(
                f"Payout {reference} sent but completion not stored: {e.message}",
                extra={"round_id": str(round_.id), "reference": reference},
            )
            return False

        async with self.lock:
            round_.complete(
                pending.to_winner(), reference, pending.buyback_amount, now,
            )
        logger.info(
            f"Round #{round_.number} paid {pending.payout_amount} to "
            f"{pending.participant}",
            extra={
                "round_id": str(round_.id), "reference": reference,
                "participant": pending.participant,
                "amount": pending.payout_amount,
            },
        )
        await self._record_payout(round_, reference, now)
        return True

    async def _record_payout(self, round_: Round, reference: str, now: datetime) -> None:
        if self.payout_feed is None or round_.winner is None:
            return
        record = PayoutRecord(
            reference=reference,
            timestamp=now,
            round_id=str(round_.id),
            round_number=round_.number,
            participant=round_.winner.participant,
            payout_amount=round_.winner.payout_amount,
            pot_amount=round_.pot_total,
        )
        try:
            await self.payout_feed.append(record.to_dict(), created_at=now)
        except BurnwheelError as e:
            logger.warning(
                f"Payout feed append failed: {e.message}",
                extra={"round_id": str(round_.id), "error_code": e.code},
            )

    async def _after_payout(self, round_: Round) -> None:
        if self.buyback is not None and round_.buyback_amount > 0:
            try:
                await self.buyback.buyback(round_.buyback_amount)
            except BurnwheelError as e:
                logger.error(
                    f"Buyback failed for round #{round_.number}: {e.message}",
                    extra={"round_id": str(round_.id), "error_code": e.code},
                )
        await self._rollover(self.clock())

    async def _rollover(self, now: datetime) -> None:
        """Archive the completed current round and open the next one."""
        async with self.lock:
            completed = self.registry.current
            next_round = new_round(now, self.policy.round_interval, completed.number + 1)
            dropped = self.registry.overflow_on_archive()
            await self.repository.archive(completed, next_round, dropped, now)
            self.registry.archive_current(next_round)
        logger.info(
            f"Opened round #{next_round.number}",
            extra={"round_id": str(next_round.id)},
        )

    # ─── Recovery ───────────────────────────────────────────────

    async def recover(self) -> SettlementOutcome:
        """Repair the loaded state after a restart."""
        async with self._settlement_lock:
            current = self.registry.current
            ctx = {"round_id": str(current.id)}
            if current.status == RoundStatus.COMPLETE:
                await self._rollover(self.clock())
                return SettlementOutcome.ROLLED_OVER
            if current.status == RoundStatus.SETTLING:
                if current.pending_payout is None:
                    async with self.lock:
                        await self._defer(current, current.closes_at)
                    return SettlementOutcome.REOPENED
                logger.critical(
                    f"Round #{current.number} awaiting payout reconciliation "
                    f"({current.pending_payout.payout_amount} to "
                    f"{current.pending_payout.participant})",
                    extra=ctx,
                )
                return SettlementOutcome.PAYOUT_UNCERTAIN
            return SettlementOutcome.IDLE

    async def reconcile(self) -> SettlementOutcome:
        """Resolve a SETTLING round by asking the ledger whether its payout landed.

        Found: complete, buy back, roll over. Not found: reopen with a short
        deadline so the next tick settles again. Ledger errors propagate and
        the round stays SETTLING.
        """
        async with self._settlement_lock:
            current = self.registry.current
            pending = current.pending_payout
            if current.status != RoundStatus.SETTLING or pending is None:
                raise ReconciliationError(
                    f"Round #{current.number} is {current.status.value}, "
                    "not awaiting reconciliation",
                    ErrorContext(round_id=str(current.id)),
                )

            since = current.settlement_started_at or current.start_time
            reference = await self.ledger.find_payment(
                pending.participant, pending.payout_amount, since,
            )
            now = self.clock()
            if reference is None:
                async with self.lock:
                    await self._defer(current, now + self.policy.reserve_retry)
                logger.warning(
                    f"No payout found for round #{current.number}; reopened",
                    extra={"round_id": str(current.id)},
                )
                return SettlementOutcome.REOPENED

            if not await self._finish(current, pending, reference, now):
                return SettlementOutcome.PAYOUT_UNCERTAIN
            await self._after_payout(current)
            return SettlementOutcome.COMPLETED
