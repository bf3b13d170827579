"""Buyback Orchestrator — converts the non-payout share of a pot into the burn token.

Invariants:
    - Never spends more than max_per_cycle in one invocation (when configured)
    - A burn record is appended ONLY after the venue accepted the swap
    - Every failure raises a BuybackError subclass; the caller decides to log, never to retry

Design Decisions:
    - The burn-receiving token account is resolved (or created) before quoting, so a
      successful swap always has a destination (ADR: buyback-and-burn account setup)
    - Dry-run mode skips account setup and sends to burn_address; records are flagged dry_run
    - No burn_mint configured: cycle skipped with a warning, not an error
"""

import logging

from burnwheel.core.clock import Clock, utc_now
from burnwheel.core.errors import (
    BuybackSetupError,
    ExternalServiceError,
    PayoutSubmissionError,
    QuoteUnavailableError,
    SwapFailedError,
)
from burnwheel.core.feed_records import BurnRecord
from burnwheel.core.repository_protocols import LedgerClient, SwapVenue
from burnwheel.services.feed_log import FeedLog

logger = logging.getLogger(__name__)


class BuybackOrchestrator:
    """Quote, swap, record."""

    def __init__(
        self,
        ledger: LedgerClient,
        venue: SwapVenue,
        burn_feed: FeedLog,
        burn_mint: str,
        burn_address: str,
        slippage_bps: int = 20_000,
        max_per_cycle: int | None = None,
        dry_run: bool = False,
        clock: Clock = utc_now,
    ):
        self.ledger = ledger
        self.venue = venue
        self.burn_feed = burn_feed
        self.burn_mint = burn_mint
        self.burn_address = burn_address
        self.slippage_bps = slippage_bps
        self.max_per_cycle = max_per_cycle
        self.dry_run = dry_run
        self.clock = clock

    async def buyback(self, amount: int) -> BurnRecord | None:
        """Run one buyback cycle. Returns None when there is nothing to do."""
        if self.max_per_cycle is not None:
            amount = min(amount, self.max_per_cycle)
        if amount <= 0:
            return None
        if not self.burn_mint:
            logger.warning("Buyback skipped: burn mint not configured")
            return None

        destination = await self._burn_account()

        quote = await self.venue.quote(amount, self.burn_mint, self.slippage_bps)
        if quote is None:
            raise QuoteUnavailableError(amount)

        result = await self.venue.swap(quote, destination)
        if not result.accepted or not result.reference:
            raise SwapFailedError(result.reason or "rejected")

        record = BurnRecord(
            reference=result.reference,
            timestamp=self.clock(),
            amount=amount,
            output_amount=result.output_amount,
            mint=self.burn_mint,
            dry_run=self.dry_run,
        )
        await self.burn_feed.append(record.to_dict(), created_at=record.timestamp)
        logger.info(
            f"Buyback {amount} -> {result.output_amount} burned",
            extra={"reference": result.reference, "amount": amount},
        )
        return record

    async def _burn_account(self) -> str:
        if self.dry_run:
            return self.burn_address
        try:
            account = await self.ledger.get_token_account(
                self.burn_address, self.burn_mint,
            )
            if account is None:
                account = await self.ledger.create_token_account(
                    self.burn_address, self.burn_mint,
                )
                logger.info(f"Created burn token account {account}")
        except (ExternalServiceError, PayoutSubmissionError) as e:
            raise BuybackSetupError(e.message)
        return account
