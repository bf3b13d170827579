"""Runtime — wiring of the engine, its clients and its scheduled tick.

Invariants:
    - Exactly one EngineState and one state lock per process, shared by the
      contribution ledger and the round engine
    - The tick job runs with max_instances=1 and coalesce=True (no overlapping ticks)
    - shutdown() stops the scheduler before closing the HTTP clients

Design Decisions:
    - Module-level singleton initialized in the FastAPI lifespan, mirroring init_db /
      get_db_manager (ADR: single-process deployment, no global import side effects)
    - Clients are injectable so tests build a runtime around fakes
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from burnwheel.config import Settings
from burnwheel.core.clock import Clock, utc_now
from burnwheel.core.domain_types import FeedKind
from burnwheel.core.repository_protocols import LedgerClient, SwapVenue
from burnwheel.core.round_state import EngineState
from burnwheel.core.weighted_selection import RandomSource
from burnwheel.infrastructure.database import DatabaseSessionManager
from burnwheel.infrastructure.ledger_client import HttpLedgerClient
from burnwheel.infrastructure.swap_venue import DryRunSwapVenue, HttpSwapVenue
from burnwheel.services.buyback import BuybackOrchestrator
from burnwheel.services.contribution_ledger import ContributionLedger
from burnwheel.services.feed_log import FeedLog
from burnwheel.services.round_engine import RoundEngine
from burnwheel.services.state_repository import StateRepository

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    """Everything a request handler or the scheduler needs."""
    settings: Settings
    state: EngineState
    ledger: LedgerClient
    venue: SwapVenue
    contributions: ContributionLedger
    engine: RoundEngine
    burn_feed: FeedLog
    payout_feed: FeedLog
    scheduler: AsyncIOScheduler | None = None

    def start_scheduler(self) -> None:
        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self.engine.tick,
            "interval",
            seconds=self.settings.settle_poll_seconds,
            id="round_tick",
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(timezone.utc),
        )
        self.scheduler.start()
        logger.info(
            f"Settlement tick scheduled every {self.settings.settle_poll_seconds}s",
        )

    async def shutdown(self) -> None:
        if self.scheduler is not None and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        for client in (self.ledger, self.venue):
            aclose = getattr(client, "aclose", None)
            if aclose is not None:
                await aclose()


def build_ledger(settings: Settings) -> HttpLedgerClient:
    return HttpLedgerClient(
        rpc_url=settings.ledger_rpc_url,
        gateway_url=settings.payout_gateway_url,
        house_address=settings.receiving_address,
        timeout_seconds=settings.ledger_timeout_seconds,
        max_retries=settings.ledger_max_retries,
        base_delay_ms=settings.ledger_base_delay_ms,
        max_delay_ms=settings.ledger_max_delay_ms,
    )


def build_venue(settings: Settings) -> SwapVenue:
    if settings.buyback_dry_run:
        return DryRunSwapVenue()
    return HttpSwapVenue(
        base_url=settings.swap_venue_url,
        payer=settings.receiving_address,
        timeout_seconds=settings.venue_timeout_seconds,
    )


async def build_runtime(
    settings: Settings,
    db: DatabaseSessionManager,
    ledger: LedgerClient | None = None,
    venue: SwapVenue | None = None,
    rng: RandomSource | None = None,
    clock: Clock = utc_now,
) -> Runtime:
    """Load durable state and assemble the services around it."""
    policy = settings.settlement_policy()
    ledger = ledger or build_ledger(settings)
    venue = venue or build_venue(settings)

    repository = StateRepository(db)
    state = await repository.load(
        clock(), policy, settings.history_capacity,
        settings.replay_guard_capacity,
    )
    lock = asyncio.Lock()

    burn_feed = FeedLog(db, FeedKind.BURNS, settings.feed_capacity, clock)
    payout_feed = FeedLog(db, FeedKind.PAYOUTS, settings.feed_capacity, clock)

    contributions = ContributionLedger(
        state, lock, repository, ledger,
        receiving_address=settings.receiving_address,
        guard_capacity=settings.replay_guard_capacity,
        clock=clock,
    )
    buyback = BuybackOrchestrator(
        ledger, venue, burn_feed,
        burn_mint=settings.burn_mint,
        burn_address=settings.burn_address,
        slippage_bps=settings.buyback_slippage_bps,
        max_per_cycle=settings.max_buyback_per_cycle,
        dry_run=settings.buyback_dry_run,
        clock=clock,
    )
    engine = RoundEngine(
        state, lock, repository, ledger, policy,
        house_address=settings.receiving_address,
        buyback=buyback,
        payout_feed=payout_feed,
        rng=rng,
        clock=clock,
    )
    await engine.recover()

    return Runtime(
        settings=settings,
        state=state,
        ledger=ledger,
        venue=venue,
        contributions=contributions,
        engine=engine,
        burn_feed=burn_feed,
        payout_feed=payout_feed,
    )


# Singleton (initialized on startup)
runtime: Runtime | None = None


async def init_runtime(settings: Settings, db: DatabaseSessionManager, **kwargs) -> Runtime:
    global runtime
    runtime = await build_runtime(settings, db, **kwargs)
    return runtime


def get_runtime() -> Runtime:
    if not runtime:
        raise RuntimeError("Runtime not initialized")
    return runtime
