"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - All secrets and endpoints come from environment variables (never hardcoded)
    - get_settings() is cached (lru_cache) — single instance per process
    - payout_share and concentration_cap are fractions in (0, 1]

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - SQLite default: a single-instance deployment needs durable state without a DB server;
      PostgreSQL URLs are rewritten for asyncpg
"""

from datetime import timedelta
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from burnwheel.core.enforce_round import SettlementPolicy


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Database
    database_url: str = "sqlite+aiosqlite:///./burnwheel.db"

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Hosted Postgres provides postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    database_pool_size: int = 5
    database_max_overflow: int = 5

    # Ledger
    ledger_rpc_url: str = "https://api.devnet.solana.com"
    payout_gateway_url: str = "http://127.0.0.1:8899"
    ledger_timeout_seconds: float = 15.0
    ledger_max_retries: int = 3
    ledger_base_delay_ms: int = 500
    ledger_max_delay_ms: int = 8_000
    receiving_address: str = ""

    # Rounds
    round_interval_seconds: int = 300
    settle_poll_seconds: int = 10
    min_participants: int = 10
    payout_share: float = 0.5
    concentration_cap: float = 0.25
    min_reserve: int = 0
    fee_buffer: int = 5000
    reserve_retry_seconds: int = 60
    replay_guard_capacity: int = 5000
    history_capacity: int = 20
    history_max_limit: int = 20

    # Buyback
    burn_mint: str = ""
    burn_address: str = "1nc1nerator11111111111111111111111111111111"
    swap_venue_url: str = "https://quote-api.jup.ag/v6"
    venue_timeout_seconds: float = 20.0
    buyback_slippage_bps: int = 20_000
    max_buyback_per_cycle: int | None = None
    buyback_dry_run: bool = False

    # Feeds
    feed_capacity: int = 50

    # API
    cors_origins: list[str] = ["http://localhost:5173"]
    admin_secret: str | None = None

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"

    @field_validator("payout_share", "concentration_cap")
    @classmethod
    def check_fraction(cls, v: float) -> float:
        if not 0 < v <= 1:
            raise ValueError("must be a fraction in (0, 1]")
        return v

    @field_validator("max_buyback_per_cycle", mode="before")
    @classmethod
    def empty_ceiling_is_none(cls, v):
        """Unset or 0 means no ceiling."""
        if v in ("", 0, "0"):
            return None
        return v

    def settlement_policy(self) -> SettlementPolicy:
        return SettlementPolicy(
            round_interval=timedelta(seconds=self.round_interval_seconds),
            min_participants=self.min_participants,
            payout_share=self.payout_share,
            concentration_cap=self.concentration_cap,
            min_reserve=self.min_reserve,
            fee_buffer=self.fee_buffer,
            reserve_retry=timedelta(seconds=self.reserve_retry_seconds),
            max_buyback_per_cycle=self.max_buyback_per_cycle,
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
