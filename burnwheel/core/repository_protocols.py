"""Boundary Protocols — contracts between the engine core and external collaborators.

Invariants:
    - Core NEVER imports from services/ or infrastructure/ — dependency arrows point inward only
    - The ledger and the swap venue are reached only through these Protocols
    - Boundary values are frozen dataclasses with integer amounts

Design Decisions:
    - Protocol over ABC: structural subtyping, test fakes need no inheritance
    - Async in Protocol: implementations do network IO; core pure functions that
      consume the returned values (enforce_admission, enforce_round) stay sync
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol


# ─── Ledger boundary values ─────────────────────────────────────

@dataclass(frozen=True)
class Transfer:
    """A native-currency transfer inside a resolved payment."""
    source: str
    destination: str
    amount: int


@dataclass(frozen=True)
class ResolvedPayment:
    """An inbound payment as seen by the ledger."""
    reference: str
    succeeded: bool
    transfers: tuple[Transfer, ...] = ()


# ─── Venue boundary values ──────────────────────────────────────

@dataclass(frozen=True)
class SwapQuote:
    """Conversion quote: input_amount native in, output_amount token out."""
    input_amount: int
    output_amount: int
    output_mint: str
    slippage_bps: int
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SwapResult:
    """Outcome of a swap submission."""
    accepted: bool
    reference: str | None = None
    output_amount: int = 0
    reason: str | None = None


# ─── Protocols ──────────────────────────────────────────────────

class LedgerClient(Protocol):
    """Contract for ledger access — implemented by infrastructure."""
    async def get_payment(self, reference: str) -> ResolvedPayment | None: ...
    async def get_balance(self, address: str) -> int: ...
    async def submit_payment(self, destination: str, amount: int) -> str: ...
    async def find_payment(
        self, destination: str, amount: int, since: datetime,
    ) -> str | None: ...
    async def get_token_account(self, owner: str, mint: str) -> str | None: ...
    async def create_token_account(self, owner: str, mint: str) -> str: ...


class SwapVenue(Protocol):
    """Contract for the buyback venue — implemented by infrastructure."""
    async def quote(
        self, amount: int, output_mint: str, slippage_bps: int,
    ) -> SwapQuote | None: ...
    async def swap(self, quote: SwapQuote, destination: str) -> SwapResult: ...
