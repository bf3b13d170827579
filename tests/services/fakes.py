"""Ledger and Venue Fakes — in-memory collaborators for engine and route tests.

Invariants:
    - FakeLedger.pay() registers a confirmed inbound payment to the house address
    - submit_payment debits the balance and records the transfer as landed
    - fail_* attributes, when set to an exception, are raised by the matching call
    - FakeClock only moves when advance() is called

Design Decisions:
    - Flat classes, no inheritance: structural match against the Protocols
    - land_on_failure simulates the ambiguous case: gateway errors after broadcast
"""

from datetime import datetime, timedelta, timezone

from burnwheel.core.repository_protocols import (
    ResolvedPayment, SwapQuote, SwapResult, Transfer,
)

HOUSE = "HOUSE"
T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeLedger:
    def __init__(self, house: str = HOUSE, balance: int = 10**15):
        self.house = house
        self.balance = balance
        self.payments: dict[str, ResolvedPayment] = {}
        self.submitted: list[tuple[str, int]] = []
        self.landed: dict[tuple[str, int], str] = {}
        self.token_accounts: dict[tuple[str, str], str] = {}
        self.created_accounts: list[tuple[str, str]] = []
        self.get_payment_calls = 0
        self.fail_get_payment: Exception | None = None
        self.fail_balance: Exception | None = None
        self.fail_submit: Exception | None = None
        self.fail_find: Exception | None = None
        self.fail_token_account: Exception | None = None
        self.land_on_failure = False

    def pay(
        self, reference: str, participant: str, amount: int,
        succeeded: bool = True, destination: str | None = None,
    ) -> None:
        self.payments[reference] = ResolvedPayment(
            reference=reference,
            succeeded=succeeded,
            transfers=(Transfer(participant, destination or self.house, amount),),
        )

    async def get_payment(self, reference: str) -> ResolvedPayment | None:
        self.get_payment_calls += 1
        if self.fail_get_payment:
            raise self.fail_get_payment
        return self.payments.get(reference)

    async def get_balance(self, address: str) -> int:
        if self.fail_balance:
            raise self.fail_balance
        return self.balance

    async def submit_payment(self, destination: str, amount: int) -> str:
        if self.fail_submit:
            if self.land_on_failure:
                self._land(destination, amount)
            raise self.fail_submit
        return self._land(destination, amount)

    async def find_payment(
        self, destination: str, amount: int, since: datetime,
    ) -> str | None:
        if self.fail_find:
            raise self.fail_find
        return self.landed.get((destination, amount))

    async def get_token_account(self, owner: str, mint: str) -> str | None:
        if self.fail_token_account:
            raise self.fail_token_account
        return self.token_accounts.get((owner, mint))

    async def create_token_account(self, owner: str, mint: str) -> str:
        address = f"ata-{owner}-{mint}"
        self.token_accounts[(owner, mint)] = address
        self.created_accounts.append((owner, mint))
        return address

    def _land(self, destination: str, amount: int) -> str:
        reference = f"payout-{len(self.submitted) + 1}"
        self.submitted.append((destination, amount))
        self.landed[(destination, amount)] = reference
        self.balance -= amount
        return reference


class FakeVenue:
    def __init__(self, rate: int = 1_000):
        self.rate = rate
        self.no_quote = False
        self.reject_reason: str | None = None
        self.fail_quote: Exception | None = None
        self.quotes: list[int] = []
        self.swaps: list[tuple[int, str]] = []

    async def quote(
        self, amount: int, output_mint: str, slippage_bps: int,
    ) -> SwapQuote | None:
        if self.fail_quote:
            raise self.fail_quote
        self.quotes.append(amount)
        if self.no_quote:
            return None
        return SwapQuote(
            input_amount=amount,
            output_amount=amount * self.rate,
            output_mint=output_mint,
            slippage_bps=slippage_bps,
        )

    async def swap(self, quote: SwapQuote, destination: str) -> SwapResult:
        if self.reject_reason:
            return SwapResult(accepted=False, reason=self.reject_reason)
        self.swaps.append((quote.input_amount, destination))
        return SwapResult(
            accepted=True,
            reference=f"swap-{len(self.swaps)}",
            output_amount=quote.output_amount,
        )


async def admit_payment(
    runtime, ledger: FakeLedger, reference: str, participant: str, amount: int,
) -> dict:
    """Register a confirmed payment with the fake ledger and admit it."""
    ledger.pay(reference, participant, amount)
    return await runtime.contributions.admit(reference, amount)
