"""Swap Venue Clients — quote/swap API for the buyback-and-burn cycle, plus a dry-run venue.

Invariants:
    - quote() returns None when the venue has no route (404 / empty body / zero output)
    - swap() returns SwapResult(accepted=False) on venue rejection, never raises for it
    - Timeouts and connection failures map to VenueUnavailableError

Design Decisions:
    - Native currency is the fixed input mint; output mint comes from configuration
    - The venue delivers output straight to the burn token account (destinationTokenAccount)
    - DryRunSwapVenue fabricates a deterministic quote so the full cycle and the
      burn feed can be exercised without spending funds
"""

import logging
import uuid

import httpx

from burnwheel.core.errors import VenueUnavailableError
from burnwheel.core.repository_protocols import SwapQuote, SwapResult

logger = logging.getLogger(__name__)

NATIVE_MINT = "So11111111111111111111111111111111111111112"


class HttpSwapVenue:
    """SwapVenue over an HTTP quote/swap API."""

    def __init__(
        self,
        base_url: str,
        payer: str,
        timeout_seconds: float = 20.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.payer = payer
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds), transport=transport,
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    async def quote(
        self, amount: int, output_mint: str, slippage_bps: int,
    ) -> SwapQuote | None:
        params = {
            "inputMint": NATIVE_MINT,
            "outputMint": output_mint,
            "amount": str(amount),
            "slippageBps": str(slippage_bps),
        }
        response = await self._request("GET", "/quote", params=params)
        if response.status_code in (400, 404):
            logger.warning(
                f"Venue has no quote: HTTP {response.status_code} "
                f"{response.text[:200]}",
            )
            return None
        self._raise_for_server_error(response, "/quote")
        data = response.json() if response.content else None
        if not data or int(data.get("outAmount") or 0) <= 0:
            return None
        return SwapQuote(
            input_amount=int(data.get("inAmount") or amount),
            output_amount=int(data["outAmount"]),
            output_mint=output_mint,
            slippage_bps=slippage_bps,
            raw=data,
        )

    async def swap(self, quote: SwapQuote, destination: str) -> SwapResult:
        body = {
            "quoteResponse": quote.raw,
            "userPublicKey": self.payer,
            "destinationTokenAccount": destination,
            "wrapAndUnwrapSol": True,
        }
        response = await self._request("POST", "/swap", json=body)
        if response.status_code >= 400:
            return SwapResult(
                accepted=False,
                reason=f"HTTP {response.status_code}: {response.text[:200]}",
            )
        data = response.json()
        reference = data.get("signature") or data.get("txid")
        if not reference:
            return SwapResult(accepted=False, reason="venue returned no signature")
        return SwapResult(
            accepted=True,
            reference=reference,
            output_amount=int(data.get("outAmount") or quote.output_amount),
        )

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return await self.client.request(
                method, f"{self.base_url}{path}", **kwargs,
            )
        except httpx.TimeoutException:
            raise VenueUnavailableError(f"{path} timed out", "timeout")
        except httpx.TransportError as e:
            raise VenueUnavailableError(
                f"{path} unreachable: {e}", "connection_error",
            )

    @staticmethod
    def _raise_for_server_error(response: httpx.Response, path: str) -> None:
        if response.status_code >= 500:
            raise VenueUnavailableError(
                f"{path} returned HTTP {response.status_code}", "server_error",
            )
        if response.status_code >= 400:
            raise VenueUnavailableError(
                f"{path} returned HTTP {response.status_code}", "client_error",
            )


class DryRunSwapVenue:
    """Venue that accepts every swap at a fixed rate without touching funds."""

    def __init__(self, rate: int = 100):
        self.rate = rate

    async def aclose(self) -> None:
        return None

    async def quote(
        self, amount: int, output_mint: str, slippage_bps: int,
    ) -> SwapQuote | None:
        return SwapQuote(
            input_amount=amount,
            output_amount=amount * self.rate,
            output_mint=output_mint,
            slippage_bps=slippage_bps,
            raw={"dryRun": True},
        )

    async def swap(self, quote: SwapQuote, destination: str) -> SwapResult:
        logger.info(
            f"Dry run buyback {quote.input_amount} -> {quote.output_amount} "
            f"to {destination}",
        )
        return SwapResult(
            accepted=True,
            reference=f"dryrun-{uuid.uuid4().hex[:16]}",
            output_amount=quote.output_amount,
        )
