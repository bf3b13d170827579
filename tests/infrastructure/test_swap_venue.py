"""Swap Venue — HTTP quote/swap client and dry-run venue."""

import json

import httpx
import pytest

from burnwheel.core.errors import VenueUnavailableError
from burnwheel.core.repository_protocols import SwapQuote
from burnwheel.infrastructure.swap_venue import NATIVE_MINT, DryRunSwapVenue, HttpSwapVenue


def _venue(handler) -> HttpSwapVenue:
    return HttpSwapVenue(
        "http://venue.test/v6", payer="HOUSE", transport=httpx.MockTransport(handler),
    )


async def test_quote_parses_amounts():
    seen = {}

    def handler(request):
        seen.update(dict(request.url.params))
        return httpx.Response(200, json={"inAmount": "1000", "outAmount": "52000"})

    quote = await _venue(handler).quote(1_000, "MINT", 300)

    assert quote.input_amount == 1_000
    assert quote.output_amount == 52_000
    assert quote.raw["outAmount"] == "52000"
    assert seen == {
        "inputMint": NATIVE_MINT, "outputMint": "MINT",
        "amount": "1000", "slippageBps": "300",
    }


@pytest.mark.parametrize("response", [
    httpx.Response(404, text="no route"),
    httpx.Response(400, text="bad mint"),
    httpx.Response(200, json={"inAmount": "1000", "outAmount": "0"}),
])
async def test_quote_unavailable_returns_none(response):
    assert await _venue(lambda request: response).quote(1_000, "MINT", 300) is None


async def test_quote_server_error_is_unavailable():
    with pytest.raises(VenueUnavailableError):
        await _venue(lambda request: httpx.Response(503)).quote(1_000, "MINT", 300)


async def test_quote_connection_error_is_unavailable():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(VenueUnavailableError) as exc:
        await _venue(handler).quote(1_000, "MINT", 300)
    assert exc.value.error_type == "connection_error"


async def test_swap_accepted():
    seen = {}

    def handler(request):
        seen.update(json.loads(request.content))
        return httpx.Response(200, json={"signature": "swap-sig"})

    quote = SwapQuote(1_000, 52_000, "MINT", 300, raw={"outAmount": "52000"})
    result = await _venue(handler).swap(quote, "burn-ata")

    assert result.accepted is True
    assert result.reference == "swap-sig"
    assert result.output_amount == 52_000
    assert seen["destinationTokenAccount"] == "burn-ata"
    assert seen["quoteResponse"] == {"outAmount": "52000"}


async def test_swap_rejected():
    result = await _venue(lambda request: httpx.Response(422, text="slippage")).swap(
        SwapQuote(1_000, 52_000, "MINT", 300), "burn-ata",
    )
    assert result.accepted is False
    assert "422" in result.reason


async def test_dry_run_venue():
    venue = DryRunSwapVenue(rate=3)
    quote = await venue.quote(10, "MINT", 300)
    result = await venue.swap(quote, "INCINERATOR")
    assert quote.output_amount == 30
    assert result.accepted is True
    assert result.reference.startswith("dryrun-")
