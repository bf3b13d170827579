"""Ledger Client — JSON-RPC reads plus a signing gateway for outbound transfers.

Invariants:
    - Reads (payment lookup, balance, token accounts) are idempotent: transient
      failures (connection errors, 429, 5xx) retried with exponential backoff + jitter
    - Timeouts are never retried here: mapped straight to LedgerUnavailableError("timeout")
    - submit_payment is NEVER retried: a retry after an ambiguous failure could double-pay
    - All failures mapped to core/errors.py types; httpx exceptions never leak
    - A body that is not the expected JSON shape is LedgerUnavailableError("malformed_response"),
      never a raw ValueError / KeyError / TypeError
    - find_payment answers "not found" only after scanning back past `since`;
      a scan that cannot get there raises instead

Design Decisions:
    - Transaction construction and signing live behind the payout gateway; this
      service only says "pay X to Y" and reads the ledger
    - Invalid-params RPC errors on payment lookup mean "no such payment", not an outage
    - One shared httpx.AsyncClient per instance; transport injectable for tests
"""

import asyncio
import logging
import random
from datetime import datetime
from typing import Any

import httpx

from burnwheel.core.errors import LedgerUnavailableError, PayoutSubmissionError
from burnwheel.core.repository_protocols import ResolvedPayment, Transfer

logger = logging.getLogger(__name__)

_INVALID_PARAMS = -32602
_RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})
_SIGNATURE_PAGE_SIZE = 100
_SIGNATURE_MAX_PAGES = 20


class RPCError(Exception):
    """JSON-RPC call returned an error object."""
    def __init__(self, code: int, message: str):
        self.code = code
        self.message = message
        super().__init__(f"RPC Error {code}: {message}")


class _RetryableStatus(Exception):
    def __init__(self, status_code: int):
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}")


class HttpLedgerClient:
    """LedgerClient over a JSON-RPC node and an HTTP payout gateway."""

    def __init__(
        self,
        rpc_url: str,
        gateway_url: str,
        house_address: str,
        timeout_seconds: float = 15.0,
        max_retries: int = 3,
        base_delay_ms: int = 500,
        max_delay_ms: int = 8_000,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.rpc_url = rpc_url
        self.gateway_url = gateway_url.rstrip("/")
        self.house_address = house_address
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms
        self._id = 0
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds), transport=transport,
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    # --- LedgerClient ------------------------------------------------------------

    async def get_payment(self, reference: str) -> ResolvedPayment | None:
        """Resolve an inbound payment; None if unknown or not yet confirmed."""
        try:
            tx = await self._call("getParsedTransaction", [
                reference,
                {
                    "encoding": "jsonParsed",
                    "commitment": "confirmed",
                    "maxSupportedTransactionVersion": 0,
                },
            ])
        except RPCError as e:
            if e.code == _INVALID_PARAMS:
                return None
            raise LedgerUnavailableError(str(e), "rpc_error")
        if not tx:
            return None
        if not isinstance(tx, dict):
            raise _malformed("getParsedTransaction", tx)
        try:
            return _parse_payment(reference, tx)
        except (AttributeError, TypeError):
            raise _malformed("getParsedTransaction", tx)

    async def get_balance(self, address: str) -> int:
        result = await self._call_mapped(
            "getBalance", [address, {"commitment": "confirmed"}],
        )
        value = result.get("value") if isinstance(result, dict) else None
        if not isinstance(value, int) or isinstance(value, bool):
            raise _malformed("getBalance", result)
        return value

    async def get_token_account(self, owner: str, mint: str) -> str | None:
        result = await self._call_mapped("getTokenAccountsByOwner", [
            owner, {"mint": mint}, {"encoding": "jsonParsed"},
        ])
        accounts = result.get("value") if isinstance(result, dict) else None
        if not isinstance(accounts, list):
            raise _malformed("getTokenAccountsByOwner", result)
        if not accounts:
            return None
        pubkey = accounts[0].get("pubkey") if isinstance(accounts[0], dict) else None
        if not pubkey:
            raise _malformed("getTokenAccountsByOwner", result)
        return pubkey

    async def create_token_account(self, owner: str, mint: str) -> str:
        data = await self._gateway_post(
            "/token-accounts", {"owner": owner, "mint": mint},
        )
        address = data.get("address")
        if not address:
            raise PayoutSubmissionError("gateway returned no token account address")
        return address

    async def submit_payment(self, destination: str, amount: int) -> str:
        """Ask the gateway to sign and broadcast a transfer. Single attempt."""
        data = await self._gateway_post(
            "/transfers",
            {
                "source": self.house_address,
                "destination": destination,
                "amount": amount,
            },
        )
        reference = data.get("reference")
        if not reference:
            raise PayoutSubmissionError("gateway returned no reference")
        return reference

    async def find_payment(
        self, destination: str, amount: int, since: datetime,
    ) -> str | None:
        """Look for an outbound house transfer of `amount` to `destination`.

        Pages back through house signatures (newest first) with `before` until
        one predates `since` or the history ends. Inbound entries share the
        house address, so the payout can sit many pages deep. Raises
        LedgerUnavailableError when the scan gives up before reaching `since`:
        a false "not found" would reopen the round and pay the winner twice.
        """
        cutoff = since.timestamp()
        before: str | None = None
        for _ in range(_SIGNATURE_MAX_PAGES):
            options: dict[str, Any] = {
                "limit": _SIGNATURE_PAGE_SIZE, "commitment": "confirmed",
            }
            if before:
                options["before"] = before
            page = await self._call_mapped(
                "getSignaturesForAddress", [self.house_address, options],
            )
            if not isinstance(page, list):
                raise _malformed("getSignaturesForAddress", page)

            for item in page:
                signature = item.get("signature") if isinstance(item, dict) else None
                if not signature:
                    raise _malformed("getSignaturesForAddress", item)
                block_time = item.get("blockTime")
                if block_time is not None and block_time < cutoff:
                    return None
                if item.get("err") is not None:
                    continue
                if await self._is_house_transfer(signature, destination, amount):
                    return signature

            if len(page) < _SIGNATURE_PAGE_SIZE:
                return None
            before = page[-1]["signature"]

        raise LedgerUnavailableError(
            f"signature scan did not reach {since.isoformat()} within "
            f"{_SIGNATURE_MAX_PAGES * _SIGNATURE_PAGE_SIZE} entries",
            "scan_incomplete",
        )

    async def _is_house_transfer(
        self, signature: str, destination: str, amount: int,
    ) -> bool:
        payment = await self.get_payment(signature)
        if payment is None or not payment.succeeded:
            return False
        return any(
            t.source == self.house_address
            and t.destination == destination
            and t.amount == amount
            for t in payment.transfers
        )

    # --- Transport ---------------------------------------------------------------

    async def _call_mapped(self, method: str, params: list) -> Any:
        try:
            return await self._call(method, params)
        except RPCError as e:
            raise LedgerUnavailableError(str(e), "rpc_error")

    async def _call(self, method: str, params: list) -> Any:
        """JSON-RPC call with retry on transient failures."""
        for attempt in range(self.max_retries + 1):
            self._id += 1
            payload = {
                "jsonrpc": "2.0", "id": self._id,
                "method": method, "params": params,
            }
            try:
                response = await self.client.post(self.rpc_url, json=payload)
                if response.status_code in _RETRYABLE_STATUS:
                    raise _RetryableStatus(response.status_code)
                response.raise_for_status()
            except httpx.TimeoutException:
                raise LedgerUnavailableError(f"{method} timed out", "timeout")
            except (httpx.TransportError, _RetryableStatus) as e:
                await self._handle_transient_error(method, e, attempt)
                continue
            except httpx.HTTPStatusError as e:
                raise LedgerUnavailableError(
                    f"{method} returned HTTP {e.response.status_code}",
                    "client_error",
                )

            try:
                body = response.json()
            except ValueError:
                raise _malformed(method, response.text[:200])
            if not isinstance(body, dict):
                raise _malformed(method, body)
            error = body.get("error")
            if isinstance(error, dict):
                raise RPCError(error.get("code", -1), error.get("message", ""))
            if error:
                raise RPCError(-1, str(error))
            return body.get("result")

    async def _gateway_post(self, path: str, body: dict) -> dict:
        """Single-attempt gateway call. Failures are ambiguous by definition."""
        try:
            response = await self.client.post(f"{self.gateway_url}{path}", json=body)
        except httpx.TimeoutException:
            raise LedgerUnavailableError(f"gateway {path} timed out", "timeout")
        except httpx.TransportError as e:
            raise LedgerUnavailableError(
                f"gateway {path} unreachable: {e}", "connection_error",
            )
        if response.status_code >= 400:
            raise PayoutSubmissionError(
                f"gateway {path} returned HTTP {response.status_code}: "
                f"{response.text[:200]}",
            )
        # A garbled 2xx from the gateway says nothing about whether it broadcast
        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            raise PayoutSubmissionError(
                f"gateway {path} returned an unreadable body: {response.text[:200]}",
            )
        return data

    async def _handle_transient_error(
        self, method: str, e: Exception, attempt: int,
    ) -> None:
        if attempt >= self.max_retries:
            raise LedgerUnavailableError(
                f"{method} failed after {self.max_retries} retries: {e}",
                "connection_error",
                retry_after_ms=self._backoff(attempt),
            )
        delay = self._backoff(attempt)
        logger.warning(
            f"Ledger transient error on {method}, retry after {delay}ms: {e}",
            extra={"attempt": attempt + 1},
        )
        await asyncio.sleep(delay / 1000)

    def _backoff(self, attempt: int) -> int:
        """Exponential backoff with ±25% jitter."""
        delay = min(self.max_delay_ms, (2 ** attempt) * self.base_delay_ms)
        return int(delay * random.uniform(0.75, 1.25))  # nosec B311


def _parse_payment(reference: str, tx: dict) -> ResolvedPayment:
    """Extract system transfers from a jsonParsed transaction."""
    meta = tx.get("meta") or {}
    instructions = (
        tx.get("transaction", {}).get("message", {}).get("instructions", [])
    )
    transfers = []
    for ix in instructions:
        parsed = ix.get("parsed")
        if ix.get("program") != "system" or not isinstance(parsed, dict):
            continue
        if parsed.get("type") != "transfer":
            continue
        info = parsed.get("info", {})
        lamports = info.get("lamports", 0)
        if not isinstance(lamports, int) or isinstance(lamports, bool):
            raise _malformed("getParsedTransaction", info)
        transfers.append(Transfer(
            source=info.get("source", ""),
            destination=info.get("destination", ""),
            amount=lamports,
        ))
    return ResolvedPayment(
        reference=reference,
        succeeded=meta.get("err") is None,
        transfers=tuple(transfers),
    )


def _malformed(method: str, payload: Any) -> LedgerUnavailableError:
    return LedgerUnavailableError(
        f"{method} returned an unexpected body: {str(payload)[:200]}",
        "malformed_response",
    )
