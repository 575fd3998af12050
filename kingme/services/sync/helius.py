"""
Helius RPC Data Provider

Reads token accounts and SOL balances over Solana JSON-RPC (Helius
endpoint).

DESIGN DECISION: No retries. A sync cycle is a single attempt; if any
call fails the whole cycle fails with the wallet address attached, and
the user can sync again.
"""

import itertools
from typing import Any, Optional

import httpx
import structlog

from kingme.config import get_settings
from kingme.errors import ExternalServiceError
from kingme.services.sync.provider import TokenAccountRecord, WalletDataProvider

logger = structlog.get_logger(__name__)

SERVICE_NAME = "helius"
TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"

_request_ids = itertools.count(1)


def _rpc_body(method: str, params: list) -> dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "id": next(_request_ids),
        "method": method,
        "params": params,
    }


def _parse_token_account(entry: dict) -> Optional[TokenAccountRecord]:
    """jsonParsed token account -> record. Unparseable entries are skipped."""
    info = (
        entry.get("account", {})
        .get("data", {})
        .get("parsed", {})
        .get("info", {})
    )
    token_amount = info.get("tokenAmount") or {}
    mint = info.get("mint")
    if not mint or "amount" not in token_amount:
        return None
    try:
        return TokenAccountRecord(
            mint=mint,
            amount=int(token_amount["amount"]),
            decimals=int(token_amount.get("decimals", 0)),
        )
    except (TypeError, ValueError):
        return None


class HeliusDataProvider(WalletDataProvider):
    """
    WalletDataProvider backed by the Helius RPC endpoint.

    Pass an httpx.AsyncClient to share a connection pool (or a mock
    transport in tests); otherwise one is created per call.
    """

    def __init__(
        self,
        endpoint: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if endpoint is None:
            settings = get_settings().helius
            endpoint = settings.endpoint
            timeout = timeout or settings.request_timeout
        self._endpoint = endpoint
        self._timeout = timeout or 15.0
        self._client = client

    async def _call(self, address: str, method: str, params: list) -> Any:
        """Perform one JSON-RPC call; raise ExternalServiceError on transport or RPC error."""
        body = _rpc_body(method, params)
        try:
            if self._client is not None:
                resp = await self._client.post(self._endpoint, json=body)
            else:
                async with httpx.AsyncClient(timeout=httpx.Timeout(self._timeout)) as client:
                    resp = await client.post(self._endpoint, json=body)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as e:
            raise ExternalServiceError(
                SERVICE_NAME,
                f"{method} returned {e.response.status_code}",
                address=address,
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise ExternalServiceError(SERVICE_NAME, f"{method} failed: {e}", address=address) from e

        if not isinstance(data, dict):
            raise ExternalServiceError(SERVICE_NAME, f"{method} returned a non-object", address=address)
        if "error" in data:
            err = data["error"]
            message = err.get("message", err) if isinstance(err, dict) else err
            raise ExternalServiceError(SERVICE_NAME, f"{method} RPC error: {message}", address=address)
        if data.get("result") is None:
            raise ExternalServiceError(SERVICE_NAME, f"{method} returned no result", address=address)
        return data["result"]

    async def get_token_accounts(self, address: str) -> list[TokenAccountRecord]:
        result = await self._call(
            address,
            "getTokenAccountsByOwner",
            [address, {"programId": TOKEN_PROGRAM_ID}, {"encoding": "jsonParsed"}],
        )
        entries = result.get("value", []) if isinstance(result, dict) else []
        records = [r for r in (_parse_token_account(e) for e in entries) if r is not None]
        logger.debug(
            "token_accounts_fetched",
            address=address,
            accounts=len(entries),
            parsed=len(records),
        )
        return records

    async def get_native_balance(self, address: str) -> int:
        result = await self._call(address, "getBalance", [address])
        value = result.get("value") if isinstance(result, dict) else result
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ExternalServiceError(
                SERVICE_NAME, f"getBalance returned {value!r}", address=address
            ) from e
