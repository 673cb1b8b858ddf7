"""Solana RPC client wrapper."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from ..config import NetworkVariant, RelaySettings
from ..exceptions import RpcError
from ..logging_utils import mask_url

logger = logging.getLogger(__name__)

# JSON-RPC error code for a failed preflight simulation
SEND_TRANSACTION_PREFLIGHT_FAILURE = -32002


@dataclass
class SolanaConfig:
    """Solana connection configuration."""
    rpc_url: str
    commitment: str = "confirmed"
    timeout: float = 30.0


def get_solana_config(settings: RelaySettings, network: NetworkVariant) -> SolanaConfig:
    """Build Solana config for one network from relay settings."""
    return SolanaConfig(
        rpc_url=settings.rpc_url_for(network),
        timeout=settings.rpc_timeout_seconds,
    )


class SolanaClient:
    """Async Solana JSON-RPC client.

    All Solana RPC methods are called via JSON-RPC 2.0. Transport failures
    surface as RpcError with no code; protocol errors carry the RPC code.
    """

    def __init__(
        self,
        config: SolanaConfig,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.config = config
        self._client = http_client or httpx.AsyncClient(timeout=self.config.timeout)
        self._request_id = 0

    async def _rpc(self, method: str, params: list[Any] | None = None) -> Any:
        """Make a JSON-RPC call to Solana."""
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params or [],
        }
        try:
            resp = await self._client.post(self.config.rpc_url, json=payload)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as e:
            logger.warning(
                "RPC %s to %s failed: HTTP %s",
                method, mask_url(self.config.rpc_url), e.response.status_code,
            )
            raise RpcError(f"{method} failed: HTTP {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("RPC %s to %s failed: %s", method, mask_url(self.config.rpc_url), e)
            raise RpcError(f"{method} failed: {e}") from e

        if "error" in data:
            error = data["error"]
            raise RpcError(
                error.get("message", "Unknown RPC error"),
                code=error.get("code"),
                data=error.get("data"),
            )
        return data.get("result")

    async def get_balance(self, pubkey: str) -> int:
        """Get SOL balance in lamports."""
        result = await self._rpc("getBalance", [pubkey, {"commitment": self.config.commitment}])
        return result["value"]

    async def get_account_info(self, pubkey: str) -> Optional[dict[str, Any]]:
        """Get a single account with base64 data, or None if it does not exist."""
        result = await self._rpc(
            "getAccountInfo",
            [pubkey, {"encoding": "base64", "commitment": self.config.commitment}],
        )
        return result.get("value")

    async def get_program_accounts(
        self,
        program_id: str,
        filters: list[dict[str, Any]],
    ) -> list[dict[str, Any]]:
        """Scan accounts owned by a program, filtered server-side."""
        result = await self._rpc(
            "getProgramAccounts",
            [
                program_id,
                {
                    "encoding": "base64",
                    "commitment": self.config.commitment,
                    "filters": filters,
                },
            ],
        )
        # Some providers wrap the list in a context object
        if isinstance(result, dict):
            return result.get("value", [])
        return result or []

    async def get_latest_blockhash(self) -> str:
        """Get latest blockhash for transaction building."""
        result = await self._rpc(
            "getLatestBlockhash", [{"commitment": self.config.commitment}]
        )
        return result["value"]["blockhash"]

    async def send_raw_transaction(
        self,
        signed_tx_base64: str,
        max_retries: Optional[int] = None,
    ) -> str:
        """Send a signed transaction. Returns transaction signature."""
        opts: dict[str, Any] = {
            "encoding": "base64",
            "skipPreflight": False,
            "preflightCommitment": self.config.commitment,
        }
        if max_retries is not None:
            opts["maxRetries"] = max_retries
        result = await self._rpc("sendTransaction", [signed_tx_base64, opts])
        logger.info("Solana tx sent: %s", result)
        return result

    async def get_signature_status(self, signature: str) -> Optional[dict[str, Any]]:
        """Status of one signature, or None if the cluster has not seen it."""
        result = await self._rpc(
            "getSignatureStatuses",
            [[signature], {"searchTransactionHistory": False}],
        )
        statuses = result.get("value", [])
        if not statuses:
            return None
        return statuses[0]

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()


class SolanaClientPool:
    """One client per network, created lazily and shared across requests."""

    def __init__(self, settings: RelaySettings) -> None:
        self._settings = settings
        self._clients: dict[NetworkVariant, SolanaClient] = {}

    def get(self, network: NetworkVariant) -> SolanaClient:
        client = self._clients.get(network)
        if client is None:
            config = get_solana_config(self._settings, network)
            client = SolanaClient(config)
            self._clients[network] = client
            logger.info("Created Solana client for %s using %s", network.value, mask_url(config.rpc_url))
        return client

    async def close(self) -> None:
        for client in self._clients.values():
            await client.close()
        self._clients.clear()
