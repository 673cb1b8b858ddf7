"""
Submission and confirmation of sponsored transactions.

State machine:

    SUBMITTED -> PENDING | REJECTED
    PENDING   -> CONFIRMED | FAILED | TIMED_OUT

Resubmitting the same signed bytes is safe: the signature is fixed by the
bytes, so the network treats a duplicate as a no-op rather than a second
payment. On-chain failures are terminal and never resubmitted.
"""
from __future__ import annotations

import asyncio
import base64
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from solders.transaction import Transaction

from .config import NetworkVariant, RelaySettings
from .exceptions import (
    ConfirmationTimedOut,
    OnChainExecutionFailed,
    RpcError,
    SubmissionError,
    SubmissionRejected,
)
from .solana.client import SEND_TRANSACTION_PREFLIGHT_FAILURE, SolanaClient

logger = logging.getLogger(__name__)

MAX_SUBMIT_RETRIES = 3
CONFIRMED_LEVELS = frozenset({"confirmed", "finalized"})

# Error fragments worth another send attempt
RETRYABLE_ERROR_MARKERS = (
    "rate limit",
    "429",
    "too many requests",
    "timeout",
    "timed out",
    "connection reset",
)

# Resending the same bytes cannot help once their blockhash has expired
EXPIRED_BLOCKHASH_MARKERS = ("blockhash not found",)

# Node already holds this exact transaction
ALREADY_PROCESSED_MARKERS = ("already been processed", "alreadyprocessed")

# Signature verification failure at submit time
SEND_TRANSACTION_SIGNATURE_FAILURE = -32003


class TxState(str, Enum):
    """Where a transaction is in the submission pipeline."""
    SUBMITTED = "submitted"
    PENDING = "pending"
    REJECTED = "rejected"
    CONFIRMED = "confirmed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class ConfirmedTransaction:
    """A transaction that reached the confirmed commitment level."""
    signature: str
    status: str
    explorer_url: str
    slot: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "signature": self.signature,
            "status": self.status,
            "explorer_url": self.explorer_url,
        }


def is_retryable_error(error: RpcError) -> bool:
    """Transport failures and transient node errors can be retried."""
    if _has_expired_blockhash(error):
        return False
    if error.code is None:
        return True
    message = error.message.lower()
    return any(marker in message for marker in RETRYABLE_ERROR_MARKERS)


def _is_already_processed(error: RpcError) -> bool:
    message = error.message.lower()
    return any(marker in message for marker in ALREADY_PROCESSED_MARKERS)


def _has_expired_blockhash(error: RpcError) -> bool:
    message = error.message.lower()
    return any(marker in message for marker in EXPIRED_BLOCKHASH_MARKERS)


class SubmissionEngine:
    """Sends signed transactions and waits for confirmation."""

    def __init__(
        self,
        client: SolanaClient,
        network: NetworkVariant,
        settings: RelaySettings,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._network = network
        self._settings = settings
        self._max_retries = min(settings.max_submit_retries, MAX_SUBMIT_RETRIES)
        self._retry_delay = settings.submit_retry_delay_seconds
        self._timeout = settings.confirmation_timeout_seconds
        self._poll_interval = settings.confirmation_poll_interval_seconds
        self._sleep = sleep
        self._clock = clock

    def explorer_url(self, signature: str) -> str:
        return self._settings.explorer_url(signature, self._network)

    async def submit_and_confirm(self, signed_tx: Transaction | bytes) -> ConfirmedTransaction:
        """
        Send a fully signed transaction and wait for "confirmed".

        Raises:
            SubmissionRejected: the node refused the transaction at submit time
            SubmissionError: the node could not be reached after retries
            OnChainExecutionFailed: the transaction landed with an error
            ConfirmationTimedOut: no verdict before the deadline
        """
        raw = bytes(signed_tx)
        if isinstance(signed_tx, Transaction):
            tx = signed_tx
        else:
            tx = Transaction.from_bytes(raw)
        signature = str(tx.signatures[0])

        await self.submit(raw, signature)
        return await self.confirm(signature)

    async def submit(self, raw: bytes, signature: str) -> str:
        """Send raw transaction bytes, retrying transient failures."""
        encoded = base64.b64encode(raw).decode("ascii")
        attempts = self._max_retries + 1
        last_error: Optional[RpcError] = None

        for attempt in range(1, attempts + 1):
            try:
                sent = await self._client.send_raw_transaction(encoded, max_retries=self._max_retries)
            except RpcError as e:
                last_error = e
                if _is_already_processed(e):
                    logger.info("Transaction %s already known to the cluster", signature)
                    return signature
                if not is_retryable_error(e):
                    raise self._rejection(e, signature) from e
                logger.warning(
                    "Send attempt %d/%d for %s failed: %s",
                    attempt, attempts, signature, e.message,
                )
                if attempt < attempts:
                    await self._sleep(self._retry_delay * attempt)
                continue

            if sent and sent != signature:
                logger.warning("Node returned signature %s, expected %s", sent, signature)
            logger.info("Transaction %s %s", signature, TxState.SUBMITTED.value)
            return signature

        raise SubmissionError(
            f"Could not submit transaction after {attempts} attempts: "
            f"{last_error.message if last_error else 'unknown error'}",
            signature=signature,
            explorer_url=self.explorer_url(signature),
        )

    def _rejection(self, error: RpcError, signature: str) -> SubmissionError:
        rejected_codes = (SEND_TRANSACTION_PREFLIGHT_FAILURE, SEND_TRANSACTION_SIGNATURE_FAILURE)
        if error.code in rejected_codes or _has_expired_blockhash(error):
            logger.warning("Transaction %s %s: %s", signature, TxState.REJECTED.value, error.message)
            details: dict[str, Any] = {}
            if isinstance(error.data, dict):
                if error.data.get("err") is not None:
                    details["raw_error"] = error.data["err"]
                if error.data.get("logs"):
                    details["logs"] = error.data["logs"]
            return SubmissionRejected(
                f"Transaction rejected by the network: {error.message}",
                signature=signature,
                details=details,
            )
        return SubmissionError(
            f"Transaction submission failed: {error.message}",
            signature=signature,
            details={"rpc_code": error.code},
        )

    async def confirm(self, signature: str) -> ConfirmedTransaction:
        """Poll signature status until confirmed, failed, or the deadline.

        The deadline also bounds each status poll, so a stalled RPC call
        cannot stretch the wait past it.
        """
        deadline = self._clock() + self._timeout
        explorer_url = self.explorer_url(signature)
        state = TxState.PENDING

        while True:
            remaining = deadline - self._clock()
            if remaining <= 0:
                raise self._timed_out(signature, explorer_url)
            try:
                status = await asyncio.wait_for(
                    self._client.get_signature_status(signature), timeout=remaining,
                )
            except asyncio.TimeoutError:
                raise self._timed_out(signature, explorer_url) from None
            except RpcError as e:
                logger.debug("Status poll for %s failed: %s", signature, e.message)
                status = None

            if status is not None:
                if status.get("err") is not None:
                    state = TxState.FAILED
                    logger.warning("Transaction %s %s: %s", signature, state.value, status["err"])
                    raise OnChainExecutionFailed(
                        "Transaction failed on-chain; check the explorer for details",
                        signature=signature,
                        raw_error=status["err"],
                        explorer_url=explorer_url,
                    )
                if status.get("confirmationStatus") in CONFIRMED_LEVELS:
                    state = TxState.CONFIRMED
                    logger.info("Transaction %s %s", signature, state.value)
                    return ConfirmedTransaction(
                        signature=signature,
                        status=state.value,
                        explorer_url=explorer_url,
                        slot=status.get("slot"),
                    )

            await self._sleep(self._poll_interval)

    def _timed_out(self, signature: str, explorer_url: str) -> ConfirmationTimedOut:
        logger.warning("Transaction %s %s after %ss", signature, TxState.TIMED_OUT.value, self._timeout)
        return ConfirmationTimedOut(signature, self._timeout, explorer_url=explorer_url)
