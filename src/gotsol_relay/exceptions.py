"""Unified exception hierarchy for the GotSOL relay.

All relay exceptions inherit from RelayError, enabling:
- Consistent error handling across the payment pipeline
- HTTP status code mapping in the API layer
- Structured error responses with machine-readable codes

All exceptions have:
- error_code: Machine-readable error code (e.g., "VALIDATION_ERROR")
- http_status: HTTP status used when the error reaches a client
- message: Human-readable error message
- details: Optional additional context dictionary
- to_dict(): Convert to API response format

Details must never carry key material, balances of the fee payer, or raw
account bytes.
"""
from __future__ import annotations

from typing import Any, Optional


class RelayError(Exception):
    """Base exception for all relay errors."""

    error_code: str = "RELAY_ERROR"
    http_status: int = 500

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response format."""
        result: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Input errors
# =============================================================================

class ValidationError(RelayError):
    """Malformed input, caught before any network call."""

    error_code = "VALIDATION_ERROR"
    http_status = 400

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, details=details)


class DecodeError(RelayError):
    """On-chain account bytes do not match the expected schema."""

    error_code = "DECODE_ERROR"
    http_status = 502


# =============================================================================
# Network / discovery errors
# =============================================================================

class RpcError(RelayError):
    """JSON-RPC call failed at transport or protocol level."""

    error_code = "RPC_ERROR"
    http_status = 502

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        data: Any = None,
    ) -> None:
        self.code = code
        self.data = data
        details: dict[str, Any] = {}
        if code is not None:
            details["rpc_code"] = code
        super().__init__(message, details=details)


class DiscoveryError(RelayError):
    """Merchant registry could not be read; callers degrade to empty results."""

    error_code = "DISCOVERY_ERROR"
    http_status = 503


# =============================================================================
# Signing refusals (fail closed, nothing signed)
# =============================================================================

class SigningRefused(RelayError):
    """Base class for fee-sponsorship refusals."""

    error_code = "SIGNING_REFUSED"
    http_status = 400


class InsufficientFeePayerBalance(SigningRefused):
    """Fee payer balance is at or below the safety floor."""

    error_code = "INSUFFICIENT_FEE_PAYER_BALANCE"
    http_status = 503

    def __init__(self, message: str = "Fee sponsorship is temporarily unavailable; the fee payer needs funding") -> None:
        super().__init__(message)


class MalformedTransaction(SigningRefused):
    """Transaction bytes do not decode, or decode to an empty transaction."""

    error_code = "MALFORMED_TRANSACTION"
    http_status = 400


class UnauthorizedFeePayerAssignment(SigningRefused):
    """Transaction declares a fee payer other than this relay."""

    error_code = "UNAUTHORIZED_FEE_PAYER"
    http_status = 403


# =============================================================================
# Submission / confirmation outcomes
# =============================================================================

class SubmissionError(RelayError):
    """Base class for submission and confirmation failures."""

    error_code = "SUBMISSION_ERROR"
    http_status = 502

    def __init__(
        self,
        message: str,
        signature: Optional[str] = None,
        explorer_url: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.signature = signature
        self.explorer_url = explorer_url
        details = details or {}
        if signature:
            details["signature"] = signature
        if explorer_url:
            details["explorer_url"] = explorer_url
        super().__init__(message, details=details)


class SubmissionRejected(SubmissionError):
    """The RPC node refused the transaction at submit time (preflight)."""

    error_code = "SUBMISSION_REJECTED"
    http_status = 422


class OnChainExecutionFailed(SubmissionError):
    """Transaction landed but execution failed. Terminal, never retried."""

    error_code = "ONCHAIN_EXECUTION_FAILED"
    http_status = 422

    def __init__(
        self,
        message: str,
        signature: Optional[str] = None,
        raw_error: Any = None,
        explorer_url: Optional[str] = None,
    ) -> None:
        self.raw_error = raw_error
        super().__init__(
            message,
            signature=signature,
            explorer_url=explorer_url,
            details={"raw_error": raw_error} if raw_error is not None else None,
        )


class ConfirmationTimedOut(SubmissionError):
    """Confirmation deadline passed. Outcome is unknown, not failed."""

    error_code = "CONFIRMATION_TIMED_OUT"
    http_status = 504

    def __init__(
        self,
        signature: str,
        timeout_seconds: float,
        explorer_url: Optional[str] = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Transaction {signature} was not confirmed within {timeout_seconds:g}s. "
            "Its outcome is unknown and it may still land; check the explorer "
            "before retrying.",
            signature=signature,
            explorer_url=explorer_url,
        )


# =============================================================================
# Internal-only
# =============================================================================

class PriceFeedDegraded(RelayError):
    """Price feed fetch failed. Logged and absorbed by the price cache."""

    error_code = "PRICE_FEED_DEGRADED"
    http_status = 200


class FeePayerLoadError(RelayError):
    """Fee payer key missing or unparseable. The service refuses to start."""

    error_code = "FEE_PAYER_LOAD_ERROR"
    http_status = 500
