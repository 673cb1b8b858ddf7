"""
Fee-sponsorship signer.

The relay holds one fee-payer keypair for the life of the process and
co-signs customer transactions that name it as fee payer. Before anything is
signed three checks run in a fixed order; the first failure wins and nothing
is signed:

    1. fee payer balance is strictly above the safety floor
    2. the bytes decode to a transaction with at least one instruction
    3. the transaction's fee payer (first account key) is this relay

Signing only fills the fee-payer signature slot. The message bytes and every
other signature slot are left exactly as the customer produced them.
"""
from __future__ import annotations

import base64
import binascii
import json
import logging
from dataclasses import dataclass
from typing import Union

import base58
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction

from .exceptions import (
    FeePayerLoadError,
    InsufficientFeePayerBalance,
    MalformedTransaction,
    RpcError,
    UnauthorizedFeePayerAssignment,
)
from .logging_utils import get_redaction_filter, mask_address
from .solana.client import SolanaClient

logger = logging.getLogger(__name__)

LAMPORTS_PER_SOL = 1_000_000_000

# Rough per-operation costs used only for operator estimates
LAMPORTS_PER_SIGNATURE = 5_000
LAMPORTS_PER_ATA_CREATION = 2_000_000

HEALTHY_BALANCE_LAMPORTS = LAMPORTS_PER_SOL // 100  # 0.01 SOL
REFILL_BALANCE_LAMPORTS = LAMPORTS_PER_SOL // 20  # 0.05 SOL


class FeePayerIdentity:
    """The relay's fee-payer keypair. Read-only once loaded."""

    __slots__ = ("_keypair", "_pubkey")

    def __init__(self, keypair: Keypair) -> None:
        self._keypair = keypair
        self._pubkey = keypair.pubkey()

    @property
    def pubkey(self) -> Pubkey:
        return self._pubkey

    @property
    def address(self) -> str:
        return str(self._pubkey)

    def sign(self, message: bytes) -> Signature:
        return self._keypair.sign_message(message)

    def __repr__(self) -> str:
        return f"FeePayerIdentity(pubkey={self.address})"

    __str__ = __repr__


def _parse_secret_bytes(secret: str) -> bytes:
    text = secret.strip().strip("'\"").strip()
    if not text:
        raise FeePayerLoadError("Fee payer private key is empty")

    if text.startswith("["):
        try:
            values = json.loads(text)
        except json.JSONDecodeError:
            raise FeePayerLoadError("Fee payer key looks like JSON but does not parse") from None
        return _bytes_from_ints(values)

    if "," in text:
        try:
            values = [int(part.strip()) for part in text.split(",") if part.strip()]
        except ValueError:
            raise FeePayerLoadError("Fee payer key byte list contains non-integers") from None
        return _bytes_from_ints(values)

    try:
        return base58.b58decode(text)
    except ValueError:
        raise FeePayerLoadError("Fee payer key is not valid base58") from None


def _bytes_from_ints(values) -> bytes:
    if not isinstance(values, list) or not all(isinstance(v, int) for v in values):
        raise FeePayerLoadError("Fee payer key must be a list of byte values")
    if any(v < 0 or v > 255 for v in values):
        raise FeePayerLoadError("Fee payer key byte values must be in 0..255")
    return bytes(values)


def load_fee_payer(secret: str | None) -> FeePayerIdentity:
    """
    Load the fee-payer keypair from its configured secret.

    Accepts a base58 string, a JSON array of 64 byte values, or a
    comma-separated byte list, optionally wrapped in quotes. The secret is
    registered with the log redaction filter before anything else happens.

    Raises:
        FeePayerLoadError: secret is missing or unparseable
    """
    if secret is None or not secret.strip():
        raise FeePayerLoadError("Fee payer private key is not configured")

    get_redaction_filter().add_secret(secret.strip())

    raw = _parse_secret_bytes(secret)
    if len(raw) != 64:
        raise FeePayerLoadError(f"Fee payer key must be 64 bytes, got {len(raw)}")

    try:
        keypair = Keypair.from_bytes(raw)
    except ValueError:
        raise FeePayerLoadError("Fee payer key bytes do not form a valid keypair") from None

    identity = FeePayerIdentity(keypair)
    logger.info("Fee payer loaded: %s", mask_address(identity.address))
    return identity


@dataclass(frozen=True)
class SponsoredTransaction:
    """A transaction carrying the relay's fee-payer signature."""
    transaction: Transaction
    fee_payer: str

    def to_bytes(self) -> bytes:
        return bytes(self.transaction)

    def to_base64(self) -> str:
        return base64.b64encode(bytes(self.transaction)).decode("ascii")


@dataclass(frozen=True)
class FeePayerStatus:
    """Operator view of the fee payer's funding."""
    address: str
    balance_lamports: int
    safety_floor_lamports: int

    @property
    def balance_sol(self) -> float:
        return self.balance_lamports / LAMPORTS_PER_SOL

    @property
    def can_sponsor(self) -> bool:
        return self.balance_lamports > self.safety_floor_lamports

    @property
    def healthy(self) -> bool:
        return self.balance_lamports > HEALTHY_BALANCE_LAMPORTS

    @property
    def needs_refill(self) -> bool:
        return self.balance_lamports < REFILL_BALANCE_LAMPORTS

    @property
    def health(self) -> str:
        if not self.healthy:
            return "critical"
        if self.needs_refill:
            return "warning"
        return "good"

    @property
    def estimated_transactions(self) -> int:
        return self.balance_lamports // LAMPORTS_PER_SIGNATURE

    @property
    def estimated_ata_creations(self) -> int:
        return self.balance_lamports // LAMPORTS_PER_ATA_CREATION


def decode_transaction(payload: Union[str, bytes]) -> Transaction:
    """Decode base64 text or raw bytes into a legacy transaction.

    Raises:
        MalformedTransaction: not a transaction, or one with no instructions
    """
    if isinstance(payload, str):
        try:
            raw = base64.b64decode(payload.strip(), validate=True)
        except (binascii.Error, ValueError):
            raise MalformedTransaction("Transaction is not valid base64") from None
    else:
        raw = bytes(payload)

    if not raw:
        raise MalformedTransaction("Transaction is empty")

    try:
        tx = Transaction.from_bytes(raw)
    except Exception as e:  # solders raises its own error types for bad wire bytes
        raise MalformedTransaction(f"Transaction could not be decoded: {e}") from None

    if not tx.message.instructions:
        raise MalformedTransaction("Transaction contains no instructions")
    if not tx.message.account_keys:
        raise MalformedTransaction("Transaction declares no accounts")
    if not tx.signatures:
        raise MalformedTransaction("Transaction has no signature slots")
    return tx


class FeeSponsorshipSigner:
    """Validates and co-signs transactions as the relay's fee payer."""

    def __init__(
        self,
        identity: FeePayerIdentity,
        client: SolanaClient,
        safety_floor_lamports: int,
    ) -> None:
        self._identity = identity
        self._client = client
        self._safety_floor = safety_floor_lamports

    @property
    def identity(self) -> FeePayerIdentity:
        return self._identity

    @property
    def safety_floor_lamports(self) -> int:
        return self._safety_floor

    async def sign(self, transaction: Union[str, bytes]) -> SponsoredTransaction:
        """
        Co-sign a customer transaction as fee payer.

        Raises:
            InsufficientFeePayerBalance: balance at or below the safety floor
            MalformedTransaction: bytes do not decode or carry no instructions
            UnauthorizedFeePayerAssignment: fee payer is not this relay
            RpcError: the balance could not be read
        """
        balance = await self._client.get_balance(self._identity.address)
        if balance <= self._safety_floor:
            logger.warning(
                "Refusing to sponsor: fee payer %s is at or below the safety floor",
                mask_address(self._identity.address),
            )
            raise InsufficientFeePayerBalance()

        tx = decode_transaction(transaction)

        message = tx.message
        declared = message.account_keys[0]
        if declared != self._identity.pubkey:
            logger.warning(
                "Refusing to sponsor: transaction names fee payer %s",
                mask_address(str(declared)),
            )
            raise UnauthorizedFeePayerAssignment(
                "Transaction fee payer is not this relay",
                details={"fee_payer": str(declared)},
            )

        signatures = list(tx.signatures)
        signatures[0] = self._identity.sign(bytes(message))
        signed = Transaction.populate(message, signatures)

        logger.debug("Co-signed transaction as fee payer %s", mask_address(self._identity.address))
        return SponsoredTransaction(transaction=signed, fee_payer=self._identity.address)

    async def status(self) -> FeePayerStatus:
        """Balance and refill estimate for operators. Not exposed over HTTP."""
        try:
            balance = await self._client.get_balance(self._identity.address)
        except RpcError:
            logger.error("Failed to read fee payer balance for %s", mask_address(self._identity.address))
            raise
        return FeePayerStatus(
            address=self._identity.address,
            balance_lamports=balance,
            safety_floor_lamports=self._safety_floor,
        )
