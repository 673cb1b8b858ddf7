"""
Payment transaction builder.

Builds the transaction a wallet receives when it calls a payment link. The
relay is the fee payer; the customer is the transfer authority and signs
first. The merchant/house split is computed here, server-side, so the
customer cannot alter how value is divided.
"""
from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import List

from solders.hash import Hash
from solders.instruction import Instruction
from solders.message import Message
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from .amounts import PaymentSplit, compute_split, format_base_units
from .exceptions import DiscoveryError, RpcError, ValidationError
from .logging_utils import mask_address
from .merchant_layout import MerchantAccount
from .payment_request import PaymentRequest
from .registry import MerchantRegistry, parse_address
from .solana.client import SolanaClient
from .solana.instructions import (
    create_ata_idempotent,
    derive_ata,
    memo,
    system_transfer,
    transfer_checked,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuiltTransaction:
    """An unsigned payment transaction and what it does."""
    transaction: Transaction
    split: PaymentSplit
    merchant: MerchantAccount
    house: str
    message: str

    def to_base64(self) -> str:
        return base64.b64encode(bytes(self.transaction)).decode("ascii")


class PaymentTransactionBuilder:
    """Builds fee-sponsored payment transactions for one network."""

    def __init__(
        self,
        client: SolanaClient,
        registry: MerchantRegistry,
        fee_payer: Pubkey,
        house_fee_bps: int,
        fallback_house: str,
    ) -> None:
        self._client = client
        self._registry = registry
        self._fee_payer = fee_payer
        self._house_fee_bps = house_fee_bps
        self._fallback_house = fallback_house

    async def resolve_house(self) -> str:
        """Fee-collection address from GlobalConfig, or the configured fallback."""
        try:
            config = await self._registry.get_global_config()
        except DiscoveryError as e:
            logger.warning(
                "Global config unavailable (%s); using configured house %s",
                e.message, mask_address(self._fallback_house),
            )
            return self._fallback_house
        return config.house

    async def build(self, request: PaymentRequest, account: str) -> BuiltTransaction:
        """
        Build the unsigned transaction for ``account`` paying ``request``.

        Raises:
            ValidationError: bad customer account, or the merchant cannot be paid
            DiscoveryError: the merchant could not be looked up
            RpcError: no recent blockhash was available
        """
        customer = parse_address(account, "account")
        if customer == self._fee_payer:
            raise ValidationError("Customer account cannot be the relay fee payer", field="account")

        merchant = await self._registry.get_merchant(request.merchant_address)
        house = Pubkey.from_string(await self.resolve_house())
        merchant_pda = Pubkey.from_string(merchant.address)

        split = compute_split(request.amount_base_units, self._house_fee_bps, merchant.fee_eligible)

        if request.token.is_native:
            instructions = self._native_instructions(customer, merchant_pda, house, split)
        else:
            instructions = self._token_instructions(request, customer, merchant_pda, house, split)

        if request.memo:
            instructions.append(memo(request.memo))

        try:
            blockhash = await self._client.get_latest_blockhash()
        except RpcError:
            logger.error("Failed to get recent blockhash for payment to %s", mask_address(merchant.address))
            raise

        message = Message.new_with_blockhash(instructions, self._fee_payer, Hash.from_string(blockhash))
        transaction = Transaction.new_unsigned(message)

        decimals = request.token.decimals
        text = (
            f"Payment of {format_base_units(split.customer_total, decimals)} "
            f"{request.token.symbol} to {merchant.entity_name} (fees covered by GotSOL)"
        )
        logger.info(
            "Built payment tx: %s -> %s, merchant=%d house=%d %s",
            mask_address(str(customer)), mask_address(merchant.address),
            split.merchant_amount, split.house_amount, request.token.symbol,
        )
        return BuiltTransaction(
            transaction=transaction,
            split=split,
            merchant=merchant,
            house=str(house),
            message=text,
        )

    def _native_instructions(
        self,
        customer: Pubkey,
        merchant_pda: Pubkey,
        house: Pubkey,
        split: PaymentSplit,
    ) -> List[Instruction]:
        instructions = [system_transfer(customer, merchant_pda, split.merchant_amount)]
        if split.house_amount > 0:
            instructions.append(system_transfer(customer, house, split.house_amount))
        return instructions

    def _token_instructions(
        self,
        request: PaymentRequest,
        customer: Pubkey,
        merchant_pda: Pubkey,
        house: Pubkey,
        split: PaymentSplit,
    ) -> List[Instruction]:
        mint = Pubkey.from_string(request.token.mint_for(request.network))
        decimals = request.token.decimals
        customer_ata = derive_ata(customer, mint)

        instructions = [create_ata_idempotent(self._fee_payer, merchant_pda, mint)]
        instructions.append(
            transfer_checked(
                customer_ata, mint, derive_ata(merchant_pda, mint),
                customer, split.merchant_amount, decimals,
            )
        )
        if split.house_amount > 0:
            instructions.append(create_ata_idempotent(self._fee_payer, house, mint))
            instructions.append(
                transfer_checked(
                    customer_ata, mint, derive_ata(house, mint),
                    customer, split.house_amount, decimals,
                )
            )
        return instructions
