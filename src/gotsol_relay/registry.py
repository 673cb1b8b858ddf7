"""
Merchant registry reader.

Discovers merchant accounts owned by a wallet via a filtered program-account
scan, decodes them, and hides anything that is not a valid payment target.
Decode failures are partial: the bad record is logged and dropped, the rest
of the batch is returned.
"""
from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import base58
from solders.pubkey import Pubkey

from .exceptions import DecodeError, DiscoveryError, RpcError, ValidationError
from .logging_utils import mask_address
from .merchant_layout import (
    GLOBAL_SEED,
    MERCHANT_SEED,
    GlobalConfig,
    MerchantAccount,
    decode_global_config,
    decode_merchant_account,
    merchant_filters,
)
from .solana.client import SolanaClient

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL = 300.0  # account mutation is rare


def parse_address(value: str, field: str = "address") -> Pubkey:
    """Validate a base58 address before it reaches any network call."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Missing {field}", field=field)
    try:
        raw = base58.b58decode(value.strip())
    except ValueError:
        raw = b""
    if len(raw) != 32:
        raise ValidationError(f"Invalid {field}: not a valid Solana address", field=field)
    return Pubkey(raw)


def derive_merchant_address(entity_name: str, owner: str, program_id: str) -> str:
    """PDA for seeds ["merchant", entity_name, owner]."""
    address, _bump = Pubkey.find_program_address(
        [MERCHANT_SEED, entity_name.encode("utf-8"), bytes(parse_address(owner, "owner"))],
        Pubkey.from_string(program_id),
    )
    return str(address)


def derive_global_config_address(program_id: str) -> str:
    """PDA for seeds ["global"]."""
    address, _bump = Pubkey.find_program_address([GLOBAL_SEED], Pubkey.from_string(program_id))
    return str(address)


def _account_bytes(account: Dict[str, Any]) -> bytes:
    data = account.get("data")
    if isinstance(data, list) and data:
        data = data[0]
    if not isinstance(data, str):
        raise DecodeError("account data is not base64 encoded")
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        raise DecodeError("account data is not valid base64") from None


@dataclass
class _CacheEntry:
    merchants: List[MerchantAccount]
    expires_at: float


class MerchantRegistry:
    """Read-only view of GotSOL merchant accounts on one network.

    Safe to share across concurrent requests: the lock guards only the
    read-through cache and is never held across a network call.
    """

    def __init__(
        self,
        client: SolanaClient,
        program_id: str,
        cache_ttl: float = DEFAULT_CACHE_TTL,
    ) -> None:
        self._client = client
        self._program_id = program_id
        self._cache_ttl = cache_ttl
        self._cache: Dict[str, _CacheEntry] = {}
        self._global_config: Optional[GlobalConfig] = None
        self._lock = asyncio.Lock()

    @property
    def program_id(self) -> str:
        return self._program_id

    async def find_merchants_by_owner(self, owner: str) -> List[MerchantAccount]:
        """
        Active merchants owned by ``owner``, sorted by entity name.

        Raises:
            ValidationError: owner is not a valid address
            DiscoveryError: the network could not be queried
        """
        owner = str(parse_address(owner, "owner"))

        async with self._lock:
            cached = self._cache.get(owner)
        if cached and cached.expires_at > time.monotonic():
            return list(cached.merchants)

        try:
            raw_accounts = await self._client.get_program_accounts(
                self._program_id, merchant_filters(owner)
            )
        except RpcError as e:
            logger.warning("Merchant discovery failed for %s: %s", mask_address(owner), e)
            raise DiscoveryError(
                "Merchant registry is temporarily unavailable",
                details={"owner": owner},
            ) from e

        merchants: List[MerchantAccount] = []
        for entry in raw_accounts:
            pubkey = entry.get("pubkey", "")
            try:
                data = _account_bytes(entry.get("account", {}))
            except DecodeError as e:
                logger.error("Error decoding account %s: %s", pubkey, e)
                continue

            result = decode_merchant_account(pubkey, data)
            if not result.ok:
                logger.error("Error decoding account %s: %s", pubkey, result.error)
                continue

            merchant = result.unwrap()
            if merchant.owner != owner:
                logger.warning(
                    "Dropping account %s: owner %s does not match filter %s",
                    pubkey, mask_address(merchant.owner), mask_address(owner),
                )
                continue
            if not merchant.is_active:
                logger.debug("Skipping inactive merchant %s", pubkey)
                continue
            merchants.append(merchant)

        merchants.sort(key=lambda m: m.entity_name)

        async with self._lock:
            self._cache[owner] = _CacheEntry(
                merchants=merchants,
                expires_at=time.monotonic() + self._cache_ttl,
            )
        logger.info("Found %d active merchants for %s", len(merchants), mask_address(owner))
        return list(merchants)

    async def get_merchant(self, address: str) -> MerchantAccount:
        """
        Load one merchant by its account address and check it can be paid.

        Raises:
            ValidationError: bad address, not a merchant, or inactive
            DiscoveryError: the network could not be queried
        """
        address = str(parse_address(address, "merchant"))
        try:
            account = await self._client.get_account_info(address)
        except RpcError as e:
            raise DiscoveryError("Merchant registry is temporarily unavailable") from e

        if account is None:
            raise ValidationError("Merchant account not found", field="merchant")
        if account.get("owner") != self._program_id:
            raise ValidationError("Address is not a GotSOL merchant account", field="merchant")

        try:
            data = _account_bytes(account)
        except DecodeError as e:
            logger.error("Error decoding account %s: %s", address, e)
            raise ValidationError("Address is not a GotSOL merchant account", field="merchant") from e

        result = decode_merchant_account(address, data)
        if not result.ok:
            logger.error("Error decoding account %s: %s", address, result.error)
            raise ValidationError("Address is not a GotSOL merchant account", field="merchant")

        merchant = result.unwrap()
        if not merchant.is_active:
            raise ValidationError("Merchant is not accepting payments", field="merchant")
        return merchant

    async def get_global_config(self) -> GlobalConfig:
        """Load the platform singleton once per process."""
        if self._global_config is not None:
            return self._global_config

        address = derive_global_config_address(self._program_id)
        try:
            account = await self._client.get_account_info(address)
        except RpcError as e:
            raise DiscoveryError("Global config is temporarily unavailable") from e
        if account is None:
            raise DiscoveryError("Global config account does not exist", details={"address": address})

        try:
            config = decode_global_config(address, _account_bytes(account))
        except DecodeError as e:
            raise DiscoveryError(f"Global config could not be decoded: {e.message}") from e

        self._global_config = config
        return config

    def invalidate(self, owner: Optional[str] = None) -> None:
        """Drop cached lookups for one owner, or all of them."""
        if owner is None:
            self._cache.clear()
        else:
            self._cache.pop(owner, None)
