"""Dependency container for the relay API.

Everything the routers need is built once at startup and handed to FastAPI
through ``app.dependency_overrides[get_deps]``. Tests swap in fakes the same
way.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Optional

from ..config import NetworkVariant, RelaySettings
from ..exceptions import ValidationError
from ..fee_payer import FeePayerIdentity, FeeSponsorshipSigner, load_fee_payer
from ..payment_request import PaymentRequestBuilder
from ..price_cache import CoinGeckoPriceFetcher, PriceCache
from ..registry import MerchantRegistry
from ..solana.client import SolanaClientPool
from ..submission import SubmissionEngine
from ..transaction_builder import PaymentTransactionBuilder

logger = logging.getLogger(__name__)


@dataclass
class NetworkServices:
    """Per-network collaborators sharing one RPC client."""
    registry: MerchantRegistry
    transaction_builder: PaymentTransactionBuilder
    signer: FeeSponsorshipSigner
    submission: SubmissionEngine


@dataclass
class RelayDependencies:
    settings: RelaySettings
    request_builder: PaymentRequestBuilder
    price_cache: PriceCache
    networks: Dict[NetworkVariant, NetworkServices]
    fee_payer: Optional[FeePayerIdentity] = None
    client_pool: Optional[SolanaClientPool] = None
    price_fetcher: Optional[CoinGeckoPriceFetcher] = field(default=None, repr=False)

    def for_network(self, network: NetworkVariant) -> NetworkServices:
        try:
            return self.networks[network]
        except KeyError:
            raise ValidationError(
                f"Network {network.value} is not enabled on this relay",
                field="network",
            ) from None

    async def close(self) -> None:
        if self.client_pool is not None:
            await self.client_pool.close()
        if self.price_fetcher is not None:
            await self.price_fetcher.close()


def get_deps() -> RelayDependencies:
    raise NotImplementedError("Dependency override required")


def build_dependencies(settings: RelaySettings) -> RelayDependencies:
    """
    Wire up the production object graph.

    Raises:
        FeePayerLoadError: the fee-payer key is missing or invalid
    """
    secret = settings.fee_payer_private_key.get_secret_value() if settings.fee_payer_private_key else None
    identity = load_fee_payer(secret)

    pool = SolanaClientPool(settings)
    networks: Dict[NetworkVariant, NetworkServices] = {}
    for network in NetworkVariant:
        client = pool.get(network)
        registry = MerchantRegistry(
            client,
            settings.program_id,
            cache_ttl=settings.registry_cache_ttl_seconds,
        )
        networks[network] = NetworkServices(
            registry=registry,
            transaction_builder=PaymentTransactionBuilder(
                client,
                registry,
                fee_payer=identity.pubkey,
                house_fee_bps=settings.house_fee_bps,
                fallback_house=settings.house_address,
            ),
            signer=FeeSponsorshipSigner(identity, client, settings.safety_floor_lamports),
            submission=SubmissionEngine(client, network, settings),
        )

    fetcher = CoinGeckoPriceFetcher(
        url=settings.price_feed_url,
        timeout=settings.price_feed_timeout_seconds,
    )
    price_cache = PriceCache(
        fetcher,
        ttl=settings.price_cache_ttl_seconds,
        fallback_price=Decimal(settings.price_fallback_usd),
    )

    return RelayDependencies(
        settings=settings,
        request_builder=PaymentRequestBuilder(settings.public_base_url),
        price_cache=price_cache,
        networks=networks,
        fee_payer=identity,
        client_pool=pool,
        price_fetcher=fetcher,
    )
