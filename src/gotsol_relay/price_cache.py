"""
SOL/USD price cache.

Live pricing via CoinGecko (free tier, no API key) with a degradation
ladder: fresh cache → live fetch → stale cache → hardcoded fallback.
Price estimation is advisory; get_price() never raises.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from decimal import Decimal, DecimalException, InvalidOperation
from typing import Awaitable, Callable, Optional

import httpx

from .config import PRICE_FEED_URL
from .exceptions import PriceFeedDegraded, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL = 60.0
FALLBACK_PRICE_USD = Decimal("100")
SOL_QUANTUM = Decimal("0.000000001")

PriceFetcher = Callable[[], Awaitable[Decimal]]


@dataclass(frozen=True)
class PriceCacheEntry:
    """Cached price entry."""
    price: Decimal
    fetched_at: float
    expires_at: float
    source: str  # "live" or "fallback"

    def is_fresh(self, now: float) -> bool:
        return now < self.expires_at


@dataclass(frozen=True)
class PriceQuote:
    """USD amount converted to SOL at the current estimate."""
    usd_amount: Decimal
    sol_amount: Decimal
    price: Decimal
    expires_at: float
    degraded: bool


class CoinGeckoPriceFetcher:
    """Fetch the SOL/USD price from CoinGecko."""

    def __init__(
        self,
        url: str = PRICE_FEED_URL,
        timeout: float = 5.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._url = url
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    async def __call__(self) -> Decimal:
        try:
            resp = await self._client.get(self._url)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise PriceFeedDegraded(f"Price feed request failed: {e}") from e

        raw = data.get("solana", {}).get("usd") if isinstance(data, dict) else None
        try:
            price = Decimal(str(raw))
        except (InvalidOperation, ValueError):
            raise PriceFeedDegraded(f"Invalid price data received: {raw!r}") from None
        if not price.is_finite() or price <= 0:
            raise PriceFeedDegraded(f"Invalid price data received: {raw!r}")
        return price

    async def close(self) -> None:
        await self._client.aclose()


class PriceCache:
    """
    Single-key price cache with single-flight refresh.

    One asyncio.Lock guards the entry and the in-flight future; it is never
    held while the fetch is awaited. Concurrent callers that miss the cache
    share the one outstanding fetch.
    """

    def __init__(
        self,
        fetcher: PriceFetcher,
        ttl: float = DEFAULT_CACHE_TTL,
        fallback_price: Decimal = FALLBACK_PRICE_USD,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetcher = fetcher
        self._ttl = ttl
        self._fallback_price = fallback_price
        self._clock = clock
        self._lock = asyncio.Lock()
        self._entry: Optional[PriceCacheEntry] = None
        self._inflight: Optional[asyncio.Future] = None

    @property
    def entry(self) -> Optional[PriceCacheEntry]:
        """Current entry, fresh or not (for diagnostics)."""
        return self._entry

    async def get_price(self) -> Decimal:
        """Current SOL price in USD."""
        async with self._lock:
            entry = self._entry
            if entry is not None and entry.is_fresh(self._clock()):
                return entry.price

            if self._inflight is None:
                self._inflight = asyncio.ensure_future(self._refresh())
            inflight = self._inflight

        return await asyncio.shield(inflight)

    async def _refresh(self) -> Decimal:
        try:
            try:
                price = await self._fetcher()
            except PriceFeedDegraded as e:
                return await self._degrade(e)
            except Exception as e:
                return await self._degrade(PriceFeedDegraded(f"Price feed error: {e}"))

            now = self._clock()
            async with self._lock:
                self._entry = PriceCacheEntry(
                    price=price,
                    fetched_at=now,
                    expires_at=now + self._ttl,
                    source="live",
                )
            logger.debug("Fresh SOL price fetched and cached: %s", price)
            return price
        finally:
            async with self._lock:
                self._inflight = None

    async def _degrade(self, error: PriceFeedDegraded) -> Decimal:
        async with self._lock:
            entry = self._entry
        if entry is not None:
            logger.warning(
                "Using expired cached SOL price %s (source=%s): %s",
                entry.price, entry.source, error.message,
            )
            return entry.price

        logger.warning(
            "Using fallback SOL price $%s: %s", self._fallback_price, error.message,
        )
        return self._fallback_price

    async def convert_usd_to_sol(self, usd_amount: Decimal) -> PriceQuote:
        """Estimate how much SOL a USD amount is worth.

        Raises:
            ValidationError: the amount is too large to convert
        """
        price = await self.get_price()
        try:
            sol_amount = (usd_amount / price).quantize(SOL_QUANTUM)
        except DecimalException:
            raise ValidationError("Amount is too large to convert", field="usd") from None
        entry = self._entry
        degraded = entry is None or not entry.is_fresh(self._clock())
        expires_at = entry.expires_at if entry is not None else self._clock() + self._ttl
        return PriceQuote(
            usd_amount=usd_amount,
            sol_amount=sol_amount,
            price=price,
            expires_at=expires_at,
            degraded=degraded,
        )

    def clear(self) -> None:
        self._entry = None
