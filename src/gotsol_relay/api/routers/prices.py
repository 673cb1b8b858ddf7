"""Fiat price estimates."""
from __future__ import annotations

import time
from typing import Any

from fastapi import APIRouter, Depends, Query

from ...amounts import parse_amount
from ...exceptions import ValidationError
from ..dependencies import RelayDependencies, get_deps

router = APIRouter()


@router.get("/sol")
async def sol_price(
    usd: str = Query(default="1"),
    deps: RelayDependencies = Depends(get_deps),
) -> dict[str, Any]:
    try:
        usd_amount = parse_amount(usd)
    except ValidationError as e:
        raise ValidationError(e.message, field="usd") from e

    quote = await deps.price_cache.convert_usd_to_sol(usd_amount)
    return {
        "usd": str(quote.usd_amount),
        "sol": str(quote.sol_amount),
        "sol_price_usd": str(quote.price),
        "expires_in_seconds": max(0, int(quote.expires_at - time.monotonic())),
        "degraded": quote.degraded,
    }
