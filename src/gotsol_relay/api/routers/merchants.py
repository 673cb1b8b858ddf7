"""Merchant lookup for the dashboard."""
from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query

from ...exceptions import DiscoveryError
from ...payment_request import parse_network
from ..dependencies import RelayDependencies, get_deps

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
async def list_merchants(
    owner: str = Query(..., description="Wallet that owns the merchant accounts"),
    network: Optional[str] = Query(default=None),
    deps: RelayDependencies = Depends(get_deps),
) -> dict[str, Any]:
    """Active merchants for an owner. Degrades to an empty list when the
    registry cannot be read."""
    services = deps.for_network(parse_network(network or deps.settings.default_network))
    try:
        merchants = await services.registry.find_merchants_by_owner(owner)
    except DiscoveryError as e:
        logger.warning("Serving empty merchant list: %s", e.message)
        return {"merchants": [], "degraded": True}

    return {
        "merchants": [m.to_dict() for m in merchants],
        "degraded": False,
    }
