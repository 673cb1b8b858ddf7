"""Liveness probe. Deliberately carries no fee-payer balance."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from ... import __version__
from ..dependencies import RelayDependencies, get_deps

router = APIRouter()


@router.get("/health")
async def health(deps: RelayDependencies = Depends(get_deps)) -> dict[str, Any]:
    return {
        "status": "ok",
        "service": "gotsol-relay",
        "version": __version__,
        "environment": deps.settings.environment,
        "networks": sorted(n.value for n in deps.networks),
    }
