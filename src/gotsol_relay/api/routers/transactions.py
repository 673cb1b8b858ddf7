"""Co-sign and relay customer-signed transactions."""
from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ...payment_request import parse_network
from ..dependencies import RelayDependencies, get_deps

logger = logging.getLogger(__name__)

router = APIRouter()


class SubmitTransactionRequest(BaseModel):
    transaction: str = Field(..., description="Base64 wire transaction signed by the customer")
    network: Optional[str] = None


@router.post("/submit")
async def submit_transaction(
    body: SubmitTransactionRequest,
    deps: RelayDependencies = Depends(get_deps),
) -> dict[str, Any]:
    """
    Sponsor, submit and confirm a customer-signed transaction.

    The fee-payer signature is only added after every signing check passes;
    a refused transaction is never sent.
    """
    network = parse_network(body.network or deps.settings.default_network)
    services = deps.for_network(network)

    sponsored = await services.signer.sign(body.transaction)
    confirmed = await services.submission.submit_and_confirm(sponsored.transaction)
    return confirmed.to_dict()
