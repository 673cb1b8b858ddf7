"""Solana Pay transaction-request endpoints and payment link creation."""
from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from pydantic import BaseModel, Field, field_validator

from ...logging_utils import mask_address
from ...payment_request import ICON_SVG, PaymentRequest
from ..dependencies import RelayDependencies, get_deps

logger = logging.getLogger(__name__)

router = APIRouter()


class TransactionRequestBody(BaseModel):
    account: str = Field(..., description="Customer wallet that will sign the transfer")


class CreatePaymentRequest(BaseModel):
    merchant: str
    amount: str
    network: Optional[str] = None
    token: str = "USDC"
    memo: Optional[str] = None

    @field_validator("amount", mode="before")
    @classmethod
    def amount_as_text(cls, v: Any) -> Any:
        # JSON numbers arrive as int/float; keep their literal digits
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return repr(v)
        return v


def _parse_request(
    deps: RelayDependencies,
    merchant: Optional[str],
    amount: Optional[str],
    network: Optional[str],
    token: Optional[str],
    memo: Optional[str],
) -> PaymentRequest:
    return PaymentRequest.parse(
        merchant or "",
        amount if amount is not None else "",
        network or deps.settings.default_network,
        token=token,
        memo=memo,
    )


@router.get("/icon")
async def payment_icon() -> Response:
    return Response(
        content=ICON_SVG,
        media_type="image/svg+xml",
        headers={"Cache-Control": "public, max-age=86400"},
    )


@router.get("/transaction")
async def describe_payment(
    request: Request,
    merchant: Optional[str] = Query(default=None),
    amount: Optional[str] = Query(default=None),
    network: Optional[str] = Query(default=None),
    token: Optional[str] = Query(default="USDC"),
    memo: Optional[str] = Query(default=None),
    deps: RelayDependencies = Depends(get_deps),
) -> dict[str, Any]:
    """Action metadata a wallet shows before asking for the transaction."""
    payment = _parse_request(deps, merchant, amount, network, token, memo)

    symbol = payment.token.symbol
    amount_text = payment.display_amount
    network_note = " (Devnet)" if payment.network.value == "test" else ""
    label = f"Pay {amount_text} {symbol}"
    description = f"Send {amount_text} {symbol} to merchant {mask_address(payment.merchant_address)}"
    if payment.memo:
        description += f" - {payment.memo}"

    return {
        "icon": f"{deps.settings.public_base_url}/api/payment/icon",
        "label": label,
        "title": f"Pay {amount_text} {payment.token.display_name}{network_note}",
        "description": description + network_note,
        "links": {
            "actions": [
                {"label": label, "href": str(request.url), "type": "transaction"},
            ]
        },
    }


@router.post("/transaction")
async def create_payment_transaction(
    body: TransactionRequestBody,
    merchant: Optional[str] = Query(default=None),
    amount: Optional[str] = Query(default=None),
    network: Optional[str] = Query(default=None),
    token: Optional[str] = Query(default="USDC"),
    memo: Optional[str] = Query(default=None),
    deps: RelayDependencies = Depends(get_deps),
) -> dict[str, Any]:
    """Build the unsigned, fee-sponsored transaction for the customer to sign."""
    payment = _parse_request(deps, merchant, amount, network, token, memo)
    services = deps.for_network(payment.network)

    built = await services.transaction_builder.build(payment, body.account)
    return {
        "transaction": built.to_base64(),
        "message": built.message,
    }


@router.post("/request")
async def create_payment_request(
    body: CreatePaymentRequest,
    deps: RelayDependencies = Depends(get_deps),
) -> dict[str, Any]:
    """Create a scannable payment link and its QR code."""
    descriptor = deps.request_builder.build(
        body.merchant,
        body.amount,
        body.network or deps.settings.default_network,
        memo=body.memo,
        token=body.token,
    )
    return descriptor.to_dict()
