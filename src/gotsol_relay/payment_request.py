"""
Payment request construction.

A payment request is a Solana Pay transaction-request link pointing back at
this relay, rendered as a QR code. Building one validates every input and
makes no network call; the transaction itself is only built when a wallet
calls the link.
"""
from __future__ import annotations

import base64
import io
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional, Union
from urllib.parse import quote, urlencode

import qrcode
import qrcode.constants
import qrcode.exceptions

from .amounts import format_base_units, parse_amount, to_base_units
from .config import NetworkVariant
from .exceptions import ValidationError
from .logging_utils import mask_address
from .registry import parse_address
from .stablecoins import StablecoinDescriptor, get_stablecoin, is_supported

logger = logging.getLogger(__name__)

SOLANA_PAY_SCHEME = "solana"
TRANSACTION_REQUEST_PATH = "/api/payment/transaction"
MAX_MEMO_BYTES = 256
DEFAULT_TOKEN = "USDC"
DEFAULT_LABEL = "GotSOL"

QR_BOX_SIZE = 10
QR_BORDER = 4

# Shown by wallets next to the payment label
ICON_SVG = (
    '<svg xmlns="http://www.w3.org/2000/svg" width="256" height="256" viewBox="0 0 256 256">'
    '<rect width="256" height="256" rx="48" fill="#14151a"/>'
    '<circle cx="128" cy="128" r="72" fill="none" stroke="#14f195" stroke-width="20"/>'
    '<path d="M128 128h56" stroke="#9945ff" stroke-width="20" stroke-linecap="round"/>'
    "</svg>"
)


def parse_network(value: Union[str, NetworkVariant]) -> NetworkVariant:
    if isinstance(value, NetworkVariant):
        return value
    try:
        return NetworkVariant.parse(value)
    except ValueError:
        raise ValidationError(
            f"Invalid network: {value!r}; expected 'production' or 'test'",
            field="network",
        ) from None


def parse_token(value: Optional[str]) -> StablecoinDescriptor:
    symbol = (value or DEFAULT_TOKEN).strip()
    if not is_supported(symbol):
        raise ValidationError(f"Unsupported token: {symbol.upper()}", field="token")
    return get_stablecoin(symbol)


def parse_memo(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    memo = value.strip()
    if not memo:
        return None
    if len(memo.encode("utf-8")) > MAX_MEMO_BYTES:
        raise ValidationError(f"Memo exceeds {MAX_MEMO_BYTES} bytes", field="memo")
    return memo


@dataclass(frozen=True)
class PaymentRequest:
    """A validated request to pay one merchant."""
    merchant_address: str
    amount: Decimal
    network: NetworkVariant
    token: StablecoinDescriptor
    memo: Optional[str] = None

    @property
    def amount_base_units(self) -> int:
        return to_base_units(self.amount, self.token.decimals)

    @property
    def display_amount(self) -> str:
        return format_base_units(self.amount_base_units, self.token.decimals)

    @classmethod
    def parse(
        cls,
        merchant: str,
        amount: Union[str, int, Decimal],
        network: Union[str, NetworkVariant],
        token: Optional[str] = None,
        memo: Optional[str] = None,
    ) -> "PaymentRequest":
        """
        Validate raw inputs into a request.

        Raises:
            ValidationError: on the first invalid field
        """
        merchant_address = str(parse_address(merchant, "merchant"))
        descriptor = parse_token(token)
        value = parse_amount(amount)
        # Surfaces sub-unit precision as a ValidationError here
        to_base_units(value, descriptor.decimals)
        return cls(
            merchant_address=merchant_address,
            amount=value,
            network=parse_network(network),
            token=descriptor,
            memo=parse_memo(memo),
        )

    def query_params(self) -> Dict[str, str]:
        params = {
            "merchant": self.merchant_address,
            "amount": self.display_amount,
            "network": self.network.value,
            "token": self.token.symbol,
        }
        if self.memo:
            params["memo"] = self.memo
        return params


@dataclass(frozen=True)
class PaymentDescriptor:
    """The scannable form of a payment request."""
    url: str
    relay_link: str
    qr_png: bytes
    request: PaymentRequest

    def data_uri(self) -> str:
        return "data:image/png;base64," + base64.b64encode(self.qr_png).decode("ascii")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "relay_link": self.relay_link,
            "qr_code": self.data_uri(),
            "amount": self.request.display_amount,
            "amount_base_units": self.request.amount_base_units,
            "token": self.request.token.symbol,
            "network": self.request.network.value,
        }


def render_qr_png(data: str) -> bytes:
    """Render ``data`` as a PNG QR code with high error correction.

    Raises:
        ValidationError: ``data`` exceeds the largest QR version
    """
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_H,
        box_size=QR_BOX_SIZE,
        border=QR_BORDER,
    )
    qr.add_data(data)
    try:
        qr.make(fit=True)
    except (ValueError, qrcode.exceptions.DataOverflowError):
        raise ValidationError(
            "Payment link is too long for a QR code; shorten the memo",
            field="memo",
        ) from None
    image = qr.make_image(fill_color="black", back_color="white")
    buffer = io.BytesIO()
    image.save(buffer)
    return buffer.getvalue()


class PaymentRequestBuilder:
    """Builds Solana Pay transaction-request links for this relay."""

    def __init__(self, public_base_url: str, label: str = DEFAULT_LABEL) -> None:
        self._base_url = public_base_url.rstrip("/")
        self._label = label

    def relay_link(self, request: PaymentRequest) -> str:
        params = request.query_params()
        params["label"] = self._label
        params["message"] = self.message_for(request)
        return f"{self._base_url}{TRANSACTION_REQUEST_PATH}?{urlencode(params)}"

    @staticmethod
    def message_for(request: PaymentRequest) -> str:
        # The memo already travels as its own parameter
        return f"Pay {request.display_amount} {request.token.symbol}"

    def build(
        self,
        merchant_address: str,
        amount: Union[str, int, Decimal],
        network: Union[str, NetworkVariant],
        memo: Optional[str] = None,
        token: Optional[str] = DEFAULT_TOKEN,
    ) -> PaymentDescriptor:
        """
        Build the scannable descriptor for a payment.

        Raises:
            ValidationError: any input is invalid
        """
        request = PaymentRequest.parse(merchant_address, amount, network, token=token, memo=memo)
        link = self.relay_link(request)
        url = f"{SOLANA_PAY_SCHEME}:{quote(link, safe='')}"
        logger.info(
            "Built payment request: %s %s to %s on %s",
            request.display_amount, request.token.symbol,
            mask_address(request.merchant_address), request.network.value,
        )
        return PaymentDescriptor(
            url=url,
            relay_link=link,
            qr_png=render_qr_png(url),
            request=request,
        )
