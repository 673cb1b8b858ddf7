"""Tests for Solana Pay payment request construction."""
from __future__ import annotations

from decimal import Decimal
from urllib.parse import parse_qs, unquote, urlparse

import pytest
from solders.keypair import Keypair

from gotsol_relay.config import NetworkVariant
from gotsol_relay.exceptions import ValidationError
from gotsol_relay.payment_request import MAX_MEMO_BYTES, PaymentRequest, PaymentRequestBuilder, render_qr_png

PNG_MAGIC = b"\x89PNG\r\n\x1a\n"


@pytest.fixture
def merchant() -> str:
    return str(Keypair().pubkey())


@pytest.fixture
def builder() -> PaymentRequestBuilder:
    return PaymentRequestBuilder("https://pay.gotsol.test/")


def _relay_params(url: str) -> dict:
    scheme, _, encoded = url.partition(":")
    assert scheme == "solana"
    link = urlparse(unquote(encoded))
    assert link.scheme == "https"
    assert link.netloc == "pay.gotsol.test"
    assert link.path == "/api/payment/transaction"
    return {k: v[0] for k, v in parse_qs(link.query).items()}


def test_build_descriptor(builder, merchant):
    descriptor = builder.build(merchant, "12.34", "test", memo="Table 4")

    params = _relay_params(descriptor.url)
    assert params["merchant"] == merchant
    assert params["amount"] == "12.34"
    assert params["network"] == "test"
    assert params["token"] == "USDC"
    assert params["memo"] == "Table 4"
    assert params["label"] == "GotSOL"
    assert params["message"] == "Pay 12.34 USDC"
    assert descriptor.request.amount_base_units == 12_340_000


def test_link_is_fully_percent_encoded(builder, merchant):
    descriptor = builder.build(merchant, "1", "test")
    encoded = descriptor.url.split(":", 1)[1]
    assert "?" not in encoded
    assert "&" not in encoded
    assert unquote(encoded) == descriptor.relay_link


def test_qr_png(builder, merchant):
    descriptor = builder.build(merchant, "5", "production", token="usdt")
    assert descriptor.qr_png.startswith(PNG_MAGIC)
    assert descriptor.data_uri().startswith("data:image/png;base64,iVBORw0KGgo")
    assert descriptor.request.token.symbol == "USDT"
    assert descriptor.request.network is NetworkVariant.PRODUCTION


def test_to_dict(builder, merchant):
    payload = builder.build(merchant, "0.5", "devnet", token="SOL").to_dict()
    assert payload["amount_base_units"] == 500_000_000
    assert payload["token"] == "SOL"
    assert payload["network"] == "test"
    assert payload["qr_code"].startswith("data:image/png;base64,")


@pytest.mark.parametrize(
    "kwargs,field",
    [
        ({"amount": "0"}, "amount"),
        ({"amount": "-3"}, "amount"),
        ({"amount": "NaN"}, "amount"),
        ({"amount": "1.0000001"}, "amount"),
        ({"network": "testnet"}, "network"),
        ({"token": "DOGE"}, "token"),
        ({"memo": "x" * (MAX_MEMO_BYTES + 1)}, "memo"),
    ],
)
def test_validation(builder, merchant, kwargs, field):
    args = {"merchant_address": merchant, "amount": "1", "network": "test"}
    args.update(kwargs)
    with pytest.raises(ValidationError) as exc:
        builder.build(**args)
    assert exc.value.details["field"] == field


def test_invalid_merchant(builder):
    with pytest.raises(ValidationError) as exc:
        builder.build("merchant!", "1", "test")
    assert exc.value.details["field"] == "merchant"


def test_memo_limit_counts_bytes(builder, merchant):
    # 86 three-byte characters exceed 256 bytes
    with pytest.raises(ValidationError) as exc:
        builder.build(merchant, "1", "test", memo="€" * 86)
    assert exc.value.details["field"] == "memo"


def test_longest_multibyte_memo_renders(builder, merchant):
    # 255 bytes, percent-encoded twice in the scanned URL
    descriptor = builder.build(merchant, "1", "test", memo="€" * 85)
    assert descriptor.request.memo == "€" * 85
    assert descriptor.qr_png.startswith(PNG_MAGIC)
    assert _relay_params(descriptor.url)["message"] == "Pay 1 USDC"


def test_qr_overflow_is_validation_error():
    with pytest.raises(ValidationError) as exc:
        render_qr_png("x" * 4000)
    assert exc.value.details["field"] == "memo"


def test_longest_ascii_memo_renders(builder, merchant):
    descriptor = builder.build(merchant, "1", "test", memo="m" * MAX_MEMO_BYTES)
    assert descriptor.qr_png.startswith(PNG_MAGIC)
    assert "m" * MAX_MEMO_BYTES not in _relay_params(descriptor.url)["message"]


def test_blank_memo_dropped(merchant):
    request = PaymentRequest.parse(merchant, Decimal("1"), NetworkVariant.TEST, memo="   ")
    assert request.memo is None
    assert "memo" not in request.query_params()
