"""HTTP surface tests with dependency overrides."""
from __future__ import annotations

from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient
from solders.keypair import Keypair

from gotsol_relay.api import create_app
from gotsol_relay.api.dependencies import NetworkServices, RelayDependencies
from gotsol_relay.config import NetworkVariant
from gotsol_relay.exceptions import (
    ConfirmationTimedOut,
    DiscoveryError,
    InsufficientFeePayerBalance,
    MalformedTransaction,
    OnChainExecutionFailed,
    UnauthorizedFeePayerAssignment,
)
from gotsol_relay.merchant_layout import MerchantAccount
from gotsol_relay.payment_request import PaymentRequestBuilder
from gotsol_relay.price_cache import PriceCache
from gotsol_relay.submission import ConfirmedTransaction


def _build_app(settings, services: NetworkServices, price: Decimal = Decimal("150")) -> TestClient:
    async def fetch() -> Decimal:
        return price

    deps = RelayDependencies(
        settings=settings,
        request_builder=PaymentRequestBuilder(settings.public_base_url),
        price_cache=PriceCache(fetch, ttl=60),
        networks={NetworkVariant.TEST: services},
    )
    return TestClient(create_app(deps=deps))


@pytest.fixture
def services() -> NetworkServices:
    return NetworkServices(
        registry=AsyncMock(),
        transaction_builder=AsyncMock(),
        signer=AsyncMock(),
        submission=AsyncMock(),
    )


@pytest.fixture
def merchant() -> str:
    return str(Keypair().pubkey())


def test_health_has_no_balance(settings, services):
    response = _build_app(settings, services).get("/health")
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["networks"] == ["test"]
    assert "balance" not in str(payload).lower()


def test_describe_payment(settings, services, merchant):
    client = _build_app(settings, services)
    response = client.get(
        "/api/payment/transaction",
        params={"merchant": merchant, "amount": "12.34", "network": "test", "memo": "Latte"},
    )
    assert response.status_code == 200
    payload = response.json()
    assert payload["label"] == "Pay 12.34 USDC"
    assert payload["links"]["actions"][0]["type"] == "transaction"
    assert "Latte" in payload["description"]
    assert payload["icon"] == "https://pay.gotsol.test/api/payment/icon"


def test_payment_icon_is_served(settings, services):
    client = _build_app(settings, services)
    icon_url = client.get(
        "/api/payment/transaction",
        params={"merchant": str(Keypair().pubkey()), "amount": "1"},
    ).json()["icon"]

    response = client.get(icon_url.replace(settings.public_base_url, ""))

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("image/svg+xml")
    assert response.text.startswith("<svg")


def test_describe_payment_validation(settings, services, merchant):
    client = _build_app(settings, services)
    response = client.get("/api/payment/transaction", params={"merchant": merchant, "amount": "-1"})
    assert response.status_code == 400
    assert response.json()["error"] == "VALIDATION_ERROR"
    services.transaction_builder.build.assert_not_awaited()


def test_create_payment_transaction(settings, services, merchant):
    services.transaction_builder.build.return_value = SimpleNamespace(
        to_base64=lambda: "AQID",
        message="Payment of 12.4634 USDC to Acme (fees covered by GotSOL)",
    )
    client = _build_app(settings, services)
    account = str(Keypair().pubkey())

    response = client.post(
        "/api/payment/transaction",
        params={"merchant": merchant, "amount": "12.34", "network": "test"},
        json={"account": account},
    )

    assert response.status_code == 200
    assert response.json() == {
        "transaction": "AQID",
        "message": "Payment of 12.4634 USDC to Acme (fees covered by GotSOL)",
    }
    request, called_account = services.transaction_builder.build.await_args.args
    assert request.amount_base_units == 12_340_000
    assert called_account == account


def test_create_payment_transaction_requires_account(settings, services, merchant):
    client = _build_app(settings, services)
    response = client.post(
        "/api/payment/transaction",
        params={"merchant": merchant, "amount": "1"},
        json={},
    )
    assert response.status_code == 400
    assert response.json()["error"] == "VALIDATION_ERROR"


def test_network_not_enabled(settings, services, merchant):
    client = _build_app(settings, services)
    response = client.post(
        "/api/payment/transaction",
        params={"merchant": merchant, "amount": "1", "network": "production"},
        json={"account": str(Keypair().pubkey())},
    )
    assert response.status_code == 400


def test_create_payment_request(settings, services, merchant):
    client = _build_app(settings, services)
    response = client.post(
        "/api/payment/request",
        json={"merchant": merchant, "amount": 12.34, "network": "test", "memo": "Table 4"},
    )
    assert response.status_code == 200
    payload = response.json()
    assert payload["url"].startswith("solana:https%3A%2F%2Fpay.gotsol.test%2Fapi%2Fpayment%2Ftransaction")
    assert payload["qr_code"].startswith("data:image/png;base64,")
    assert payload["amount_base_units"] == 12_340_000


def test_submit_success(settings, services):
    services.signer.sign.return_value = SimpleNamespace(transaction=b"signed")
    services.submission.submit_and_confirm.return_value = ConfirmedTransaction(
        signature="5igSig",
        status="confirmed",
        explorer_url="https://explorer.solana.com/tx/5igSig?cluster=devnet",
    )
    client = _build_app(settings, services)

    response = client.post("/api/transactions/submit", json={"transaction": "AQID"})

    assert response.status_code == 200
    assert response.json() == {
        "signature": "5igSig",
        "status": "confirmed",
        "explorer_url": "https://explorer.solana.com/tx/5igSig?cluster=devnet",
    }
    services.signer.sign.assert_awaited_once_with("AQID")
    services.submission.submit_and_confirm.assert_awaited_once_with(b"signed")


@pytest.mark.parametrize(
    "error,status,code",
    [
        (InsufficientFeePayerBalance(), 503, "INSUFFICIENT_FEE_PAYER_BALANCE"),
        (MalformedTransaction("Transaction contains no instructions"), 400, "MALFORMED_TRANSACTION"),
        (UnauthorizedFeePayerAssignment("Transaction fee payer is not this relay"), 403, "UNAUTHORIZED_FEE_PAYER"),
    ],
)
def test_signing_refusals_never_submit(settings, services, error, status, code):
    services.signer.sign.side_effect = error
    client = _build_app(settings, services)

    response = client.post("/api/transactions/submit", json={"transaction": "AQID"})

    assert response.status_code == status
    assert response.json()["error"] == code
    services.submission.submit_and_confirm.assert_not_awaited()


def test_submit_on_chain_failure(settings, services):
    services.signer.sign.return_value = SimpleNamespace(transaction=b"signed")
    services.submission.submit_and_confirm.side_effect = OnChainExecutionFailed(
        "Transaction failed on-chain; check the explorer for details",
        signature="5igSig",
        raw_error={"InstructionError": [1, {"Custom": 1}]},
    )
    response = _build_app(settings, services).post("/api/transactions/submit", json={"transaction": "AQID"})

    assert response.status_code == 422
    payload = response.json()
    assert payload["error"] == "ONCHAIN_EXECUTION_FAILED"
    assert payload["details"]["raw_error"] == {"InstructionError": [1, {"Custom": 1}]}


def test_submit_timeout(settings, services):
    services.signer.sign.return_value = SimpleNamespace(transaction=b"signed")
    services.submission.submit_and_confirm.side_effect = ConfirmationTimedOut("5igSig", 45, explorer_url="https://x")
    response = _build_app(settings, services).post("/api/transactions/submit", json={"transaction": "AQID"})

    assert response.status_code == 504
    assert "unknown" in response.json()["message"]


def test_merchants(settings, services):
    owner = str(Keypair().pubkey())
    services.registry.find_merchants_by_owner.return_value = [
        MerchantAccount(
            address="MerchPda", owner=owner, entity_name="Acme", merchant_bump=254, fee_eligible=True,
        )
    ]
    response = _build_app(settings, services).get("/api/merchants", params={"owner": owner})

    assert response.status_code == 200
    payload = response.json()
    assert payload["degraded"] is False
    assert payload["merchants"][0]["entity_name"] == "Acme"


def test_merchants_degrade_to_empty(settings, services):
    services.registry.find_merchants_by_owner.side_effect = DiscoveryError("unavailable")
    response = _build_app(settings, services).get("/api/merchants", params={"owner": str(Keypair().pubkey())})

    assert response.status_code == 200
    assert response.json() == {"merchants": [], "degraded": True}


def test_sol_price(settings, services):
    response = _build_app(settings, services, price=Decimal("200")).get("/api/price/sol", params={"usd": "50"})
    assert response.status_code == 200
    payload = response.json()
    assert Decimal(payload["sol"]) == Decimal("0.25")
    assert payload["sol_price_usd"] == "200"
    assert payload["degraded"] is False


def test_sol_price_rejects_bad_amount(settings, services):
    response = _build_app(settings, services).get("/api/price/sol", params={"usd": "abc"})
    assert response.status_code == 400
    assert response.json()["details"]["field"] == "usd"


def test_cors_preflight(settings, services):
    response = _build_app(settings, services).options(
        "/api/payment/transaction",
        headers={"Origin": "https://wallet.example", "Access-Control-Request-Method": "POST"},
    )
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"


def test_huge_amount_is_rejected(settings, services, merchant):
    client = _build_app(settings, services)
    response = client.get("/api/payment/transaction", params={"merchant": merchant, "amount": "1e999999999"})
    assert response.status_code == 400
    assert response.json()["details"]["field"] == "amount"


def test_huge_usd_amount_is_rejected(settings, services):
    response = _build_app(settings, services).get("/api/price/sol", params={"usd": "1e999999999"})
    assert response.status_code == 400
    assert response.json()["details"]["field"] == "usd"


def test_payment_request_with_long_multibyte_memo(settings, services, merchant):
    response = _build_app(settings, services).post(
        "/api/payment/request",
        json={"merchant": merchant, "amount": "1", "network": "test", "memo": "€" * 85},
    )
    assert response.status_code == 200
    assert response.json()["qr_code"].startswith("data:image/png;base64,")
