"""
Pytest configuration for gotsol-relay tests.
"""
from __future__ import annotations

import base64
import json
import os
from typing import Any, Callable, Dict, List, Optional

import base58
import httpx
import pytest
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from gotsol_relay.config import GOTSOL_PROGRAM_ID, RelaySettings
from gotsol_relay.merchant_layout import GLOBAL_DISCRIMINATOR, encode_merchant_account
from gotsol_relay.registry import derive_global_config_address, derive_merchant_address
from gotsol_relay.solana.client import SolanaClient, SolanaConfig

# Set test environment
os.environ.setdefault("GOTSOL_ENVIRONMENT", "test")

RPC_URL = "https://rpc.test.invalid"
BLOCKHASH = base58.b58encode(bytes([7] * 32)).decode("ascii")


@pytest.fixture
def fee_payer_keypair() -> Keypair:
    return Keypair()


@pytest.fixture
def customer_keypair() -> Keypair:
    return Keypair()


@pytest.fixture
def owner_keypair() -> Keypair:
    return Keypair()


@pytest.fixture
def house_address() -> str:
    return str(Keypair().pubkey())


@pytest.fixture
def settings(fee_payer_keypair: Keypair) -> RelaySettings:
    return RelaySettings(
        _env_file=None,
        environment="test",
        public_base_url="https://pay.gotsol.test/",
        fee_payer_private_key=base58.b58encode(bytes(fee_payer_keypair)).decode("ascii"),
        confirmation_timeout_seconds=2.0,
        confirmation_poll_interval_seconds=0.5,
        submit_retry_delay_seconds=0.0,
    )


def account_info(data: bytes, owner: str = GOTSOL_PROGRAM_ID, lamports: int = 1_500_000) -> Dict[str, Any]:
    """getAccountInfo/getProgramAccounts account object."""
    return {
        "data": [base64.b64encode(data).decode("ascii"), "base64"],
        "executable": False,
        "lamports": lamports,
        "owner": owner,
        "rentEpoch": 0,
    }


def merchant_bytes(owner: Keypair, name: str, fee_eligible: bool = False, **kwargs: Any) -> bytes:
    return encode_merchant_account(
        bytes(owner.pubkey()), name, fee_eligible=fee_eligible, merchant_bump=254, **kwargs,
    )


def global_config_bytes(house: str, bump: int = 253) -> bytes:
    return GLOBAL_DISCRIMINATOR + bytes(Pubkey.from_string(house)) + bytes([bump])


class FakeRpcNode:
    """In-memory JSON-RPC node served through httpx.MockTransport."""

    def __init__(self) -> None:
        self.accounts: Dict[str, Dict[str, Any]] = {}
        self.program_accounts: List[Dict[str, Any]] = []
        self.balances: Dict[str, int] = {}
        self.statuses: Dict[str, Dict[str, Any]] = {}
        self.sent: List[Transaction] = []
        self.calls: List[str] = []
        self.failures: Dict[str, Callable[[], httpx.Response]] = {}
        self.default_status: Optional[Dict[str, Any]] = {
            "slot": 42,
            "confirmations": 1,
            "err": None,
            "confirmationStatus": "confirmed",
        }

    def _result(self, request_id: int, result: Any) -> httpx.Response:
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": request_id, "result": result})

    def handler(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        method = payload["method"]
        params = payload["params"]
        self.calls.append(method)
        if method in self.failures:
            return self.failures[method]()

        context = {"context": {"slot": 42}}
        rid = payload["id"]
        if method == "getAccountInfo":
            return self._result(rid, {**context, "value": self.accounts.get(params[0])})
        if method == "getProgramAccounts":
            return self._result(rid, self.program_accounts)
        if method == "getBalance":
            return self._result(rid, {**context, "value": self.balances.get(params[0], 0)})
        if method == "getLatestBlockhash":
            return self._result(rid, {**context, "value": {"blockhash": BLOCKHASH, "lastValidBlockHeight": 100}})
        if method == "sendTransaction":
            tx = Transaction.from_bytes(base64.b64decode(params[0]))
            self.sent.append(tx)
            return self._result(rid, str(tx.signatures[0]))
        if method == "getSignatureStatuses":
            signature = params[0][0]
            return self._result(rid, {**context, "value": [self.statuses.get(signature, self.default_status)]})
        return httpx.Response(
            200,
            json={"jsonrpc": "2.0", "id": rid, "error": {"code": -32601, "message": "Method not found"}},
        )

    def client(self) -> SolanaClient:
        transport = httpx.MockTransport(self.handler)
        return SolanaClient(
            SolanaConfig(rpc_url=RPC_URL),
            http_client=httpx.AsyncClient(transport=transport),
        )


@pytest.fixture
def rpc_node() -> FakeRpcNode:
    return FakeRpcNode()


@pytest.fixture
def acme(rpc_node: FakeRpcNode, owner_keypair: Keypair, house_address: str) -> str:
    """Register an active 'Acme' merchant and the global config on the fake node."""
    owner = str(owner_keypair.pubkey())
    address = derive_merchant_address("Acme", owner, GOTSOL_PROGRAM_ID)
    rpc_node.accounts[address] = account_info(merchant_bytes(owner_keypair, "Acme"))
    rpc_node.accounts[derive_global_config_address(GOTSOL_PROGRAM_ID)] = account_info(
        global_config_bytes(house_address)
    )
    return address
