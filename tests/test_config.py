"""Tests for settings, networks and the stablecoin table."""
from __future__ import annotations

import pytest

from gotsol_relay.config import NetworkVariant, RelaySettings
from gotsol_relay.stablecoins import (
    STABLECOINS,
    WRAPPED_SOL_MINT,
    get_decimals,
    get_mint,
    get_stablecoin,
    is_supported,
    supported_symbols,
)


class TestNetworkVariant:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("production", NetworkVariant.PRODUCTION),
            ("mainnet-beta", NetworkVariant.PRODUCTION),
            ("Mainnet", NetworkVariant.PRODUCTION),
            ("test", NetworkVariant.TEST),
            ("devnet", NetworkVariant.TEST),
        ],
    )
    def test_parse_aliases(self, value, expected):
        assert NetworkVariant.parse(value) is expected

    def test_parse_rejects_unknown(self):
        with pytest.raises(ValueError):
            NetworkVariant.parse("testnet")

    def test_cluster_names(self):
        assert NetworkVariant.PRODUCTION.cluster == "mainnet-beta"
        assert NetworkVariant.TEST.cluster == "devnet"


class TestRelaySettings:
    def test_defaults(self):
        settings = RelaySettings(_env_file=None)
        assert settings.house_fee_bps == 100
        assert settings.safety_floor_lamports == 10_000 + 2_039_280
        assert settings.confirmation_timeout_seconds == 45.0
        assert settings.max_submit_retries == 3
        assert settings.default_network is NetworkVariant.TEST

    def test_reads_prefixed_environment(self, monkeypatch):
        monkeypatch.setenv("GOTSOL_HOUSE_FEE_BPS", "250")
        monkeypatch.setenv("GOTSOL_DEFAULT_NETWORK", "mainnet")
        settings = RelaySettings(_env_file=None)
        assert settings.house_fee_bps == 250
        assert settings.default_network is NetworkVariant.PRODUCTION

    def test_retry_bound_is_enforced(self):
        with pytest.raises(ValueError):
            RelaySettings(_env_file=None, max_submit_retries=4)

    def test_public_base_url_trailing_slash_stripped(self):
        settings = RelaySettings(_env_file=None, public_base_url="https://pay.example/")
        assert settings.public_base_url == "https://pay.example"

    def test_explorer_url_marks_devnet(self):
        settings = RelaySettings(_env_file=None)
        assert settings.explorer_url("abc", NetworkVariant.TEST).endswith("/tx/abc?cluster=devnet")
        assert settings.explorer_url("abc", NetworkVariant.PRODUCTION).endswith("/tx/abc")

    def test_fee_payer_key_is_secret(self):
        settings = RelaySettings(_env_file=None, fee_payer_private_key="super-secret")
        assert "super-secret" not in repr(settings)


class TestStablecoins:
    def test_table_contents(self):
        assert set(supported_symbols()) == {"SOL", "USDC", "USDT", "PYUSD", "FDUSD", "USDG"}

    def test_one_descriptor_per_symbol(self):
        for symbol, descriptor in STABLECOINS.items():
            assert descriptor.symbol == symbol

    def test_sol_is_native_with_nine_decimals(self):
        sol = get_stablecoin("sol")
        assert sol.is_native
        assert sol.decimals == 9
        assert sol.mainnet_mint == WRAPPED_SOL_MINT

    def test_stablecoins_have_six_decimals(self):
        for symbol in ("USDC", "USDT", "PYUSD", "FDUSD", "USDG"):
            assert get_decimals(symbol) == 6

    def test_usdc_mint_differs_per_network(self):
        assert get_mint("USDC", NetworkVariant.PRODUCTION) == "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
        assert get_mint("USDC", NetworkVariant.TEST) != get_mint("USDC", NetworkVariant.PRODUCTION)

    def test_unsupported(self):
        assert not is_supported("DOGE")
        with pytest.raises(KeyError):
            get_stablecoin("DOGE")
