"""Canonical configuration surface for the GotSOL relay."""
from __future__ import annotations

from enum import Enum
from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings

# Deployed GotSOL program
GOTSOL_PROGRAM_ID = "RKAxBK5mBxYta3FUfMLHafMj8xakd8PLsH3PXFa773r"

# House multisig receiving the platform share
HOUSE_ADDRESS = "Hth4EBxLWJSoRWj7raCKoniuzcvXt8MUFgGKty3B66ih"

PRICE_FEED_URL = "https://api.coingecko.com/api/v3/simple/price?ids=solana&vs_currencies=usd"


class NetworkVariant(str, Enum):
    """Network a payment settles on."""
    PRODUCTION = "production"
    TEST = "test"

    @classmethod
    def parse(cls, value: str) -> "NetworkVariant":
        """Accept the public names plus the cluster aliases wallets send."""
        aliases = {
            "production": cls.PRODUCTION,
            "mainnet": cls.PRODUCTION,
            "mainnet-beta": cls.PRODUCTION,
            "test": cls.TEST,
            "devnet": cls.TEST,
        }
        try:
            return aliases[value.strip().lower()]
        except (KeyError, AttributeError):
            raise ValueError(f"Unsupported network: {value!r}") from None

    @property
    def cluster(self) -> str:
        return "mainnet-beta" if self is NetworkVariant.PRODUCTION else "devnet"


class RelaySettings(BaseSettings):
    """Relay configuration, read from GOTSOL_* environment variables."""

    environment: Literal["dev", "test", "prod"] = "dev"

    # Public origin the wallet calls back into
    public_base_url: str = "http://localhost:8000"

    # On-chain program
    program_id: str = GOTSOL_PROGRAM_ID
    house_address: str = HOUSE_ADDRESS

    # RPC
    mainnet_rpc_url: str = "https://api.mainnet-beta.solana.com"
    devnet_rpc_url: str = "https://api.devnet.solana.com"
    default_network: NetworkVariant = NetworkVariant.TEST
    rpc_timeout_seconds: float = 30.0

    # Fee sponsorship
    fee_payer_private_key: Optional[SecretStr] = None
    base_fee_lamports: int = 10_000
    rent_reserve_lamports: int = 2_039_280  # one token account
    house_fee_bps: int = Field(default=100, ge=0, le=10_000)

    # Submission / confirmation
    max_submit_retries: int = Field(default=3, ge=0, le=3)
    submit_retry_delay_seconds: float = 0.5
    confirmation_timeout_seconds: float = Field(default=45.0, gt=0, le=60.0)
    confirmation_poll_interval_seconds: float = 0.5

    # Caches
    registry_cache_ttl_seconds: float = 300.0
    price_cache_ttl_seconds: float = 60.0
    price_fallback_usd: str = "100"
    price_feed_url: str = PRICE_FEED_URL
    price_feed_timeout_seconds: float = 5.0

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    class Config:
        env_prefix = "GOTSOL_"
        env_file = ".env"
        extra = "ignore"

    @field_validator("public_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("default_network", mode="before")
    @classmethod
    def parse_network(cls, v):
        if isinstance(v, str):
            return NetworkVariant.parse(v)
        return v

    @property
    def safety_floor_lamports(self) -> int:
        """Minimum fee-payer balance required before co-signing anything."""
        return self.base_fee_lamports + self.rent_reserve_lamports

    def rpc_url_for(self, network: NetworkVariant) -> str:
        if network is NetworkVariant.PRODUCTION:
            return self.mainnet_rpc_url
        return self.devnet_rpc_url

    def explorer_url(self, signature: str, network: NetworkVariant) -> str:
        base = f"https://explorer.solana.com/tx/{signature}"
        if network is NetworkVariant.TEST:
            return f"{base}?cluster=devnet"
        return base


@lru_cache
def get_settings() -> RelaySettings:
    """Load settings once per process."""
    return RelaySettings()
