"""Supported payment assets and their mint addresses per network."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List

from .config import NetworkVariant

WRAPPED_SOL_MINT = "So11111111111111111111111111111111111111112"


@dataclass(frozen=True)
class StablecoinDescriptor:
    """Static configuration for one payment asset."""
    symbol: str
    display_name: str
    decimals: int
    mainnet_mint: str
    devnet_mint: str
    is_native: bool = False

    def mint_for(self, network: NetworkVariant) -> str:
        if network is NetworkVariant.PRODUCTION:
            return self.mainnet_mint
        return self.devnet_mint


STABLECOINS: Dict[str, StablecoinDescriptor] = {
    "SOL": StablecoinDescriptor(
        symbol="SOL",
        display_name="Solana",
        decimals=9,
        mainnet_mint=WRAPPED_SOL_MINT,
        devnet_mint=WRAPPED_SOL_MINT,
        is_native=True,
    ),
    "USDC": StablecoinDescriptor(
        symbol="USDC",
        display_name="USD Coin",
        decimals=6,
        mainnet_mint="EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",
        devnet_mint="4zMMC9srt5Ri5X14GAgXhaHii3GnPAEERYPJgZJDncDU",
    ),
    "USDT": StablecoinDescriptor(
        symbol="USDT",
        display_name="Tether USD",
        decimals=6,
        mainnet_mint="Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB",
        devnet_mint="BcCSBRdBkPY3jBjZtokc8MmUH2kpJ5Rm81r28KmBteB",
    ),
    "PYUSD": StablecoinDescriptor(
        symbol="PYUSD",
        display_name="PayPal USD",
        decimals=6,
        mainnet_mint="2b1kV6DkPAnxd5ixfnxCpjxmKwqjjaYmCZfHsFu24GXo",
        devnet_mint="CXk2AMBfi3TwaEL2468s6zP8xq9NxTXjp9gjMgzeUynM",
    ),
    "FDUSD": StablecoinDescriptor(
        symbol="FDUSD",
        display_name="First Digital USD",
        decimals=6,
        mainnet_mint="3dXiUBM6cqFSvJ2f8XnQEq2hPfNqjGzW4HQKo54fCzf8",
        devnet_mint="HhYomDuTuBjPUpQX6mBJe8LoJBcg5MFdGSnqLAeiushg",
    ),
    "USDG": StablecoinDescriptor(
        symbol="USDG",
        display_name="USDG Stablecoin",
        decimals=6,
        mainnet_mint="2u1tszSeqZ3qBWF3uNGPFc8TzMk2tdiwknnRMWGWjGWH",
        devnet_mint="yubLhmuwu83LcRdXJxvKG4RZkXYeeaL3wGjc8XAUVY9",
    ),
}


def is_supported(symbol: str) -> bool:
    return symbol.upper() in STABLECOINS


def get_stablecoin(symbol: str) -> StablecoinDescriptor:
    """Look up a descriptor by symbol (case-insensitive)."""
    try:
        return STABLECOINS[symbol.upper()]
    except KeyError:
        raise KeyError(f"Unsupported stablecoin: {symbol}") from None


def get_mint(symbol: str, network: NetworkVariant) -> str:
    return get_stablecoin(symbol).mint_for(network)


def get_decimals(symbol: str) -> int:
    return get_stablecoin(symbol).decimals


def supported_symbols() -> List[str]:
    return list(STABLECOINS)
