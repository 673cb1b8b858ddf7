"""
GotSOL relay: fee-sponsored stablecoin payments on Solana.

Merchants publish Solana Pay links; customers pay in stablecoins from any
wallet without holding SOL, because this relay pays the network fee and
co-signs as fee payer.
"""
from __future__ import annotations

__version__ = "0.1.0"

from .config import NetworkVariant, RelaySettings, get_settings
from .exceptions import RelayError

__all__ = [
    "__version__",
    "NetworkVariant",
    "RelaySettings",
    "get_settings",
    "RelayError",
]
