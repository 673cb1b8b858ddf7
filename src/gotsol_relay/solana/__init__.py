"""Solana integration for the GotSOL relay."""
from gotsol_relay.solana.client import SolanaClient, SolanaClientPool, SolanaConfig
from gotsol_relay.solana.instructions import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    MEMO_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
    create_ata_idempotent,
    derive_ata,
    transfer_checked,
)

__all__ = [
    "SolanaClient",
    "SolanaClientPool",
    "SolanaConfig",
    "ASSOCIATED_TOKEN_PROGRAM_ID",
    "MEMO_PROGRAM_ID",
    "TOKEN_PROGRAM_ID",
    "create_ata_idempotent",
    "derive_ata",
    "transfer_checked",
]
