"""
Binary schema for GotSOL program accounts.

Merchant accounts are Borsh-encoded behind an 8-byte Anchor discriminator:

    v1: discriminator | owner | entity_name | fee_eligible | merchant_bump
    v2: v1 | is_active | total_withdrawn | total_refunded

The offsets of the discriminator and owner are what the registry filters on
server-side; they must change only together with the on-chain program.
"""
from __future__ import annotations

import hashlib
import struct
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import base58

from .exceptions import DecodeError

MERCHANT_DISCRIMINATOR = bytes([71, 235, 30, 40, 231, 21, 32, 64])
DISCRIMINATOR_OFFSET = 0
DISCRIMINATOR_SIZE = 8
OWNER_OFFSET = 8
PUBKEY_SIZE = 32
ENTITY_NAME_OFFSET = OWNER_OFFSET + PUBKEY_SIZE
MAX_ENTITY_NAME_LEN = 32

MERCHANT_SEED = b"merchant"
GLOBAL_SEED = b"global"

SCHEMA_V1 = 1
SCHEMA_V2 = 2

# Allocated account sizes; records are zero-padded up to these
MERCHANT_V1_LEN = DISCRIMINATOR_SIZE + PUBKEY_SIZE + (4 + MAX_ENTITY_NAME_LEN) + 1 + 1
V2_TAIL_LEN = 1 + 8 + 8
MERCHANT_V2_LEN = MERCHANT_V1_LEN + V2_TAIL_LEN

_U32 = struct.Struct("<I")
_U64 = struct.Struct("<Q")


def account_discriminator(account_name: str) -> bytes:
    """Anchor account discriminator: sha256("account:<Name>")[:8]."""
    return hashlib.sha256(f"account:{account_name}".encode()).digest()[:DISCRIMINATOR_SIZE]


GLOBAL_DISCRIMINATOR = account_discriminator("Global")
GLOBAL_CONFIG_SIZE = DISCRIMINATOR_SIZE + PUBKEY_SIZE + 1


@dataclass(frozen=True)
class MerchantAccount:
    """Decoded merchant record."""
    address: str
    owner: str
    entity_name: str
    merchant_bump: int
    fee_eligible: bool
    is_active: bool = True
    total_withdrawn: int = 0
    total_refunded: int = 0
    schema_version: int = SCHEMA_V2

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "owner": self.owner,
            "entity_name": self.entity_name,
            "merchant_bump": self.merchant_bump,
            "fee_eligible": self.fee_eligible,
            "is_active": self.is_active,
            "total_withdrawn": self.total_withdrawn,
            "total_refunded": self.total_refunded,
        }


@dataclass(frozen=True)
class GlobalConfig:
    """Platform singleton holding the fee-collection identity."""
    address: str
    house: str
    global_bump: int


@dataclass(frozen=True)
class DecodeResult:
    """Either a decoded account or the reason it could not be decoded."""
    account: Optional[MerchantAccount] = None
    error: Optional[DecodeError] = field(default=None)

    @property
    def ok(self) -> bool:
        return self.account is not None

    def unwrap(self) -> MerchantAccount:
        if self.account is None:
            raise self.error or DecodeError("empty decode result")
        return self.account


class _Reader:
    """Cursor over account bytes with bounds checks."""

    def __init__(self, data: bytes, offset: int = 0) -> None:
        self.data = data
        self.offset = offset

    def remaining(self) -> int:
        return len(self.data) - self.offset

    def take(self, size: int, what: str) -> bytes:
        if self.remaining() < size:
            raise DecodeError(f"account truncated reading {what} at offset {self.offset}")
        chunk = self.data[self.offset:self.offset + size]
        self.offset += size
        return chunk

    def u8(self, what: str) -> int:
        return self.take(1, what)[0]

    def bool(self, what: str) -> bool:
        value = self.u8(what)
        if value not in (0, 1):
            raise DecodeError(f"invalid bool {value} for {what}")
        return value == 1

    def u32(self, what: str) -> int:
        return _U32.unpack(self.take(4, what))[0]

    def u64(self, what: str) -> int:
        return _U64.unpack(self.take(8, what))[0]

    def pubkey(self, what: str) -> str:
        return base58.b58encode(self.take(PUBKEY_SIZE, what)).decode("ascii")

    def string(self, what: str, max_len: int) -> str:
        length = self.u32(f"{what} length")
        if length > max_len:
            raise DecodeError(f"{what} length {length} exceeds {max_len}")
        try:
            return self.take(length, what).decode("utf-8")
        except UnicodeDecodeError:
            raise DecodeError(f"{what} is not valid UTF-8") from None


def decode_merchant_account(address: str, data: bytes) -> DecodeResult:
    """Decode raw merchant account bytes. Never raises."""
    try:
        return DecodeResult(account=_decode_merchant(address, data))
    except DecodeError as e:
        return DecodeResult(error=e)


def _decode_merchant(address: str, data: bytes) -> MerchantAccount:
    reader = _Reader(data)
    if reader.take(DISCRIMINATOR_SIZE, "discriminator") != MERCHANT_DISCRIMINATOR:
        raise DecodeError("discriminator does not identify a Merchant account")

    owner = reader.pubkey("owner")
    entity_name = reader.string("entity_name", MAX_ENTITY_NAME_LEN)
    fee_eligible = reader.bool("fee_eligible")
    merchant_bump = reader.u8("merchant_bump")

    tail = data[reader.offset:]
    if len(tail) < V2_TAIL_LEN or (len(data) == MERCHANT_V1_LEN and not any(tail)):
        if any(tail):
            raise DecodeError("unexpected trailing bytes after merchant record")
        return MerchantAccount(
            address=address,
            owner=owner,
            entity_name=entity_name,
            merchant_bump=merchant_bump,
            fee_eligible=fee_eligible,
            schema_version=SCHEMA_V1,
        )

    is_active = reader.bool("is_active")
    total_withdrawn = reader.u64("total_withdrawn")
    total_refunded = reader.u64("total_refunded")
    if any(data[reader.offset:]):
        raise DecodeError("unexpected trailing bytes after merchant record")

    return MerchantAccount(
        address=address,
        owner=owner,
        entity_name=entity_name,
        merchant_bump=merchant_bump,
        fee_eligible=fee_eligible,
        is_active=is_active,
        total_withdrawn=total_withdrawn,
        total_refunded=total_refunded,
        schema_version=SCHEMA_V2,
    )


def decode_global_config(address: str, data: bytes) -> GlobalConfig:
    """Decode the GlobalConfig singleton. Raises DecodeError."""
    reader = _Reader(data)
    if reader.take(DISCRIMINATOR_SIZE, "discriminator") != GLOBAL_DISCRIMINATOR:
        raise DecodeError("discriminator does not identify the Global account")
    house = reader.pubkey("house")
    global_bump = reader.u8("global_bump")
    return GlobalConfig(address=address, house=house, global_bump=global_bump)


def encode_merchant_account(
    owner: bytes,
    entity_name: str,
    fee_eligible: bool,
    merchant_bump: int,
    is_active: Optional[bool] = True,
    total_withdrawn: int = 0,
    total_refunded: int = 0,
) -> bytes:
    """Serialize a merchant record padded to its allocated size.

    ``is_active=None`` writes the v1 layout.
    """
    name = entity_name.encode("utf-8")
    if len(name) > MAX_ENTITY_NAME_LEN:
        raise ValueError(f"entity_name longer than {MAX_ENTITY_NAME_LEN} bytes")
    if len(owner) != PUBKEY_SIZE:
        raise ValueError("owner must be 32 bytes")
    out = bytearray(MERCHANT_DISCRIMINATOR)
    out += owner
    out += _U32.pack(len(name)) + name
    out += bytes([int(fee_eligible), merchant_bump])
    if is_active is None:
        return bytes(out.ljust(MERCHANT_V1_LEN, b"\x00"))
    out += bytes([int(is_active)])
    out += _U64.pack(total_withdrawn)
    out += _U64.pack(total_refunded)
    return bytes(out.ljust(MERCHANT_V2_LEN, b"\x00"))


def merchant_filters(owner: str) -> list[Dict[str, Any]]:
    """memcmp filters selecting Merchant accounts owned by ``owner``."""
    return [
        {
            "memcmp": {
                "offset": DISCRIMINATOR_OFFSET,
                "bytes": base58.b58encode(MERCHANT_DISCRIMINATOR).decode("ascii"),
            }
        },
        {"memcmp": {"offset": OWNER_OFFSET, "bytes": owner}},
    ]
