"""
Exact-integer amount handling.

Display amounts are Decimals; on-chain amounts are integers in the asset's
smallest unit. Nothing here touches floats.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Union

from .exceptions import ValidationError

BASIS_POINTS_DIVISOR = 10_000

# u64 ceiling for SPL token amounts
MAX_BASE_UNITS = 2**64 - 1
# Order-of-magnitude bounds checked before any Decimal arithmetic
MAX_AMOUNT_EXPONENT = 20
MIN_AMOUNT_EXPONENT = -20


def parse_amount(value: Union[str, int, Decimal]) -> Decimal:
    """Parse a customer-facing amount. Floats are refused."""
    if isinstance(value, float):
        raise ValidationError("Amount must be given as a decimal string, not a float", field="amount")
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid amount: {value!r}", field="amount") from None
    if not amount.is_finite():
        raise ValidationError("Amount must be a finite number", field="amount")
    if amount <= 0:
        raise ValidationError("Amount must be strictly positive", field="amount")
    if amount.adjusted() > MAX_AMOUNT_EXPONENT:
        raise ValidationError("Amount exceeds the maximum transferable value", field="amount")
    if amount.adjusted() < MIN_AMOUNT_EXPONENT:
        raise ValidationError("Amount has too many decimal places", field="amount")
    return amount


def to_base_units(amount: Decimal, decimals: int) -> int:
    """Scale a display amount to base units.

    Rejects amounts with more fractional digits than the asset supports
    instead of rounding them.
    """
    if decimals < 0:
        raise ValueError("decimals must be non-negative")
    if amount.adjusted() + decimals >= len(str(MAX_BASE_UNITS)):
        raise ValidationError("Amount exceeds the maximum transferable value", field="amount")
    if _fractional_digits(amount) > decimals:
        raise ValidationError(
            f"Amount {amount} has more than {decimals} decimal places",
            field="amount",
            details={"decimals": decimals},
        )
    base_units = int(amount.scaleb(decimals))
    if base_units <= 0:
        raise ValidationError("Amount must be strictly positive", field="amount")
    if base_units > MAX_BASE_UNITS:
        raise ValidationError("Amount exceeds the maximum transferable value", field="amount")
    return base_units


def _fractional_digits(amount: Decimal) -> int:
    """Significant digits after the decimal point, ignoring trailing zeros."""
    _, digits, exponent = amount.as_tuple()
    if not isinstance(exponent, int) or exponent >= 0:
        return 0
    trailing = len(digits) - len("".join(map(str, digits)).rstrip("0"))
    return max(0, -exponent - trailing)


def format_base_units(base_units: int, decimals: int) -> str:
    """Render base units back to a display string without trailing zeros."""
    value = Decimal(base_units).scaleb(-decimals)
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


class FeeSide(str, Enum):
    """Who bears the platform fee on a payment."""
    MERCHANT = "merchant"
    CUSTOMER = "customer"


@dataclass(frozen=True)
class PaymentSplit:
    """Integer split of one payment between merchant and house."""
    gross: int
    merchant_amount: int
    house_amount: int
    customer_total: int
    house_fee_bps: int
    fee_side: FeeSide


def compute_split(gross: int, house_fee_bps: int, fee_eligible: bool) -> PaymentSplit:
    """Split a payment of ``gross`` base units.

    Fee-eligible merchants carry the platform fee: it is taken out of the
    gross and the merchant receives the remainder. For other merchants the
    customer pays the fee on top and the merchant receives the full gross.
    In both cases merchant_amount + house_amount == customer_total.
    """
    if gross <= 0:
        raise ValueError("gross must be positive")
    if not 0 <= house_fee_bps <= BASIS_POINTS_DIVISOR:
        raise ValueError("house_fee_bps must be within 0..10000")

    fee = gross * house_fee_bps // BASIS_POINTS_DIVISOR
    if fee_eligible:
        return PaymentSplit(
            gross=gross,
            merchant_amount=gross - fee,
            house_amount=fee,
            customer_total=gross,
            house_fee_bps=house_fee_bps,
            fee_side=FeeSide.MERCHANT,
        )
    return PaymentSplit(
        gross=gross,
        merchant_amount=gross,
        house_amount=fee,
        customer_total=gross + fee,
        house_fee_bps=house_fee_bps,
        fee_side=FeeSide.CUSTOMER,
    )
