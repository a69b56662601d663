# Overview: Pure line-item pricing math in fixed-point integer units.

"""
Pricing Calculator

Money is integer paise (1/100 rupee); percentages are integer basis points
(1 bp = 0.01%, 10000 bp = 100%). No floats anywhere, so summing hundreds of
lines cannot drift.

Per line:
    gross    = unit_price * quantity
    discount = round_half_up(gross * discount_bps / 10000)
    taxable  = gross - discount
    tax      = round_half_up(taxable * tax_bps / 10000)
    net      = taxable + tax

Rounding happens only at the discount and tax steps, to the nearest paisa,
half away from zero (amounts are never negative here).
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Iterable

from ..errors import ValidationError


BPS_SCALE = 10_000
MAX_BPS = BPS_SCALE  # 100%
PAISE_PER_RUPEE = 100


@dataclass(frozen=True)
class LinePricing:
    gross: int
    discount: int
    taxable: int
    tax: int
    net: int


@dataclass(frozen=True)
class PricingSummary:
    subtotal: int  # sum of taxable
    tax: int
    discount: int
    net: int


def _apply_bps(amount: int, bps: int) -> int:
    # nearest-paisa rounding (half-up) on non-negative integers
    return (amount * bps + BPS_SCALE // 2) // BPS_SCALE


def _require_int(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer", details={"field": name})
    return value


def compute_line(
    unit_price_paise: int,
    quantity: int,
    discount_bps: int = 0,
    tax_bps: int = 0,
) -> LinePricing:
    """Price one line. Pure: no I/O, no side effects."""
    unit_price_paise = _require_int("unit_price", unit_price_paise)
    quantity = _require_int("quantity", quantity)
    discount_bps = _require_int("discount_percent", discount_bps)
    tax_bps = _require_int("tax_percent", tax_bps)

    if quantity <= 0:
        raise ValidationError("quantity must be greater than 0", details={"quantity": quantity})
    if unit_price_paise < 0:
        raise ValidationError("unit_price cannot be negative", details={"unit_price_paise": unit_price_paise})
    if not 0 <= discount_bps <= MAX_BPS:
        raise ValidationError("discount_percent must be between 0 and 100", details={"discount_bps": discount_bps})
    if not 0 <= tax_bps <= MAX_BPS:
        raise ValidationError("tax_percent must be between 0 and 100", details={"tax_bps": tax_bps})

    gross = unit_price_paise * quantity
    discount = _apply_bps(gross, discount_bps)
    taxable = gross - discount
    tax = _apply_bps(taxable, tax_bps)
    return LinePricing(gross=gross, discount=discount, taxable=taxable, tax=tax, net=taxable + tax)


def summarize_lines(lines: Iterable[LinePricing]) -> PricingSummary:
    subtotal = tax = discount = net = 0
    for line in lines:
        subtotal += line.taxable
        tax += line.tax
        discount += line.discount
        net += line.net
    return PricingSummary(subtotal=subtotal, tax=tax, discount=discount, net=net)


def _to_decimal(name: str, value) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number", details={"field": name})
    if isinstance(value, float):
        # repr() keeps 0.1 as "0.1" instead of its binary expansion
        value = repr(value)
    try:
        dec = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{name} must be a number", details={"field": name})
    if not dec.is_finite():
        raise ValidationError(f"{name} must be a finite number", details={"field": name})
    return dec


def _scale_exact(name: str, value, scale: int) -> int:
    dec = _to_decimal(name, value) * scale
    if dec != dec.to_integral_value():
        raise ValidationError(
            f"{name} supports at most 2 decimal places",
            details={"field": name, "value": str(value)},
        )
    return int(dec)


def to_paise(value, name: str = "amount") -> int:
    """Convert a rupee amount ("12.50", 12.5, Decimal, int) to integer paise."""
    return _scale_exact(name, value, PAISE_PER_RUPEE)


def to_bps(value, name: str = "percent") -> int:
    """Convert a percentage ("12.5", 5, Decimal) to integer basis points."""
    return _scale_exact(name, value, 100)


def format_paise(paise: int) -> str:
    """Render paise as a rupee string: 21000 -> "210.00"."""
    sign = "-" if paise < 0 else ""
    rupees, rem = divmod(abs(paise), PAISE_PER_RUPEE)
    return f"{sign}{rupees}.{rem:02d}"
