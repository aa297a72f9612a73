# core/services/amount_math.py
"""
Pure amount helpers for the compounding cycle.

All monetary math goes through Decimal, never float. Raw on-chain amounts
are ints scaled by the token decimals (18 for every token this tool touches).
"""

from __future__ import annotations

from decimal import ROUND_FLOOR, Context, Decimal, localcontext
from typing import Tuple, Union

# wide enough for uint256 amounts, whatever thread does the math
MATH_CONTEXT = Context(prec=78)

BPS_DENOMINATOR = 10_000
ETHER_DECIMALS = 18

# 0.0001 token at 18 decimals
EPSILON = 10**14

Number = Union[int, float, str, Decimal]


def to_decimal(x: Number) -> Decimal:
    """
    Convert to Decimal without inheriting binary float noise
    (0.3 -> Decimal("0.3"), not 0.299999...).
    """
    if isinstance(x, Decimal):
        return x
    if isinstance(x, float):
        return Decimal(str(x))
    return Decimal(x)


def clamp(x, lo, hi):
    return max(lo, min(x, hi))


def derive_fractions(profit_fraction: Number) -> Tuple[int, int]:
    """
    Derive (swap_fraction_bps, liquidity_ether_fraction_bps) from the profit
    fraction f0, which the caller must have clamped to [0, 1].

        swap  = floor(0.5 * (1 + f0) * 10000)
        ether = floor((1 - f0) / (1 + f0) * 10000)

    f0 = 0 swaps half the rewards and re-invests all the ether received.
    f0 = 1 swaps everything and re-invests nothing.
    """
    f0 = to_decimal(profit_fraction)
    one = Decimal(1)
    with localcontext(MATH_CONTEXT):
        swap = (Decimal("0.5") * (one + f0) * BPS_DENOMINATOR).to_integral_value(rounding=ROUND_FLOOR)
        ether = ((one - f0) / (one + f0) * BPS_DENOMINATOR).to_integral_value(rounding=ROUND_FLOOR)
    return int(swap), int(ether)


def min_output(amount_in: Number, spot_price: Number, slippage_tolerance: Number) -> Decimal:
    """
    amount_in * spot_price * (1 - slippage_tolerance), exact.
    """
    with localcontext(MATH_CONTEXT):
        return to_decimal(amount_in) * to_decimal(spot_price) * (Decimal(1) - to_decimal(slippage_tolerance))


def min_output_raw(amount_in_raw: int, spot_price: Number, slippage_tolerance: Number) -> int:
    """
    Integer (raw units) flavour of `min_output`, floored so the minimum never
    exceeds what the trade can deliver.
    """
    out = min_output(int(amount_in_raw), spot_price, slippage_tolerance)
    return int(out.to_integral_value(rounding=ROUND_FLOOR))


def ratio(numerator: Number, denominator: Number) -> Decimal:
    """numerator / denominator at full precision; 0 when the denominator is 0."""
    den = to_decimal(denominator)
    if den == 0:
        return Decimal(0)
    with localcontext(MATH_CONTEXT):
        return to_decimal(numerator) / den


def apply_bps(amount: int, bps: int) -> int:
    return int(amount) * int(bps) // BPS_DENOMINATOR


def slippage_factor_bps(slippage_tolerance: Number) -> int:
    """floor((1 - tolerance) * 10000)"""
    with localcontext(MATH_CONTEXT):
        factor = (Decimal(1) - to_decimal(slippage_tolerance)) * BPS_DENOMINATOR
        return int(factor.to_integral_value(rounding=ROUND_FLOOR))


def format_units(raw: int, decimals: int = ETHER_DECIMALS) -> Decimal:
    """Raw integer amount -> human Decimal (ethers' formatEther)."""
    with localcontext(MATH_CONTEXT):
        return Decimal(int(raw)).scaleb(-int(decimals))

