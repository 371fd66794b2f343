"""
collateral.py - Collateral Requirement Calculations

Pure functions converting between stable-asset principal and collateral-asset
amounts at a given LTV tier and price.

=== PRICE CONVENTION ===

asset_price is expressed in stable base units per ONE WHOLE collateral unit.
With USDC (6 decimals) and SOL (9 decimals), a SOL price of $100 is
asset_price = 100_000_000 and asset_decimals = 9.

=== REQUIRED COLLATERAL ===

    required = ceil(principal * 10**asset_decimals * 10_000 / (ltv_bps * asset_price))

Rounding policy: ROUND UP. The requirement is a floor on what the borrower
must pledge, so rounding toward the borrower would admit loans that are
fractionally under-collateralized. Exact divisions are unaffected:

    1000 at 25% LTV, price 100, decimals 0:
        1000 * 1 * 10_000 / (2_500 * 100) = 40

All products are computed in the u128 domain; results must fit in u64.
"""

from __future__ import annotations
from typing import Any

from .core import (
    BASIS_POINTS_DENOMINATOR,
    InvalidPrice,
    ceil_div, checked_mul, require_amount, to_u64,
)


def _require_price(asset_price: Any) -> int:
    if isinstance(asset_price, bool) or not isinstance(asset_price, int):
        raise InvalidPrice(f"asset_price must be an int, got {type(asset_price).__name__}")
    if asset_price <= 0:
        raise InvalidPrice(f"asset_price must be positive, got {asset_price}")
    return asset_price


def _require_ltv(ltv_bps: int) -> int:
    if isinstance(ltv_bps, bool) or not isinstance(ltv_bps, int):
        raise TypeError(f"ltv_bps must be an int, got {type(ltv_bps).__name__}")
    if not 0 < ltv_bps <= BASIS_POINTS_DENOMINATOR:
        raise ValueError(f"ltv_bps must be in (0, {BASIS_POINTS_DENOMINATOR}], got {ltv_bps}")
    return ltv_bps


def _require_decimals(asset_decimals: int) -> int:
    if isinstance(asset_decimals, bool) or not isinstance(asset_decimals, int):
        raise TypeError(f"asset_decimals must be an int, got {type(asset_decimals).__name__}")
    if asset_decimals < 0:
        raise ValueError(f"asset_decimals cannot be negative, got {asset_decimals}")
    return asset_decimals


def required_collateral(
    principal: int,
    ltv_bps: int,
    asset_price: int,
    asset_decimals: int,
) -> int:
    """
    Minimum collateral (base units) needed to borrow principal at an LTV tier.

    Args:
        principal: Requested principal in stable base units
        ltv_bps: Loan-to-value ratio of the selected tier, in basis points
        asset_price: Stable base units per whole collateral unit
        asset_decimals: Decimal places of the collateral asset

    Returns:
        Required collateral, rounded up to the next base unit

    Raises:
        InvalidPrice: If asset_price is not a positive int
        Overflow: If an intermediate product leaves u128 or the result leaves u64
        ValueError: If ltv_bps is outside (0, 10000] or principal is negative

    Example:
        # $1,000 at 25% LTV with SOL at $100 -> 40 SOL
        required_collateral(1_000_000_000, 2500, 100_000_000, 9)  # 40_000_000_000
    """
    require_amount("principal", principal)
    _require_ltv(ltv_bps)
    _require_price(asset_price)
    _require_decimals(asset_decimals)

    if principal == 0:
        return 0

    numerator = checked_mul(principal, 10 ** asset_decimals, BASIS_POINTS_DENOMINATOR)
    denominator = checked_mul(ltv_bps, asset_price)
    return to_u64(ceil_div(numerator, denominator), "required collateral")


def max_principal(
    collateral: int,
    ltv_bps: int,
    asset_price: int,
    asset_decimals: int,
) -> int:
    """
    Largest principal a collateral amount supports at an LTV tier.

    The inverse of required_collateral, rounded DOWN, so that
    required_collateral(max_principal(c, ...), ...) <= c always holds.
    """
    require_amount("collateral", collateral)
    _require_ltv(ltv_bps)
    _require_price(asset_price)
    _require_decimals(asset_decimals)

    numerator = checked_mul(collateral, ltv_bps, asset_price)
    denominator = checked_mul(10 ** asset_decimals, BASIS_POINTS_DENOMINATOR)
    return to_u64(numerator // denominator, "max principal")


def collateral_value(collateral: int, asset_price: int, asset_decimals: int) -> int:
    """Stable-asset value of a collateral amount, rounded down."""
    require_amount("collateral", collateral)
    _require_price(asset_price)
    _require_decimals(asset_decimals)
    return to_u64(checked_mul(collateral, asset_price) // 10 ** asset_decimals, "collateral value")
