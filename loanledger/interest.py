"""
interest.py - Simple Interest Accrual

Pure functions of (principal, rate, elapsed time). Used both to value a loan
and to resolve a repayment.

    accrued = principal * rate_bps * elapsed_seconds // (10_000 * 31_536_000)

Integer arithmetic in the u128 domain, truncating toward zero. A rate of 0
is the interest-free tier.

A loan also carries unpaid_interest: interest that accrued before its
current baseline and was left unpaid by a partial payment. It is owed as
is and does not itself accrue.
"""

from __future__ import annotations

from .core import (
    BASIS_POINTS_DENOMINATOR, SECONDS_PER_YEAR, U16_MAX,
    Loan, Timestamp,
    checked_add, checked_mul, require_amount, to_u64,
)


# Denominator of the accrual formula: bps scale times seconds in a year.
ACCRUAL_DENOMINATOR = BASIS_POINTS_DENOMINATOR * SECONDS_PER_YEAR


def elapsed_seconds(baseline: Timestamp, now: Timestamp) -> int:
    """
    Seconds elapsed since an accrual baseline.

    Returns 0 when now <= baseline, so a clock that steps backwards never
    produces negative interest.
    """
    if now <= baseline:
        return 0
    return now - baseline


def accrued_interest(principal: int, rate_bps: int, elapsed: int) -> int:
    """
    Interest accrued on principal at rate_bps over elapsed seconds.

    Args:
        principal: Outstanding principal in stable base units
        rate_bps: Annual rate in basis points
        elapsed: Seconds of accrual (negative values are treated as 0)

    Returns:
        Interest in stable base units, truncated toward zero

    Raises:
        Overflow: If the product leaves u128 or the result leaves u64

    Example:
        # 1000 at 5% for one year
        accrued_interest(1000, 500, SECONDS_PER_YEAR)  # -> 50
    """
    require_amount("principal", principal)
    if isinstance(rate_bps, bool) or not isinstance(rate_bps, int):
        raise TypeError(f"rate_bps must be an int, got {type(rate_bps).__name__}")
    if not 0 <= rate_bps <= U16_MAX:
        raise ValueError(f"rate_bps must be in [0, {U16_MAX}], got {rate_bps}")
    if elapsed <= 0 or rate_bps == 0 or principal == 0:
        return 0
    numerator = checked_mul(principal, rate_bps, elapsed)
    return to_u64(numerator // ACCRUAL_DENOMINATOR, "accrued interest")


def loan_interest(loan: Loan, now: Timestamp) -> int:
    """
    Interest a loan owes at now.

    Interest carried from earlier partial payments plus interest accrued on
    the current principal since the accrual baseline.
    """
    accrued = accrued_interest(
        loan.principal,
        loan.rate_bps,
        elapsed_seconds(loan.accrual_baseline, now),
    )
    return checked_add(loan.unpaid_interest, accrued)


def total_owed(loan: Loan, now: Timestamp) -> int:
    """Principal plus interest owed up to now."""
    return checked_add(loan.principal, loan_interest(loan, now))
