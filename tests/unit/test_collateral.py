"""
test_collateral.py - Unit tests for collateral requirement calculations

Tests:
- Exact and rounded-up requirements
- Native SOL/USDC precision
- Price and LTV validation
- Overflow in the widened and narrowed domains
- max_principal and collateral_value
"""

import pytest

from loanledger import (
    required_collateral, max_principal, collateral_value,
    InvalidPrice, Overflow, U64_MAX,
)


class TestRequiredCollateral:
    """required_collateral(principal, ltv_bps, asset_price, asset_decimals)."""

    def test_exact_division(self):
        """1000 at 25% LTV, price 100, no decimals -> 40."""
        assert required_collateral(1000, 2500, 100, 0) == 40

    def test_rounds_up(self):
        """1001 * 10_000 / 250_000 = 40.04 -> 41."""
        assert required_collateral(1001, 2500, 100, 0) == 41

    def test_smallest_shortfall_rounds_up(self):
        """Any remainder at all costs one more base unit."""
        assert required_collateral(1, 10_000, 3, 0) == 1
        assert required_collateral(4, 10_000, 3, 0) == 2

    def test_native_precision(self):
        """$1,000 at 25% LTV with SOL at $100 -> 40 SOL in lamports."""
        assert required_collateral(1_000_000_000, 2500, 100_000_000, 9) == 40_000_000_000

    def test_zero_principal(self):
        assert required_collateral(0, 2500, 100, 0) == 0

    @pytest.mark.parametrize("ltv_bps,expected", [
        (5000, 20),
        (3300, 31),
        (2500, 40),
        (2000, 50),
    ])
    def test_default_tier_ltvs(self, ltv_bps, expected):
        assert required_collateral(1000, ltv_bps, 100, 0) == expected

    def test_higher_price_needs_less_collateral(self):
        assert required_collateral(1000, 2500, 200, 0) == 20

    @pytest.mark.parametrize("price", [0, -100])
    def test_non_positive_price_rejected(self, price):
        with pytest.raises(InvalidPrice):
            required_collateral(1000, 2500, price, 0)

    def test_float_price_rejected(self):
        with pytest.raises(InvalidPrice):
            required_collateral(1000, 2500, 100.0, 0)

    def test_bool_price_rejected(self):
        with pytest.raises(InvalidPrice):
            required_collateral(1000, 2500, True, 0)

    @pytest.mark.parametrize("ltv_bps", [0, 10_001])
    def test_ltv_out_of_range(self, ltv_bps):
        with pytest.raises(ValueError):
            required_collateral(1000, ltv_bps, 100, 0)

    def test_negative_principal_rejected(self):
        with pytest.raises(ValueError):
            required_collateral(-1, 2500, 100, 0)

    def test_float_principal_rejected(self):
        with pytest.raises(TypeError):
            required_collateral(1000.0, 2500, 100, 0)

    def test_widened_domain_overflow(self):
        """principal * 10**30 leaves u128."""
        with pytest.raises(Overflow):
            required_collateral(U64_MAX, 2500, 100, 30)

    def test_result_exceeds_u64(self):
        with pytest.raises(Overflow):
            required_collateral(U64_MAX, 1, 1, 0)


class TestMaxPrincipal:
    """max_principal is the rounded-down inverse of required_collateral."""

    def test_exact(self):
        assert max_principal(40, 2500, 100, 0) == 1000

    def test_rounds_down(self):
        assert max_principal(39, 2500, 100, 0) == 975

    def test_inverse_never_exceeds_collateral(self):
        for collateral in (1, 7, 39, 40, 41, 1_000):
            principal = max_principal(collateral, 3300, 100, 0)
            assert required_collateral(principal, 3300, 100, 0) <= collateral

    def test_native_precision(self):
        assert max_principal(40_000_000_000, 2500, 100_000_000, 9) == 1_000_000_000


class TestCollateralValue:
    """collateral_value converts collateral to stable units, rounded down."""

    def test_native_precision(self):
        assert collateral_value(40_000_000_000, 100_000_000, 9) == 4_000_000_000

    def test_rounds_down(self):
        assert collateral_value(1, 100_000_000, 9) == 0

    def test_zero(self):
        assert collateral_value(0, 100, 0) == 0
