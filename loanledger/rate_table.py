"""
rate_table.py - Fixed APY to LTV tier table

A borrower selects one of a small set of (rate, LTV) tiers when opening a
loan. Lookup is exact-match only: any rate that is not a tier is rejected.
There is no interpolation and no formula.

Default tiers (highest rate first):

    rate_bps    ltv_bps
    800         5000    (8%  -> 50% LTV)
    500         3300    (5%  -> 33% LTV)
    100         2500    (1%  -> 25% LTV)
    0           2000    (0%  -> 20% LTV)
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, Iterator, Tuple

from .core import BASIS_POINTS_DENOMINATOR, U16_MAX, UnknownRate


def _is_integer_rate(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True, slots=True)
class RateTier:
    """A single (rate, LTV) pair, both in basis points."""
    rate_bps: int
    ltv_bps: int

    def __post_init__(self):
        if not (_is_integer_rate(self.rate_bps) and _is_integer_rate(self.ltv_bps)):
            raise TypeError(f"RateTier needs int basis points, got {self.rate_bps!r}, {self.ltv_bps!r}")
        if not 0 <= self.rate_bps <= U16_MAX:
            raise ValueError(f"rate_bps must be in [0, {U16_MAX}], got {self.rate_bps}")
        if not 0 < self.ltv_bps <= BASIS_POINTS_DENOMINATOR:
            raise ValueError(
                f"ltv_bps must be in (0, {BASIS_POINTS_DENOMINATOR}], got {self.ltv_bps}"
            )


class RateTable:
    """
    Immutable whitelist of rate tiers.

    Example:
        table = RateTable([RateTier(800, 5000), RateTier(0, 2000)])
        table.lookup(800)  # -> 5000
        table.lookup(300)  # raises UnknownRate
    """

    def __init__(self, tiers: Iterable[RateTier]):
        ordered = tuple(sorted(tiers, key=lambda t: t.rate_bps, reverse=True))
        if not ordered:
            raise ValueError("RateTable requires at least one tier")
        rates = [t.rate_bps for t in ordered]
        if len(set(rates)) != len(rates):
            raise ValueError(f"RateTable rates must be unique, got {rates}")
        self._tiers: Tuple[RateTier, ...] = ordered
        self._ltv_by_rate = {t.rate_bps: t.ltv_bps for t in ordered}

    def lookup(self, rate_bps: int) -> int:
        """
        Return the LTV (bps) for an exact tier rate.

        Raises:
            UnknownRate: If rate_bps is not a tier. A float or bool never is,
                even when it compares equal to one.
        """
        if not _is_integer_rate(rate_bps):
            raise UnknownRate(
                f"rate {rate_bps!r} is not an integer bps tier; allowed: {list(self.rates())}"
            )
        try:
            return self._ltv_by_rate[rate_bps]
        except KeyError:
            raise UnknownRate(
                f"rate {rate_bps!r} bps is not a tier; allowed: {list(self.rates())}"
            ) from None

    def rates(self) -> Tuple[int, ...]:
        """Tier rates, highest first."""
        return tuple(t.rate_bps for t in self._tiers)

    def tiers(self) -> Tuple[RateTier, ...]:
        return self._tiers

    def __contains__(self, rate_bps: object) -> bool:
        return _is_integer_rate(rate_bps) and rate_bps in self._ltv_by_rate

    def __iter__(self) -> Iterator[RateTier]:
        return iter(self._tiers)

    def __len__(self) -> int:
        return len(self._tiers)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RateTable):
            return NotImplemented
        return self._tiers == other._tiers

    def __hash__(self) -> int:
        return hash(self._tiers)

    def __repr__(self) -> str:
        pairs = ", ".join(f"{t.rate_bps}->{t.ltv_bps}" for t in self._tiers)
        return f"RateTable({pairs})"


DEFAULT_TIERS: Tuple[RateTier, ...] = (
    RateTier(rate_bps=800, ltv_bps=5000),
    RateTier(rate_bps=500, ltv_bps=3300),
    RateTier(rate_bps=100, ltv_bps=2500),
    RateTier(rate_bps=0, ltv_bps=2000),
)

DEFAULT_RATE_TABLE = RateTable(DEFAULT_TIERS)
