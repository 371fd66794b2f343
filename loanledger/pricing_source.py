"""
pricing_source.py - Price oracle interface for collateral valuation

The lending engine never fetches prices itself. A PriceOracle supplies the
collateral asset's price in stable-asset terms, and validate_reading()
decides whether that reading is usable for admitting a new loan.

Classes:
- PriceReading: An oracle observation (price, publish time, confidence)
- PriceOracle: Protocol defining the oracle interface
- StaticPriceOracle: Time-independent prices, always fresh
- TimeSeriesPriceOracle: Time-varying prices with historical data

All prices are integers: stable base units per one whole collateral unit.
"""

from __future__ import annotations
from bisect import bisect_right
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Tuple, runtime_checkable

from .core import BASIS_POINTS_DENOMINATOR, InvalidPrice, Timestamp


@dataclass(frozen=True, slots=True)
class PriceReading:
    """
    One oracle observation.

    Attributes:
        price: Stable base units per whole collateral unit
        published_at: Unix time the oracle published this price
        confidence: Half-width of the oracle's confidence interval, same units as price
    """
    price: int
    published_at: Timestamp
    confidence: int = 0


@runtime_checkable
class PriceOracle(Protocol):
    """
    Protocol for price oracles.

    Implementations return the most recent reading at or before timestamp,
    or None if the oracle has nothing for the asset.
    """

    def get_reading(self, asset: str, timestamp: Timestamp) -> Optional[PriceReading]:
        ...


def validate_reading(
    reading: Optional[PriceReading],
    now: Timestamp,
    max_age_seconds: int,
    max_confidence_bps: Optional[int] = None,
) -> int:
    """
    Check an oracle reading and return its price.

    A reading is refused when it is missing, its price is not a positive
    int, it was published more than max_age_seconds before now, or its
    confidence interval is wider than max_confidence_bps of the price.
    A reading published after now (clock skew) counts as age 0.

    Raises:
        InvalidPrice: If the reading is unusable
    """
    if reading is None:
        raise InvalidPrice("no price reading available")
    price = reading.price
    if isinstance(price, bool) or not isinstance(price, int) or price <= 0:
        raise InvalidPrice(f"price must be a positive int, got {price!r}")
    age = max(0, now - reading.published_at)
    if age > max_age_seconds:
        raise InvalidPrice(f"price is stale: published {age}s ago, max {max_age_seconds}s")
    if max_confidence_bps is not None:
        if reading.confidence * BASIS_POINTS_DENOMINATOR > price * max_confidence_bps:
            raise InvalidPrice(
                f"price confidence {reading.confidence} too wide for price {price} "
                f"(max {max_confidence_bps} bps)"
            )
    return price


class StaticPriceOracle:
    """
    Oracle with static prices (time-independent).

    Every reading is reported as published at the requested timestamp, so
    static prices never go stale.
    """

    def __init__(self, prices: Dict[str, int]):
        """
        Initialize with a static price map.

        Args:
            prices: Dictionary mapping asset symbols to prices
        """
        self.prices = prices.copy()

    def get_reading(self, asset: str, timestamp: Timestamp) -> Optional[PriceReading]:
        """Get static price (reported as fresh at timestamp)."""
        price = self.prices.get(asset)
        if price is None:
            return None
        return PriceReading(price=price, published_at=timestamp)

    def update_price(self, asset: str, price: int):
        """Update the price of an asset."""
        self.prices[asset] = price

    def __repr__(self):
        return f"StaticPriceOracle({len(self.prices)} prices)"


class TimeSeriesPriceOracle:
    """
    Oracle with time-varying prices.

    Stores historical readings and supports point-in-time lookup. Uses the
    most recent reading at or before the requested timestamp, keeping the
    reading's own publish time so that staleness is visible to callers.

    Example:
        oracle = TimeSeriesPriceOracle({
            'SOL': [(t0, 100_000_000), (t1, 102_000_000)],
        })
        oracle.add_price('SOL', t2, 99_000_000, confidence=50_000)
    """

    def __init__(self, price_paths: Optional[Dict[str, List[Tuple[Timestamp, int]]]] = None):
        self.history: Dict[str, List[PriceReading]] = {}

        if price_paths:
            for asset, path in price_paths.items():
                if not path:
                    continue
                # Sort by timestamp to ensure chronological order
                self.history[asset] = sorted(
                    (PriceReading(price=p, published_at=ts) for ts, p in path),
                    key=lambda r: r.published_at,
                )

    def add_price(self, asset: str, timestamp: Timestamp, price: int, confidence: int = 0):
        """Add a reading for an asset at a specific time."""
        readings = self.history.setdefault(asset, [])
        readings.append(PriceReading(price=price, published_at=timestamp, confidence=confidence))
        readings.sort(key=lambda r: r.published_at)

    def get_reading(self, asset: str, timestamp: Timestamp) -> Optional[PriceReading]:
        """
        Get the reading at or before the specified timestamp.

        Uses binary search for O(log n) lookup. Returns None if there is no
        reading at or before timestamp.
        """
        readings = self.history.get(asset)
        if not readings:
            return None

        timestamps = [r.published_at for r in readings]
        idx = bisect_right(timestamps, timestamp)

        if idx == 0:
            return None
        return readings[idx - 1]

    def __repr__(self):
        total = sum(len(r) for r in self.history.values())
        return f"TimeSeriesPriceOracle({len(self.history)} assets, {total} readings)"
