"""
config.py - Lending configuration

LendingConfig is the immutable set of parameters a LoanLedger and a
LendingDesk run with. It is fixed for the lifetime of a ledger: changing a
tier or a limit means building a new config, never mutating one.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional

from .core import BASIS_POINTS_DENOMINATOR, COLLATERAL_DECIMALS, STABLE_DECIMALS
from .rate_table import DEFAULT_RATE_TABLE, RateTable


# Fixed-size account layouts reserve room for 10 loans.
DEFAULT_MAX_OPEN_LOANS = 10

# Oracle readings older than this are refused for new loans.
DEFAULT_MAX_PRICE_AGE_SECONDS = 60

DEFAULT_CUSTODY_WALLET = "custody"


@dataclass(frozen=True)
class LendingConfig:
    """
    Parameters for the lending engine.

    Attributes:
        rate_table: Whitelisted (rate, LTV) tiers
        collateral_asset: Symbol of the volatile collateral asset
        collateral_decimals: Decimal places of the collateral asset
        stable_asset: Symbol of the borrowed stable asset
        stable_decimals: Decimal places of the stable asset
        max_open_loans_per_account: Open-loan cap per BorrowerAccount
        max_price_age_seconds: Staleness bound for oracle readings
        max_confidence_bps: Widest acceptable oracle confidence interval as a
            fraction of price (None disables the check)
        custody_wallet: Wallet holding pledged collateral and pool liquidity
    """
    rate_table: RateTable = field(default=DEFAULT_RATE_TABLE)
    collateral_asset: str = "SOL"
    collateral_decimals: int = COLLATERAL_DECIMALS
    stable_asset: str = "USDC"
    stable_decimals: int = STABLE_DECIMALS
    max_open_loans_per_account: int = DEFAULT_MAX_OPEN_LOANS
    max_price_age_seconds: int = DEFAULT_MAX_PRICE_AGE_SECONDS
    max_confidence_bps: Optional[int] = None
    custody_wallet: str = DEFAULT_CUSTODY_WALLET

    def __post_init__(self):
        if not isinstance(self.rate_table, RateTable):
            raise TypeError(f"rate_table must be a RateTable, got {type(self.rate_table).__name__}")
        if not self.collateral_asset or not self.stable_asset:
            raise ValueError("asset symbols cannot be empty")
        if self.collateral_asset == self.stable_asset:
            raise ValueError("collateral_asset and stable_asset must be different")
        if self.collateral_decimals < 0 or self.stable_decimals < 0:
            raise ValueError("asset decimals cannot be negative")
        if self.max_open_loans_per_account <= 0:
            raise ValueError(
                f"max_open_loans_per_account must be positive, got {self.max_open_loans_per_account}"
            )
        if self.max_price_age_seconds < 0:
            raise ValueError(
                f"max_price_age_seconds cannot be negative, got {self.max_price_age_seconds}"
            )
        if self.max_confidence_bps is not None and not (
            0 <= self.max_confidence_bps <= BASIS_POINTS_DENOMINATOR
        ):
            raise ValueError(
                f"max_confidence_bps must be in [0, {BASIS_POINTS_DENOMINATOR}], "
                f"got {self.max_confidence_bps}"
            )
        if not self.custody_wallet or not self.custody_wallet.strip():
            raise ValueError("custody_wallet cannot be empty")


DEFAULT_CONFIG = LendingConfig()
