"""
loanledger - Collateralized Lending Ledger

Users deposit a volatile collateral asset, borrow a stable asset at one of
several fixed annual-rate tiers, and repay principal plus accrued interest
to reclaim their collateral. All amounts are integer base units.

Usage:
    from loanledger import (
        LoanLedger, LendingDesk, StaticPriceOracle, InMemoryTransferService,
    )

    ledger = LoanLedger(verbose=False)
    oracle = StaticPriceOracle({"SOL": 100_000_000})       # 100 USDC per SOL
    transfers = InMemoryTransferService()
    transfers.set_balance("treasury", "USDC", 1_000_000_000_000)
    transfers.set_balance("alice", "SOL", 100_000_000_000)

    desk = LendingDesk(ledger, oracle, transfers, admin="treasury")
    desk.deposit_liquidity("treasury", 1_000_000_000_000, now=0)
    desk.open_account("alice")

    # Borrow 1,000 USDC at 1% (25% LTV): requires 40 SOL
    loan_id = desk.borrow("alice", 1_000_000_000, 100, 40_000_000_000, now=0)

    # Repay in full one year later
    owed = desk.quote_repayment("alice", loan_id, now=31_536_000).total_owed
    desk.repay("alice", "alice", loan_id, owed, now=31_536_000)
"""

# Core types
from .core import (
    Loan,
    BorrowerAccount,
    JournalEntry,
    EntryKind,
    Identity,
    LoanId,
    Timestamp,
    LendingError,
    UnknownRate,
    InvalidPrice,
    Overflow,
    InsufficientCollateral,
    LoanNotFound,
    Unauthorized,
    RepaymentExceedsOwed,
    TooManyOpenLoans,
    AccountNotFound,
    AccountExists,
    InsufficientBalance,
    InsufficientLiquidity,
    TransferFailed,
    BASIS_POINTS_DENOMINATOR,
    SECONDS_PER_DAY,
    SECONDS_PER_YEAR,
    U64_MAX,
    U128_MAX,
    COLLATERAL_DECIMALS,
    STABLE_DECIMALS,
    format_amount,
)

# Rate tiers
from .rate_table import (
    RateTier,
    RateTable,
    DEFAULT_TIERS,
    DEFAULT_RATE_TABLE,
)

# Pure calculators
from .collateral import (
    required_collateral,
    max_principal,
    collateral_value,
)
from .interest import (
    elapsed_seconds,
    accrued_interest,
    loan_interest,
    total_owed,
)
from .repayment import (
    FullSettlement,
    PartialSettlement,
    RepaymentOutcome,
    resolve_repayment,
)

# Configuration
from .config import (
    LendingConfig,
    DEFAULT_CONFIG,
    DEFAULT_MAX_OPEN_LOANS,
    DEFAULT_MAX_PRICE_AGE_SECONDS,
    DEFAULT_CUSTODY_WALLET,
)

# External interfaces
from .pricing_source import (
    PriceReading,
    PriceOracle,
    StaticPriceOracle,
    TimeSeriesPriceOracle,
    validate_reading,
)
from .storage import (
    AccountStorage,
    InMemoryAccountStorage,
)
from .transfers import (
    Transfer,
    AssetTransferService,
    InMemoryTransferService,
)

# Ledger and desk
from .ledger import LoanLedger
from .desk import LendingDesk, BorrowQuote, RepaymentQuote


__all__ = [
    # Core
    'Loan', 'BorrowerAccount', 'JournalEntry', 'EntryKind',
    'Identity', 'LoanId', 'Timestamp',
    'LendingError', 'UnknownRate', 'InvalidPrice', 'Overflow', 'InsufficientCollateral',
    'LoanNotFound', 'Unauthorized', 'RepaymentExceedsOwed', 'TooManyOpenLoans',
    'AccountNotFound', 'AccountExists', 'InsufficientBalance', 'InsufficientLiquidity',
    'TransferFailed',
    'BASIS_POINTS_DENOMINATOR', 'SECONDS_PER_DAY', 'SECONDS_PER_YEAR', 'U64_MAX', 'U128_MAX',
    'COLLATERAL_DECIMALS', 'STABLE_DECIMALS', 'format_amount',
    # Rate tiers
    'RateTier', 'RateTable', 'DEFAULT_TIERS', 'DEFAULT_RATE_TABLE',
    # Calculators
    'required_collateral', 'max_principal', 'collateral_value',
    'elapsed_seconds', 'accrued_interest', 'loan_interest', 'total_owed',
    'FullSettlement', 'PartialSettlement', 'RepaymentOutcome', 'resolve_repayment',
    # Configuration
    'LendingConfig', 'DEFAULT_CONFIG', 'DEFAULT_MAX_OPEN_LOANS',
    'DEFAULT_MAX_PRICE_AGE_SECONDS', 'DEFAULT_CUSTODY_WALLET',
    # Interfaces
    'PriceReading', 'PriceOracle', 'StaticPriceOracle', 'TimeSeriesPriceOracle',
    'validate_reading',
    'AccountStorage', 'InMemoryAccountStorage',
    'Transfer', 'AssetTransferService', 'InMemoryTransferService',
    # Ledger and desk
    'LoanLedger', 'LendingDesk', 'BorrowQuote', 'RepaymentQuote',
]
