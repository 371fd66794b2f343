"""
Core types and pure helpers for the collateralized lending ledger.

This module provides the foundational pieces every other module builds on:
1. Constants: basis-point and time denominators, integer domain bounds
2. Exceptions: LendingError and the domain-specific error taxonomy
3. Immutable data structures: Loan, BorrowerAccount, JournalEntry
4. Checked integer arithmetic: the widened (u128) domain and u64 amounts
5. Formatting: fixed-point amounts rendered as Decimal

All amounts are integers in the asset's smallest unit (lamports, micro-USDC).
No function in this module mutates anything.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional, Tuple, Any


# ============================================================================
# CONSTANTS
# ============================================================================

# 1 bps = 0.01%, so 10_000 bps = 100%.
BASIS_POINTS_DENOMINATOR = 10_000

# Interest accrues on a 365-day year, no leap-day adjustment.
SECONDS_PER_DAY = 86_400
SECONDS_PER_YEAR = 365 * SECONDS_PER_DAY

# Amounts are stored as unsigned 64-bit values; intermediate products are
# computed in a 128-bit domain.
U16_MAX = 2 ** 16 - 1
U64_MAX = 2 ** 64 - 1
U128_MAX = 2 ** 128 - 1

# Native precision of the reference assets.
COLLATERAL_DECIMALS = 9    # SOL -> lamports
STABLE_DECIMALS = 6        # USDC -> micro-USDC


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Opaque, unforgeable principal identifier (a public key, a user id, ...).
Identity = str

# Unique per BorrowerAccount, assigned from the account's loan sequence.
LoanId = int

# Unix timestamp in whole seconds.
Timestamp = int


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LendingError(Exception):
    """Base exception for all lending ledger errors."""
    pass


class UnknownRate(LendingError):
    """Raised when a requested rate is not one of the rate table's tiers."""
    pass


class InvalidPrice(LendingError):
    """Raised when a price reading is missing, non-positive, stale or too uncertain."""
    pass


class Overflow(LendingError):
    """Raised when arithmetic would leave the widened integer domain or an amount exceeds u64."""
    pass


class InsufficientCollateral(LendingError):
    """Raised when pledged collateral is below the computed requirement."""
    pass


class LoanNotFound(LendingError):
    """Raised when a loan id is not among an account's open loans."""
    pass


class Unauthorized(LendingError):
    """Raised when the caller's identity does not match the required identity."""
    pass


class RepaymentExceedsOwed(LendingError):
    """Raised when a payment is greater than principal plus accrued interest."""
    pass


class TooManyOpenLoans(LendingError):
    """Raised when an account already holds the configured maximum of open loans."""
    pass


class AccountNotFound(LendingError):
    """Raised when no BorrowerAccount exists for an owner."""
    pass


class AccountExists(LendingError):
    """Raised when opening an account for an owner that already has one."""
    pass


class InsufficientBalance(LendingError):
    """Raised when a debit would take an account balance below zero."""
    pass


class InsufficientLiquidity(LendingError):
    """Raised when the lending pool cannot fund a requested principal."""
    pass


class TransferFailed(LendingError):
    """Raised by a transfer service when a batch of transfers cannot be applied."""
    pass


# ============================================================================
# CHECKED ARITHMETIC
# ============================================================================

def require_amount(name: str, value: Any, allow_zero: bool = True) -> int:
    """
    Validate an integer amount argument.

    Booleans are rejected even though they are ints. Amounts above U64_MAX
    raise Overflow since they cannot be represented in storage.

    Raises:
        TypeError: If value is not an int
        ValueError: If value is negative (or zero when allow_zero is False)
        Overflow: If value exceeds U64_MAX
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    if value < 0 or (value == 0 and not allow_zero):
        qualifier = "non-negative" if allow_zero else "positive"
        raise ValueError(f"{name} must be {qualifier}, got {value}")
    if value > U64_MAX:
        raise Overflow(f"{name} {value} exceeds u64 range")
    return value


def checked_mul(*factors: int) -> int:
    """
    Multiply factors left to right, failing if any partial product exceeds U128_MAX.

    Example:
        checked_mul(principal, 10 ** decimals, BASIS_POINTS_DENOMINATOR)
    """
    result = 1
    for f in factors:
        result *= f
        if result > U128_MAX:
            raise Overflow("intermediate product exceeds u128 range")
    return result


def checked_add(a: int, b: int) -> int:
    """Add two u64 amounts, failing if the sum exceeds U64_MAX."""
    total = a + b
    if total > U64_MAX:
        raise Overflow(f"{a} + {b} exceeds u64 range")
    return total


def to_u64(value: int, what: str = "result") -> int:
    """Narrow a widened result back to the u64 amount domain."""
    if value > U64_MAX:
        raise Overflow(f"{what} {value} exceeds u64 range")
    return value


def ceil_div(numerator: int, denominator: int) -> int:
    """Integer division rounding toward positive infinity (non-negative operands)."""
    return -(-numerator // denominator)


def format_amount(amount: int, decimals: int) -> Decimal:
    """
    Render a fixed-point integer amount in whole units.

    Example:
        format_amount(1_500_000, 6) -> Decimal("1.500000")
    """
    return Decimal(amount).scaleb(-decimals)


# ============================================================================
# CORE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class Loan:
    """
    One open borrowing position.

    Attributes:
        loan_id: Unique within the owning account, never reused.
        borrower: Identity of the borrower (the account owner).
        principal: Outstanding principal in stable base units (> 0 while open).
        rate_bps: Annual rate in basis points, fixed at creation.
        collateral: Collateral locked for this loan, in collateral base units.
        created_at: Unix time the loan was admitted.
        accrual_baseline: Unix time from which interest is next computed.
        unpaid_interest: Interest accrued before the baseline and still owed.
    """
    loan_id: LoanId
    borrower: Identity
    principal: int
    rate_bps: int
    collateral: int
    created_at: Timestamp
    accrual_baseline: Timestamp
    unpaid_interest: int = 0

    def __post_init__(self):
        if self.principal <= 0:
            raise ValueError(f"Loan principal must be positive, got {self.principal}")
        if self.collateral < 0:
            raise ValueError(f"Loan collateral cannot be negative, got {self.collateral}")
        if self.unpaid_interest < 0:
            raise ValueError(f"Loan unpaid interest cannot be negative, got {self.unpaid_interest}")
        if not self.borrower:
            raise ValueError("Loan borrower cannot be empty")

    def __repr__(self) -> str:
        return (f"Loan(#{self.loan_id} {self.borrower}: principal={self.principal} "
                f"@{self.rate_bps}bps, collateral={self.collateral})")


@dataclass(frozen=True, slots=True)
class BorrowerAccount:
    """
    Per-owner record of balances and open loans.

    Instances are immutable. LoanLedger replaces the whole record on every
    mutation, which is what makes each ledger operation all-or-nothing.

    Attributes:
        owner: Identity that owns the account.
        collateral_balance: Free collateral held for the owner (not locked in a loan).
        stable_balance: Stable asset held for the owner.
        loan_sequence: Highest loan id ever assigned (0 before the first loan).
        loans: Open loans in creation order.
    """
    owner: Identity
    collateral_balance: int = 0
    stable_balance: int = 0
    loan_sequence: int = 0
    loans: Tuple[Loan, ...] = ()

    def __post_init__(self):
        if not self.owner or not self.owner.strip():
            raise ValueError("BorrowerAccount owner cannot be empty")
        if self.collateral_balance < 0:
            raise ValueError(f"collateral_balance cannot be negative, got {self.collateral_balance}")
        if self.stable_balance < 0:
            raise ValueError(f"stable_balance cannot be negative, got {self.stable_balance}")

    def find_loan(self, loan_id: LoanId) -> Optional[Loan]:
        """Return the open loan with this id, or None."""
        for loan in self.loans:
            if loan.loan_id == loan_id:
                return loan
        return None

    @property
    def locked_collateral(self) -> int:
        """Collateral pledged across all open loans."""
        return sum(loan.collateral for loan in self.loans)

    @property
    def outstanding_principal(self) -> int:
        """Principal owed across all open loans (interest excluded)."""
        return sum(loan.principal for loan in self.loans)

    def with_loans(self, loans: Tuple[Loan, ...], **changes: Any) -> BorrowerAccount:
        """Return a copy with a new loan collection and optional field changes."""
        return replace(self, loans=tuple(loans), **changes)


class EntryKind(Enum):
    """Kind of ledger mutation recorded in the journal."""
    ACCOUNT_OPENED = "account_opened"
    COLLATERAL_CREDITED = "collateral_credited"
    COLLATERAL_DEBITED = "collateral_debited"
    STABLE_CREDITED = "stable_credited"
    STABLE_DEBITED = "stable_debited"
    LOAN_OPENED = "loan_opened"
    LOAN_REDUCED = "loan_reduced"
    LOAN_CLOSED = "loan_closed"
    POOL_CREDITED = "pool_credited"
    POOL_DEBITED = "pool_debited"


@dataclass(frozen=True, slots=True)
class JournalEntry:
    """
    Immutable audit record of one applied ledger mutation.

    Attributes:
        sequence_number: Monotonic within the ledger.
        kind: What happened.
        owner: Account the mutation applied to.
        loan_id: Loan involved, if any.
        amounts: Named integer amounts (principal, collateral, ...).
        timestamp: Unix time supplied by the caller, if any.
    """
    sequence_number: int
    kind: EntryKind
    owner: Identity
    loan_id: Optional[LoanId] = None
    amounts: Dict[str, int] = field(default_factory=dict)
    timestamp: Optional[Timestamp] = None

    def __repr__(self) -> str:
        parts = [f"#{self.sequence_number}", self.kind.value, self.owner]
        if self.loan_id is not None:
            parts.append(f"loan={self.loan_id}")
        for name, value in sorted(self.amounts.items()):
            parts.append(f"{name}={value}")
        return f"JournalEntry({' '.join(parts)})"
