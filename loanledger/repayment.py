"""
repayment.py - Repayment Resolution

Applies a payment against an open loan's total owed and decides between
full and partial settlement. Pure: the resolver never touches a ledger, it
returns an outcome that the caller applies with LoanLedger.close_loan() or
LoanLedger.reduce_loan().

=== STATE MACHINE ===

    Open --(payment == total_owed)--> Closed      FullSettlement, collateral released
    Open --(payment <  total_owed)--> Open        PartialSettlement, principal reduced
    Open --(payment >  total_owed)--> error       RepaymentExceedsOwed, nothing changes

=== AMORTIZATION (interest first) ===

    interest_due   = unpaid_interest + accrued since baseline
    interest_paid  = min(payment, interest_due)
    principal_paid = payment - interest_paid
    new_principal  = principal - principal_paid

Any non-zero partial payment moves the accrual baseline to `now` and keeps
the interest it did not cover as unpaid_interest, so

    payment + total_owed(after) == total_owed(before)

holds exactly. A zero payment is a no-op.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Union

from .core import Loan, LoanId, RepaymentExceedsOwed, Timestamp, require_amount, checked_add
from .interest import loan_interest


@dataclass(frozen=True, slots=True)
class FullSettlement:
    """
    Payment equals total owed: the loan closes and its collateral is released.

    The caller must invoke close_loan(owner, loan_id, collateral_to_release).
    """
    loan_id: LoanId
    payment: int
    interest_paid: int
    principal_paid: int
    total_owed: int
    collateral_to_release: int

    @property
    def is_full(self) -> bool:
        return True

    @property
    def is_noop(self) -> bool:
        return False


@dataclass(frozen=True, slots=True)
class PartialSettlement:
    """
    Payment below total owed: the loan stays open with reduced principal.

    The caller must invoke reduce_loan(owner, loan_id, new_principal, now,
    unpaid_interest=new_unpaid_interest) unless is_noop. No collateral is
    released.
    """
    loan_id: LoanId
    payment: int
    interest_paid: int
    principal_paid: int
    total_owed: int
    new_principal: int
    new_accrual_baseline: Timestamp
    new_unpaid_interest: int

    @property
    def is_full(self) -> bool:
        return False

    @property
    def collateral_to_release(self) -> int:
        return 0

    @property
    def is_noop(self) -> bool:
        """True for a zero payment, which changes nothing."""
        return self.payment == 0


RepaymentOutcome = Union[FullSettlement, PartialSettlement]


def resolve_repayment(loan: Loan, payment_amount: int, now: Timestamp) -> RepaymentOutcome:
    """
    Resolve a payment against a loan at time now.

    Args:
        loan: The open loan being repaid
        payment_amount: Payment in stable base units (0 allowed)
        now: Unix time of the repayment

    Returns:
        FullSettlement if payment_amount == total owed, else PartialSettlement

    Raises:
        RepaymentExceedsOwed: If payment_amount > principal + interest due
        ValueError: If payment_amount is negative

    Example:
        # 1000 at 5%, exactly one year later
        resolve_repayment(loan, 1050, now)  # FullSettlement
        resolve_repayment(loan, 1049, now)  # PartialSettlement(new_principal=1)
    """
    require_amount("payment_amount", payment_amount)

    interest_due = loan_interest(loan, now)
    owed = checked_add(loan.principal, interest_due)

    if payment_amount > owed:
        raise RepaymentExceedsOwed(
            f"payment {payment_amount} exceeds total owed {owed} on loan {loan.loan_id} "
            f"(principal {loan.principal} + interest {interest_due})"
        )

    interest_paid = min(payment_amount, interest_due)
    principal_paid = payment_amount - interest_paid

    if payment_amount == owed:
        return FullSettlement(
            loan_id=loan.loan_id,
            payment=payment_amount,
            interest_paid=interest_paid,
            principal_paid=principal_paid,
            total_owed=owed,
            collateral_to_release=loan.collateral,
        )

    if payment_amount == 0:
        new_baseline = loan.accrual_baseline
        new_unpaid = loan.unpaid_interest
    else:
        new_baseline = max(now, loan.accrual_baseline)
        new_unpaid = interest_due - interest_paid

    return PartialSettlement(
        loan_id=loan.loan_id,
        payment=payment_amount,
        interest_paid=interest_paid,
        principal_paid=principal_paid,
        total_owed=owed,
        new_principal=loan.principal - principal_paid,
        new_accrual_baseline=new_baseline,
        new_unpaid_interest=new_unpaid,
    )
