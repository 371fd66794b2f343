"""
Repayment Conformance Tests

INVARIANT: A payment is split interest first, settles the loan exactly when
it equals the total owed, and lowers what is owed by exactly the payment.

    interest_paid + principal_paid = payment
    payment = owed  ⟹ FullSettlement, all collateral released
    payment < owed  ⟹ 0 < new_principal <= principal, no collateral released
    payment > owed  ⟹ RepaymentExceedsOwed
    payment = 0     ⟹ no-op

    paid now + still owed afterwards = owed before
"""

import pytest
from hypothesis import given, settings, assume
from hypothesis import strategies as st

from loanledger import (
    Loan, resolve_repayment, total_owed, RepaymentExceedsOwed, DEFAULT_RATE_TABLE,
)


@st.composite
def loans(draw):
    baseline = draw(st.integers(min_value=0, max_value=10 ** 9))
    return Loan(
        loan_id=draw(st.integers(min_value=1, max_value=100)),
        borrower="alice",
        principal=draw(st.integers(min_value=1, max_value=10 ** 12)),
        rate_bps=draw(st.sampled_from(DEFAULT_RATE_TABLE.rates())),
        collateral=draw(st.integers(min_value=0, max_value=10 ** 12)),
        created_at=baseline,
        accrual_baseline=baseline,
        unpaid_interest=draw(st.integers(min_value=0, max_value=10 ** 6)),
    )


times = st.integers(min_value=0, max_value=2 * 10 ** 9)


def apply(loan, outcome):
    """Loan as the ledger would hold it after a partial settlement."""
    return Loan(
        loan_id=loan.loan_id,
        borrower=loan.borrower,
        principal=outcome.new_principal,
        rate_bps=loan.rate_bps,
        collateral=loan.collateral,
        created_at=loan.created_at,
        accrual_baseline=outcome.new_accrual_baseline,
        unpaid_interest=outcome.new_unpaid_interest,
    )


class TestSettlementProperties:

    @given(loans(), times)
    @settings(max_examples=200)
    def test_zero_payment_is_noop(self, loan, now):
        outcome = resolve_repayment(loan, 0, now)
        assert outcome.is_noop
        assert outcome.new_principal == loan.principal
        assert outcome.new_accrual_baseline == loan.accrual_baseline
        assert outcome.new_unpaid_interest == loan.unpaid_interest

    @given(loans(), times)
    @settings(max_examples=200)
    def test_exact_payment_closes(self, loan, now):
        outcome = resolve_repayment(loan, total_owed(loan, now), now)
        assert outcome.is_full
        assert outcome.collateral_to_release == loan.collateral
        assert outcome.principal_paid == loan.principal

    @given(loans(), times, st.integers(min_value=1, max_value=10 ** 6))
    @settings(max_examples=200)
    def test_over_payment_rejected(self, loan, now, excess):
        with pytest.raises(RepaymentExceedsOwed):
            resolve_repayment(loan, total_owed(loan, now) + excess, now)

    @given(loans(), times, st.data())
    @settings(max_examples=300)
    def test_partial_payment(self, loan, now, data):
        owed = total_owed(loan, now)
        payment = data.draw(st.integers(min_value=0, max_value=owed - 1))
        outcome = resolve_repayment(loan, payment, now)

        assert not outcome.is_full
        assert outcome.collateral_to_release == 0
        assert outcome.interest_paid + outcome.principal_paid == payment
        assert 0 < outcome.new_principal <= loan.principal
        assert outcome.new_accrual_baseline >= loan.accrual_baseline
        assert outcome.new_accrual_baseline <= max(now, loan.accrual_baseline)

    @given(loans(), times, st.data())
    @settings(max_examples=300)
    def test_payment_lowers_owed_exactly(self, loan, now, data):
        """Neither side gains: nothing is forgiven and nothing is lost."""
        owed = total_owed(loan, now)
        payment = data.draw(st.integers(min_value=0, max_value=owed - 1))
        outcome = resolve_repayment(loan, payment, now)
        assert payment + total_owed(apply(loan, outcome), now) == owed

    @given(loans(), times, st.integers(min_value=1, max_value=20))
    @settings(max_examples=200)
    def test_repeated_small_payments_all_count(self, loan, now, count):
        """Paying 1 unit at a time, each unit comes off the balance."""
        owed = total_owed(loan, now)
        assume(owed > count)
        for _ in range(count):
            loan = apply(loan, resolve_repayment(loan, 1, now))
        assert total_owed(loan, now) == owed - count
