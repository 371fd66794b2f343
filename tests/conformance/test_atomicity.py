"""
Atomicity Conformance Tests

INVARIANT: Ledger operations and desk calls are all-or-nothing.

    ∀ operation O:
        O succeeds ⟹ every account write and transfer of O is applied
        O fails    ⟹ accounts, journal, pool and wallets equal their prior state

Partial application is impossible by construction.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from loanledger import (
    LoanLedger, LendingDesk, LendingConfig, StaticPriceOracle, InMemoryTransferService,
    LendingError, InsufficientLiquidity,
)

from tests.loan_helpers import assert_custody_balanced


def snapshot(desk):
    ledger = desk.ledger
    return (
        {owner: ledger.get_account(owner) for owner in ledger.list_owners()},
        list(ledger.journal),
        desk.pool_liquidity,
        {
            (wallet, asset): desk.transfers.get_balance(wallet, asset)
            for wallet in ("alice", "treasury", "custody")
            for asset in ("SOL", "USDC")
        },
    )


def build_desk(alice_sol, alice_usdc=0):
    config = LendingConfig(collateral_decimals=0, stable_decimals=0)
    ledger = LoanLedger(config=config, verbose=False)
    transfers = InMemoryTransferService()
    transfers.set_balance("treasury", "USDC", 10_000)
    transfers.set_balance("alice", "SOL", alice_sol)
    transfers.set_balance("alice", "USDC", alice_usdc)
    desk = LendingDesk(ledger, StaticPriceOracle({"SOL": 100}), transfers, admin="treasury")
    desk.deposit_liquidity("treasury", 10_000, 0)
    desk.open_account("alice")
    return desk


class TestAtomicityProperties:
    """Property-based atomicity tests."""

    @given(
        st.integers(min_value=0, max_value=80),
        st.integers(min_value=0, max_value=80),
        st.integers(min_value=1, max_value=20_000),
    )
    @settings(max_examples=100)
    def test_borrow_all_or_nothing(self, wallet_sol, pledged, principal):
        """
        PROPERTY: borrow either opens the loan AND moves both assets, or changes nothing.
        """
        desk = build_desk(wallet_sol)
        before = snapshot(desk)
        try:
            loan_id = desk.borrow("alice", principal, 100, pledged, 0)
        except LendingError:
            assert snapshot(desk) == before
            return

        assert desk.ledger.get_loan("alice", loan_id).collateral == pledged
        assert desk.transfers.get_balance("alice", "SOL") == wallet_sol - pledged
        assert desk.transfers.get_balance("alice", "USDC") == principal
        assert desk.pool_liquidity == 10_000 - principal

    @given(
        st.integers(min_value=0, max_value=2_000),
        st.integers(min_value=0, max_value=1_200),
        st.booleans(),
    )
    @settings(max_examples=100)
    def test_repay_all_or_nothing(self, wallet_usdc, payment, from_balance):
        """
        PROPERTY: repay either settles AND collects the payment, or changes nothing.
        """
        desk = build_desk(40)
        desk.borrow("alice", 1000, 100, 40, 0)
        desk.transfers.set_balance("alice", "USDC", wallet_usdc)
        if from_balance and wallet_usdc:
            desk.deposit_stable("alice", wallet_usdc // 2 or wallet_usdc, 0)

        before = snapshot(desk)
        pool_before = desk.pool_liquidity
        try:
            desk.repay("alice", "alice", 1, payment, 31_536_000, from_balance=from_balance)
        except LendingError:
            assert snapshot(desk) == before
            return
        assert desk.pool_liquidity == pool_before + payment

    @given(st.lists(
        st.tuples(st.sampled_from(["credit", "debit", "open", "close", "fund", "draw"]),
                  st.integers(min_value=1, max_value=100)),
        min_size=1, max_size=10,
    ))
    @settings(max_examples=100)
    def test_failed_block_restores_everything(self, operations):
        """
        PROPERTY: any sequence of ledger operations inside a failing atomic() block
        leaves no trace.
        """
        config = LendingConfig(collateral_decimals=0, stable_decimals=0)
        ledger = LoanLedger(config=config, verbose=False)
        ledger.open_account("alice")
        ledger.credit_collateral("alice", 50)
        ledger.open_loan("alice", 100, 0, 5, 100, 0)
        ledger.credit_pool(150)

        before_account = ledger.get_account("alice")
        before_journal = list(ledger.journal)

        with pytest.raises(RuntimeError):
            with ledger.atomic():
                for kind, amount in operations:
                    try:
                        if kind == "credit":
                            ledger.credit_collateral("alice", amount)
                        elif kind == "debit":
                            ledger.debit_collateral("alice", amount)
                        elif kind == "fund":
                            ledger.credit_pool(amount)
                        elif kind == "draw":
                            ledger.debit_pool(amount)
                        elif kind == "open":
                            ledger.open_loan("alice", amount, 0, amount, 100, 0)
                        else:
                            loans = ledger.open_loans("alice")
                            if loans:
                                ledger.close_loan("alice", loans[0].loan_id, loans[0].collateral)
                    except LendingError:
                        pass
                raise RuntimeError("abort")

        assert ledger.get_account("alice") == before_account
        assert ledger.journal == before_journal
        assert ledger.pool_liquidity == 150


class TestConcurrentBorrows:
    """The pool is shared by every account and checked under the ledger lock."""

    BORROWERS = [f"user{i}" for i in range(10)]

    def build_shared_desk(self):
        config = LendingConfig(collateral_decimals=0, stable_decimals=0)
        ledger = LoanLedger(config=config, verbose=False)
        transfers = InMemoryTransferService()
        transfers.set_balance("treasury", "USDC", 500)
        desk = LendingDesk(ledger, StaticPriceOracle({"SOL": 100}), transfers, admin="treasury")
        desk.deposit_liquidity("treasury", 500, 0)
        for owner in self.BORROWERS:
            transfers.set_balance(owner, "SOL", 100)
            transfers.set_balance(owner, "USDC", 1_000)
            desk.open_account(owner)
            # Stable balances share the custody wallet with the pool
            desk.deposit_stable(owner, 1_000, 0)
        return desk

    def test_pool_never_overdrawn(self):
        """
        PROPERTY: borrowers racing for the last of the pool can never draw more
        than it holds, even when custody holds other users' stable balances.
        """
        desk = self.build_shared_desk()
        start = threading.Barrier(len(self.BORROWERS))

        def borrow(owner):
            start.wait()
            try:
                return desk.borrow(owner, 100, 0, 5, 0)
            except InsufficientLiquidity:
                return None

        with ThreadPoolExecutor(max_workers=len(self.BORROWERS)) as pool:
            results = list(pool.map(borrow, self.BORROWERS))

        assert sum(r is not None for r in results) == 5
        assert desk.pool_liquidity == 0
        assert_custody_balanced(desk)

    def test_rejected_borrow_leaves_pool(self):
        desk = self.build_shared_desk()
        desk.borrow("user0", 500, 0, 25, 0)
        with pytest.raises(InsufficientLiquidity):
            desk.borrow("user1", 1, 0, 1, 0)
        assert desk.pool_liquidity == 0
        assert desk.ledger.open_loans("user1") == ()
        assert_custody_balanced(desk)
