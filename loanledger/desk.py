"""
desk.py - Lending Desk

The LendingDesk is the transaction boundary of the lending engine. Each
public method is one user-facing instruction: it checks authorization,
reads the oracle, drives the LoanLedger and hands the matching asset
movements to the AssetTransferService, all inside one ledger.atomic()
block. If any step raises, the ledger is rolled back and no transfer
batch has been applied.

Asset placement:
    - Pledged and free collateral sit in the custody wallet.
    - Pool liquidity and per-account stable balances sit in the custody wallet.
    - Borrowed principal leaves custody for the borrower's wallet.

So at all times, for the in-memory reference services:

    custody collateral = sum(collateral_balance + locked collateral)
    custody stable     = pool_liquidity + sum(stable_balance)
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional

from .config import LendingConfig
from .core import (
    Identity, LendingError, LoanId, Timestamp, Unauthorized,
    checked_add, format_amount, require_amount,
)
from .collateral import required_collateral
from .interest import loan_interest
from .ledger import LoanLedger
from .pricing_source import PriceOracle, validate_reading
from .repayment import RepaymentOutcome, resolve_repayment
from .transfers import AssetTransferService, Transfer


@dataclass(frozen=True, slots=True)
class BorrowQuote:
    """What a borrow would require at the current oracle price."""
    principal: int
    rate_bps: int
    ltv_bps: int
    asset_price: int
    required_collateral: int


@dataclass(frozen=True, slots=True)
class RepaymentQuote:
    """Amounts owed on an open loan at a point in time."""
    loan_id: LoanId
    principal: int
    accrued_interest: int
    total_owed: int
    collateral: int


class LendingDesk:
    """
    User-facing lending instructions over a LoanLedger.

    Example:
        desk = LendingDesk(ledger, oracle, transfers, admin="treasury")
        desk.deposit_liquidity("treasury", 1_000_000_000_000, now)
        desk.open_account("alice")
        quote = desk.quote_borrow(1_000_000_000, 100, now)
        loan_id = desk.borrow("alice", 1_000_000_000, 100, quote.required_collateral, now)
        owed = desk.quote_repayment("alice", loan_id, later).total_owed
        desk.repay("alice", "alice", loan_id, owed, later)
    """

    def __init__(
        self,
        ledger: LoanLedger,
        oracle: PriceOracle,
        transfers: AssetTransferService,
        admin: Identity,
        config: Optional[LendingConfig] = None,
        verbose: Optional[bool] = None,
    ):
        """
        Args:
            ledger: The account ledger this desk drives
            oracle: Source of collateral prices
            transfers: Executes asset movements
            admin: Identity allowed to fund the lending pool
            config: Defaults to the ledger's config
            verbose: Defaults to the ledger's verbose flag
        """
        if not admin:
            raise ValueError("admin identity cannot be empty")
        self.ledger = ledger
        self.oracle = oracle
        self.transfers = transfers
        self.admin = admin
        self.config = config or ledger.config
        self.verbose = ledger.verbose if verbose is None else verbose

    @property
    def pool_liquidity(self) -> int:
        """Lendable stable asset in custody, as tracked by the ledger."""
        return self.ledger.pool_liquidity

    def _log(self, message: str) -> None:
        if self.verbose:
            print(message)

    def _current_price(self, now: Timestamp) -> int:
        reading = self.oracle.get_reading(self.config.collateral_asset, now)
        return validate_reading(
            reading,
            now,
            self.config.max_price_age_seconds,
            self.config.max_confidence_bps,
        )

    def _collateral(self, quantity: int, source: str, dest: str, memo: str) -> Transfer:
        return Transfer(quantity, self.config.collateral_asset, source, dest, memo)

    def _stable(self, quantity: int, source: str, dest: str, memo: str) -> Transfer:
        return Transfer(quantity, self.config.stable_asset, source, dest, memo)

    # ========================================================================
    # ACCOUNTS AND BALANCES
    # ========================================================================

    def open_account(self, owner: Identity):
        return self.ledger.open_account(owner)

    def deposit_liquidity(self, caller: Identity, amount: int, now: Timestamp) -> int:
        """
        Fund the lending pool from the admin wallet. Returns the new pool size.

        Raises:
            Unauthorized: If caller is not the admin
            TransferFailed: If the admin wallet cannot cover amount
        """
        if caller != self.admin:
            raise Unauthorized(f"{caller} is not the lending pool admin")
        custody = self.config.custody_wallet
        with self.ledger.atomic():
            pool = self.ledger.credit_pool(amount, now)
            self.transfers.execute([self._stable(amount, caller, custody, "liquidity")])
        self._log(f"✓ POOL +{format_amount(amount, self.config.stable_decimals)} "
                  f"{self.config.stable_asset} (pool={pool})")
        return pool

    def deposit_collateral(self, caller: Identity, amount: int, now: Timestamp) -> int:
        """Move collateral from caller's wallet into their free collateral balance."""
        with self.ledger.atomic():
            balance = self.ledger.credit_collateral(caller, amount, now)
            self.transfers.execute([
                self._collateral(amount, caller, self.config.custody_wallet, f"deposit:{caller}"),
            ])
        return balance

    def withdraw_collateral(self, caller: Identity, amount: int, now: Timestamp) -> int:
        """Return free collateral to caller's wallet. Locked collateral cannot be withdrawn."""
        with self.ledger.atomic():
            balance = self.ledger.debit_collateral(caller, amount, now)
            self.transfers.execute([
                self._collateral(amount, self.config.custody_wallet, caller, f"withdraw:{caller}"),
            ])
        return balance

    def deposit_stable(self, caller: Identity, amount: int, now: Timestamp) -> int:
        with self.ledger.atomic():
            balance = self.ledger.credit_stable(caller, amount, now)
            self.transfers.execute([
                self._stable(amount, caller, self.config.custody_wallet, f"deposit:{caller}"),
            ])
        return balance

    def withdraw_stable(self, caller: Identity, amount: int, now: Timestamp) -> int:
        with self.ledger.atomic():
            balance = self.ledger.debit_stable(caller, amount, now)
            self.transfers.execute([
                self._stable(amount, self.config.custody_wallet, caller, f"withdraw:{caller}"),
            ])
        return balance

    # ========================================================================
    # BORROWING
    # ========================================================================

    def quote_borrow(self, principal: int, rate_bps: int, now: Timestamp) -> BorrowQuote:
        """
        Compute the collateral a borrow would need right now.

        Raises:
            UnknownRate, InvalidPrice, Overflow
        """
        require_amount("principal", principal)
        ltv_bps = self.config.rate_table.lookup(rate_bps)
        price = self._current_price(now)
        return BorrowQuote(
            principal=principal,
            rate_bps=rate_bps,
            ltv_bps=ltv_bps,
            asset_price=price,
            required_collateral=required_collateral(
                principal, ltv_bps, price, self.config.collateral_decimals
            ),
        )

    def borrow(
        self,
        caller: Identity,
        principal: int,
        rate_bps: int,
        pledged_collateral: int,
        now: Timestamp,
    ) -> LoanId:
        """
        Open a loan for caller.

        The pledged collateral moves from caller's wallet to custody and the
        principal moves from custody to caller's wallet, in one batch.

        Raises:
            InvalidPrice: If the oracle reading is unusable
            InsufficientLiquidity: If the pool cannot fund principal
            TransferFailed: If caller does not hold pledged_collateral
            and everything LoanLedger.open_loan raises
        """
        require_amount("principal", principal, allow_zero=False)
        try:
            with self.ledger.atomic():
                price = self._current_price(now)
                self.ledger.debit_pool(principal, now)
                loan_id = self.ledger.open_loan(
                    caller, principal, rate_bps, pledged_collateral, price, now
                )
                custody = self.config.custody_wallet
                memo = f"borrow:{caller}:{loan_id}"
                batch: List[Transfer] = []
                if pledged_collateral > 0:
                    batch.append(self._collateral(pledged_collateral, caller, custody, memo))
                batch.append(self._stable(principal, custody, caller, memo))
                self.transfers.execute(batch)
        except LendingError as e:
            self._log(f"✗ BORROW REJECTED {caller}: {type(e).__name__}: {e}")
            raise

        self._log(f"✓ BORROW {caller} loan #{loan_id} @{rate_bps}bps at price {price}")
        return loan_id

    # ========================================================================
    # REPAYMENT
    # ========================================================================

    def quote_repayment(self, owner: Identity, loan_id: LoanId, now: Timestamp) -> RepaymentQuote:
        loan = self.ledger.get_loan(owner, loan_id)
        interest = loan_interest(loan, now)
        return RepaymentQuote(
            loan_id=loan_id,
            principal=loan.principal,
            accrued_interest=interest,
            total_owed=checked_add(loan.principal, interest),
            collateral=loan.collateral,
        )

    def repay(
        self,
        caller: Identity,
        owner: Identity,
        loan_id: LoanId,
        amount: int,
        now: Timestamp,
        from_balance: bool = False,
    ) -> RepaymentOutcome:
        """
        Apply a payment to owner's loan.

        Only the borrower may repay. An exact payment of the total owed closes
        the loan and credits its collateral to the borrower's free collateral
        balance; a smaller payment reduces the principal (interest first).

        Args:
            caller: Identity submitting the payment
            owner: Account holding the loan
            loan_id: Loan to repay
            amount: Payment in stable base units
            now: Unix time of the payment
            from_balance: Fund from the account's stable_balance instead of
                a transfer from caller's wallet

        Raises:
            Unauthorized: If caller is not the loan's borrower
            RepaymentExceedsOwed: If amount exceeds principal plus interest
            InsufficientBalance, TransferFailed: If the payment cannot be funded
            LoanNotFound, AccountNotFound
        """
        try:
            with self.ledger.atomic():
                loan = self.ledger.get_loan(owner, loan_id)
                if caller != loan.borrower:
                    raise Unauthorized(f"{caller} cannot repay loan {loan_id} of {loan.borrower}")
                outcome = resolve_repayment(loan, amount, now)

                if amount > 0:
                    self.ledger.credit_pool(amount, now)
                    if from_balance:
                        self.ledger.debit_stable(owner, amount, now)

                if outcome.is_full:
                    self.ledger.close_loan(owner, loan_id, outcome.collateral_to_release)
                elif not outcome.is_noop:
                    self.ledger.reduce_loan(
                        owner, loan_id, outcome.new_principal, now,
                        unpaid_interest=outcome.new_unpaid_interest,
                    )

                if not from_balance and amount > 0:
                    self.transfers.execute([
                        self._stable(amount, caller, self.config.custody_wallet,
                                     f"repay:{owner}:{loan_id}"),
                    ])
        except LendingError as e:
            self._log(f"✗ REPAY REJECTED {owner} loan #{loan_id}: {type(e).__name__}: {e}")
            raise

        status = "closed" if outcome.is_full else f"principal={outcome.new_principal}"
        self._log(f"✓ REPAY {owner} loan #{loan_id}: paid {amount} "
                  f"(interest {outcome.interest_paid}), {status}")
        return outcome

    def __repr__(self):
        return f"LendingDesk(admin={self.admin}, pool={self.pool_liquidity})"
