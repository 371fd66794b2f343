"""
ledger.py - Stateful Loan Ledger

The LoanLedger class is the authoritative record of borrower accounts and
their open loans. It is the only module that mutates account state, which
keeps every change controlled and auditable.

Key responsibilities:
    - Admits new loans (rate tier, collateral sufficiency, open-loan cap)
    - Reduces and closes loans as directed by the repayment resolver
    - Credits and debits per-account collateral and stable balances
    - Tracks the shared lending pool
    - Makes every operation all-or-nothing, and groups operations with atomic()
    - Records every applied mutation in the journal
"""

from __future__ import annotations
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Tuple
import threading

from .config import DEFAULT_CONFIG, LendingConfig
from .core import (
    # Types
    BorrowerAccount, EntryKind, Identity, JournalEntry, Loan, LoanId, Timestamp,
    # Exceptions
    AccountExists, AccountNotFound, InsufficientBalance, InsufficientCollateral,
    InsufficientLiquidity, LendingError, LoanNotFound, TooManyOpenLoans,
    # Helpers
    checked_add, format_amount, require_amount,
)
from .collateral import required_collateral
from .interest import loan_interest, total_owed
from .storage import AccountStorage, InMemoryAccountStorage


def _require_timestamp(now: Timestamp) -> Timestamp:
    if isinstance(now, bool) or not isinstance(now, int):
        raise TypeError(f"timestamp must be an int (unix seconds), got {type(now).__name__}")
    return now


class LoanLedger:
    """
    Per-borrower ledger of balances and open loans.

    Design Principles:
        - Immutable records: BorrowerAccount and Loan are frozen. Every operation
          validates first, builds the complete replacement record, and only then
          writes it. A failed check leaves storage untouched.
        - Always logs: every applied mutation appends a JournalEntry.
        - The ledger never moves assets. Callers execute the matching transfers
          inside the same atomic() block.

    Thread Safety:
        Operations are serialized by a re-entrant lock held for the duration of
        each call (and of each atomic() block).

    Example:
        ledger = LoanLedger(verbose=False)
        ledger.open_account("alice")
        loan_id = ledger.open_loan(
            "alice", principal=1_000_000_000, rate_bps=100,
            pledged_collateral=40_000_000_000, asset_price=100_000_000, now=0,
        )
    """

    def __init__(
        self,
        config: Optional[LendingConfig] = None,
        storage: Optional[AccountStorage] = None,
        verbose: bool = True,
    ):
        """
        Create a ledger.

        Args:
            config: Rate table, decimals and limits (default: DEFAULT_CONFIG)
            storage: Account store (default: a fresh InMemoryAccountStorage)
            verbose: Print one line per applied or rejected operation
        """
        self.config = config or DEFAULT_CONFIG
        self.storage: AccountStorage = storage if storage is not None else InMemoryAccountStorage()
        self.verbose = verbose
        self.journal: List[JournalEntry] = []
        self._next_sequence: int = 0
        # Stable asset in custody available to lend, shared by all accounts
        self.pool_liquidity: int = 0
        self._lock = threading.RLock()
        # One frame per open atomic() block: owner -> record before the block's first write
        self._undo_frames: List[Dict[Identity, Optional[BorrowerAccount]]] = []

    # ========================================================================
    # READ-ONLY ACCESS
    # ========================================================================

    def has_account(self, owner: Identity) -> bool:
        return self.storage.load(owner) is not None

    def get_account(self, owner: Identity) -> BorrowerAccount:
        """
        Return the current record for owner.

        Raises:
            AccountNotFound: If owner has no account
        """
        account = self.storage.load(owner)
        if account is None:
            raise AccountNotFound(f"no account for {owner}")
        return account

    def get_loan(self, owner: Identity, loan_id: LoanId) -> Loan:
        """
        Return an open loan.

        Raises:
            AccountNotFound: If owner has no account
            LoanNotFound: If loan_id is not among the account's open loans
        """
        loan = self.get_account(owner).find_loan(loan_id)
        if loan is None:
            raise LoanNotFound(f"loan {loan_id} not found for {owner}")
        return loan

    def open_loans(self, owner: Identity) -> Tuple[Loan, ...]:
        """Open loans of owner in creation order."""
        return self.get_account(owner).loans

    def list_owners(self) -> List[Identity]:
        return self.storage.owners()

    def account_debt(self, owner: Identity, now: Timestamp) -> int:
        """Principal plus accrued interest across all of owner's open loans."""
        debt = 0
        for loan in self.get_account(owner).loans:
            debt = checked_add(debt, total_owed(loan, now))
        return debt

    # ========================================================================
    # ATOMICITY
    # ========================================================================

    @contextmanager
    def atomic(self) -> Iterator[LoanLedger]:
        """
        Group several operations into one all-or-nothing unit.

        If the block raises, every account written inside it is restored to
        its record from before the block, the pool is restored and the block's
        journal entries are discarded. Blocks may nest; an inner failure that the outer block
        handles rolls back only the inner block.

        Example:
            with ledger.atomic():
                ledger.close_loan("alice", 1, released)
                transfers.execute(batch)   # raising here undoes close_loan
        """
        with self._lock:
            frame: Dict[Identity, Optional[BorrowerAccount]] = {}
            self._undo_frames.append(frame)
            journal_mark = len(self.journal)
            sequence_mark = self._next_sequence
            pool_mark = self.pool_liquidity
            try:
                yield self
            except BaseException:
                self._undo_frames.pop()
                for owner, previous in frame.items():
                    if previous is None:
                        self.storage.delete(owner)
                    else:
                        self.storage.save(previous)
                del self.journal[journal_mark:]
                self._next_sequence = sequence_mark
                self.pool_liquidity = pool_mark
                if self.verbose:
                    print(f"↺ ROLLED BACK: {len(frame)} account(s) restored")
                raise
            else:
                self._undo_frames.pop()
                if self._undo_frames:
                    outer = self._undo_frames[-1]
                    for owner, previous in frame.items():
                        outer.setdefault(owner, previous)

    def _write(self, account: BorrowerAccount) -> None:
        """Persist a record, remembering its predecessor for any open atomic() block."""
        if self._undo_frames:
            frame = self._undo_frames[-1]
            if account.owner not in frame:
                frame[account.owner] = self.storage.load(account.owner)
        self.storage.save(account)

    def _record(
        self,
        kind: EntryKind,
        owner: Identity,
        loan_id: Optional[LoanId] = None,
        timestamp: Optional[Timestamp] = None,
        **amounts: int,
    ) -> JournalEntry:
        entry = JournalEntry(
            sequence_number=self._next_sequence,
            kind=kind,
            owner=owner,
            loan_id=loan_id,
            amounts=dict(amounts),
            timestamp=timestamp,
        )
        self._next_sequence += 1
        self.journal.append(entry)
        if self.verbose:
            print(f"✓ {entry!r}")
        return entry

    def _rejected(self, operation: str, owner: Identity, error: LendingError) -> None:
        if self.verbose:
            print(f"✗ REJECTED {operation} {owner}: {type(error).__name__}: {error}")

    # ========================================================================
    # ACCOUNTS (Mutating)
    # ========================================================================

    def open_account(self, owner: Identity) -> BorrowerAccount:
        """
        Create an empty account for owner.

        Raises:
            AccountExists: If owner already has an account
            ValueError: If owner is empty
        """
        with self._lock:
            if self.storage.load(owner) is not None:
                raise AccountExists(f"account for {owner} already exists")
            account = BorrowerAccount(owner=owner)
            self._write(account)
            self._record(EntryKind.ACCOUNT_OPENED, owner)
            return account

    def credit_collateral(self, owner: Identity, amount: int, now: Optional[Timestamp] = None) -> int:
        """Add free collateral to owner's account. Returns the new balance."""
        return self._adjust_balance(owner, "collateral_balance", amount, +1, now)

    def debit_collateral(self, owner: Identity, amount: int, now: Optional[Timestamp] = None) -> int:
        """Remove free collateral from owner's account. Returns the new balance."""
        return self._adjust_balance(owner, "collateral_balance", amount, -1, now)

    def credit_stable(self, owner: Identity, amount: int, now: Optional[Timestamp] = None) -> int:
        """Add stable asset to owner's account. Returns the new balance."""
        return self._adjust_balance(owner, "stable_balance", amount, +1, now)

    def debit_stable(self, owner: Identity, amount: int, now: Optional[Timestamp] = None) -> int:
        """Remove stable asset from owner's account. Returns the new balance."""
        return self._adjust_balance(owner, "stable_balance", amount, -1, now)

    def _adjust_balance(
        self,
        owner: Identity,
        field_name: str,
        amount: int,
        sign: int,
        now: Optional[Timestamp],
    ) -> int:
        require_amount("amount", amount, allow_zero=False)
        with self._lock:
            account = self.get_account(owner)
            current = getattr(account, field_name)
            if sign > 0:
                updated = checked_add(current, amount)
            else:
                if amount > current:
                    error = InsufficientBalance(
                        f"{owner} {field_name} {current} < debit {amount}"
                    )
                    self._rejected("debit", owner, error)
                    raise error
                updated = current - amount

            self._write(account.with_loans(account.loans, **{field_name: updated}))
            kind = {
                ("collateral_balance", 1): EntryKind.COLLATERAL_CREDITED,
                ("collateral_balance", -1): EntryKind.COLLATERAL_DEBITED,
                ("stable_balance", 1): EntryKind.STABLE_CREDITED,
                ("stable_balance", -1): EntryKind.STABLE_DEBITED,
            }[(field_name, sign)]
            self._record(kind, owner, timestamp=now, amount=amount, balance=updated)
            return updated

    # ========================================================================
    # LENDING POOL (Mutating)
    # ========================================================================

    def credit_pool(self, amount: int, now: Optional[Timestamp] = None) -> int:
        """Add lendable stable asset to the pool. Returns the new pool size."""
        require_amount("amount", amount, allow_zero=False)
        with self._lock:
            self.pool_liquidity = checked_add(self.pool_liquidity, amount)
            self._record(
                EntryKind.POOL_CREDITED, self.config.custody_wallet, timestamp=now,
                amount=amount, balance=self.pool_liquidity,
            )
            return self.pool_liquidity

    def debit_pool(self, amount: int, now: Optional[Timestamp] = None) -> int:
        """
        Take stable asset out of the pool to fund a loan.

        The check and the update happen under the ledger lock, so concurrent
        borrowers can never draw more than the pool holds.

        Raises:
            InsufficientLiquidity: If the pool holds less than amount
        """
        require_amount("amount", amount, allow_zero=False)
        with self._lock:
            if amount > self.pool_liquidity:
                error = InsufficientLiquidity(
                    f"pool holds {self.pool_liquidity}, cannot lend {amount}"
                )
                self._rejected("debit_pool", self.config.custody_wallet, error)
                raise error
            self.pool_liquidity -= amount
            self._record(
                EntryKind.POOL_DEBITED, self.config.custody_wallet, timestamp=now,
                amount=amount, balance=self.pool_liquidity,
            )
            return self.pool_liquidity

    # ========================================================================
    # LOANS (Mutating)
    # ========================================================================

    def open_loan(
        self,
        owner: Identity,
        principal: int,
        rate_bps: int,
        pledged_collateral: int,
        asset_price: int,
        now: Timestamp,
    ) -> LoanId:
        """
        Admit a new loan.

        Checks, in order: the rate is a tier, the pledged collateral covers
        the requirement at asset_price, and the account is below its
        open-loan cap. Only when all pass is the next id assigned and the
        loan appended.

        Args:
            owner: Borrower identity (account key)
            principal: Stable base units to borrow (> 0)
            rate_bps: Selected tier rate
            pledged_collateral: Collateral base units locked for this loan
            asset_price: Validated collateral price (stable units per whole unit)
            now: Unix time of admission (the first accrual baseline)

        Returns:
            The new loan's id

        Raises:
            AccountNotFound, UnknownRate, InvalidPrice, Overflow,
            InsufficientCollateral, TooManyOpenLoans
        """
        require_amount("principal", principal, allow_zero=False)
        require_amount("pledged_collateral", pledged_collateral)
        _require_timestamp(now)

        with self._lock:
            account = self.get_account(owner)
            try:
                ltv_bps = self.config.rate_table.lookup(rate_bps)
                required = required_collateral(
                    principal, ltv_bps, asset_price, self.config.collateral_decimals
                )
                if pledged_collateral < required:
                    raise InsufficientCollateral(
                        f"pledged {pledged_collateral} < required {required} "
                        f"for principal {principal} at {rate_bps} bps"
                    )
                if len(account.loans) >= self.config.max_open_loans_per_account:
                    raise TooManyOpenLoans(
                        f"{owner} already has {len(account.loans)} open loans "
                        f"(max {self.config.max_open_loans_per_account})"
                    )
            except LendingError as e:
                self._rejected("open_loan", owner, e)
                raise

            loan_id = account.loan_sequence + 1
            loan = Loan(
                loan_id=loan_id,
                borrower=owner,
                principal=principal,
                rate_bps=rate_bps,
                collateral=pledged_collateral,
                created_at=now,
                accrual_baseline=now,
            )
            self._write(account.with_loans(account.loans + (loan,), loan_sequence=loan_id))
            self._record(
                EntryKind.LOAN_OPENED, owner, loan_id, now,
                principal=principal, rate_bps=rate_bps,
                collateral=pledged_collateral, required_collateral=required,
            )
            if self.verbose:
                print(f"  {owner} borrowed "
                      f"{format_amount(principal, self.config.stable_decimals)} "
                      f"{self.config.stable_asset} against "
                      f"{format_amount(pledged_collateral, self.config.collateral_decimals)} "
                      f"{self.config.collateral_asset}")
            return loan_id

    def close_loan(self, owner: Identity, loan_id: LoanId, released_collateral: int) -> None:
        """
        Remove a settled loan and credit its released collateral.

        Raises:
            LoanNotFound: If loan_id is not open for owner
            ValueError: If released_collateral exceeds the loan's pledged collateral
        """
        require_amount("released_collateral", released_collateral)
        with self._lock:
            account = self.get_account(owner)
            loan = account.find_loan(loan_id)
            if loan is None:
                error = LoanNotFound(f"loan {loan_id} not found for {owner}")
                self._rejected("close_loan", owner, error)
                raise error
            if released_collateral > loan.collateral:
                raise ValueError(
                    f"released_collateral {released_collateral} exceeds "
                    f"pledged {loan.collateral} on loan {loan_id}"
                )

            remaining = tuple(l for l in account.loans if l.loan_id != loan_id)
            new_balance = checked_add(account.collateral_balance, released_collateral)
            self._write(account.with_loans(remaining, collateral_balance=new_balance))
            self._record(
                EntryKind.LOAN_CLOSED, owner, loan_id,
                released_collateral=released_collateral,
            )

    def reduce_loan(
        self,
        owner: Identity,
        loan_id: LoanId,
        new_principal: int,
        now: Timestamp,
        unpaid_interest: Optional[int] = None,
    ) -> None:
        """
        Lower a loan's principal and refresh its accrual baseline.

        The baseline becomes max(now, current baseline) so that it never
        moves backwards. Rate and collateral are untouched.

        Args:
            owner: Account owner
            loan_id: Open loan to reduce
            new_principal: Principal after the reduction
            now: Unix time of the reduction
            unpaid_interest: Interest still owed after the reduction. None
                carries forward all interest owed at now.

        Raises:
            LoanNotFound: If loan_id is not open for owner
            ValueError: If new_principal is not in (0, current principal]
        """
        require_amount("new_principal", new_principal, allow_zero=False)
        _require_timestamp(now)
        if unpaid_interest is not None:
            require_amount("unpaid_interest", unpaid_interest)
        with self._lock:
            account = self.get_account(owner)
            loan = account.find_loan(loan_id)
            if loan is None:
                error = LoanNotFound(f"loan {loan_id} not found for {owner}")
                self._rejected("reduce_loan", owner, error)
                raise error
            if new_principal > loan.principal:
                raise ValueError(
                    f"new_principal {new_principal} exceeds current principal "
                    f"{loan.principal} on loan {loan_id}"
                )

            if unpaid_interest is None:
                unpaid_interest = loan_interest(loan, now)

            reduced = Loan(
                loan_id=loan.loan_id,
                borrower=loan.borrower,
                principal=new_principal,
                rate_bps=loan.rate_bps,
                collateral=loan.collateral,
                created_at=loan.created_at,
                accrual_baseline=max(now, loan.accrual_baseline),
                unpaid_interest=unpaid_interest,
            )
            loans = tuple(reduced if l.loan_id == loan_id else l for l in account.loans)
            self._write(account.with_loans(loans))
            self._record(
                EntryKind.LOAN_REDUCED, owner, loan_id, now,
                previous_principal=loan.principal, principal=new_principal,
                unpaid_interest=unpaid_interest,
            )
