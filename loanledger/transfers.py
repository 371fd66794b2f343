"""
transfers.py - Asset transfer interface

The lending engine computes amounts but never moves value itself. Every
movement of collateral or stable asset is expressed as a Transfer and handed
to an AssetTransferService, which applies a batch all-or-nothing.

InMemoryTransferService is a small custodial ledger implementing that
contract for tests and simulations: balances per (wallet, asset), never
negative, with net validation of the whole batch before anything is applied.
"""

from __future__ import annotations
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Protocol, Sequence, Tuple, runtime_checkable

from .core import TransferFailed


@dataclass(frozen=True, slots=True)
class Transfer:
    """
    A single movement of an asset between two wallets.

    Attributes:
        quantity: Amount in the asset's base units (positive int)
        asset: Asset symbol (e.g., "SOL", "USDC")
        source: Wallet debited
        dest: Wallet credited
        memo: Why the transfer happens (e.g., "borrow:alice:3")
    """
    quantity: int
    asset: str
    source: str
    dest: str
    memo: str = ""

    def __post_init__(self):
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise ValueError(f"Transfer quantity must be int, got {type(self.quantity).__name__}")
        if self.quantity <= 0:
            raise ValueError(f"Transfer quantity must be positive, got {self.quantity}")
        if not self.asset or not self.asset.strip():
            raise ValueError("Transfer asset cannot be empty")
        if not self.source or not self.source.strip():
            raise ValueError("Transfer source cannot be empty")
        if not self.dest or not self.dest.strip():
            raise ValueError("Transfer dest cannot be empty")
        if self.source == self.dest:
            raise ValueError("Source and dest must be different")

    def __repr__(self) -> str:
        return f"Transfer({self.quantity} {self.asset}: {self.source}→{self.dest})"


@runtime_checkable
class AssetTransferService(Protocol):
    """Applies a batch of transfers atomically or raises TransferFailed."""

    def execute(self, transfers: Sequence[Transfer]) -> None:
        ...


class InMemoryTransferService:
    """
    Custodial balances with all-or-nothing batch execution.

    Example:
        service = InMemoryTransferService()
        service.set_balance("alice", "SOL", 10_000_000_000)
        service.execute([Transfer(1_000_000_000, "SOL", "alice", "custody")])
    """

    def __init__(self, verbose: bool = False):
        self.balances: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
        self.executed: List[Tuple[Transfer, ...]] = []
        self.verbose = verbose

    def set_balance(self, wallet: str, asset: str, quantity: int) -> None:
        """Seed a wallet balance (funding from outside the system)."""
        if quantity < 0:
            raise ValueError(f"balance cannot be negative, got {quantity}")
        self.balances[wallet][asset] = quantity

    def get_balance(self, wallet: str, asset: str) -> int:
        if wallet not in self.balances:
            return 0
        return self.balances[wallet].get(asset, 0)

    def total_supply(self, asset: str) -> int:
        """Sum of an asset across all wallets, in sorted wallet order."""
        return sum(self.balances[w].get(asset, 0) for w in sorted(self.balances))

    def execute(self, transfers: Sequence[Transfer]) -> None:
        """
        Apply all transfers or none.

        The net effect per (wallet, asset) is computed first; if any wallet
        would go negative the batch is refused and no balance changes.

        Raises:
            TransferFailed: If any wallet would end with a negative balance
        """
        batch = tuple(transfers)
        if not batch:
            return

        net: Dict[Tuple[str, str], int] = defaultdict(int)
        for t in batch:
            net[(t.source, t.asset)] -= t.quantity
            net[(t.dest, t.asset)] += t.quantity

        for (wallet, asset), delta in net.items():
            proposed = self.get_balance(wallet, asset) + delta
            if proposed < 0:
                if self.verbose:
                    print(f"✗ TRANSFER REJECTED: {wallet} {asset}: {proposed} < 0")
                raise TransferFailed(
                    f"{wallet} has insufficient {asset}: needs {-delta}, "
                    f"holds {self.get_balance(wallet, asset)}"
                )

        for (wallet, asset), delta in net.items():
            self.balances[wallet][asset] += delta

        self.executed.append(batch)
        if self.verbose:
            for t in batch:
                print(f"✓ {t!r} [{t.memo}]")

    def __repr__(self):
        return f"InMemoryTransferService({len(self.balances)} wallets, {len(self.executed)} batches)"
