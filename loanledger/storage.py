"""
storage.py - Account storage interface

BorrowerAccount records are persisted by an external store keyed by owner
identity. The ledger only assumes key-addressed reads that return the
latest committed record and writes that are durable once the enclosing
operation completes.

InMemoryAccountStorage is the reference implementation used by tests and
simulations.
"""

from __future__ import annotations
from typing import Dict, List, Optional, Protocol, runtime_checkable

from .core import BorrowerAccount, Identity


@runtime_checkable
class AccountStorage(Protocol):
    """Key-addressed persistence for BorrowerAccount records."""

    def load(self, owner: Identity) -> Optional[BorrowerAccount]:
        """Return the latest committed record for owner, or None."""
        ...

    def save(self, account: BorrowerAccount) -> None:
        """Persist account under account.owner, replacing any previous record."""
        ...

    def delete(self, owner: Identity) -> None:
        """Remove the record for owner if present."""
        ...

    def owners(self) -> List[Identity]:
        """All owners with a stored record."""
        ...


class InMemoryAccountStorage:
    """Dictionary-backed AccountStorage. Records are immutable, so no copying is needed."""

    def __init__(self, accounts: Optional[Dict[Identity, BorrowerAccount]] = None):
        self._accounts: Dict[Identity, BorrowerAccount] = dict(accounts or {})

    def load(self, owner: Identity) -> Optional[BorrowerAccount]:
        return self._accounts.get(owner)

    def save(self, account: BorrowerAccount) -> None:
        self._accounts[account.owner] = account

    def delete(self, owner: Identity) -> None:
        self._accounts.pop(owner, None)

    def owners(self) -> List[Identity]:
        return sorted(self._accounts)

    def __len__(self) -> int:
        return len(self._accounts)

    def __repr__(self):
        return f"InMemoryAccountStorage({len(self._accounts)} accounts)"
