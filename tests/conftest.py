"""
conftest.py - Shared pytest fixtures for loanledger tests

Provides common fixtures used across unit, functional and conformance tests:
- Empty and pre-populated LoanLedgers
- Price oracles and a funded in-memory transfer service
- A ready-to-use LendingDesk with liquidity and two borrowers
"""

import pytest

from loanledger import (
    LoanLedger, LendingDesk, LendingConfig,
    StaticPriceOracle, InMemoryTransferService,
    DEFAULT_CONFIG,
)

from tests.loan_helpers import ADMIN, POOL_FUNDING, SOL_PRICE, T0, WALLET_SOL


@pytest.fixture
def config():
    return DEFAULT_CONFIG


@pytest.fixture
def small_decimals_config():
    """Collateral with 0 decimals so that hand calculations stay readable."""
    return LendingConfig(collateral_decimals=0, stable_decimals=0)


@pytest.fixture
def ledger():
    """Empty ledger, default config."""
    return LoanLedger(verbose=False)


@pytest.fixture
def alice_ledger(ledger):
    """Ledger with an empty account for alice."""
    ledger.open_account("alice")
    return ledger


@pytest.fixture
def oracle():
    return StaticPriceOracle({"SOL": SOL_PRICE})


@pytest.fixture
def transfers():
    """Transfer service with a funded admin and two borrowers holding SOL."""
    service = InMemoryTransferService()
    service.set_balance(ADMIN, "USDC", POOL_FUNDING)
    service.set_balance("alice", "SOL", WALLET_SOL)
    service.set_balance("bob", "SOL", WALLET_SOL)
    return service


@pytest.fixture
def desk(ledger, oracle, transfers):
    """Desk with a funded pool and accounts for alice and bob."""
    lending_desk = LendingDesk(ledger, oracle, transfers, admin=ADMIN, verbose=False)
    lending_desk.deposit_liquidity(ADMIN, POOL_FUNDING, T0)
    lending_desk.open_account("alice")
    lending_desk.open_account("bob")
    return lending_desk
