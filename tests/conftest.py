"""
conftest.py - Shared pytest fixtures for lending tests

Provides common fixtures used across unit, conformance and functional tests:
- Token ledgers with both assets registered
- Deployed markets (tokens + pool + seeded liquidity), funded users
- Pools over fake gateways for isolating pool logic
- Helpers to approve and advance time
"""

import pytest
from datetime import datetime, timedelta
from decimal import Decimal

from lending import (
    Asset,
    LendingPool,
    TokenLedger,
    collateral_usd,
    loan_dai,
    deploy_lending_market,
)

from tests.fake_gateway import FakeGateway


START = datetime(2025, 1, 1)
ONE_WEEK = timedelta(weeks=1)
USER_FUNDING = Decimal("10000")


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def approve_and_deposit(market, account: str, amount: Decimal):
    """Approve the pool for amount of collateral and deposit it."""
    market.approve_pool(account, market.collateral_symbol, amount)
    return market.pool.deposit(account, amount)


def approve_and_repay(market, account: str):
    """Approve exactly what repay will collect, then repay."""
    owed = market.pool.get_position(account).total_owed
    market.approve_pool(account, market.loan_symbol, owed)
    return market.pool.repay(account)


def snapshot(market, *accounts):
    """Capture positions, event count and token balances for rollback checks."""
    pool = market.pool
    tokens = market.tokens
    holders = list(accounts) + [pool.name, market.deployer]
    return {
        'positions': {a: pool.position_record(a) for a in accounts},
        'events': len(pool.event_log),
        'balances': {
            (h, s): tokens.balance_of(s, h)
            for h in holders
            for s in tokens.list_assets()
        },
    }


# =============================================================================
# BASIC FIXTURES
# =============================================================================

@pytest.fixture
def tokens():
    """Token ledger with cUSD and dDAI registered, nothing issued."""
    ledger = TokenLedger("test", verbose=False)
    ledger.register_asset(collateral_usd())
    ledger.register_asset(loan_dai())
    return ledger


@pytest.fixture
def market():
    """Deployed market: 1,000,000 of each token to deployer, 100,000 dDAI in the pool."""
    return deploy_lending_market(initial_time=START, verbose=False)


@pytest.fixture
def funded_market(market):
    """Market where user1 and user2 each hold 10,000 cUSD."""
    market.fund("user1", "cUSD", USER_FUNDING)
    market.fund("user2", "cUSD", USER_FUNDING)
    return market


@pytest.fixture
def borrowed_market(funded_market):
    """user1 has deposited 2,000 cUSD and borrowed 1,000 dDAI."""
    approve_and_deposit(funded_market, "user1", Decimal("2000"))
    funded_market.pool.borrow("user1", Decimal("1000"))
    return funded_market


# =============================================================================
# FAKE GATEWAY FIXTURES
# =============================================================================

@pytest.fixture
def collateral_gateway():
    return FakeGateway(
        Asset("cUSD", "Collateral USD"),
        balances={"alice": Decimal("10000"), "bob": Decimal("10000")},
    )


@pytest.fixture
def loan_gateway():
    return FakeGateway(
        Asset("dDAI", "Loan DAI"),
        balances={"pool": Decimal("100000"), "alice": Decimal("5000"), "bob": Decimal("5000")},
    )


@pytest.fixture
def fake_pool(collateral_gateway, loan_gateway):
    """Pool over fake gateways starting at START."""
    return LendingPool(
        "pool", collateral_gateway, loan_gateway, initial_time=START, verbose=False
    )
