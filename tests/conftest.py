"""
conftest.py - Shared pytest fixtures for lending tests

Provides common fixtures used across unit, conformance and functional tests:
- Clock and configuration
- Host asset ledgers (funded, with collateral minted)
- Lending pools wired to them
- A pool with transfer failures injectable
"""

import pytest

from lending import AssetLedger, LendingPool, ManualClock

from tests.flaky_assets import FlakyAssets
from tests.scenario import T0, PUNKS, THIRTY_DAYS, make_config, populate


@pytest.fixture
def clock():
    return ManualClock(T0)


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def assets():
    return populate(AssetLedger("chain", test_mode=True))


@pytest.fixture
def pool(config, assets, clock):
    return LendingPool(config, assets, assets, clock, verbose=False)


@pytest.fixture
def flaky_assets():
    return populate(FlakyAssets("flaky", test_mode=True))


@pytest.fixture
def flaky_pool(config, flaky_assets, clock):
    return LendingPool(config, flaky_assets, flaky_assets, clock, verbose=False)


@pytest.fixture
def open_loan(pool):
    """Alice borrows 1,000 USDC for 30 days against PUNKS#1."""
    return pool.request_loan("alice", PUNKS, 1_000, THIRTY_DAYS, 1)
