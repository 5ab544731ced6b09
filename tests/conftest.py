"""
conftest.py - Shared pytest fixtures for engine tests

Provides common fixtures used across unit, functional and conformance tests:
- A shared token ledger with WETH, WBTC and the DSC stablecoin
- Static price feeds (WETH $2000, WBTC $1000)
- An engine that owns the stablecoin
- Users funded and approved, with collateral deposited, with DSC minted
"""

import pytest

from dsc import (
    Ledger, LedgerToken, StableCoin, StaticPriceFeed, DSCEngine,
    INFINITE_ALLOWANCE,
)

from tests.fakes import (
    USER, LIQUIDATOR, DEPLOYER,
    WETH_USD_PRICE, WBTC_USD_PRICE,
    STARTING_BALANCE, AMOUNT_COLLATERAL, AMOUNT_TO_MINT,
)


# =============================================================================
# TOKENS AND FEEDS
# =============================================================================

@pytest.fixture
def ledger():
    """Token ledger with test mode enabled and logging off."""
    return Ledger("test", verbose=False, test_mode=True)


@pytest.fixture
def weth(ledger):
    return LedgerToken(ledger, "WETH", "Wrapped Ether")


@pytest.fixture
def wbtc(ledger):
    return LedgerToken(ledger, "WBTC", "Wrapped Bitcoin")


@pytest.fixture
def dsc(ledger):
    return StableCoin(ledger, owner=DEPLOYER)


@pytest.fixture
def feed():
    return StaticPriceFeed({"WETH": WETH_USD_PRICE, "WBTC": WBTC_USD_PRICE})


# =============================================================================
# ENGINE
# =============================================================================

@pytest.fixture
def engine(weth, wbtc, dsc, feed):
    """Engine over WETH and WBTC that owns the stablecoin."""
    engine = DSCEngine([weth, wbtc], [feed, feed], dsc)
    dsc.transfer_ownership(DEPLOYER, engine.address)
    return engine


@pytest.fixture
def funded_user(engine, weth, wbtc, dsc):
    """USER holds STARTING_BALANCE of both collaterals, all approved to the engine."""
    for token in (weth, wbtc):
        token.issue(USER, STARTING_BALANCE)
        token.approve(USER, engine.address, STARTING_BALANCE)
    dsc.approve(USER, engine.address, INFINITE_ALLOWANCE)
    return USER


@pytest.fixture
def deposited(engine, funded_user):
    """USER has AMOUNT_COLLATERAL of WETH deposited and no debt."""
    engine.deposit_collateral(funded_user, "WETH", AMOUNT_COLLATERAL)
    return funded_user


@pytest.fixture
def minted(engine, deposited):
    """USER has AMOUNT_COLLATERAL of WETH deposited and AMOUNT_TO_MINT DSC minted."""
    engine.mint_dsc(deposited, AMOUNT_TO_MINT)
    return deposited


@pytest.fixture
def liquidator(engine, weth, dsc):
    """LIQUIDATOR holds 20 WETH approved to the engine and lets it pull their DSC."""
    weth.issue(LIQUIDATOR, 20 * 10**18)
    weth.approve(LIQUIDATOR, engine.address, 20 * 10**18)
    dsc.approve(LIQUIDATOR, engine.address, INFINITE_ALLOWANCE)
    return LIQUIDATOR
