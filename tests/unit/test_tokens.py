"""
test_tokens.py - Unit tests for LedgerToken and StableCoin
"""

import pytest

from dsc import (
    Ledger, LedgerToken, StableCoin, INFINITE_ALLOWANCE,
    CollateralToken, StableToken, Checkpointable,
    UNIT_TYPE_STABLECOIN,
    NotOwner, MustBeMoreThanZero, BurnAmountExceedsBalance, NotZeroAddress,
)


@pytest.fixture
def ledger():
    return Ledger("tokens", verbose=False)


@pytest.fixture
def weth(ledger):
    token = LedgerToken(ledger, "WETH", "Wrapped Ether")
    token.issue("alice", 100)
    return token


@pytest.fixture
def dsc(ledger):
    return StableCoin(ledger, owner="engine")


# ============================================================================
# LEDGER TOKEN
# ============================================================================

class TestLedgerToken:

    def test_protocols(self, weth, dsc):
        assert isinstance(weth, CollateralToken)
        assert isinstance(weth, Checkpointable)
        assert isinstance(dsc, StableToken)

    def test_address_defaults_to_symbol(self, ledger, weth):
        assert weth.address == "WETH"
        assert LedgerToken(ledger, "WBTC", "Wrapped Bitcoin", address="0xbtc").address == "0xbtc"

    def test_balances(self, weth):
        assert weth.balance_of("alice") == 100
        assert weth.balance_of("nobody") == 0
        assert weth.total_supply() == 100

    def test_transfer(self, weth):
        assert weth.transfer("alice", "bob", 40)
        assert weth.balance_of("bob") == 40
        assert not weth.transfer("alice", "bob", 61)
        assert weth.balance_of("alice") == 60

    def test_zero_and_self_transfers_succeed(self, weth, ledger):
        log_size = len(ledger.transaction_log)
        assert weth.transfer("alice", "bob", 0)
        assert weth.transfer("alice", "alice", 10)
        assert len(ledger.transaction_log) == log_size

    def test_transfer_from_spends_allowance(self, weth):
        weth.approve("alice", "engine", 50)
        assert weth.transfer_from("engine", "alice", "engine", 30)
        assert weth.allowance("alice", "engine") == 20
        assert not weth.transfer_from("engine", "alice", "engine", 21)
        assert weth.balance_of("engine") == 30

    def test_transfer_from_keeps_allowance_on_failed_move(self, weth):
        weth.approve("alice", "engine", 500)
        assert not weth.transfer_from("engine", "alice", "engine", 101)
        assert weth.allowance("alice", "engine") == 500

    def test_infinite_allowance_not_decremented(self, weth):
        weth.approve("alice", "engine", INFINITE_ALLOWANCE)
        assert weth.transfer_from("engine", "alice", "bob", 100)
        assert weth.allowance("alice", "engine") == INFINITE_ALLOWANCE

    def test_negative_allowance_rejected(self, weth):
        with pytest.raises(ValueError):
            weth.approve("alice", "engine", -1)

    def test_checkpoint_and_rollback(self, weth):
        checkpoint = weth.checkpoint()
        weth.approve("alice", "engine", 50)
        weth.transfer_from("engine", "alice", "bob", 50)
        weth.rollback(checkpoint)
        assert weth.balance_of("alice") == 100
        assert weth.balance_of("bob") == 0
        assert weth.allowance("alice", "engine") == 0


# ============================================================================
# STABLECOIN
# ============================================================================

class TestStableCoin:

    def test_metadata(self, dsc):
        assert dsc.symbol == "DSC"
        assert dsc.name == "DecentralizedStableCoin"
        assert dsc.unit_type == UNIT_TYPE_STABLECOIN

    def test_owner_mints_and_burns(self, dsc):
        assert dsc.mint("engine", "alice", 100)
        assert dsc.balance_of("alice") == 100
        dsc.transfer("alice", "engine", 40)
        dsc.burn("engine", 40)
        assert dsc.total_supply() == 60

    def test_only_owner(self, dsc):
        with pytest.raises(NotOwner):
            dsc.mint("alice", "alice", 100)
        with pytest.raises(NotOwner):
            dsc.burn("alice", 1)
        with pytest.raises(NotOwner):
            dsc.transfer_ownership("alice", "alice")

    def test_faucet_closed(self, dsc):
        with pytest.raises(NotOwner):
            dsc.issue("alice", 100)

    def test_transfer_ownership(self, dsc):
        dsc.transfer_ownership("engine", "new_engine")
        assert dsc.owner == "new_engine"
        with pytest.raises(NotOwner):
            dsc.mint("engine", "alice", 1)
        with pytest.raises(NotZeroAddress):
            dsc.transfer_ownership("new_engine", "")

    def test_mint_validation(self, dsc):
        with pytest.raises(NotZeroAddress):
            dsc.mint("engine", "", 1)
        with pytest.raises(MustBeMoreThanZero):
            dsc.mint("engine", "alice", 0)

    def test_burn_validation(self, dsc):
        with pytest.raises(MustBeMoreThanZero):
            dsc.burn("engine", 0)
        with pytest.raises(BurnAmountExceedsBalance):
            dsc.burn("engine", 1)

    def test_empty_owner_rejected(self, ledger):
        with pytest.raises(NotZeroAddress):
            StableCoin(ledger, owner="")
