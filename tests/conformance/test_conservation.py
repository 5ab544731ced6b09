"""
Conservation Law Conformance Tests

INVARIANTS: For every reachable engine state

    ∀ asset a:  balance(engine, a) = Σ_{u ∈ accounts} collateral(u, a)
                (custody matches the position book)

    circulating_supply(DSC) = Σ_{u ∈ accounts} debt(u)
                (every synthetic dollar in circulation is owed by someone)

    ∀ unit:     Σ_{w ∈ wallets} balance(w, unit) = 0
                (double entry, issuance booked against the system wallet)

These tests use property-based testing to verify the laws hold for
arbitrary operation sequences, successful or not.
"""

from hypothesis import given, settings, note
from hypothesis import strategies as st

from dsc import EngineError

from tests.fakes import build_system, fund


ACCOUNTS = ["alice", "bob", "carol", "dave"]
TOKENS = ["WETH", "WBTC"]


@st.composite
def operation(draw):
    """Generate one engine call (or a price move) with plausible arguments."""
    kind = draw(st.sampled_from([
        "deposit", "mint", "redeem", "burn", "deposit_and_mint", "redeem_for_dsc", "liquidate", "price",
    ]))
    account = draw(st.sampled_from(ACCOUNTS))
    token = draw(st.sampled_from(TOKENS))
    amount = draw(st.integers(min_value=1, max_value=15 * 10**18))
    dsc_amount = draw(st.integers(min_value=1, max_value=15_000 * 10**18))
    other = draw(st.sampled_from(ACCOUNTS))
    price = draw(st.sampled_from([2000, 1500, 500, 50, 18])) * 10**8
    return kind, account, token, amount, dsc_amount, other, price


def _run(engine, feed, op):
    kind, account, token, amount, dsc_amount, other, price = op
    if kind == "deposit":
        engine.deposit_collateral(account, token, amount)
    elif kind == "mint":
        engine.mint_dsc(account, dsc_amount)
    elif kind == "redeem":
        engine.redeem_collateral(account, token, amount)
    elif kind == "burn":
        engine.burn_dsc(account, dsc_amount)
    elif kind == "deposit_and_mint":
        engine.deposit_collateral_and_mint_dsc(account, token, amount, dsc_amount)
    elif kind == "redeem_for_dsc":
        engine.redeem_collateral_for_dsc(account, token, amount, dsc_amount)
    elif kind == "liquidate":
        engine.liquidate(other, token, account, dsc_amount)
    else:
        feed.update_price("WETH", price)


def _assert_conserved(engine, ledger, tokens, dsc):
    for token in tokens:
        recorded = sum(engine.get_collateral_balance_of_user(a, token.address) for a in ACCOUNTS)
        assert token.balance_of(engine.address) == recorded, token.symbol
    assert dsc.total_supply() == sum(engine.get_dsc_minted(a) for a in ACCOUNTS)
    result = ledger.verify_double_entry()
    assert result["valid"], result["discrepancies"]


class TestConservationProperties:
    """Property-based conservation tests."""

    @given(st.lists(operation(), min_size=1, max_size=30))
    @settings(max_examples=75, deadline=None)
    def test_custody_and_supply_conserved(self, ops):
        """
        PROPERTY: Custody equals recorded collateral and DSC supply equals
        recorded debt after any sequence of operations.
        """
        engine, ledger, weth, wbtc, dsc, feed = build_system()
        for account in ACCOUNTS:
            fund(engine, account, weth, wbtc, amount=50 * 10**18)

        for op in ops:
            try:
                _run(engine, feed, op)
            except EngineError as exc:
                note(f"{op[0]} rejected: {exc!r}")
            _assert_conserved(engine, ledger, [weth, wbtc], dsc)

    @given(st.lists(operation(), min_size=1, max_size=30))
    @settings(max_examples=50, deadline=None)
    def test_user_wealth_conserved_per_token(self, ops):
        """
        PROPERTY: For each collateral token, wallet balances plus deposited
        positions of all accounts equal what was issued to them.
        """
        engine, ledger, weth, wbtc, dsc, feed = build_system()
        for account in ACCOUNTS:
            fund(engine, account, weth, wbtc, amount=50 * 10**18)
        issued = 50 * 10**18 * len(ACCOUNTS)

        for op in ops:
            try:
                _run(engine, feed, op)
            except EngineError:
                pass
            for token in (weth, wbtc):
                held = sum(token.balance_of(a) for a in ACCOUNTS)
                deposited = sum(engine.get_collateral_balance_of_user(a, token.address) for a in ACCOUNTS)
                assert held + deposited == issued


class TestConservationExamples:
    """Worked examples."""

    def test_round_trip_returns_everything(self):
        engine, ledger, weth, wbtc, dsc, feed = build_system()
        fund(engine, "alice", weth)
        engine.deposit_collateral_and_mint_dsc("alice", "WETH", 10**18, 500 * 10**18)
        engine.redeem_collateral_for_dsc("alice", "WETH", 10**18, 500 * 10**18)
        assert weth.balance_of("alice") == 10 * 10**18
        assert dsc.total_supply() == 0
        _assert_conserved(engine, ledger, [weth, wbtc], dsc)
