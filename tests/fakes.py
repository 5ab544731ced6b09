"""
fakes.py - Test collaborators and state helpers

Provides misbehaving collaborators for exercising the engine's failure
paths without a real network of contracts:
- FailingTransferToken: a LedgerToken whose transfers can be switched to report failure
- FailingMintStableCoin: a StableCoin whose mint reports failure
- ReenteringToken: a LedgerToken that runs a hook before every transfer,
  used to call back into the engine mid-operation
- PlainToken: a bare collateral token with no checkpoint / rollback support,
  so the engine cannot undo a transfer it already made through it
- snapshot(): everything an operation could change, for unchanged-state assertions
"""

from __future__ import annotations
from collections import defaultdict
from typing import Any, Callable, Dict, Iterable, Optional

from dsc import (
    Ledger, LedgerToken, StableCoin, StaticPriceFeed, DSCEngine,
    INFINITE_ALLOWANCE,
)


USER = "alice"
LIQUIDATOR = "liquidator"
DEPLOYER = "deployer"

WETH_USD_PRICE = 2000 * 10**8
WBTC_USD_PRICE = 1000 * 10**8

STARTING_BALANCE = 10 * 10**18
AMOUNT_COLLATERAL = 10 * 10**18
AMOUNT_TO_MINT = 100 * 10**18


class FailingTransferToken(LedgerToken):
    """LedgerToken whose transfer / transfer_from return False while the flags are set."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fail_transfer = False
        self.fail_transfer_from = False

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        if self.fail_transfer:
            return False
        return super().transfer(sender, recipient, amount)

    def transfer_from(self, spender: str, sender: str, recipient: str, amount: int) -> bool:
        if self.fail_transfer_from:
            return False
        return super().transfer_from(spender, sender, recipient, amount)


class FailingMintStableCoin(StableCoin):
    """StableCoin that accepts the owner's mint call but reports failure."""

    def mint(self, caller: str, to: str, amount: int) -> bool:
        self._only_owner(caller)
        return False


class ReenteringToken(LedgerToken):
    """LedgerToken that calls `on_transfer()` before every transfer, if set."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.on_transfer: Optional[Callable[[], Any]] = None

    def _hook(self) -> None:
        if self.on_transfer is not None:
            self.on_transfer()

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        self._hook()
        return super().transfer(sender, recipient, amount)

    def transfer_from(self, spender: str, sender: str, recipient: str, amount: int) -> bool:
        self._hook()
        return super().transfer_from(spender, sender, recipient, amount)


class PlainToken:
    """Collateral token with balances and allowances only; nothing can be rolled back."""

    def __init__(self, address: str):
        self.address = address
        self.symbol = address
        self.balances: Dict[str, int] = defaultdict(int)
        self.allowances: Dict[tuple, int] = defaultdict(int)

    def issue(self, to: str, amount: int) -> None:
        self.balances[to] += amount

    def balance_of(self, account: str) -> int:
        return self.balances[account]

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        self.allowances[(owner, spender)] = amount
        return True

    def allowance(self, owner: str, spender: str) -> int:
        return self.allowances[(owner, spender)]

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        if self.balances[sender] < amount:
            return False
        self.balances[sender] -= amount
        self.balances[recipient] += amount
        return True

    def transfer_from(self, spender: str, sender: str, recipient: str, amount: int) -> bool:
        if self.allowances[(sender, spender)] < amount:
            return False
        if not self.transfer(sender, recipient, amount):
            return False
        self.allowances[(sender, spender)] -= amount
        return True


def build_system(
    weth_price: int = WETH_USD_PRICE,
    wbtc_price: int = WBTC_USD_PRICE,
    token_class=LedgerToken,
    stablecoin_class=StableCoin,
):
    """
    Stand up a ledger, WETH/WBTC collateral, the stablecoin, one feed and the engine.

    Returns:
        (engine, ledger, weth, wbtc, dsc, feed)
    """
    ledger = Ledger("test", verbose=False, test_mode=True)
    weth = token_class(ledger, "WETH", "Wrapped Ether")
    wbtc = token_class(ledger, "WBTC", "Wrapped Bitcoin")
    dsc = stablecoin_class(ledger, owner=DEPLOYER)
    feed = StaticPriceFeed({"WETH": weth_price, "WBTC": wbtc_price})
    engine = DSCEngine([weth, wbtc], [feed, feed], dsc)
    dsc.transfer_ownership(DEPLOYER, engine.address)
    return engine, ledger, weth, wbtc, dsc, feed


def fund(engine: DSCEngine, account: str, *tokens: LedgerToken, amount: int = STARTING_BALANCE) -> None:
    """Issue `amount` of each token to `account` and approve the engine for all of it."""
    for token in tokens:
        token.issue(account, amount)
        token.approve(account, engine.address, INFINITE_ALLOWANCE)
    engine.get_dsc().approve(account, engine.address, INFINITE_ALLOWANCE)


def snapshot(
    engine: DSCEngine,
    ledger: Ledger,
    tokens: Iterable[LedgerToken],
    accounts: Iterable[str],
) -> Dict[str, Any]:
    """Engine positions, non-zero ledger balances, allowances and event count."""
    tokens = list(tokens)
    accounts = list(accounts)
    balances = {}
    for wallet in sorted(ledger.list_wallets()):
        for unit, quantity in ledger.get_wallet_balances(wallet).items():
            if quantity:
                balances[(wallet, unit)] = quantity
    return {
        "collateral": {
            (account, token): engine.get_collateral_balance_of_user(account, token)
            for account in accounts
            for token in engine.get_collateral_tokens()
        },
        "debt": {account: engine.get_dsc_minted(account) for account in accounts},
        "balances": balances,
        "allowances": {
            (token.symbol, account): token.allowance(account, engine.address)
            for token in tokens
            for account in accounts
        },
        "events": list(engine.events),
    }
