"""
stablecoin.py - The Synthetic Dollar Token

StableCoin is a burnable LedgerToken whose mint and burn are restricted to
its owner. Ownership is handed to the engine after construction; from then
on the engine is the only account that can create or destroy supply.

Errors:
    NotOwner: mint/burn/transfer_ownership from anyone but the owner, and
              any issue() call (the faucet is closed for this token)
    MustBeMoreThanZero: zero (or negative) mint or burn amount
    NotZeroAddress: mint to an empty account identifier
    BurnAmountExceedsBalance: owner burns more than it holds
"""

from __future__ import annotations
from typing import Optional

from ..core import (
    Move, ExecuteResult, SYSTEM_WALLET, UNIT_TYPE_STABLECOIN,
    NotOwner, MustBeMoreThanZero, NotZeroAddress, BurnAmountExceedsBalance,
)
from ..ledger import Ledger
from .token import LedgerToken


class StableCoin(LedgerToken):
    """
    Owner-controlled synthetic dollar, pegged 1:1 to USD at 18 decimals.

    Example:
        dsc = StableCoin(ledger, owner="deployer")
        dsc.transfer_ownership("deployer", "dsc_engine")
    """

    unit_type = UNIT_TYPE_STABLECOIN

    def __init__(
        self,
        ledger: Ledger,
        owner: str,
        symbol: str = "DSC",
        name: str = "DecentralizedStableCoin",
        address: Optional[str] = None,
    ):
        super().__init__(ledger, symbol, name, address=address)
        if not owner:
            raise NotZeroAddress("Owner cannot be empty")
        self.owner = owner

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        self._only_owner(caller)
        if not new_owner:
            raise NotZeroAddress("New owner cannot be empty")
        self.owner = new_owner

    def issue(self, to: str, amount: int) -> None:
        """Supply only changes through mint() and burn()."""
        raise NotOwner(f"{self.symbol} cannot be issued outside mint()")

    def mint(self, caller: str, to: str, amount: int) -> bool:
        """Create `amount` tokens for `to`. Owner only."""
        self._only_owner(caller)
        if not to:
            raise NotZeroAddress("Cannot mint to an empty account")
        if amount <= 0:
            raise MustBeMoreThanZero(f"Mint amount must be more than zero, got {amount}")
        self.ledger.ensure_wallet(to)
        result = self.ledger.execute(
            [Move(amount, self.symbol, SYSTEM_WALLET, to, f"mint_{self.symbol}")],
            memo=f"mint {self.symbol}",
        )
        return result == ExecuteResult.APPLIED

    def burn(self, caller: str, amount: int) -> None:
        """Destroy `amount` of the owner's own balance. Owner only."""
        self._only_owner(caller)
        if amount <= 0:
            raise MustBeMoreThanZero(f"Burn amount must be more than zero, got {amount}")
        balance = self.balance_of(caller)
        if balance < amount:
            raise BurnAmountExceedsBalance(f"Burn amount {amount} exceeds balance {balance}")
        self.ledger.execute(
            [Move(amount, self.symbol, caller, SYSTEM_WALLET, f"burn_{self.symbol}")],
            memo=f"burn {self.symbol}",
        )

    def _only_owner(self, caller: str) -> None:
        if caller != self.owner:
            raise NotOwner(f"{caller!r} is not the owner of {self.symbol}")
