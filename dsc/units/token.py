"""
token.py - Ledger-Backed Collateral Tokens

LedgerToken is an ERC20-like asset whose balances live in a Ledger unit.
It is the in-memory implementation of the CollateralToken protocol the
engine consumes, and it joins the engine's rollback through the
Checkpointable protocol.

Semantics:
    - transfer / transfer_from return False instead of raising when the
      ledger rejects the move (insufficient balance) or the allowance is
      too small; the engine turns False into TransferFailed.
    - Issuance (issue) and redemption go through SYSTEM_WALLET.
    - Accounts are implicit: the first reference registers the wallet.
"""

from __future__ import annotations
from typing import Dict, Optional, Tuple
import logging

from ..core import (
    Move, ExecuteResult, SYSTEM_WALLET, UNIT_TYPE_COLLATERAL,
    token_unit,
)
from ..ledger import Ledger

logger = logging.getLogger(__name__)

# Allowance that is never decremented by transfer_from.
INFINITE_ALLOWANCE = 2**256 - 1


class LedgerToken:
    """
    A fungible token booked in a shared Ledger.

    Example:
        ledger = Ledger("tokens", verbose=False)
        weth = LedgerToken(ledger, "WETH", "Wrapped Ether")
        weth.issue("alice", 10 * 10**18)
        weth.approve("alice", "dsc_engine", 10 * 10**18)
    """

    unit_type = UNIT_TYPE_COLLATERAL

    def __init__(
        self,
        ledger: Ledger,
        symbol: str,
        name: str,
        address: Optional[str] = None,
        decimals: int = 18,
    ):
        """
        Register the token's unit in `ledger`.

        Args:
            ledger: Balance book shared with the other tokens
            symbol: Unit symbol in the ledger
            name: Human-readable name
            address: Identifier the engine keys this asset by (default: symbol)
            decimals: Decimals of the smallest amount (default: 18)
        """
        self.ledger = ledger
        self.symbol = symbol
        self.name = name
        self.address = address or symbol
        self.decimals = decimals
        self._allowances: Dict[Tuple[str, str], int] = {}
        ledger.register_unit(token_unit(symbol, name, self.unit_type, decimals))

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def balance_of(self, account: str) -> int:
        if not self.ledger.is_registered(account):
            return 0
        return self.ledger.get_balance(account, self.symbol)

    def total_supply(self) -> int:
        return self.ledger.circulating_supply(self.symbol)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((owner, spender), 0)

    # ------------------------------------------------------------------
    # Transfers
    # ------------------------------------------------------------------

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        """Let `spender` move up to `amount` of `owner`'s balance."""
        if amount < 0:
            raise ValueError(f"Allowance cannot be negative, got {amount}")
        self._allowances[(owner, spender)] = amount
        return True

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        return self._move(sender, recipient, amount, f"transfer_{self.symbol}")

    def transfer_from(self, spender: str, sender: str, recipient: str, amount: int) -> bool:
        """
        Move `amount` from `sender` to `recipient` against `spender`'s allowance.

        Returns False when the allowance or the balance is too small; nothing
        changes in that case.
        """
        allowed = self.allowance(sender, spender)
        if allowed < amount:
            logger.debug(
                "%s allowance of %s for %s too small: %d < %d",
                self.symbol, sender, spender, allowed, amount,
                extra={"event": "dsc.token.allowance_exceeded", "token": self.symbol},
            )
            return False
        if not self._move(sender, recipient, amount, f"transfer_from_{self.symbol}"):
            return False
        if allowed != INFINITE_ALLOWANCE:
            self._allowances[(sender, spender)] = allowed - amount
        return True

    def issue(self, to: str, amount: int) -> None:
        """Create `amount` new tokens for `to` (faucet for tests and simulations)."""
        self.ledger.ensure_wallet(to)
        result = self.ledger.execute(
            [Move(amount, self.symbol, SYSTEM_WALLET, to, f"issue_{self.symbol}")],
            memo=f"issue {self.symbol}",
        )
        if result != ExecuteResult.APPLIED:
            raise ValueError(f"Issuance of {amount} {self.symbol} to {to} rejected")

    def _move(self, sender: str, recipient: str, amount: int, contract_id: str) -> bool:
        if amount == 0 or sender == recipient:
            # Zero and self transfers are no-ops that succeed, as in ERC20.
            return True
        self.ledger.ensure_wallet(sender)
        self.ledger.ensure_wallet(recipient)
        result = self.ledger.execute(
            [Move(amount, self.symbol, sender, recipient, contract_id)],
            memo=f"{self.symbol} {sender}->{recipient}",
        )
        return result == ExecuteResult.APPLIED

    # ------------------------------------------------------------------
    # Checkpointable
    # ------------------------------------------------------------------

    def checkpoint(self) -> Tuple[int, Dict[Tuple[str, str], int]]:
        return self.ledger.checkpoint(), dict(self._allowances)

    def rollback(self, checkpoint: Tuple[int, Dict[Tuple[str, str], int]]) -> None:
        sequence, allowances = checkpoint
        self.ledger.rollback_to(sequence)
        self._allowances = dict(allowances)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.symbol}, address={self.address!r})"
