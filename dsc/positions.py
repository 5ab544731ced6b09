"""
positions.py - Collateral and debt book of the engine

PositionBook is the single source of truth for solvency checks:
- collateral: account -> asset -> deposited amount
- debt: account -> synthetic dollars minted and outstanding

Accounts are implicit; an account that never deposited or minted reads as
zero everywhere. Entries are never deleted.

Every mutation is journaled with the value it replaced. begin() marks a
journal position, commit() drops the entries after it, and rollback()
unwinds them in reverse order, restoring the book exactly.
"""

from __future__ import annotations
from collections import defaultdict
from typing import Dict, List, Tuple

from .core import CollateralMap, InsufficientCollateral, InsufficientDebt


# Journal entry: (book, account, asset or None, previous value)
_JournalEntry = Tuple[str, str, object, int]


class PositionBook:
    """Per-account collateral positions and debt, with an undo journal."""

    def __init__(self):
        self._collateral: Dict[str, Dict[str, int]] = defaultdict(dict)
        self._debt: Dict[str, int] = {}
        self._journal: List[_JournalEntry] = []

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def collateral_of(self, account: str, token: str) -> int:
        return self._collateral.get(account, {}).get(token, 0)

    def collateral_map(self, account: str) -> CollateralMap:
        return dict(self._collateral.get(account, {}))

    def debt_of(self, account: str) -> int:
        return self._debt.get(account, 0)

    def accounts(self) -> List[str]:
        """Every account that ever held collateral or debt, sorted."""
        return sorted(set(self._collateral) | set(self._debt))

    def total_debt(self) -> int:
        return sum(self._debt.values())

    def total_collateral(self, token: str) -> int:
        return sum(positions.get(token, 0) for positions in self._collateral.values())

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_collateral(self, account: str, token: str, amount: int) -> int:
        current = self.collateral_of(account, token)
        self._set_collateral(account, token, current + amount)
        return current + amount

    def remove_collateral(self, account: str, token: str, amount: int) -> int:
        """
        Raises:
            InsufficientCollateral: If amount exceeds the deposited balance
        """
        current = self.collateral_of(account, token)
        if amount > current:
            raise InsufficientCollateral(amount, current, f"{token} collateral of {account}")
        self._set_collateral(account, token, current - amount)
        return current - amount

    def add_debt(self, account: str, amount: int) -> int:
        current = self.debt_of(account)
        self._set_debt(account, current + amount)
        return current + amount

    def remove_debt(self, account: str, amount: int) -> int:
        """
        Raises:
            InsufficientDebt: If amount exceeds the outstanding debt
        """
        current = self.debt_of(account)
        if amount > current:
            raise InsufficientDebt(amount, current, f"debt of {account}")
        self._set_debt(account, current - amount)
        return current - amount

    def _set_collateral(self, account: str, token: str, value: int) -> None:
        self._journal.append(("collateral", account, token, self.collateral_of(account, token)))
        self._collateral[account][token] = value

    def _set_debt(self, account: str, value: int) -> None:
        self._journal.append(("debt", account, None, self.debt_of(account)))
        self._debt[account] = value

    # ------------------------------------------------------------------
    # Journal
    # ------------------------------------------------------------------

    def begin(self) -> int:
        return len(self._journal)

    def commit(self, mark: int) -> None:
        del self._journal[mark:]

    def rollback(self, mark: int) -> int:
        """Undo every mutation journaled after `mark`. Returns the number undone."""
        undone = 0
        while len(self._journal) > mark:
            book, account, token, previous = self._journal.pop()
            if book == "collateral":
                self._collateral[account][token] = previous
            else:
                self._debt[account] = previous
            undone += 1
        return undone
