"""
ledger.py - Stateful Double-Entry Token Ledger

The Ledger class is the balance book behind the in-memory token collaborators
(collateral assets and the synthetic dollar). It is the only module that
mutates token balances, ensuring controlled and auditable changes.

Key responsibilities:
    - Executes transactions atomically (all moves succeed or all fail)
    - Maintains wallet balances and unit (token) definitions
    - Keeps the transaction log that checkpoint() / rollback_to() unwind
    - Always validates and always logs - no exceptions

Issuance and redemption go through SYSTEM_WALLET, so for every unit the sum
of all balances (system wallet included) is always zero.
"""

from __future__ import annotations
from collections import defaultdict
from typing import Dict, List, Set, Optional, Tuple, Any, Sequence
import logging

from .core import (
    # Types
    Move, Transaction, Unit,
    ExecuteResult,
    Positions, BalanceMap,
    # Constants
    SYSTEM_WALLET,
    # Exceptions
    LedgerError, UnitNotRegistered, WalletNotRegistered,
)

logger = logging.getLogger(__name__)


class Ledger:
    """
    Double-entry token ledger with full validation and audit trail.

    Design Principles:
        - Always validates: Every transaction is validated against registration
          and balance constraints. No shortcuts.
        - Always logs: Every transaction is recorded in the transaction log,
          enabling rollback_to() for undoing everything after a checkpoint.

    Thread Safety:
        Not thread-safe. The engine serializes its own calls into the ledger;
        other writers must bring their own locking.

    Example:
        ledger = Ledger("main")
        ledger.register_unit(token_unit("WETH", "Wrapped Ether"))
        ledger.register_wallet("alice")
        ledger.register_wallet("bob")

        ledger.execute([Move(10**18, "WETH", SYSTEM_WALLET, "alice", "faucet")])
        result = ledger.execute([Move(10**17, "WETH", "alice", "bob", "payment_001")])
    """

    def __init__(
        self,
        name: str,
        verbose: bool = True,
        test_mode: bool = False
    ):
        """
        Create a ledger.

        Args:
            name: Ledger identifier
            verbose: Log every applied and rejected transaction (default: True)
            test_mode: Enable test mode to allow set_balance() calls (default: False)
        """
        self.name = name
        self.balances: Dict[str, Dict[str, int]] = {}
        self.units: Dict[str, Unit] = {}
        self.registered_wallets: Set[str] = set()
        self.transaction_log: List[Transaction] = []
        self.verbose = verbose
        self._test_mode = test_mode
        # Monotonic sequence counter for execution ordering
        self._next_sequence: int = 0
        # Inverted index mapping unit -> {wallet -> quantity} for O(1) position lookups
        self._positions_by_unit: Dict[str, Dict[str, int]] = defaultdict(dict)

        # Auto-register the system wallet (used for unit issuance/redemption)
        self.registered_wallets.add(SYSTEM_WALLET)
        self.balances[SYSTEM_WALLET] = defaultdict(int)

    # ========================================================================
    # READ-ONLY METHODS
    # ========================================================================

    def get_balance(self, wallet_id: str, unit_symbol: str) -> int:
        """
        Get the balance of a specific unit in a wallet.

        Returns:
            Current balance (0 if wallet has no balance for this unit)

        Raises:
            WalletNotRegistered: If wallet is not registered
            UnitNotRegistered: If unit is not registered
        """
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return self.balances[wallet_id].get(unit_symbol, 0)

    def get_positions(self, unit_symbol: str) -> Positions:
        """
        Get all non-zero positions for a specific unit across all wallets.

        Uses an inverted index for O(1) lookup performance.
        """
        return dict(self._positions_by_unit.get(unit_symbol, {}))

    def list_wallets(self) -> Set[str]:
        """List all registered wallet IDs."""
        return self.registered_wallets.copy()

    def list_units(self) -> List[str]:
        """List all registered unit symbols."""
        return sorted(self.units.keys())

    def get_unit(self, symbol: str) -> Unit:
        """Return the Unit object for a given symbol."""
        if symbol not in self.units:
            raise UnitNotRegistered(f"Unit {symbol} not registered")
        return self.units[symbol]

    def get_wallet_balances(self, wallet_id: str) -> BalanceMap:
        """Get all balances for a wallet."""
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        return dict(self.balances[wallet_id])

    def total_supply(self, unit_symbol: str) -> int:
        """
        Sum of a unit's balances across all wallets, system wallet included.

        Always zero for a ledger whose balances only changed through execute().

        Raises:
            UnitNotRegistered: If unit is not registered
        """
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return sum(self.balances[w].get(unit_symbol, 0) for w in sorted(self.registered_wallets))

    def circulating_supply(self, unit_symbol: str) -> int:
        """Amount of a unit issued out of the system wallet and not yet redeemed."""
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return sum(
            self.balances[w].get(unit_symbol, 0)
            for w in sorted(self.registered_wallets)
            if w != SYSTEM_WALLET
        )

    def verify_double_entry(self, expected_supplies: Optional[Dict[str, int]] = None) -> Dict[str, Any]:
        """
        Verify that conservation laws hold for all units.

        Double-entry accounting requires that for every unit, the sum of all
        balances across all wallets equals a constant (zero, since issuance
        is booked against the system wallet).

        Args:
            expected_supplies: Optional dict mapping unit symbols to expected
                               circulating supplies.

        Returns:
            Dict with keys:
            - 'valid': bool - True if all conservation laws hold
            - 'supplies': Dict[str, int] - Circulating supply for each unit
            - 'discrepancies': List[Dict] - Details of any conservation violations

        Example:
            result = ledger.verify_double_entry()
            assert result['valid'], f"Conservation violated: {result['discrepancies']}"
        """
        supplies = {}
        discrepancies = []

        for unit_symbol in self.units:
            net = self.total_supply(unit_symbol)
            circulating = self.circulating_supply(unit_symbol)
            supplies[unit_symbol] = circulating

            if net != 0:
                discrepancies.append({
                    'unit': unit_symbol,
                    'expected': 0,
                    'actual': net,
                    'difference': net,
                    'error': 'balances do not net to zero',
                })

            if expected_supplies and unit_symbol in expected_supplies:
                expected = expected_supplies[unit_symbol]
                if circulating != expected:
                    discrepancies.append({
                        'unit': unit_symbol,
                        'expected': expected,
                        'actual': circulating,
                        'difference': circulating - expected,
                    })

        if expected_supplies:
            for unit_symbol, expected in expected_supplies.items():
                if unit_symbol not in supplies:
                    discrepancies.append({
                        'unit': unit_symbol,
                        'expected': expected,
                        'actual': 0,
                        'difference': -expected,
                        'error': 'unit not registered',
                    })

        return {
            'valid': len(discrepancies) == 0,
            'supplies': supplies,
            'discrepancies': discrepancies,
        }

    def is_registered(self, wallet_id: str) -> bool:
        """Check if a wallet is registered."""
        return wallet_id in self.registered_wallets

    # ========================================================================
    # REGISTRATION (Mutating)
    # ========================================================================

    def register_wallet(self, wallet_id: str) -> str:
        """
        Register a new wallet in the ledger.

        Raises:
            ValueError: If wallet is already registered
        """
        if wallet_id in self.registered_wallets:
            raise ValueError(f"Wallet {wallet_id} already registered")
        self.registered_wallets.add(wallet_id)
        self.balances[wallet_id] = defaultdict(int)
        return wallet_id

    def ensure_wallet(self, wallet_id: str) -> str:
        """Register a wallet unless it already exists. Token accounts are implicit."""
        if wallet_id not in self.registered_wallets:
            self.register_wallet(wallet_id)
        return wallet_id

    def register_unit(self, unit: Unit) -> None:
        """
        Register a new unit (token) in the ledger.

        Raises:
            ValueError: If unit symbol is already registered
        """
        if unit.symbol in self.units:
            raise ValueError(f"Unit {unit.symbol} already registered")
        self.units[unit.symbol] = unit
        if self.verbose:
            logger.info(
                "Registered unit %s (%s) [%s]", unit.symbol, unit.name, unit.unit_type,
                extra={"event": "dsc.ledger.register_unit", "unit": unit.symbol},
            )

    def set_balance(self, wallet_id: str, unit_symbol: str, quantity: int) -> None:
        """
        Set a wallet's balance for a unit directly.

        WARNING: This method bypasses double-entry accounting and is only
        available in test mode. Balances set here are not part of the
        transaction log and survive rollback_to().

        Raises:
            LedgerError: If called when test_mode is False
        """
        if not self._test_mode:
            raise LedgerError(
                "set_balance() is disabled in production mode. "
                "Use execute() to modify balances. "
                "Set test_mode=True when creating Ledger for testing."
            )
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        self.balances[wallet_id][unit_symbol] = quantity
        self._update_position_index(wallet_id, unit_symbol, quantity)

    # ========================================================================
    # TRANSACTION EXECUTION (Mutating)
    # ========================================================================

    def execute(self, moves: Sequence[Move], memo: str = "") -> ExecuteResult:
        """
        Execute a group of moves atomically.

        All moves succeed together or all fail together. Every move is
        validated against unit and wallet registration and the unit's
        balance constraints, on the net effect of the whole group.

        Args:
            moves: Moves to apply
            memo: Description stored on the transaction record

        Returns:
            ExecuteResult.APPLIED if successful
            ExecuteResult.REJECTED if validation failed
        """
        moves = tuple(moves)
        if not moves:
            return ExecuteResult.APPLIED

        valid, reason = self._validate(moves)
        if not valid:
            if self.verbose:
                logger.warning(
                    "Ledger %s rejected transaction: %s", self.name, reason,
                    extra={"event": "dsc.ledger.rejected", "reason": reason, "memo": memo},
                )
            return ExecuteResult.REJECTED

        tx = Transaction(
            moves=moves,
            ledger_name=self.name,
            sequence_number=self._next_sequence,
            memo=memo,
        )
        self._next_sequence += 1

        self._execute_moves(tx.moves)

        # Log transaction (always - the log is what rollback_to() unwinds)
        self.transaction_log.append(tx)

        if self.verbose:
            logger.debug(
                "Ledger %s applied %r", self.name, tx,
                extra={"event": "dsc.ledger.applied", "sequence": tx.sequence_number, "memo": memo},
            )
        return ExecuteResult.APPLIED

    def _validate(self, moves: Tuple[Move, ...]) -> Tuple[bool, str]:
        """
        Validate moves against all constraints.

        Returns:
            Tuple of (success: bool, reason: str)
        """
        for move in moves:
            if move.unit_symbol not in self.units:
                return False, f"unit not registered: {move.unit_symbol}"
            if not self.is_registered(move.source):
                return False, f"wallet not registered: {move.source}"
            if not self.is_registered(move.dest):
                return False, f"wallet not registered: {move.dest}"

        # Calculate net balance changes
        net: Dict[Tuple[str, str], int] = {}
        for move in moves:
            key_src = (move.source, move.unit_symbol)
            key_dst = (move.dest, move.unit_symbol)
            net[key_src] = net.get(key_src, 0) - move.quantity
            net[key_dst] = net.get(key_dst, 0) + move.quantity

        # Note: SYSTEM_WALLET is exempt from balance validation - it can hold any balance
        for (wallet, unit_sym), delta in net.items():
            if wallet == SYSTEM_WALLET:
                continue

            current = self.balances[wallet][unit_sym]
            unit = self.units[unit_sym]
            proposed = current + delta

            if proposed < unit.min_balance:
                return False, f"{wallet} {unit_sym}: {proposed} < min {unit.min_balance}"
            if unit.max_balance is not None and proposed > unit.max_balance:
                return False, f"{wallet} {unit_sym}: {proposed} > max {unit.max_balance}"

        return True, ""

    def _update_position_index(self, wallet_id: str, unit_symbol: str, quantity: int) -> None:
        """Keep the unit -> {wallet -> quantity} index in sync; zero balances are dropped."""
        if quantity != 0:
            self._positions_by_unit[unit_symbol][wallet_id] = quantity
        else:
            self._positions_by_unit[unit_symbol].pop(wallet_id, None)

    def _execute_moves(self, moves) -> None:
        """Apply all moves to wallet balances and update the position index."""
        for move in moves:
            new_src_balance = self.balances[move.source][move.unit_symbol] - move.quantity
            self.balances[move.source][move.unit_symbol] = new_src_balance
            self._update_position_index(move.source, move.unit_symbol, new_src_balance)

            new_dst_balance = self.balances[move.dest][move.unit_symbol] + move.quantity
            self.balances[move.dest][move.unit_symbol] = new_dst_balance
            self._update_position_index(move.dest, move.unit_symbol, new_dst_balance)

    # ========================================================================
    # CHECKPOINT / UNWIND
    # ========================================================================

    def checkpoint(self) -> int:
        """Return the sequence number the next transaction will get."""
        return self._next_sequence

    def rollback_to(self, sequence: int) -> int:
        """
        Undo every logged transaction with sequence_number >= `sequence`.

        Walks backward through the transaction log reversing each move
        (add back to source, subtract from destination) and truncates the log.

        Args:
            sequence: A value previously returned by checkpoint()

        Returns:
            Number of transactions undone

        Raises:
            ValueError: If sequence is ahead of the ledger
        """
        if sequence > self._next_sequence:
            raise ValueError(f"Checkpoint {sequence} is ahead of ledger sequence {self._next_sequence}")

        undone = 0
        while self.transaction_log and self.transaction_log[-1].sequence_number >= sequence:
            tx = self.transaction_log.pop()
            for move in reversed(tx.moves):
                new_src = self.balances[move.source][move.unit_symbol] + move.quantity
                new_dst = self.balances[move.dest][move.unit_symbol] - move.quantity
                self.balances[move.source][move.unit_symbol] = new_src
                self.balances[move.dest][move.unit_symbol] = new_dst
                self._update_position_index(move.source, move.unit_symbol, new_src)
                self._update_position_index(move.dest, move.unit_symbol, new_dst)
            undone += 1

        self._next_sequence = sequence
        if undone and self.verbose:
            logger.info(
                "Ledger %s rolled back %d transaction(s) to sequence %d", self.name, undone, sequence,
                extra={"event": "dsc.ledger.rollback", "sequence": sequence, "undone": undone},
            )
        return undone
