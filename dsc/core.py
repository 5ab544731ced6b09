"""
Core types and constants for the synthetic-dollar engine.

This module provides the foundational data structures and protocols:
1. Constants: fixed-point scales and the risk parameters of the engine
2. Protocols: capability interfaces of the external collaborators
   (collateral assets, the synthetic dollar, checkpointable state)
3. Exceptions: LedgerError (collaborator side) and EngineError (engine side)
4. Immutable data structures: Move, Transaction, Unit, SupportedAsset,
   AccountInformation and the observable engine events

All amounts are Python ints in an 18-decimal fixed-point scale. Nothing in
this package uses floating point for balances, prices or ratios.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import (
    Dict, Optional, Any, Protocol, Tuple, Union, runtime_checkable
)


# ============================================================================
# CONSTANTS
# ============================================================================

# Internal fixed-point scale for every USD value, debt amount and ratio.
PRECISION = 10**18

# Price feeds answer with FEED_DECIMALS decimals; multiplying by this factor
# brings an answer up to PRECISION.
FEED_DECIMALS = 8
ADDITIONAL_FEED_PRECISION = 10**(18 - FEED_DECIMALS)

# Only LIQUIDATION_THRESHOLD / LIQUIDATION_PRECISION of the collateral value
# counts toward solvency, i.e. positions must stay 200% collateralized.
LIQUIDATION_THRESHOLD = 50
LIQUIDATION_PRECISION = 100

# Extra collateral (in percent of the debt-equivalent) paid to liquidators.
LIQUIDATION_BONUS = 10

MIN_HEALTH_FACTOR = PRECISION

# Largest unsigned 256-bit value. Health factor of a debt-free account.
UINT256_MAX = 2**256 - 1
MAX_HEALTH_FACTOR = UINT256_MAX

# Reserved wallet for issuance and redemption of ledger units.
# The system wallet is exempt from balance validation and can hold any balance.
SYSTEM_WALLET = "system"

DEFAULT_ENGINE_ADDRESS = "dsc_engine"

# Unit type constants (strings, not enum).
UNIT_TYPE_COLLATERAL = "COLLATERAL"
UNIT_TYPE_STABLECOIN = "STABLECOIN"


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Mapping from wallet ID to quantity held by that wallet for a specific unit.
Positions = Dict[str, int]

# Mapping from unit symbol to quantity held in a single wallet.
BalanceMap = Dict[str, int]

# Mapping from asset identifier to deposited amount for a single account.
CollateralMap = Dict[str, int]


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class CollateralToken(Protocol):
    """
    Capability interface of an approved collateral asset.

    The engine only ever moves assets through these two calls and trusts the
    returned success flag. `address` is the identifier the engine keys the
    asset by.
    """
    address: str

    def transfer_from(self, spender: str, sender: str, recipient: str, amount: int) -> bool:
        """Move `amount` from `sender` to `recipient` using `spender`'s allowance."""
        ...

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        """Move `amount` from `sender` to `recipient`."""
        ...


@runtime_checkable
class StableToken(CollateralToken, Protocol):
    """
    Capability interface of the synthetic-dollar token.

    `caller` is the account issuing the call; implementations restrict
    mint and burn to their owner (the engine).
    """

    def mint(self, caller: str, to: str, amount: int) -> bool:
        ...

    def burn(self, caller: str, amount: int) -> None:
        ...


@runtime_checkable
class Checkpointable(Protocol):
    """
    Collaborator state that can join the engine's rollback.

    checkpoint() returns an opaque marker; rollback(marker) restores the
    state the collaborator had when the marker was taken.
    """

    def checkpoint(self) -> Any:
        ...

    def rollback(self, checkpoint: Any) -> None:
        ...


# ============================================================================
# ENUMS
# ============================================================================

class ExecuteResult(Enum):
    """
    Outcome of a ledger transaction execution attempt.

    APPLIED: Transaction was validated and applied to the ledger.
    REJECTED: Transaction failed validation (insufficient funds or
              balance constraints) and nothing was applied.
    """
    APPLIED = "applied"
    REJECTED = "rejected"


# ============================================================================
# EXCEPTIONS - TOKEN LEDGER
# ============================================================================

class LedgerError(Exception):
    """Base exception for all token-ledger errors."""
    pass


class UnitNotRegistered(LedgerError):
    """Raised when attempting to operate on a unit that has not been registered with the ledger."""
    pass


class WalletNotRegistered(LedgerError):
    """Raised when attempting to operate on a wallet that has not been registered with the ledger."""
    pass


class NotOwner(LedgerError):
    """Raised when a restricted token call does not come from the token owner."""
    pass


class MustBeMoreThanZero(LedgerError):
    """Raised by the synthetic-dollar token for zero mint or burn amounts."""
    pass


class BurnAmountExceedsBalance(LedgerError):
    """Raised when the token owner burns more than it holds."""
    pass


class NotZeroAddress(LedgerError):
    """Raised when minting to an empty account identifier."""
    pass


# ============================================================================
# EXCEPTIONS - ENGINE
# ============================================================================

class EngineError(Exception):
    """Base exception for all engine rejections. The operation had no effect."""
    pass


class NeedsMoreThanZero(EngineError):
    """An amount argument was zero."""
    pass


class InvalidAmount(EngineError):
    """An amount argument was not an unsigned 256-bit integer."""
    pass


class TokenNotAllowed(EngineError):
    """The asset has no price feed binding."""

    def __init__(self, token: str):
        self.token = token
        super().__init__(f"Token not allowed: {token!r}")


class TokenAddressesAndPriceFeedsMustBeSameLength(EngineError):
    """Construction lists of assets and price feeds differ in length."""
    pass


class InvalidConfiguration(EngineError):
    """Construction arguments are inconsistent (duplicate or empty asset identifiers)."""
    pass


class BreakHealthFactor(EngineError):
    """The account would end below MIN_HEALTH_FACTOR."""

    def __init__(self, health_factor: int):
        self.health_factor = health_factor
        super().__init__(f"Health factor broken: {health_factor}")


class HealthFactorOK(EngineError):
    """Liquidation was attempted on an account that is not liquidatable."""

    def __init__(self, health_factor: int):
        self.health_factor = health_factor
        super().__init__(f"Health factor is OK: {health_factor}")


class HealthFactorNotImproved(EngineError):
    """A liquidation did not raise the target's health factor."""

    def __init__(self, starting: int, ending: int):
        self.starting = starting
        self.ending = ending
        super().__init__(f"Health factor not improved: {starting} -> {ending}")


class ArithmeticUnderflow(EngineError):
    """A decrement exceeded the recorded balance."""

    def __init__(self, requested: int, available: int, what: str):
        self.requested = requested
        self.available = available
        super().__init__(f"Insufficient {what}: requested {requested}, available {available}")


class InsufficientCollateral(ArithmeticUnderflow):
    pass


class InsufficientDebt(ArithmeticUnderflow):
    pass


class TransferFailed(EngineError):
    """An asset or token transfer returned failure."""
    pass


class MintFailed(EngineError):
    """The synthetic-dollar token refused to mint."""
    pass


class InvalidPrice(EngineError):
    """A price feed answered with a non-positive price."""

    def __init__(self, token: str, price: int):
        self.token = token
        self.price = price
        super().__init__(f"Invalid price for {token!r}: {price}")


class ReentrantCall(EngineError):
    """A mutating entry point was re-entered while a call was in flight."""
    pass


class EngineClosed(EngineError):
    """The engine has been torn down."""
    pass


# ============================================================================
# LEDGER DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class Move:
    """
    A single transfer of value between two wallets.

    Attributes:
        quantity: The amount to transfer (positive integer, smallest unit).
        unit_symbol: The symbol of the unit being transferred (e.g., "WETH").
        source: The wallet ID from which value is debited.
        dest: The wallet ID to which value is credited.
        contract_id: Identifier of the operation generating this move.
    """
    quantity: int
    unit_symbol: str
    source: str
    dest: str
    contract_id: str

    def __post_init__(self):
        if not self.source or not self.source.strip():
            raise ValueError("Move source cannot be empty")
        if not self.dest or not self.dest.strip():
            raise ValueError("Move dest cannot be empty")
        if not self.unit_symbol or not self.unit_symbol.strip():
            raise ValueError("Move unit_symbol cannot be empty")
        if not self.contract_id or not self.contract_id.strip():
            raise ValueError("Move contract_id cannot be empty")
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise ValueError(f"Move quantity must be int, got {type(self.quantity)}")
        if self.quantity <= 0:
            raise ValueError(f"Move quantity must be positive, got {self.quantity}")
        if self.source == self.dest:
            raise ValueError("Source and dest must be different")

    def __repr__(self) -> str:
        return f"Move({self.quantity} {self.unit_symbol}: {self.source}→{self.dest})"


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    An executed, immutable record of ledger balance changes.

    Attributes:
        moves: Tuple of value transfers between wallets
        ledger_name: Name of the ledger that executed this
        sequence_number: Monotonic sequence within the ledger (for ordering and unwind)
        memo: Free-form description of the operation
    """
    moves: Tuple[Move, ...]
    ledger_name: str
    sequence_number: int
    memo: str = ""

    def __post_init__(self):
        if not self.moves:
            raise ValueError("Transaction must have moves")

    def __repr__(self) -> str:
        moves = ", ".join(repr(m) for m in self.moves)
        return f"Transaction(#{self.sequence_number} {self.ledger_name}: {moves})"


@dataclass(frozen=True, slots=True)
class Unit:
    """
    Definition of a token (asset type) held in the ledger.

    Attributes:
        symbol: Short identifier for the unit (e.g., "WETH", "DSC").
        name: Human-readable name for the unit.
        unit_type: Category of the unit (COLLATERAL, STABLECOIN).
        decimals: Number of decimals of the smallest indivisible amount.
        min_balance: Minimum allowed balance in any wallet.
        max_balance: Maximum allowed balance in any wallet (None = unbounded).
    """
    symbol: str
    name: str
    unit_type: str
    decimals: int = 18
    min_balance: int = 0
    max_balance: Optional[int] = None


def token_unit(symbol: str, name: str, unit_type: str = UNIT_TYPE_COLLATERAL, decimals: int = 18) -> Unit:
    """
    Create a token unit that cannot go negative.

    Args:
        symbol: Token symbol (e.g., "WETH").
        name: Full name of the token (e.g., "Wrapped Ether").
        unit_type: UNIT_TYPE_COLLATERAL or UNIT_TYPE_STABLECOIN.
        decimals: Number of decimals (default: 18).
    """
    return Unit(symbol=symbol, name=name, unit_type=unit_type, decimals=decimals)


# ============================================================================
# ENGINE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class SupportedAsset:
    """
    An approved collateral type and its price feed binding.

    Created once at engine construction and never changed afterwards.
    """
    token: str
    price_feed: Any

    def __post_init__(self):
        if not self.token or not str(self.token).strip():
            raise InvalidConfiguration("Collateral token identifier cannot be empty")
        if self.price_feed is None:
            raise InvalidConfiguration(f"Collateral token {self.token!r} has no price feed")


@dataclass(frozen=True, slots=True)
class AccountInformation:
    """Debt and collateral value of one account, both at PRECISION scale."""
    total_dsc_minted: int
    collateral_value_in_usd: int

    def __iter__(self):
        # Allows `debt, collateral = engine.get_account_information(user)`.
        yield self.total_dsc_minted
        yield self.collateral_value_in_usd


@dataclass(frozen=True, slots=True)
class CollateralDeposited:
    """Event: `user` deposited `amount` of `token`."""
    user: str
    token: str
    amount: int


@dataclass(frozen=True, slots=True)
class CollateralRedeemed:
    """
    Event: `amount` of `token` left `redeemed_from`'s position for `redeemed_to`.

    The two accounts differ when collateral is seized during liquidation.
    """
    redeemed_from: str
    redeemed_to: str
    token: str
    amount: int


EngineEvent = Union[CollateralDeposited, CollateralRedeemed]
