"""
dsc - Overcollateralized Synthetic Dollar Engine

Collateral and debt accounting for a USD-pegged synthetic token: deposits of
approved collateral, minting against it at 200% collateralization, burning,
redemption and bonus-paying liquidation of unhealthy accounts.

Usage:
    from dsc import (
        Ledger, LedgerToken, StableCoin, StaticPriceFeed, DSCEngine,
    )

    ledger = Ledger("tokens", verbose=False)
    weth = LedgerToken(ledger, "WETH", "Wrapped Ether")
    dsc = StableCoin(ledger, owner="deployer")
    feed = StaticPriceFeed({"WETH": 2000 * 10**8})

    engine = DSCEngine([weth], [feed], dsc)
    dsc.transfer_ownership("deployer", engine.address)

    # Fund and approve via the token faucet
    weth.issue("alice", 10 * 10**18)
    weth.approve("alice", engine.address, 10 * 10**18)

    engine.deposit_collateral("alice", "WETH", 10 * 10**18)
    engine.mint_dsc("alice", 100 * 10**18)
    engine.get_health_factor("alice")    # 100 * 10**18
"""

# Core types
from .core import (
    PRECISION,
    FEED_DECIMALS,
    ADDITIONAL_FEED_PRECISION,
    LIQUIDATION_THRESHOLD,
    LIQUIDATION_PRECISION,
    LIQUIDATION_BONUS,
    MIN_HEALTH_FACTOR,
    MAX_HEALTH_FACTOR,
    UINT256_MAX,
    SYSTEM_WALLET,
    DEFAULT_ENGINE_ADDRESS,
    UNIT_TYPE_COLLATERAL,
    UNIT_TYPE_STABLECOIN,
    CollateralToken,
    StableToken,
    Checkpointable,
    ExecuteResult,
    Move,
    Transaction,
    Unit,
    token_unit,
    SupportedAsset,
    AccountInformation,
    CollateralDeposited,
    CollateralRedeemed,
    EngineEvent,
    LedgerError,
    UnitNotRegistered,
    WalletNotRegistered,
    NotOwner,
    MustBeMoreThanZero,
    BurnAmountExceedsBalance,
    NotZeroAddress,
    EngineError,
    NeedsMoreThanZero,
    InvalidAmount,
    TokenNotAllowed,
    TokenAddressesAndPriceFeedsMustBeSameLength,
    InvalidConfiguration,
    BreakHealthFactor,
    HealthFactorOK,
    HealthFactorNotImproved,
    ArithmeticUnderflow,
    InsufficientCollateral,
    InsufficientDebt,
    TransferFailed,
    MintFailed,
    InvalidPrice,
    ReentrantCall,
    EngineClosed,
)

# Ledger
from .ledger import Ledger

# Tokens
from .units import LedgerToken, StableCoin, INFINITE_ALLOWANCE

# Prices
from .pricing_source import (
    PriceFeed,
    StaticPriceFeed,
    TimeSeriesPriceFeed,
    OracleAdapter,
    calculate_usd_value,
    calculate_token_amount_from_usd,
)

# Health and liquidation math (pure functions)
from .health import calculate_health_factor, adjusted_collateral, is_healthy
from .liquidation import (
    LiquidationQuote,
    calculate_liquidation_bonus,
    quote_liquidation,
)

# Guards
from .guard import ReentrancyGuard, more_than_zero, is_allowed_token, non_reentrant, read_locked

# Positions
from .positions import PositionBook

# Engine
from .engine import DSCEngine

__all__ = [
    # Constants
    'PRECISION', 'FEED_DECIMALS', 'ADDITIONAL_FEED_PRECISION',
    'LIQUIDATION_THRESHOLD', 'LIQUIDATION_PRECISION', 'LIQUIDATION_BONUS',
    'MIN_HEALTH_FACTOR', 'MAX_HEALTH_FACTOR', 'UINT256_MAX',
    'SYSTEM_WALLET', 'DEFAULT_ENGINE_ADDRESS',
    'UNIT_TYPE_COLLATERAL', 'UNIT_TYPE_STABLECOIN',
    # Core
    'CollateralToken', 'StableToken', 'Checkpointable',
    'ExecuteResult', 'Move', 'Transaction', 'Unit', 'token_unit',
    'SupportedAsset', 'AccountInformation',
    'CollateralDeposited', 'CollateralRedeemed', 'EngineEvent',
    # Ledger errors
    'LedgerError', 'UnitNotRegistered', 'WalletNotRegistered',
    'NotOwner', 'MustBeMoreThanZero', 'BurnAmountExceedsBalance', 'NotZeroAddress',
    # Engine errors
    'EngineError', 'NeedsMoreThanZero', 'InvalidAmount', 'TokenNotAllowed',
    'TokenAddressesAndPriceFeedsMustBeSameLength', 'InvalidConfiguration',
    'BreakHealthFactor', 'HealthFactorOK', 'HealthFactorNotImproved',
    'ArithmeticUnderflow', 'InsufficientCollateral', 'InsufficientDebt',
    'TransferFailed', 'MintFailed', 'InvalidPrice', 'ReentrantCall', 'EngineClosed',
    # Ledger
    'Ledger',
    # Tokens
    'LedgerToken', 'StableCoin', 'INFINITE_ALLOWANCE',
    # Prices
    'PriceFeed', 'StaticPriceFeed', 'TimeSeriesPriceFeed', 'OracleAdapter',
    'calculate_usd_value', 'calculate_token_amount_from_usd',
    # Health and liquidation
    'calculate_health_factor', 'adjusted_collateral', 'is_healthy',
    'LiquidationQuote', 'calculate_liquidation_bonus', 'quote_liquidation',
    # Guards
    'ReentrancyGuard', 'more_than_zero', 'is_allowed_token', 'non_reentrant', 'read_locked',
    # Positions
    'PositionBook',
    # Engine
    'DSCEngine',
]

__version__ = '1.0.0'
