"""
health.py - Health factor calculation

Pure functions with all inputs explicit, so callers can simulate a position
("what if I mint X more?") before committing anything.

Key Formulas:
    adjusted_collateral = collateral_usd * LIQUIDATION_THRESHOLD / LIQUIDATION_PRECISION
    health_factor       = adjusted_collateral * PRECISION / debt      (debt > 0)
    health_factor       = MAX_HEALTH_FACTOR                           (debt == 0)

A position is healthy when health_factor >= MIN_HEALTH_FACTOR, i.e. when the
collateral is worth at least twice the debt.
"""

from __future__ import annotations

from .core import (
    PRECISION, LIQUIDATION_THRESHOLD, LIQUIDATION_PRECISION,
    MIN_HEALTH_FACTOR, MAX_HEALTH_FACTOR,
)


def adjusted_collateral(collateral_value_in_usd: int) -> int:
    """Part of the collateral value that counts toward solvency."""
    return (collateral_value_in_usd * LIQUIDATION_THRESHOLD) // LIQUIDATION_PRECISION


def calculate_health_factor(total_dsc_minted: int, collateral_value_in_usd: int) -> int:
    """
    Health factor of a position with the given debt and collateral value.

    Both inputs are at PRECISION scale. The division truncates, and the
    threshold is applied before scaling, so results can differ by one wei
    from a computation done in the other order.

    Example:
        >>> calculate_health_factor(100 * 10**18, 20_000 * 10**18)
        100000000000000000000
    """
    if total_dsc_minted == 0:
        return MAX_HEALTH_FACTOR
    return (adjusted_collateral(collateral_value_in_usd) * PRECISION) // total_dsc_minted


def is_healthy(health_factor: int) -> bool:
    return health_factor >= MIN_HEALTH_FACTOR
