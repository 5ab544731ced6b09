"""
liquidation.py - Seizure arithmetic and liquidation post-conditions

The engine's liquidate() runs, in order:
1. require_liquidatable(): target's starting health factor must be below
   MIN_HEALTH_FACTOR (HealthFactorOK otherwise)
2. quote_liquidation(): debt_to_cover (USD, 18 decimals) converted to the
   seized asset, plus a flat LIQUIDATION_BONUS percent
3. seize quote.total_collateral_to_redeem from the target for the liquidator
4. burn debt_to_cover of the target's debt with the liquidator's tokens
5. require_improved(): the target's health factor must strictly increase
   (HealthFactorNotImproved otherwise)
6. the liquidator's own health factor must still be >= MIN_HEALTH_FACTOR

Known limitation: the bonus is paid out of the target's collateral. When a
position is at or below 100% collateralization there is not enough
collateral to cover debt plus bonus, the seizure underflows and the
liquidation fails. It is not patched here.
"""

from __future__ import annotations
from dataclasses import dataclass

from .core import (
    LIQUIDATION_BONUS, LIQUIDATION_PRECISION, MIN_HEALTH_FACTOR,
    HealthFactorOK, HealthFactorNotImproved,
)
from .pricing_source import OracleAdapter


@dataclass(frozen=True, slots=True)
class LiquidationQuote:
    """Collateral a liquidator receives for covering `debt_to_cover`."""
    token: str
    debt_to_cover: int
    token_amount_from_debt_covered: int
    bonus_collateral: int

    @property
    def total_collateral_to_redeem(self) -> int:
        return self.token_amount_from_debt_covered + self.bonus_collateral


def calculate_liquidation_bonus(token_amount: int) -> int:
    return (token_amount * LIQUIDATION_BONUS) // LIQUIDATION_PRECISION


def quote_liquidation(oracle: OracleAdapter, token: str, debt_to_cover: int) -> LiquidationQuote:
    """
    Price a liquidation at the feed's latest answer.

    Example:
        # WETH at $18, covering $100 of debt
        quote = quote_liquidation(oracle, "WETH", 100 * 10**18)
        quote.token_amount_from_debt_covered   # 5555555555555555555
        quote.total_collateral_to_redeem       # 6111111111111111110
    """
    token_amount = oracle.amount_from_usd(token, debt_to_cover)
    return LiquidationQuote(
        token=token,
        debt_to_cover=debt_to_cover,
        token_amount_from_debt_covered=token_amount,
        bonus_collateral=calculate_liquidation_bonus(token_amount),
    )


def require_liquidatable(starting_health_factor: int) -> None:
    if starting_health_factor >= MIN_HEALTH_FACTOR:
        raise HealthFactorOK(starting_health_factor)


def require_improved(starting_health_factor: int, ending_health_factor: int) -> None:
    if ending_health_factor <= starting_health_factor:
        raise HealthFactorNotImproved(starting_health_factor, ending_health_factor)
