"""
pricing_source.py - Price feeds and USD conversion for collateral valuation

Classes:
- PriceFeed: Protocol defining the feed interface the engine consumes
- StaticPriceFeed: Settable, time-independent prices
- TimeSeriesPriceFeed: Time-varying prices with historical data and a clock
- OracleAdapter: Binds each collateral asset to its feed and converts between
  asset amounts and USD

Feeds answer in FEED_DECIMALS (8) decimals, e.g. $2000.00 is 2000 * 10**8.
The adapter scales answers by ADDITIONAL_FEED_PRECISION to the 18-decimal
internal precision. Every conversion uses integer arithmetic with
multiplication before division; division truncates toward zero.
"""

from __future__ import annotations
from bisect import bisect_right
from datetime import datetime
from typing import Dict, Optional, List, Tuple, Mapping, Protocol, runtime_checkable

from .core import (
    PRECISION, ADDITIONAL_FEED_PRECISION, FEED_DECIMALS,
    TokenNotAllowed, InvalidPrice,
)


@runtime_checkable
class PriceFeed(Protocol):
    """
    Protocol for price feeds.

    latest_price() returns the latest USD price of one whole token in
    FEED_DECIMALS decimals, or None if the feed has no answer for the token.
    """

    def latest_price(self, token: str) -> Optional[int]:
        ...


class StaticPriceFeed:
    """
    Price feed with static prices (time-independent).

    Prices remain constant until update_price() / update_prices() is called.
    """

    decimals = FEED_DECIMALS

    def __init__(self, prices: Optional[Dict[str, int]] = None):
        """
        Args:
            prices: Dictionary mapping token identifiers to 8-decimal USD prices
        """
        self.prices: Dict[str, int] = dict(prices or {})

    def latest_price(self, token: str) -> Optional[int]:
        return self.prices.get(token)

    def update_price(self, token: str, price: int) -> None:
        """Update the price of a token."""
        self.prices[token] = price

    def update_prices(self, prices: Dict[str, int]) -> None:
        """Update multiple prices at once."""
        self.prices.update(prices)

    def __repr__(self):
        return f"StaticPriceFeed({len(self.prices)} prices)"


class TimeSeriesPriceFeed:
    """
    Price feed with time-varying prices.

    Stores historical price data and answers with the most recent price at or
    before the feed's clock (`now`). Advancing the clock replays a price path,
    which is how simulations drive positions into liquidation.

    Supports two initialization patterns:
    - Empty initialization for incremental price addition via add_price()
    - Batch initialization with complete price paths for simulations
    """

    decimals = FEED_DECIMALS

    def __init__(
        self,
        price_paths: Optional[Dict[str, List[Tuple[datetime, int]]]] = None,
        now: Optional[datetime] = None,
    ):
        """
        Args:
            price_paths: Optional dict mapping tokens to lists of (timestamp, price) tuples.
            now: Initial clock (default: 1970-01-01)

        Examples:
            feed = TimeSeriesPriceFeed({
                'WETH': [(t0, 2000 * 10**8), (t1, 1500 * 10**8)],
            }, now=t0)
            feed.advance_time(t1)
        """
        self.now: datetime = now or datetime(1970, 1, 1)
        self.price_history: Dict[str, List[Tuple[datetime, int]]] = {}

        if price_paths:
            for token, path in price_paths.items():
                if not path:
                    continue
                self.price_history[token] = sorted(path, key=lambda x: x[0])

    def add_price(self, token: str, timestamp: datetime, price: int) -> None:
        """Add a price observation for a token at a specific time."""
        history = self.price_history.setdefault(token, [])
        history.append((timestamp, price))
        history.sort(key=lambda x: x[0])

    def advance_time(self, new_time: datetime) -> None:
        """
        Move the feed's clock forward.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self.now:
            raise ValueError(f"Cannot move time backwards: {new_time} < {self.now}")
        self.now = new_time

    def price_at(self, token: str, timestamp: datetime) -> Optional[int]:
        """
        Most recent price at or before `timestamp`, or None.

        Uses binary search for O(log n) lookup.
        """
        history = self.price_history.get(token)
        if not history:
            return None
        timestamps = [ts for ts, _ in history]
        idx = bisect_right(timestamps, timestamp)
        if idx == 0:
            return None
        return history[idx - 1][1]

    def latest_price(self, token: str) -> Optional[int]:
        return self.price_at(token, self.now)

    def __repr__(self):
        total_observations = sum(len(history) for history in self.price_history.values())
        return f"TimeSeriesPriceFeed({len(self.price_history)} tokens, {total_observations} observations, now={self.now})"


# ============================================================================
# PURE CONVERSIONS
# ============================================================================

def calculate_usd_value(price: int, amount: int) -> int:
    """
    USD value (18 decimals) of `amount` token units at an 8-decimal `price`.

        usd = price * ADDITIONAL_FEED_PRECISION * amount / PRECISION
    """
    return (price * ADDITIONAL_FEED_PRECISION * amount) // PRECISION


def calculate_token_amount_from_usd(price: int, usd_amount: int) -> int:
    """
    Token amount worth `usd_amount` (18 decimals) at an 8-decimal `price`.

        amount = usd_amount * PRECISION / (price * ADDITIONAL_FEED_PRECISION)

    Inverse of calculate_usd_value up to truncation: converting the result back
    gives a value <= usd_amount.
    """
    return (usd_amount * PRECISION) // (price * ADDITIONAL_FEED_PRECISION)


# ============================================================================
# ORACLE ADAPTER
# ============================================================================

class OracleAdapter:
    """
    Converts between collateral amounts and USD using each asset's bound feed.

    No caching and no staleness handling: every call asks the feed for its
    latest answer.
    """

    def __init__(self, bindings: Mapping[str, PriceFeed]):
        """
        Args:
            bindings: token identifier -> price feed
        """
        self._bindings: Dict[str, PriceFeed] = dict(bindings)

    def feed_for(self, token: str) -> PriceFeed:
        """
        Raises:
            TokenNotAllowed: If the token has no bound feed
        """
        feed = self._bindings.get(token)
        if feed is None:
            raise TokenNotAllowed(token)
        return feed

    def latest_price(self, token: str) -> int:
        """
        Latest 8-decimal price of `token`.

        Raises:
            TokenNotAllowed: If the token has no bound feed
            InvalidPrice: If the feed has no answer or answers with a price <= 0
        """
        price = self.feed_for(token).latest_price(token)
        if price is None or price <= 0:
            raise InvalidPrice(token, price)
        return price

    def usd_value(self, token: str, amount: int) -> int:
        return calculate_usd_value(self.latest_price(token), amount)

    def amount_from_usd(self, token: str, usd_amount: int) -> int:
        return calculate_token_amount_from_usd(self.latest_price(token), usd_amount)
