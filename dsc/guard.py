"""
guard.py - Preconditions for mutating entry points

Three independent checks, each failing fast with its own error before any
state is touched:

1. more_than_zero(*names): every named amount argument is a positive
   unsigned 256-bit integer (zero -> NeedsMoreThanZero, anything else that
   is not such an integer -> InvalidAmount)
2. is_allowed_token(*names): every named asset argument has a price feed
   binding (otherwise TokenNotAllowed)
3. non_reentrant: an exclusive guard held from the first state mutation to
   the final exit, success or failure

The decorators stack in that order, outermost first, so validation errors
win over a re-entrancy rejection:

    @more_than_zero("amount")
    @is_allowed_token("token")
    @non_reentrant
    def deposit_collateral(self, user, token, amount): ...

read_locked is the getter side of the same guard: a read from another
thread waits until the in-flight operation has committed or rolled back.

Host objects provide `_price_feeds` (token -> feed mapping) and
`_reentrancy_guard` (a ReentrancyGuard).
"""

from __future__ import annotations
from contextlib import contextmanager
from functools import wraps
from typing import Any, Callable, Container, Dict, Iterator, Optional
import inspect
import threading

from .core import (
    UINT256_MAX,
    NeedsMoreThanZero, InvalidAmount, TokenNotAllowed, ReentrantCall,
)


def require_more_than_zero(amount: Any) -> int:
    """
    Raises:
        InvalidAmount: If amount is not an int (bools and floats included),
                       is negative, or exceeds UINT256_MAX
        NeedsMoreThanZero: If amount is zero
    """
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmount(f"Amount must be an integer, got {type(amount).__name__}")
    if amount == 0:
        raise NeedsMoreThanZero("Amount must be more than zero")
    if amount < 0 or amount > UINT256_MAX:
        raise InvalidAmount(f"Amount out of range: {amount}")
    return amount


def require_allowed_token(allowed: Container[str], token: str) -> str:
    """
    Raises:
        TokenNotAllowed: If token has no price feed binding
    """
    if token not in allowed:
        raise TokenNotAllowed(token)
    return token


class ReentrancyGuard:
    """
    Exclusive guard for mutating entry points.

    A lock serializes holders across threads. The guard also remembers which
    thread holds it, so a nested acquisition from the holding thread (a
    collaborator calling back into the engine mid-transfer) raises
    ReentrantCall instead of deadlocking.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._owner: Optional[int] = None

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    @contextmanager
    def hold(self) -> Iterator[None]:
        me = threading.get_ident()
        if self._owner == me:
            raise ReentrantCall("Reentrant call")
        with self._lock:
            self._owner = me
            try:
                yield
            finally:
                self._owner = None

    @contextmanager
    def reading(self) -> Iterator[None]:
        """Wait out another thread's operation; pass through on the holding thread."""
        me = threading.get_ident()
        if self._owner == me:
            yield
            return
        with self._lock:
            self._owner = me
            try:
                yield
            finally:
                self._owner = None


def _bound_arguments(fn: Callable, args: tuple, kwargs: Dict[str, Any]) -> Dict[str, Any]:
    bound = inspect.signature(fn).bind(*args, **kwargs)
    bound.apply_defaults()
    return bound.arguments


def more_than_zero(*names: str) -> Callable:
    """Check the named amount arguments with require_more_than_zero()."""
    def decorator(fn: Callable) -> Callable:
        @wraps(fn)
        def wrapper(*args, **kwargs):
            arguments = _bound_arguments(fn, args, kwargs)
            for name in names:
                require_more_than_zero(arguments[name])
            return fn(*args, **kwargs)
        return wrapper
    return decorator


def is_allowed_token(*names: str) -> Callable:
    """Check the named asset arguments against the host's `_price_feeds`."""
    def decorator(fn: Callable) -> Callable:
        @wraps(fn)
        def wrapper(self, *args, **kwargs):
            arguments = _bound_arguments(fn, (self,) + args, kwargs)
            for name in names:
                require_allowed_token(self._price_feeds, arguments[name])
            return fn(self, *args, **kwargs)
        return wrapper
    return decorator


def non_reentrant(fn: Callable) -> Callable:
    """Hold the host's `_reentrancy_guard` for the whole call."""
    @wraps(fn)
    def wrapper(self, *args, **kwargs):
        with self._reentrancy_guard.hold():
            return fn(self, *args, **kwargs)
    return wrapper


def read_locked(fn: Callable) -> Callable:
    """Read the host's state through `_reentrancy_guard.reading()`."""
    @wraps(fn)
    def wrapper(self, *args, **kwargs):
        with self._reentrancy_guard.reading():
            return fn(self, *args, **kwargs)
    return wrapper
