"""
units - Ledger-backed token collaborators

Token implementations that book their balances in a shared Ledger:
- LedgerToken: ERC20-like collateral asset
- StableCoin: owner-restricted mint/burn synthetic dollar
"""

from .token import LedgerToken, INFINITE_ALLOWANCE
from .stablecoin import StableCoin

__all__ = [
    'LedgerToken', 'INFINITE_ALLOWANCE',
    'StableCoin',
]
