"""
Pocket Ledger - Source Package

A personal-finance ledger: every identity owns one spendable account and
any number of savings goals. Money moves through deposits, withdrawals
and peer transfers.

DESIGN PRINCIPLES:
1. Balances never go negative
2. Every money movement is re-authenticated with a secret
3. A retried request never moves money twice
4. Every movement leaves an immutable record
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Pocket Ledger Team"
