"""
finledger - Ledger Consistency Engine

The rules that keep a personal-finance ledger consistent: transfers,
split transactions, recurring schedules, budgets and goals.

DESIGN PRINCIPLES:
1. Every multi-row mutation is one store transaction
2. Fail early, with the offending field named
3. Balances, budget spend and goal progress are derived, never stored
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "finledger maintainers"
