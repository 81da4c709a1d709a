"""
Account Balance Resolver

The current balance of an account is never stored. It is replayed from
the opening balance and the account's non-transfer history:

    balance = opening + sum(amount of non-transfer rows on the account)

Income rows are positive and expense rows negative, so the sum is a
plain signed sum.

DESIGN DECISION: Transfer legs are NOT replayed. An account with no
income or expense rows always resolves to its opening balance, whatever
transfers touched it.
"""

from decimal import Decimal
from typing import Iterable

from finledger.amounts import ZERO
from finledger.models.ledger import Account, Transaction


def balance_effect(account: Account, transaction: Transaction) -> Decimal:
    """Signed effect of one transaction on one account's resolved balance."""
    if transaction.is_transfer or transaction.account_id != account.id:
        return ZERO
    return transaction.amount


def resolve_balance(account: Account, transactions: Iterable[Transaction]) -> Decimal:
    """
    Replay `transactions` onto the opening balance.

    Rows on other accounts are ignored, so the caller may pass a wider
    history than strictly needed.

    Example:
        opening 1000, expense -50, income +1000, transfer out 200 -> 1950
    """
    balance = account.balance
    for transaction in transactions:
        balance += balance_effect(account, transaction)
    return balance
