"""
Balance calculations over transactions and their payments.

Two aggregation modes exist:

* running balance (``aggregate``): every transaction contributes its
  remaining balance, whatever its status.
* outstanding snapshot (``aggregate_outstanding``): only ``unpaid`` and
  ``partial`` transactions contribute, again by remaining balance. Used by
  statements.
"""
from dataclasses import dataclass
from typing import Iterable

from schemas.ledger import Transaction, TransactionStatus


@dataclass(frozen=True)
class LedgerTotals:
    total_receivable: float
    total_payable: float

    @property
    def net_balance(self) -> float:
        return round(self.total_receivable - self.total_payable, 2)


@dataclass(frozen=True)
class AccountStatus:
    net_balance: float
    account_status: str  # Credit, Debit or Settled


def total_due(transaction: Transaction) -> float:
    return transaction.receivable if transaction.receivable > 0 else transaction.payable


def total_paid(transaction: Transaction) -> float:
    """Sum of payments, in cents so that 10.1 + 20.2 + 30.3 settles 60.6"""
    return round(sum(p.amount for p in transaction.payments), 2)


def transaction_balance(transaction: Transaction) -> float:
    """Remaining balance; not clamped, callers prevent over-payment"""
    return round(total_due(transaction) - total_paid(transaction), 2)


def aggregate(transactions: Iterable[Transaction]) -> LedgerTotals:
    receivable = 0.0
    payable = 0.0
    for t in transactions:
        if t.receivable > 0:
            receivable += transaction_balance(t)
        elif t.payable > 0:
            payable += transaction_balance(t)
    return LedgerTotals(total_receivable=round(receivable, 2), total_payable=round(payable, 2))


def aggregate_outstanding(transactions: Iterable[Transaction]) -> LedgerTotals:
    return aggregate(
        t for t in transactions
        if t.status in (TransactionStatus.UNPAID, TransactionStatus.PARTIAL)
    )


def net_balance(transactions: Iterable[Transaction]) -> float:
    return aggregate(transactions).net_balance


def analyze_account_status(receivable: float, payable: float) -> AccountStatus:
    balance = receivable - payable
    if balance > 0:
        status = "Credit"
    elif balance < 0:
        status = "Debit"
    else:
        status = "Settled"
    return AccountStatus(net_balance=balance, account_status=status)
