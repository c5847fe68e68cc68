"""
Transaction status lifecycle: unpaid <-> partial <-> paid.

Status is never set directly. Every function here returns a new transaction
whose status has been recomputed from its payments.
"""
from datetime import datetime

from schemas.ledger import Payment, Transaction, TransactionStatus
from services.balance import total_due, total_paid


def derive_status(due: float, paid: float) -> TransactionStatus:
    due, paid = round(due, 2), round(paid, 2)
    if paid >= due:
        return TransactionStatus.PAID
    if paid > 0:
        return TransactionStatus.PARTIAL
    return TransactionStatus.UNPAID


def apply_status(transaction: Transaction) -> Transaction:
    """Return a copy of the transaction with status re-derived from its payments"""
    status = derive_status(total_due(transaction), total_paid(transaction))
    return transaction.model_copy(update={"status": status})


def with_payments(transaction: Transaction, payments) -> Transaction:
    return apply_status(transaction.model_copy(update={"payments": list(payments)}))


def mark_paid(transaction: Transaction, now: datetime = None) -> Transaction:
    """Settle with a single payment of the full due amount; no-op when already paid"""
    current = apply_status(transaction)
    if current.status == TransactionStatus.PAID:
        return current
    payment = Payment(amount=total_due(transaction), date=now or datetime.utcnow())
    return with_payments(transaction, [payment])


def mark_unpaid(transaction: Transaction) -> Transaction:
    return with_payments(transaction, [])


def toggle(transaction: Transaction, now: datetime = None) -> Transaction:
    if apply_status(transaction).status == TransactionStatus.PAID:
        return mark_unpaid(transaction)
    return mark_paid(transaction, now)
