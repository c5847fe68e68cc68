"""
Ledger mutations.

Every operation is one read-modify-write of a single customer document:
load the customer, rebuild its transaction list with statuses re-derived
from payments, write it back (bumping ``last_edited``), then record the
activity. Validation always runs before anything is written.
"""
from sqlalchemy.orm import Session
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
from datetime import datetime
from pydantic import ValidationError as PydanticValidationError
import math
import logging

from models.customer import Customer
from schemas.ledger import Actor, CustomerRecord, Payment, Transaction, TransactionStatus, new_id, to_naive_utc
from services import status_engine
from services.activity_recorder import ActivityRecorder
from services.balance import net_balance, total_due, total_paid, transaction_balance
from services.customer_store import CustomerStore, load_transactions, to_record
from services.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

SORT_KEYS = ("name", "netBalance", "lastEdited")
BULK_STATUSES = (TransactionStatus.PAID, TransactionStatus.UNPAID)


def _cents(value: float) -> float:
    return round(value, 2)


def validate_amounts(receivable: float, payable: float, allow_zero: bool = False):
    """A transaction is either a receivable or a payable, never both"""
    for label, value in (("Receivable", receivable), ("Payable", payable)):
        if value is None or not math.isfinite(value):
            raise ValidationError(f"{label} must be a number")
        if value < 0:
            raise ValidationError(f"{label} cannot be negative")
    if receivable > 0 and payable > 0:
        raise ValidationError("A transaction cannot be both receivable and payable")
    if not allow_zero and receivable == 0 and payable == 0:
        raise ValidationError("Amount must be a positive number")


class LedgerService:
    def __init__(self, db: Session, actor: Actor):
        self.db = db
        self.actor = actor
        self.store = CustomerStore(db)

    # --- helpers ---

    def _record(self, action: str, details: Dict[str, Any]):
        ActivityRecorder.record(
            self.actor.team_id,
            self.actor.user_id,
            self.actor.display_name,
            action,
            details,
            db=self.db
        )

    def _load(self, customer_id: str) -> Tuple[Customer, List[Transaction]]:
        customer = self.store.get_customer(self.actor.team_id, customer_id)
        return customer, load_transactions(customer)

    @staticmethod
    def _find(transactions: List[Transaction], transaction_id: str) -> Transaction:
        for t in transactions:
            if t.id == transaction_id:
                return t
        raise NotFoundError(f"Transaction {transaction_id} not found")

    def _replace_one(
        self,
        customer_id: str,
        transaction_id: str,
        change: Callable[[Transaction], Transaction]
    ) -> Tuple[Customer, Transaction]:
        """Apply change to one transaction and write the customer back"""
        customer, transactions = self._load(customer_id)
        before = self._find(transactions, transaction_id)
        after = status_engine.apply_status(change(before))
        updated = [after if t.id == transaction_id else t for t in transactions]
        self.store.set_customer(customer, updated)
        return customer, after

    # --- customers ---

    def get_customer(self, customer_id: str) -> CustomerRecord:
        return to_record(self.store.get_customer(self.actor.team_id, customer_id))

    def team_records(self, include_removed: bool = False) -> List[CustomerRecord]:
        """Every customer document of the team, for reports and exports"""
        return [to_record(c) for c in self.store.list_customers(self.actor.team_id, include_removed=include_removed)]

    def list_customers(self, search: Optional[str] = None, sort_key: str = "lastEdited") -> List[CustomerRecord]:
        if sort_key not in SORT_KEYS:
            raise ValidationError(f"Unknown sort key: {sort_key}")

        records = self.team_records()
        if search:
            needle = search.lower()
            records = [r for r in records if needle in r.name.lower()]

        if sort_key == "name":
            records.sort(key=lambda r: r.name.lower())
        elif sort_key == "netBalance":
            records.sort(key=lambda r: net_balance(r.transactions), reverse=True)
        else:
            records.sort(key=lambda r: r.last_edited or datetime.min, reverse=True)
        return records

    def add_customer(self, name: str, phone_number: Optional[str] = None) -> CustomerRecord:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Customer name is required")

        now = datetime.utcnow()
        customer = Customer(
            team_id=self.actor.team_id,
            id=new_id(),
            name=name,
            phone_number=phone_number or "",
            transactions=[],
            date_added=now,
            last_edited=now
        )
        self.store.add_customer(customer)
        self._record("Created Customer", {"customerName": name, "customerId": customer.id})
        logger.info(f"Customer {customer.id} created in team {self.actor.team_id}")
        return to_record(customer)

    def update_customer(self, customer_id: str, name: str, phone_number: Optional[str] = None) -> CustomerRecord:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Customer name is required")

        customer = self.store.get_customer(self.actor.team_id, customer_id)
        customer.name = name
        customer.phone_number = phone_number or ""
        self.store.set_customer(customer)
        self._record("Updated Customer", {"customerName": name, "customerId": customer_id})
        return to_record(customer)

    def soft_delete_customer(self, customer_id: str) -> CustomerRecord:
        customer = self.store.get_customer(self.actor.team_id, customer_id)
        customer.date_removed = datetime.utcnow()
        self.store.set_customer(customer)
        self._record("Deleted Customer", {"customerName": customer.name, "customerId": customer_id})
        return to_record(customer)

    # --- transactions ---

    def add_transaction(self, customer_id: str, product_name: str, receivable: float = 0.0, payable: float = 0.0) -> Transaction:
        product_name = (product_name or "").strip()
        if not product_name:
            raise ValidationError("Product/service name is required")
        validate_amounts(receivable, payable)

        customer, transactions = self._load(customer_id)
        transaction = status_engine.apply_status(Transaction(
            product_name=product_name,
            receivable=receivable,
            payable=payable,
            payments=[]
        ))
        self.store.set_customer(customer, transactions + [transaction])

        self._record("Added Transaction", {
            "customerName": customer.name,
            "customerId": customer_id,
            "product": product_name,
            "amount": receivable or payable,
            "type": "receivable" if receivable > 0 else "payable"
        })
        return transaction

    def update_transaction(
        self,
        customer_id: str,
        transaction_id: str,
        product_name: Optional[str] = None,
        receivable: Optional[float] = None,
        payable: Optional[float] = None,
        date: Optional[datetime] = None
    ) -> Transaction:
        """Edit a transaction's own fields; payments are kept and status re-derived"""
        customer, transactions = self._load(customer_id)
        current = self._find(transactions, transaction_id)

        changes: Dict[str, Any] = {}
        if product_name is not None:
            product_name = product_name.strip()
            if not product_name:
                raise ValidationError("Product/service name is required")
            changes["product_name"] = product_name
        if receivable is not None:
            changes["receivable"] = receivable
        if payable is not None:
            changes["payable"] = payable
        if date is not None:
            changes["date"] = to_naive_utc(date)

        edited = current.model_copy(update=changes)
        validate_amounts(edited.receivable, edited.payable)
        if _cents(total_paid(edited)) > _cents(total_due(edited)):
            raise ValidationError("Amount cannot be less than what has already been paid")

        edited = status_engine.apply_status(edited)
        self.store.set_customer(customer, [edited if t.id == transaction_id else t for t in transactions])

        self._record("Updated Transaction", {
            "customerName": customer.name,
            "customerId": customer_id,
            "product": edited.product_name,
            "transactionId": transaction_id
        })
        return edited

    def delete_transaction(self, customer_id: str, transaction_id: str):
        customer, transactions = self._load(customer_id)
        removed = self._find(transactions, transaction_id)
        self.store.set_customer(customer, [t for t in transactions if t.id != transaction_id])

        self._record("Deleted Transaction", {
            "customerName": customer.name,
            "customerId": customer_id,
            "product": removed.product_name,
            "transactionId": transaction_id
        })

    def toggle_transaction_status(self, customer_id: str, transaction_id: str) -> Transaction:
        _, after = self._replace_one(customer_id, transaction_id, status_engine.toggle)
        self._record(f"Toggled transaction status to {after.status.value}", {
            "customerId": customer_id,
            "transactionId": transaction_id
        })
        return after

    # --- payments ---

    def add_payment(self, customer_id: str, transaction_id: str, amount: float) -> Transaction:
        if amount is None or not math.isfinite(amount) or amount <= 0:
            raise ValidationError("Payment amount must be a positive number")

        customer, transactions = self._load(customer_id)
        current = self._find(transactions, transaction_id)
        remaining = _cents(transaction_balance(current))
        if amount > remaining:
            raise ValidationError(f"Payment cannot exceed the remaining balance of {remaining:.2f}")

        payment = Payment(id=new_id(), amount=amount, date=datetime.utcnow())
        updated = status_engine.with_payments(current, current.payments + [payment])
        self.store.set_customer(customer, [updated if t.id == transaction_id else t for t in transactions])

        self._record("Added Payment", {
            "customerId": customer_id,
            "transactionId": transaction_id,
            "amount": amount
        })
        return updated

    def delete_payment(self, customer_id: str, transaction_id: str, payment_id: str) -> Transaction:
        def drop_payment(t: Transaction) -> Transaction:
            if not any(p.id == payment_id for p in t.payments):
                raise NotFoundError(f"Payment {payment_id} not found")
            return status_engine.with_payments(t, [p for p in t.payments if p.id != payment_id])

        _, after = self._replace_one(customer_id, transaction_id, drop_payment)
        self._record("Deleted Payment", {
            "customerId": customer_id,
            "transactionId": transaction_id,
            "paymentId": payment_id
        })
        return after

    # --- bulk ---

    def bulk_update_transaction_status(self, customer_id: str, transaction_ids: Iterable[str], status: str) -> CustomerRecord:
        """Mark many transactions paid or unpaid; unknown ids are skipped"""
        try:
            target = TransactionStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown status: {status}")
        if target not in BULK_STATUSES:
            raise ValidationError("Bulk status must be 'paid' or 'unpaid'")

        ids = set(transaction_ids)
        customer, transactions = self._load(customer_id)
        now = datetime.utcnow()
        matched = 0
        updated = []
        for t in transactions:
            if t.id in ids:
                matched += 1
                t = status_engine.mark_paid(t, now) if target == TransactionStatus.PAID else status_engine.mark_unpaid(t)
            updated.append(t)

        self.store.set_customer(customer, updated)
        self._record(f"Bulk updated {matched} transactions to {target.value}", {
            "customerId": customer_id,
            "transactionIds": sorted(ids),
            "status": target.value
        })
        return to_record(customer)

    def bulk_delete_transactions(self, customer_id: str, transaction_ids: Iterable[str]) -> CustomerRecord:
        ids = set(transaction_ids)
        customer, transactions = self._load(customer_id)
        remaining = [t for t in transactions if t.id not in ids]
        deleted = len(transactions) - len(remaining)

        self.store.set_customer(customer, remaining)
        self._record(f"Bulk deleted {deleted} transactions", {
            "customerId": customer_id,
            "transactionIds": sorted(ids)
        })
        return to_record(customer)

    # --- import ---

    def import_customers(self, records: Any) -> int:
        """Upsert a batch of customer documents; any malformed record rejects the whole batch"""
        customers = normalize_import(records)
        count = self.store.upsert_many(self.actor.team_id, customers)
        self._record(f"Imported {count} customers", {"count": count})
        logger.info(f"Imported {count} customers into team {self.actor.team_id}")
        return count


def _normalize_transaction(t: Transaction, where: str) -> Transaction:
    validate_amounts(t.receivable, t.payable, allow_zero=True)
    for p in t.payments:
        if not math.isfinite(p.amount) or p.amount <= 0:
            raise ValidationError(f"{where}: payment amounts must be positive")
    if _cents(total_paid(t)) > _cents(total_due(t)):
        raise ValidationError(f"{where}: payments exceed the amount due")

    # A paid row without payment history gets one synthesized payment so
    # that status stays reconstructible from payments
    if t.status == TransactionStatus.PAID and not t.payments:
        return status_engine.mark_paid(t, t.date)
    return status_engine.apply_status(t)


def normalize_import(records: Any) -> List[CustomerRecord]:
    if not isinstance(records, (list, tuple)) or len(records) == 0:
        raise ValidationError("Invalid or empty data format.")

    customers: List[CustomerRecord] = []
    seen = set()
    for index, raw in enumerate(records):
        if isinstance(raw, CustomerRecord):
            raw = raw.model_dump()
        if not isinstance(raw, dict):
            raise ValidationError(f"Record {index + 1}: not a customer object")
        if not raw.get("id") or not raw.get("name"):
            raise ValidationError(f"Record {index + 1}: customer id and name are required")
        if not isinstance(raw.get("transactions"), (list, tuple)):
            raise ValidationError(f"Record {index + 1}: transactions must be a list")

        try:
            record = CustomerRecord.model_validate(raw)
        except PydanticValidationError as e:
            raise ValidationError(f"Record {index + 1}: {e.errors()[0]['msg']}") from e

        if record.id in seen:
            raise ValidationError(f"Record {index + 1}: duplicate customer id {record.id}")
        seen.add(record.id)

        transaction_ids = set()
        normalized = []
        for t in record.transactions:
            if t.id in transaction_ids:
                raise ValidationError(f"Record {index + 1}: duplicate transaction id {t.id}")
            transaction_ids.add(t.id)
            normalized.append(_normalize_transaction(t, f"Record {index + 1}, transaction {t.id}"))

        customers.append(record.model_copy(update={"transactions": normalized}))
    return customers
