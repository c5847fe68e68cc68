"""
Document-style persistence for customers.

Each customer row carries its whole transaction list; a mutation reads the
row, rebuilds the list and writes it back in one commit.
"""
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.exc import SQLAlchemyError
from typing import List, Iterable, Optional
from datetime import datetime
import logging

from models.customer import Customer
from schemas.ledger import CustomerRecord, Transaction
from services.errors import NotFoundError, PersistenceError

logger = logging.getLogger(__name__)


def load_transactions(customer: Customer) -> List[Transaction]:
    return [Transaction.model_validate(t) for t in (customer.transactions or [])]


def dump_transactions(transactions: Iterable[Transaction]) -> list:
    return [t.model_dump(mode="json") for t in transactions]


def to_record(customer: Customer) -> CustomerRecord:
    return CustomerRecord(
        id=customer.id,
        name=customer.name,
        phone_number=customer.phone_number or "",
        date_added=customer.date_added,
        last_edited=customer.last_edited,
        date_removed=customer.date_removed,
        transactions=load_transactions(customer),
    )


class CustomerStore:
    def __init__(self, db: Session):
        self.db = db

    def get_customer(self, team_id: str, customer_id: str, include_removed: bool = False) -> Customer:
        try:
            customer = self.db.query(Customer).filter(
                Customer.team_id == team_id,
                Customer.id == customer_id
            ).first()
        except SQLAlchemyError as e:
            logger.error(f"Failed to read customer {customer_id}: {e}")
            raise PersistenceError("Could not read customer") from e

        if customer is None or (customer.date_removed is not None and not include_removed):
            raise NotFoundError(f"Customer {customer_id} not found")
        return customer

    def list_customers(self, team_id: str, include_removed: bool = False) -> List[Customer]:
        try:
            query = self.db.query(Customer).filter(Customer.team_id == team_id)
            if not include_removed:
                query = query.filter(Customer.date_removed.is_(None))
            return query.order_by(Customer.last_edited.desc()).all()
        except SQLAlchemyError as e:
            logger.error(f"Failed to list customers for team {team_id}: {e}")
            raise PersistenceError("Could not list customers") from e

    def add_customer(self, customer: Customer) -> Customer:
        self.db.add(customer)
        self._commit(f"add customer {customer.id}")
        self.db.refresh(customer)
        return customer

    def set_customer(self, customer: Customer, transactions: Optional[List[Transaction]] = None) -> Customer:
        """Write the customer back, replacing its transaction list when one is given"""
        if transactions is not None:
            customer.transactions = dump_transactions(transactions)
        customer.last_edited = datetime.utcnow()
        self._commit(f"write customer {customer.id}")
        self.db.refresh(customer)
        return customer

    def upsert_many(self, team_id: str, records: List[CustomerRecord]) -> int:
        """Insert or fully overwrite each record by id, all in one commit"""
        now = datetime.utcnow()
        try:
            for record in records:
                customer = self.db.query(Customer).filter(
                    Customer.team_id == team_id,
                    Customer.id == record.id
                ).first()
                if customer is None:
                    customer = Customer(team_id=team_id, id=record.id)
                    self.db.add(customer)
                customer.name = record.name
                customer.phone_number = record.phone_number or ""
                customer.date_added = record.date_added or now
                customer.last_edited = record.last_edited or now
                customer.date_removed = record.date_removed
                customer.transactions = dump_transactions(record.transactions)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to stage import for team {team_id}: {e}")
            raise PersistenceError("Could not import customers") from e

        self._commit(f"import {len(records)} customers")
        return len(records)

    def _commit(self, what: str):
        try:
            self.db.commit()
        except StaleDataError as e:
            self.db.rollback()
            logger.warning(f"Concurrent modification during {what}: {e}")
            raise PersistenceError("Customer was modified concurrently, reload and retry") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to {what}: {e}")
            raise PersistenceError("Could not save changes") from e
