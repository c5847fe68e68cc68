"""
Read-side summaries: dashboard totals, top customers and outstanding statements.

Statements use the outstanding snapshot (unpaid and partial transactions,
by remaining balance). The dashboard uses running balances.
"""
from dataclasses import dataclass
from typing import Iterable, List, Sequence
from datetime import datetime

from schemas.ledger import CustomerRecord
from services.balance import aggregate, aggregate_outstanding, net_balance, transaction_balance
from utils.money import Currency, format_currency


@dataclass(frozen=True)
class TeamSummary:
    total_receivables: float
    total_payables: float
    net_flow: float
    active_customer_count: int


@dataclass(frozen=True)
class CustomerBalanceRow:
    customer_id: str
    name: str
    balance: float


@dataclass(frozen=True)
class StatementLine:
    transaction_id: str
    date: datetime
    product_name: str
    receivable: str
    payable: str
    balance: str
    status: str


@dataclass(frozen=True)
class CustomerStatement:
    customer_id: str
    name: str
    phone_number: str
    statement_date: datetime
    total_receivable: str
    total_payable: str
    outstanding_balance: str
    net_balance: float
    lines: Sequence[StatementLine]


@dataclass(frozen=True)
class SummaryStatementRow:
    customer_id: str
    name: str
    total_receivable: str
    total_payable: str
    net_balance: str


def _active(customers: Iterable[CustomerRecord]) -> List[CustomerRecord]:
    return [c for c in customers if c.date_removed is None]


def build_team_summary(customers: Iterable[CustomerRecord]) -> TeamSummary:
    active = _active(customers)
    totals = aggregate(t for c in active for t in c.transactions)
    return TeamSummary(
        total_receivables=totals.total_receivable,
        total_payables=totals.total_payable,
        net_flow=totals.net_balance,
        active_customer_count=len(active),
    )


def top_customers_by_balance(customers: Iterable[CustomerRecord], limit: int = 5) -> List[CustomerBalanceRow]:
    rows = [
        CustomerBalanceRow(customer_id=c.id, name=c.name, balance=net_balance(c.transactions))
        for c in _active(customers)
    ]
    rows.sort(key=lambda row: row.balance, reverse=True)
    return rows[:limit]


def build_customer_statement(customer: CustomerRecord, currency: Currency = Currency.USD) -> CustomerStatement:
    totals = aggregate_outstanding(customer.transactions)
    lines = [
        StatementLine(
            transaction_id=t.id,
            date=t.date,
            product_name=t.product_name,
            receivable=format_currency(t.receivable, currency) if t.receivable > 0 else "-",
            payable=format_currency(t.payable, currency) if t.payable > 0 else "-",
            balance=format_currency(transaction_balance(t), currency),
            status=t.status.value,
        )
        for t in customer.transactions
    ]
    return CustomerStatement(
        customer_id=customer.id,
        name=customer.name,
        phone_number=customer.phone_number or "",
        statement_date=datetime.utcnow(),
        total_receivable=format_currency(totals.total_receivable, currency),
        total_payable=format_currency(totals.total_payable, currency),
        outstanding_balance=format_currency(totals.net_balance, currency),
        net_balance=totals.net_balance,
        lines=lines,
    )


def build_summary_statement(customers: Iterable[CustomerRecord], currency: Currency = Currency.USD) -> List[SummaryStatementRow]:
    rows = []
    for c in _active(customers):
        totals = aggregate_outstanding(c.transactions)
        rows.append(SummaryStatementRow(
            customer_id=c.id,
            name=c.name,
            total_receivable=format_currency(totals.total_receivable, currency),
            total_payable=format_currency(totals.total_payable, currency),
            net_balance=format_currency(totals.net_balance, currency),
        ))
    return rows
