"""
CSV backup format for customers and their transactions.

One row per transaction; a customer without transactions gets a single row
with the transaction columns left blank. Every value is double-quoted with
embedded quotes doubled.
"""
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional
from datetime import datetime
import csv
import io
import logging

from schemas.ledger import CustomerRecord, Timestamp, TransactionStatus

logger = logging.getLogger(__name__)

CSV_HEADER = [
    "CustomerID", "CustomerName", "PhoneNumber", "DateAdded", "LastEdited", "DateRemoved",
    "TransactionID", "TransactionDate", "Product/Service", "Receivable", "Payable", "Status",
]
REQUIRED_COLUMNS = ("CustomerID", "CustomerName")


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def _format_date(value: Optional[datetime]) -> str:
    return value.isoformat() if value else ""


def customers_to_csv(customers: Iterable[CustomerRecord]) -> str:
    buffer = io.StringIO()
    buffer.write(",".join(CSV_HEADER) + "\n")
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")

    for customer in customers:
        customer_cells = [
            customer.id,
            customer.name,
            customer.phone_number or "",
            _format_date(customer.date_added),
            _format_date(customer.last_edited),
            _format_date(customer.date_removed),
        ]
        if not customer.transactions:
            writer.writerow(customer_cells + [""] * 6)
            continue
        for t in customer.transactions:
            writer.writerow(customer_cells + [
                t.id,
                _format_date(t.date),
                t.product_name,
                _format_number(t.receivable),
                _format_number(t.payable),
                t.status.value,
            ])

    # csv ends every row with a newline; the export format does not end the last one
    return buffer.getvalue().rstrip("\n")


class ImportRow(BaseModel):
    """One CSV line after type conversion"""
    customer_id: str = Field(alias="CustomerID", min_length=1)
    customer_name: str = Field(alias="CustomerName", min_length=1)
    phone_number: str = Field("", alias="PhoneNumber")
    date_added: Optional[Timestamp] = Field(None, alias="DateAdded")
    last_edited: Optional[Timestamp] = Field(None, alias="LastEdited")
    date_removed: Optional[Timestamp] = Field(None, alias="DateRemoved")
    transaction_id: str = Field("", alias="TransactionID")
    transaction_date: Optional[Timestamp] = Field(None, alias="TransactionDate")
    product_name: str = Field("", alias="Product/Service")
    receivable: float = Field(0.0, alias="Receivable")
    payable: float = Field(0.0, alias="Payable")
    status: TransactionStatus = Field(TransactionStatus.UNPAID, alias="Status")

    @field_validator("date_added", "last_edited", "date_removed", "transaction_date", mode="before")
    @classmethod
    def blank_date(cls, v):
        return v or None

    @field_validator("receivable", "payable", mode="before")
    @classmethod
    def blank_amount(cls, v):
        return v or 0.0

    @field_validator("status", mode="before")
    @classmethod
    def blank_status(cls, v):
        return (v or TransactionStatus.UNPAID.value).strip().lower() if isinstance(v, str) else v


@dataclass
class ImportParseResult:
    ok: bool
    customers: List[dict] = field(default_factory=list)
    error: Optional[str] = None
    row: Optional[int] = None
    warnings: List[str] = field(default_factory=list)

    @classmethod
    def failure(cls, error: str, row: Optional[int] = None) -> "ImportParseResult":
        return cls(ok=False, error=error, row=row)


def parse_customers_csv(text: str) -> ImportParseResult:
    """Parse a CSV backup into customer documents, stopping at the first bad row"""
    reader = csv.DictReader(io.StringIO(text))
    columns = reader.fieldnames or []
    missing = [c for c in REQUIRED_COLUMNS if c not in columns]
    if missing:
        return ImportParseResult.failure(f"Missing column(s): {', '.join(missing)}", row=1)

    customers: Dict[str, dict] = {}
    warnings: List[str] = []

    for line_no, raw in enumerate(reader, start=2):
        cells = {k: (v or "").strip() for k, v in raw.items() if k is not None}
        if not any(cells.values()):
            continue

        try:
            row = ImportRow.model_validate(cells)
        except PydanticValidationError as e:
            first = e.errors()[0]
            column = first["loc"][0] if first.get("loc") else "row"
            return ImportParseResult.failure(f"Row {line_no}: {column}: {first['msg']}", row=line_no)

        customer = customers.get(row.customer_id)
        if customer is None:
            customer = {
                "id": row.customer_id,
                "name": row.customer_name,
                "phone_number": row.phone_number,
                "date_added": row.date_added,
                "last_edited": row.last_edited,
                "date_removed": row.date_removed,
                "transactions": [],
            }
            customers[row.customer_id] = customer

        if not row.transaction_id:
            continue

        if row.status == TransactionStatus.PARTIAL:
            # Payment history is not part of the CSV, so partial rows come back unpaid
            warnings.append(f"Row {line_no}: partial payments for transaction {row.transaction_id} are not restored")

        transaction = {
            "id": row.transaction_id,
            "product_name": row.product_name,
            "receivable": row.receivable,
            "payable": row.payable,
            "status": row.status.value,
            "payments": [],
        }
        if row.transaction_date:
            transaction["date"] = row.transaction_date
        customer["transactions"].append(transaction)

    if not customers:
        return ImportParseResult.failure("File contains no customers")

    for warning in warnings:
        logger.warning(warning)
    return ImportParseResult(ok=True, customers=list(customers.values()), warnings=warnings)
