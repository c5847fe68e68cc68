"""
Embedded ledger documents: a customer owns its transactions, a transaction owns its payments
"""
from pydantic import AfterValidator, BaseModel, Field
from typing import Annotated, List, Optional
from datetime import datetime, timezone
import enum
import uuid


def new_id() -> str:
    return uuid.uuid4().hex


def to_naive_utc(value: datetime) -> datetime:
    """Stored timestamps are naive UTC; aware inputs (e.g. ...Z from a browser) are converted"""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


Timestamp = Annotated[datetime, AfterValidator(to_naive_utc)]


class TransactionStatus(str, enum.Enum):
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"


class Payment(BaseModel):
    id: str = Field(default_factory=new_id)
    amount: float
    date: Timestamp = Field(default_factory=datetime.utcnow)


class Transaction(BaseModel):
    id: str = Field(default_factory=new_id)
    product_name: str
    receivable: float = 0.0
    payable: float = 0.0
    date: Timestamp = Field(default_factory=datetime.utcnow)
    status: TransactionStatus = TransactionStatus.UNPAID
    payments: List[Payment] = Field(default_factory=list)


class CustomerRecord(BaseModel):
    """A full customer document as exchanged with import/export and the API"""
    id: str
    name: str
    phone_number: Optional[str] = ""
    date_added: Optional[Timestamp] = None
    last_edited: Optional[Timestamp] = None
    date_removed: Optional[Timestamp] = None
    transactions: List[Transaction] = Field(default_factory=list)


class Actor(BaseModel):
    """Who is performing a mutation, threaded explicitly into every service call"""
    team_id: str
    user_id: str
    display_name: str = ""
