from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from schemas.ledger import Transaction, TransactionStatus
from services.customer_feed import customer_feed
from services.ledger_service import LedgerService
from routers.customers import CustomerResponse, build_customer_response
from routers.dependencies import get_ledger_service

router = APIRouter(prefix="/api/customers/{customer_id}/transactions", tags=["Transactions"])

class TransactionCreate(BaseModel):
    product_name: str = Field(..., min_length=1, max_length=200)
    receivable: float = Field(0.0, ge=0)
    payable: float = Field(0.0, ge=0)

class TransactionUpdate(BaseModel):
    """Editable fields only; status and payments are never taken from the client"""
    product_name: Optional[str] = Field(None, min_length=1, max_length=200)
    receivable: Optional[float] = Field(None, ge=0)
    payable: Optional[float] = Field(None, ge=0)
    date: Optional[datetime] = None

class PaymentCreate(BaseModel):
    amount: float

class BulkStatusUpdate(BaseModel):
    transaction_ids: List[str]
    status: TransactionStatus

class BulkDelete(BaseModel):
    transaction_ids: List[str]

@router.post("/", response_model=Transaction, status_code=201)
async def add_transaction(customer_id: str, request: TransactionCreate, service: LedgerService = Depends(get_ledger_service)):
    transaction = service.add_transaction(customer_id, request.product_name, request.receivable, request.payable)
    await customer_feed.customer_changed(service.actor.team_id, "transaction_added", customer_id)
    return transaction

@router.put("/{transaction_id}", response_model=Transaction)
async def update_transaction(
    customer_id: str,
    transaction_id: str,
    request: TransactionUpdate,
    service: LedgerService = Depends(get_ledger_service)
):
    transaction = service.update_transaction(
        customer_id,
        transaction_id,
        product_name=request.product_name,
        receivable=request.receivable,
        payable=request.payable,
        date=request.date
    )
    await customer_feed.customer_changed(service.actor.team_id, "transaction_updated", customer_id)
    return transaction

@router.delete("/{transaction_id}")
async def delete_transaction(customer_id: str, transaction_id: str, service: LedgerService = Depends(get_ledger_service)):
    service.delete_transaction(customer_id, transaction_id)
    await customer_feed.customer_changed(service.actor.team_id, "transaction_deleted", customer_id)
    return {"message": "Transaction deleted"}

@router.post("/{transaction_id}/toggle", response_model=Transaction)
async def toggle_transaction_status(customer_id: str, transaction_id: str, service: LedgerService = Depends(get_ledger_service)):
    """Quickly mark a transaction fully paid, or clear its payments if it already is"""
    transaction = service.toggle_transaction_status(customer_id, transaction_id)
    await customer_feed.customer_changed(service.actor.team_id, "transaction_updated", customer_id)
    return transaction

@router.post("/{transaction_id}/payments", response_model=Transaction, status_code=201)
async def add_payment(
    customer_id: str,
    transaction_id: str,
    request: PaymentCreate,
    service: LedgerService = Depends(get_ledger_service)
):
    transaction = service.add_payment(customer_id, transaction_id, request.amount)
    await customer_feed.customer_changed(service.actor.team_id, "payment_added", customer_id)
    return transaction

@router.delete("/{transaction_id}/payments/{payment_id}", response_model=Transaction)
async def delete_payment(
    customer_id: str,
    transaction_id: str,
    payment_id: str,
    service: LedgerService = Depends(get_ledger_service)
):
    transaction = service.delete_payment(customer_id, transaction_id, payment_id)
    await customer_feed.customer_changed(service.actor.team_id, "payment_deleted", customer_id)
    return transaction

@router.post("/bulk-status", response_model=CustomerResponse)
async def bulk_update_status(customer_id: str, request: BulkStatusUpdate, service: LedgerService = Depends(get_ledger_service)):
    """Mark several transactions paid or unpaid; ids that do not exist are skipped"""
    record = service.bulk_update_transaction_status(customer_id, request.transaction_ids, request.status.value)
    await customer_feed.customer_changed(service.actor.team_id, "transactions_bulk_updated", customer_id)
    return build_customer_response(record)

@router.post("/bulk-delete", response_model=CustomerResponse)
async def bulk_delete(customer_id: str, request: BulkDelete, service: LedgerService = Depends(get_ledger_service)):
    record = service.bulk_delete_transactions(customer_id, request.transaction_ids)
    await customer_feed.customer_changed(service.actor.team_id, "transactions_bulk_deleted", customer_id)
    return build_customer_response(record)
