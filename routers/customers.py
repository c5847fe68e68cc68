from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from schemas.ledger import CustomerRecord, Transaction
from services.balance import aggregate
from services.customer_feed import customer_feed
from services.ledger_service import LedgerService
from utils.auth_dependency import actor_from_token
from routers.dependencies import get_ledger_service

router = APIRouter(prefix="/api/customers", tags=["Customers"])

class CustomerCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    phone_number: Optional[str] = Field(None, max_length=30)

class CustomerUpdate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    phone_number: Optional[str] = Field(None, max_length=30)

class CustomerResponse(BaseModel):
    id: str
    name: str
    phone_number: str = ""
    date_added: Optional[datetime] = None
    last_edited: Optional[datetime] = None
    date_removed: Optional[datetime] = None
    total_receivable: float = 0.0
    total_payable: float = 0.0
    net_balance: float = 0.0
    transactions: List[Transaction] = []

def build_customer_response(record: CustomerRecord) -> CustomerResponse:
    """Customer document plus its running balances"""
    totals = aggregate(record.transactions)
    return CustomerResponse(
        id=record.id,
        name=record.name,
        phone_number=record.phone_number or "",
        date_added=record.date_added,
        last_edited=record.last_edited,
        date_removed=record.date_removed,
        total_receivable=totals.total_receivable,
        total_payable=totals.total_payable,
        net_balance=totals.net_balance,
        transactions=record.transactions
    )

@router.get("/", response_model=List[CustomerResponse])
def get_customers(
    search: Optional[str] = None,
    sort: str = Query("lastEdited", pattern="^(name|netBalance|lastEdited)$"),
    service: LedgerService = Depends(get_ledger_service)
):
    """Active customers of the caller's team"""
    return [build_customer_response(r) for r in service.list_customers(search=search, sort_key=sort)]

@router.get("/{customer_id}", response_model=CustomerResponse)
def get_customer(customer_id: str, service: LedgerService = Depends(get_ledger_service)):
    return build_customer_response(service.get_customer(customer_id))

@router.post("/", response_model=CustomerResponse, status_code=201)
async def create_customer(request: CustomerCreate, service: LedgerService = Depends(get_ledger_service)):
    record = service.add_customer(request.name, request.phone_number)
    await customer_feed.customer_changed(service.actor.team_id, "customer_created", record.id)
    return build_customer_response(record)

@router.put("/{customer_id}", response_model=CustomerResponse)
async def update_customer(customer_id: str, request: CustomerUpdate, service: LedgerService = Depends(get_ledger_service)):
    record = service.update_customer(customer_id, request.name, request.phone_number)
    await customer_feed.customer_changed(service.actor.team_id, "customer_updated", customer_id)
    return build_customer_response(record)

@router.delete("/{customer_id}")
async def delete_customer(customer_id: str, service: LedgerService = Depends(get_ledger_service)):
    """Soft delete: the customer moves to the archive, its history is kept"""
    service.soft_delete_customer(customer_id)
    await customer_feed.customer_changed(service.actor.team_id, "customer_removed", customer_id)
    return {"message": "Customer has been moved to archives"}

@router.websocket("/ws")
async def customer_changes(websocket: WebSocket, token: str = Query(...)):
    """
    Real-time change feed for the caller's team.
    Authentication is via the token query parameter.
    """
    actor = actor_from_token(token)
    if actor is None or not actor.team_id:
        await websocket.close(code=1008, reason="Invalid authentication token")
        return

    await customer_feed.connect(websocket, actor.team_id)
    try:
        while True:
            # Keep connection alive
            await websocket.receive_text()
            await websocket.send_json({"status": "connected"})
    except WebSocketDisconnect:
        customer_feed.disconnect(websocket, actor.team_id)
