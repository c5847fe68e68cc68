from fastapi import APIRouter, Depends, HTTPException, Query, UploadFile, File
from fastapi.responses import Response
from pydantic import BaseModel
from typing import Any, List, Optional
from datetime import datetime
from config import settings
from services import reports
from services.balance import analyze_account_status
from services.csv_io import customers_to_csv, parse_customers_csv
from services.customer_feed import customer_feed
from services.ledger_service import LedgerService
from utils.money import Currency
from routers.dependencies import get_ledger_service
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ledger", tags=["Ledger"])

class AccountStatusRequest(BaseModel):
    receivable: float
    payable: float

class AccountStatusResponse(BaseModel):
    net_balance: float
    account_status: str

class TeamSummaryResponse(BaseModel):
    total_receivables: float
    total_payables: float
    net_flow: float
    active_customer_count: int

class CustomerBalanceItem(BaseModel):
    customer_id: str
    name: str
    balance: float

class StatementLineResponse(BaseModel):
    transaction_id: str
    date: datetime
    product_name: str
    receivable: str
    payable: str
    balance: str
    status: str

class CustomerStatementResponse(BaseModel):
    customer_id: str
    name: str
    phone_number: str
    statement_date: datetime
    total_receivable: str
    total_payable: str
    outstanding_balance: str
    net_balance: float
    lines: List[StatementLineResponse]

class SummaryStatementItem(BaseModel):
    customer_id: str
    name: str
    total_receivable: str
    total_payable: str
    net_balance: str

class ImportResponse(BaseModel):
    imported: int
    warnings: List[str] = []

def _csv_response(content: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )

@router.post("/account-status", response_model=AccountStatusResponse)
def account_status(request: AccountStatusRequest):
    """Classify a receivable/payable pair as Credit, Debit or Settled"""
    result = analyze_account_status(request.receivable, request.payable)
    return AccountStatusResponse(net_balance=result.net_balance, account_status=result.account_status)

@router.get("/summary", response_model=TeamSummaryResponse)
def team_summary(service: LedgerService = Depends(get_ledger_service)):
    summary = reports.build_team_summary(service.team_records())
    return TeamSummaryResponse(**summary.__dict__)

@router.get("/top-customers", response_model=List[CustomerBalanceItem])
def top_customers(limit: int = Query(5, ge=1, le=50), service: LedgerService = Depends(get_ledger_service)):
    rows = reports.top_customers_by_balance(service.team_records(), limit=limit)
    return [CustomerBalanceItem(**row.__dict__) for row in rows]

@router.get("/statement", response_model=List[SummaryStatementItem])
def summary_statement(
    currency: Optional[Currency] = None,
    service: LedgerService = Depends(get_ledger_service)
):
    """Outstanding totals for every active customer"""
    rows = reports.build_summary_statement(service.team_records(), currency or settings.default_currency)
    return [SummaryStatementItem(**row.__dict__) for row in rows]

@router.get("/customers/{customer_id}/statement", response_model=CustomerStatementResponse)
def customer_statement(
    customer_id: str,
    currency: Optional[Currency] = None,
    service: LedgerService = Depends(get_ledger_service)
):
    statement = reports.build_customer_statement(
        service.get_customer(customer_id),
        currency or settings.default_currency
    )
    return CustomerStatementResponse(
        **{k: v for k, v in statement.__dict__.items() if k != "lines"},
        lines=[StatementLineResponse(**line.__dict__) for line in statement.lines]
    )

@router.get("/export")
def export_all(service: LedgerService = Depends(get_ledger_service)):
    """Full team backup, archived customers included"""
    return _csv_response(customers_to_csv(service.team_records(include_removed=True)), "ledger-backup.csv")

@router.get("/customers/{customer_id}/export")
def export_customer(customer_id: str, service: LedgerService = Depends(get_ledger_service)):
    record = service.get_customer(customer_id)
    return _csv_response(customers_to_csv([record]), f"{record.name}-transactions.csv")

@router.post("/import", response_model=ImportResponse)
async def import_customers(records: List[Any], service: LedgerService = Depends(get_ledger_service)):
    """Upsert customer documents by id; one bad record rejects the whole batch"""
    count = service.import_customers(records)
    await customer_feed.customer_changed(service.actor.team_id, "customers_imported")
    return ImportResponse(imported=count)

@router.post("/import/csv", response_model=ImportResponse)
async def import_customers_csv(file: UploadFile = File(...), service: LedgerService = Depends(get_ledger_service)):
    content = await file.read()
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="File must be UTF-8 encoded CSV")

    result = parse_customers_csv(text)
    if not result.ok:
        logger.warning(f"CSV import rejected for team {service.actor.team_id}: {result.error}")
        raise HTTPException(status_code=400, detail=result.error)

    count = service.import_customers(result.customers)
    await customer_feed.customer_changed(service.actor.team_id, "customers_imported")
    return ImportResponse(imported=count, warnings=result.warnings)
