from fastapi import Depends
from sqlalchemy.orm import Session
from database import get_db
from schemas.ledger import Actor
from services.ledger_service import LedgerService
from utils.auth_dependency import get_current_actor

def get_ledger_service(
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
) -> LedgerService:
    return LedgerService(db, actor)
