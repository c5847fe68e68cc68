"""
Team activity log endpoints
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional
from datetime import datetime
from pydantic import BaseModel
from config import settings
from database import get_db
from schemas.ledger import Actor
from services.activity_recorder import ActivityRecorder
from utils.auth_dependency import get_current_actor
import json

router = APIRouter(prefix="/api/activity", tags=["Activity"])

class ActivityLogResponse(BaseModel):
    id: int
    action: str
    user_id: str
    user_display_name: str
    details: Optional[Dict[str, Any]] = None
    timestamp: datetime

@router.get("/", response_model=List[ActivityLogResponse])
def get_activity_logs(
    search: Optional[str] = None,
    limit: int = Query(settings.activity_log_limit, ge=1, le=5000),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """Activity of the caller's team, newest first"""
    logs = ActivityRecorder.list_logs(db, actor.team_id, search=search, limit=limit)
    return [
        ActivityLogResponse(
            id=log.id,
            action=log.action,
            user_id=log.user_id,
            user_display_name=log.user_display_name,
            details=json.loads(log.details) if log.details else None,
            timestamp=log.timestamp
        )
        for log in logs
    ]

@router.delete("/")
def clear_activity_logs(db: Session = Depends(get_db), actor: Actor = Depends(get_current_actor)):
    deleted = ActivityRecorder.clear_logs(db, actor.team_id)
    return {"message": "All activity logs have been deleted", "deleted": deleted}
