"""
Activity log for ledger mutations
"""
from sqlalchemy.orm import Session
from sqlalchemy import desc
from models.activity_log import ActivityLog
from utils.sanitizer import DataSanitizer
import database
import json
import logging
from typing import Optional, Dict, Any, List

logger = logging.getLogger(__name__)

class ActivityRecorder:
    """Records who did what to the ledger; never lets a logging failure reach the caller"""

    @staticmethod
    def record(
        team_id: str,
        user_id: str,
        user_display_name: str,
        action: str,
        details: Optional[Dict[str, Any]] = None,
        db: Optional[Session] = None
    ) -> Optional[ActivityLog]:
        if not team_id or not user_id or not user_display_name:
            return None

        should_close = False
        if db is None:
            if database.SessionLocal is None:
                logger.warning(f"Activity not recorded, database not configured: {action}")
                return None
            db = database.SessionLocal()
            should_close = True

        try:
            sanitized_details = DataSanitizer.sanitize_dict(details) if details else None
            entry = ActivityLog(
                team_id=team_id,
                user_id=user_id,
                user_display_name=user_display_name,
                action=action,
                details=json.dumps(sanitized_details) if sanitized_details else None
            )
            db.add(entry)
            db.commit()
            return entry
        except Exception as e:
            # Audit logging must not fail the mutation that triggered it
            logger.error(f"Failed to record activity '{action}' for team {team_id}: {e}")
            db.rollback()
            return None
        finally:
            if should_close:
                db.close()

    @staticmethod
    def list_logs(db: Session, team_id: str, search: Optional[str] = None, limit: int = 500) -> List[ActivityLog]:
        """Newest first; search matches user name, action or details, case-insensitively"""
        logs = db.query(ActivityLog).filter(
            ActivityLog.team_id == team_id
        ).order_by(desc(ActivityLog.timestamp), desc(ActivityLog.id)).all()

        if search:
            needle = search.lower()
            logs = [
                log for log in logs
                if needle in log.user_display_name.lower()
                or needle in log.action.lower()
                or needle in (log.details or "").lower()
            ]
        return logs[:limit]

    @staticmethod
    def clear_logs(db: Session, team_id: str) -> int:
        deleted = db.query(ActivityLog).filter(ActivityLog.team_id == team_id).delete(synchronize_session=False)
        db.commit()
        logger.info(f"Cleared {deleted} activity logs for team {team_id}")
        return deleted
