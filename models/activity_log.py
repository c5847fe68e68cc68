from sqlalchemy import Column, Integer, String, DateTime, Text
from datetime import datetime
from database import Base

class ActivityLog(Base):
    """Audit trail of ledger mutations, one row per action"""
    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, index=True)
    team_id = Column(String(64), nullable=False, index=True)
    user_id = Column(String(128), nullable=False, index=True)
    user_display_name = Column(String(200), nullable=False)
    action = Column(String(200), nullable=False, index=True)  # Added Payment, Deleted Transaction, etc.
    details = Column(Text, nullable=True)  # JSON string for additional data
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
