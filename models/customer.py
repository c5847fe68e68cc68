from sqlalchemy import Column, Integer, String, DateTime, JSON
from datetime import datetime
from database import Base

class Customer(Base):
    """One customer document; its transactions (and their payments) are embedded as JSON"""
    __tablename__ = "customers"

    team_id = Column(String(64), primary_key=True, index=True)
    id = Column(String(64), primary_key=True)
    name = Column(String(200), nullable=False)
    phone_number = Column(String(30), default="", nullable=False)

    # Whole transaction list is rewritten on every mutation
    transactions = Column(JSON, default=list, nullable=False)

    # Timestamps
    date_added = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_edited = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    date_removed = Column(DateTime, nullable=True)  # soft-delete marker

    # Bumped on every write; a stale write raises StaleDataError
    version = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}
