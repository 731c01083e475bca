"""
Growth ledger: append-only signed point entries per user. Never updated.
"""
from sqlalchemy import Column, Integer, Text, DateTime
from sqlalchemy.sql import func

from socialweight.database import Base


class LedgerEntry(Base):
    __tablename__ = 'sw_ledger'

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, nullable=False, index=True)
    points = Column(Integer, nullable=False, default=0)
    reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
