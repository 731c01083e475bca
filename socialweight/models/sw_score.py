"""
SW score cache record: last full computation per user.

Created lazily on first computation, overwritten (upsert) on every
recomputation, never deleted. Freshness is judged from last_updated.
"""
from sqlalchemy import Column, Integer, Float, Text, DateTime, JSON

from socialweight.database import Base


class SWScore(Base):
    __tablename__ = 'sw_scores'

    user_id = Column(Text, primary_key=True)
    total = Column(Integer, nullable=False, default=0)            # post-decay
    original_total = Column(Float, nullable=False, default=0.0)   # base + admin adjustments
    base_total = Column(Float, nullable=False, default=0.0)
    admin_adjustments = Column(Integer, nullable=False, default=0)
    breakdown = Column(JSON, nullable=True)
    inflation_rate = Column(Float, nullable=False, default=1.0)
    current_level = Column(Text, nullable=True)
    last_level_change = Column(DateTime(timezone=True), nullable=True)
    inflation_last_updated = Column(DateTime(timezone=True), nullable=True)
    last_updated = Column(DateTime(timezone=True), nullable=False)
