"""
Admin SW adjustment: permanent signed bonus/penalty recorded by moderators.

The scoring engine only ever reads the per-user sum.
"""
from sqlalchemy import Column, Integer, Text, Boolean, DateTime
from sqlalchemy.sql import func

from socialweight.database import Base


class AdminAdjustment(Base):
    __tablename__ = 'admin_sw_adjustments'

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, nullable=False, index=True)
    points = Column(Integer, nullable=False)  # signed: penalties are negative
    reason = Column(Text, nullable=True)
    adjustment_type = Column(Text, nullable=False)  # bonus | penalty
    permanent = Column(Boolean, nullable=False, default=True)
    created_by = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
