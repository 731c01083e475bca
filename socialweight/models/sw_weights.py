"""
SW weights: singleton configuration row (id is always 1).
"""
from sqlalchemy import Column, Integer, Float, DateTime, JSON, CheckConstraint, Text
from sqlalchemy.sql import func

from socialweight.database import Base


class SWWeights(Base):
    __tablename__ = 'sw_weights'
    __table_args__ = (
        CheckConstraint('id = 1', name='sw_weights_singleton'),
    )

    id = Column(Integer, primary_key=True, default=1)
    registration_points = Column(Integer, nullable=False, default=50)
    profile_complete_points = Column(Integer, nullable=False, default=20)
    growth_total_points_multiplier = Column(Float, nullable=False, default=1)
    follower_points = Column(Integer, nullable=False, default=5)
    connection_first_points = Column(Integer, nullable=False, default=100)
    connection_repeat_points = Column(Integer, nullable=False, default=40)
    post_points = Column(Integer, nullable=False, default=20)
    comment_points = Column(Integer, nullable=False, default=10)
    reaction_points = Column(Integer, nullable=False, default=1)
    invite_points = Column(Integer, nullable=True, default=50)
    growth_bonus_percentage = Column(Float, nullable=True, default=0.05)
    daily_inflation_rate = Column(Float, nullable=True, default=0.001)
    user_growth_inflation_rate = Column(Float, nullable=True, default=0.0001)
    min_inflation_rate = Column(Float, nullable=True, default=0.5)
    cache_duration_minutes = Column(Integer, nullable=True, default=15)
    sw_levels = Column(JSON, nullable=True)
    updated_by = Column(Text, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
