"""
Follow edge: directed follower → followee.
"""
from sqlalchemy import Column, Integer, Text, DateTime, UniqueConstraint
from sqlalchemy.sql import func

from socialweight.database import Base


class Follow(Base):
    __tablename__ = 'follows'
    __table_args__ = (
        UniqueConstraint('follower_id', 'followee_id', name='uq_follows_pair'),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    follower_id = Column(Text, nullable=False)
    followee_id = Column(Text, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
