from sqlalchemy import Column, Integer, Text, DateTime
from sqlalchemy.sql import func

from socialweight.database import Base


class Invite(Base):
    __tablename__ = 'invites'

    id = Column(Integer, primary_key=True, autoincrement=True)
    inviter_user_id = Column(Text, nullable=False, index=True)
    consumed_by_user_id = Column(Text, nullable=True)
    status = Column(Text, nullable=False, default='pending')  # pending | accepted | revoked
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    accepted_at = Column(DateTime(timezone=True), nullable=True)
