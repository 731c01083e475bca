from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey
from sqlalchemy.sql import func

from socialweight.database import Base


class Comment(Base):
    __tablename__ = 'comments'

    id = Column(Integer, primary_key=True, autoincrement=True)
    post_id = Column(Integer, ForeignKey('posts.id', ondelete='CASCADE'), nullable=True)
    author_id = Column(Text, nullable=False, index=True)
    body = Column(Text, default='')
    created_at = Column(DateTime(timezone=True), server_default=func.now())
