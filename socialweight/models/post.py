"""
Post + PostReaction models.
"""
from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey, Index
from sqlalchemy.sql import func

from socialweight.database import Base


class Post(Base):
    __tablename__ = 'posts'
    __table_args__ = (
        Index('ix_posts_author_id', 'author_id'),
        Index('ix_posts_created_at', 'created_at'),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    author_id = Column(Text, nullable=False)
    body = Column(Text, default='')
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class PostReaction(Base):
    __tablename__ = 'post_reactions'

    id = Column(Integer, primary_key=True, autoincrement=True)
    post_id = Column(Integer, ForeignKey('posts.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = Column(Text, nullable=False)
    kind = Column(Text, default='like')
    created_at = Column(DateTime(timezone=True), server_default=func.now())
