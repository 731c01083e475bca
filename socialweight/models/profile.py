"""
Profile model: one row per registered user.

Existence of a row is what earns registration credit; the five completeness
fields drive the profile-complete bonus.
"""
from sqlalchemy import Column, Text, DateTime
from sqlalchemy.sql import func

from socialweight.database import Base


class Profile(Base):
    __tablename__ = 'profiles'

    user_id = Column(Text, primary_key=True)
    username = Column(Text, nullable=True, unique=True)
    full_name = Column(Text, nullable=True)
    bio = Column(Text, nullable=True)
    country = Column(Text, nullable=True)
    avatar_url = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
