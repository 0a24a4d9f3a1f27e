"""
Database models for weather-api.
"""

from sqlalchemy import Column, Float, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class CacheEntry(Base):
    """
    Cached weather payload with an absolute expiration time.

    expires_at is a Unix timestamp in seconds.
    """
    __tablename__ = "cache"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
    expires_at = Column(Float, nullable=False, index=True)
