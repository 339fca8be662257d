"""
Photo model
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from app.core.db import Base
from app.models.event import utcnow


class Photo(Base):
    __tablename__ = "event_photos"

    id = Column(String(36), primary_key=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    storage_path = Column(String(255), nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    event = relationship("Event", back_populates="photos")
