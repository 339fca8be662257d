"""
Guest model
"""

from enum import Enum
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from app.core.db import Base
from app.models.event import utcnow


class RSVPStatus(str, Enum):
    PENDING = "pending"
    YES = "yes"
    NO = "no"


class Guest(Base):
    __tablename__ = "guests"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    name = Column(String(80), nullable=False)
    normalized_name = Column(String(80), nullable=False)
    rsvp_status = Column(String(10), nullable=False, default=RSVPStatus.PENDING.value)
    rsvp_at = Column(DateTime(timezone=True), nullable=True)
    menu_choice = Column(String(255), nullable=True)
    last_seen_update_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    # Relationships
    event = relationship("Event", back_populates="guests")

    # Resolving a name for an event must be idempotent
    __table_args__ = (
        UniqueConstraint("event_id", "normalized_name", name="uq_guests_event_normalized_name"),
    )
