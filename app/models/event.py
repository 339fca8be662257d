"""
Event model
"""

from datetime import datetime, timezone
from enum import Enum
from sqlalchemy import Column, Integer, String, Boolean, DateTime, JSON
from sqlalchemy.orm import relationship

from app.core.db import Base


def utcnow():
    return datetime.now(timezone.utc)


class EventState(str, Enum):
    """Event lifecycle states, in forward order.

    LOCKED is only read from rows written by older revisions; a closed RSVP is
    otherwise a derived condition (deadline passed), not a stored state.
    """
    DRAFT = "draft"
    PAID = "paid"
    ACTIVE = "active"
    LOCKED = "locked"
    EVENT_PASSED = "event_passed"
    ARCHIVED = "archived"
    EXPIRED = "expired"


class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    slug = Column(String(120), unique=True, nullable=False, index=True)
    title = Column(String(255), nullable=False)
    event_date = Column(DateTime(timezone=True), nullable=False)
    state = Column(String(20), nullable=False, default=EventState.DRAFT.value)
    tier = Column(Integer, nullable=False, default=1)

    guest_access_enabled = Column(Boolean, nullable=False, default=False)
    menu_enabled = Column(Boolean, nullable=False, default=False)
    menu_options = Column(JSON, nullable=False, default=list)
    rsvp_deadline = Column(DateTime(timezone=True), nullable=True)
    last_critical_update_at = Column(DateTime(timezone=True), nullable=True)

    # tier 3 only
    post_event_enabled = Column(Boolean, nullable=False, default=False)
    guest_photo_upload_enabled = Column(Boolean, nullable=False, default=False)
    storage_expires_at = Column(DateTime(timezone=True), nullable=True)
    storage_grace_until = Column(DateTime(timezone=True), nullable=True)

    # payments
    paid_at = Column(DateTime(timezone=True), nullable=True)
    stripe_session_id = Column(String(255), nullable=True)
    storage_renewal_session_id = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)

    # Relationships
    guests = relationship("Guest", back_populates="event", cascade="all, delete-orphan")
    photos = relationship("Photo", back_populates="event", cascade="all, delete-orphan")
