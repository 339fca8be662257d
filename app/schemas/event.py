"""
Event-related Pydantic schemas
"""

from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field

class EventCreate(BaseModel):
    """Schema for creating an event"""
    title: str
    event_date: datetime
    tier: int = Field(1, ge=1, le=3)

class EventUpdate(BaseModel):
    """Host-editable event settings"""
    title: Optional[str] = None
    event_date: Optional[datetime] = None
    guest_access_enabled: Optional[bool] = None
    menu_enabled: Optional[bool] = None
    rsvp_deadline: Optional[datetime] = None
    clear_rsvp_deadline: bool = False

class PostEventSettings(BaseModel):
    """Tier-3 post-event gallery settings"""
    post_event_enabled: bool
    guest_photo_upload_enabled: bool

class MenuOptionsUpdate(BaseModel):
    """Ordered menu options offered to guests"""
    options: List[str]

class CheckoutRequest(BaseModel):
    """Tier purchase checkout"""
    tier: int
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None

class RenewalCheckoutRequest(BaseModel):
    """Storage renewal checkout"""
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None

class PublicEvent(BaseModel):
    """Event details shown to guests"""
    id: int
    slug: str
    title: str
    event_date: datetime
    menu_enabled: bool
    menu_options: List[str]
    rsvp_deadline: Optional[datetime] = None
    rsvp_open: bool
    gallery_state: str

    class Config:
        from_attributes = True
