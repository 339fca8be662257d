"""
Guest-related Pydantic schemas
"""

from typing import Literal, Optional
from pydantic import BaseModel

class VerifyRequest(BaseModel):
    """Guest name + shared phrase"""
    name: str
    phrase: str

class RSVPRequest(BaseModel):
    """Guest RSVP submission"""
    event_id: int
    guest_id: int
    rsvp_status: Literal["yes", "no"]
    menu_choice: Optional[str] = None

class MenuChoiceRequest(BaseModel):
    """Guest menu choice change"""
    event_id: int
    guest_id: int
    menu_choice: str

class AcknowledgeUpdateRequest(BaseModel):
    """Guest has seen the latest host changes"""
    guest_id: int

class GuestResponse(BaseModel):
    """Guest row as seen by hosts"""
    id: int
    name: str
    rsvp_status: str
    menu_choice: Optional[str] = None

    class Config:
        from_attributes = True
