"""
Pydantic schemas package
"""

from .common import *
from .event import *
from .guest import *
from .photo import *

__all__ = [
    "StandardResponse",
    "ErrorResponse",
    "EventCreate",
    "EventUpdate",
    "PostEventSettings",
    "MenuOptionsUpdate",
    "CheckoutRequest",
    "RenewalCheckoutRequest",
    "PublicEvent",
    "VerifyRequest",
    "RSVPRequest",
    "MenuChoiceRequest",
    "AcknowledgeUpdateRequest",
    "GuestResponse",
    "PhotoUploadRequest",
]
