"""
Database models package
"""

from .event import Event, EventState
from .guest import Guest, RSVPStatus
from .photo import Photo

__all__ = ["Event", "EventState", "Guest", "RSVPStatus", "Photo"]
