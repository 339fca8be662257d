"""
Guest identity resolution and guest-side profile updates
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.clock import as_utc
from app.core.errors import ErrorCode, RSVPError, ServiceError
from app.models import Event, Guest
from app.services.lifecycle_service import can_guest_edit_menu
from app.services.repositories import EventRepo, GuestRepo

logger = logging.getLogger(__name__)


def normalize_guest_name(name: str) -> str:
    return (name or "").strip().lower()


class GuestService:
    """Service for guest identity and guest-editable fields"""

    @staticmethod
    def resolve_guest(db: Session, event_id: int, name: str) -> int:
        """Map a verified display name to a stable guest id, creating the guest once.

        The (event_id, normalized_name) unique constraint arbitrates concurrent
        first resolutions; the losing insert falls back to a lookup.
        """
        display_name = (name or "").strip()
        normalized = normalize_guest_name(display_name)
        if not normalized:
            raise ServiceError(ErrorCode.INVALID_PAYLOAD, "Guest name is required")

        existing = GuestRepo.find_by_normalized_name(db, event_id, normalized)
        if existing:
            return existing.id

        try:
            guest = GuestRepo.insert(db, event_id, display_name, normalized)
            logger.info(f"Created guest {guest.id} for event {event_id}")
            return guest.id
        except IntegrityError:
            db.rollback()
            existing = GuestRepo.find_by_normalized_name(db, event_id, normalized)
            if existing:
                logger.info(f"Guest insert race for event {event_id}; reusing guest {existing.id}")
                return existing.id
            raise ServiceError(ErrorCode.DATASTORE_ERROR, "Guest resolution failed")

    @staticmethod
    def has_unseen_update(guest: Guest, event: Event) -> bool:
        """True when the host changed critical details since the guest last looked"""
        critical = as_utc(event.last_critical_update_at)
        if critical is None:
            return False
        seen = as_utc(guest.last_seen_update_at)
        return seen is None or seen < critical

    @staticmethod
    def acknowledge_update(db: Session, event_id: int, guest_id: int, now: datetime) -> None:
        if not GuestRepo.update_fields(db, event_id, guest_id, {"last_seen_update_at": as_utc(now)}):
            raise ServiceError(ErrorCode.GUEST_NOT_FOUND)

    @staticmethod
    def update_menu_choice(
        db: Session,
        event_id: int,
        guest_id: int,
        menu_choice: Optional[str],
        verified: bool,
        now: datetime,
    ) -> None:
        """Change only the menu choice of a guest who already answered"""
        if not verified:
            raise RSVPError(ErrorCode.NOT_VERIFIED)

        event = EventRepo.get_by_id(db, event_id)
        if not event:
            raise RSVPError(ErrorCode.UNKNOWN, "Event not found")

        if not can_guest_edit_menu(event, now):
            raise RSVPError(ErrorCode.MENU_EDIT_CLOSED)

        choice = (menu_choice or "").strip()
        if not choice:
            raise RSVPError(ErrorCode.MENU_REQUIRED)
        if choice not in (event.menu_options or []):
            raise RSVPError(ErrorCode.INVALID_MENU_CHOICE)

        try:
            updated = GuestRepo.update_fields(db, event_id, guest_id, {"menu_choice": choice})
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Menu choice update failed for guest {guest_id}: {e}")
            raise RSVPError(ErrorCode.UNKNOWN, details=str(e))

        if not updated:
            raise RSVPError(ErrorCode.GUEST_NOT_FOUND)
