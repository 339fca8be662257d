"""
RSVP submission for verified guests
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.clock import as_utc
from app.core.errors import ErrorCode, RSVPError
from app.models import RSVPStatus
from app.services.lifecycle_service import RSVPDecision, can_guest_rsvp
from app.services.repositories import EventRepo, GuestRepo

logger = logging.getLogger(__name__)

DECISION_ERRORS = {
    RSVPDecision.EVENT_NOT_ACTIVE: ErrorCode.EVENT_NOT_ACTIVE,
    RSVPDecision.GUEST_ACCESS_DISABLED: ErrorCode.GUEST_ACCESS_DISABLED,
    RSVPDecision.RSVP_CLOSED: ErrorCode.RSVP_DEADLINE_PASSED,
}


class RSVPService:
    """Service for applying guest RSVP decisions"""

    @staticmethod
    def submit_rsvp(
        db: Session,
        event_id: int,
        guest_id: int,
        rsvp_status: str,
        menu_choice: Optional[str],
        verified: bool,
        now: datetime,
    ) -> None:
        """Persist a guest's yes/no answer, or raise RSVPError with the reason.

        `verified` is the caller's claim that the guest passed phrase
        verification within the TTL. Eligibility is checked against a fresh
        read of the event right before the write.
        """
        if not verified:
            raise RSVPError(ErrorCode.NOT_VERIFIED)

        if rsvp_status not in (RSVPStatus.YES.value, RSVPStatus.NO.value):
            raise RSVPError(ErrorCode.INVALID_RSVP_STATUS)

        event = EventRepo.get_by_id(db, event_id)
        if not event:
            raise RSVPError(ErrorCode.UNKNOWN, "Event not found")

        decision = can_guest_rsvp(event, now)
        if decision != RSVPDecision.ALLOWED:
            raise RSVPError(DECISION_ERRORS[decision])

        choice = (menu_choice or "").strip() or None
        if event.menu_enabled:
            if choice is None and rsvp_status == RSVPStatus.YES.value:
                raise RSVPError(ErrorCode.MENU_REQUIRED)
            if choice is not None and choice not in (event.menu_options or []):
                raise RSVPError(ErrorCode.INVALID_MENU_CHOICE)
        else:
            choice = None

        values = {
            "rsvp_status": rsvp_status,
            "rsvp_at": as_utc(now),
            "menu_choice": choice,
        }

        try:
            updated = GuestRepo.update_fields(db, event_id, guest_id, values)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"RSVP write failed for guest {guest_id} on event {event_id}: {e}")
            raise RSVPError(ErrorCode.UNKNOWN, details=str(e))

        if not updated:
            raise RSVPError(ErrorCode.GUEST_NOT_FOUND)

        logger.info(f"Guest {guest_id} answered {rsvp_status} for event {event_id}")
