"""
Event lifecycle: guest visibility, RSVP and menu eligibility, state transitions
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from sqlalchemy.orm import Session

from app.core.clock import add_years, as_utc
from app.core.errors import ErrorCode, ServiceError
from app.models import Event, EventState
from app.services.repositories import EventRepo

logger = logging.getLogger(__name__)

STORAGE_RETENTION_YEARS = 1
STORAGE_GRACE = timedelta(days=30)
POST_EVENT_OFFSET = timedelta(hours=12)


class RSVPDecision(str, Enum):
    ALLOWED = "allowed"
    EVENT_NOT_ACTIVE = "event_not_active"
    GUEST_ACCESS_DISABLED = "guest_access_disabled"
    RSVP_CLOSED = "rsvp_closed"


def _deadline_passed(event: Event, now: datetime) -> bool:
    deadline = as_utc(event.rsvp_deadline)
    return deadline is not None and as_utc(now) > deadline


def can_guest_view(event: Event) -> bool:
    return event.state == EventState.ACTIVE.value and bool(event.guest_access_enabled)


def can_guest_rsvp(event: Event, now: datetime) -> RSVPDecision:
    if event.state != EventState.ACTIVE.value:
        return RSVPDecision.EVENT_NOT_ACTIVE
    if not event.guest_access_enabled:
        return RSVPDecision.GUEST_ACCESS_DISABLED
    if _deadline_passed(event, now):
        return RSVPDecision.RSVP_CLOSED
    return RSVPDecision.ALLOWED


def can_guest_edit_menu(event: Event, now: datetime) -> bool:
    return (
        event.state == EventState.ACTIVE.value
        and bool(event.menu_enabled)
        and not _deadline_passed(event, now)
    )


def can_host_edit_menu(event: Event, now: datetime) -> bool:
    # Hosts may prepare menus before the event is active
    return not _deadline_passed(event, now)


def is_rsvp_locked(event: Event, now: datetime) -> bool:
    """The "locked" condition: RSVP deadline has passed, or a legacy locked row."""
    return event.state == EventState.LOCKED.value or _deadline_passed(event, now)


# -------- State transitions --------

STATE_ORDER = {
    EventState.DRAFT: 0,
    EventState.PAID: 1,
    EventState.ACTIVE: 2,
    EventState.LOCKED: 3,
    EventState.EVENT_PASSED: 3,
    EventState.ARCHIVED: 4,
    EventState.EXPIRED: 5,
}

ALLOWED_TRANSITIONS = {
    EventState.DRAFT: {EventState.PAID},
    EventState.PAID: {EventState.ACTIVE},
    EventState.ACTIVE: {EventState.EVENT_PASSED, EventState.ARCHIVED, EventState.EXPIRED},
    EventState.LOCKED: {EventState.EVENT_PASSED, EventState.ARCHIVED, EventState.EXPIRED},
    EventState.EVENT_PASSED: {EventState.ARCHIVED, EventState.EXPIRED},
    EventState.ARCHIVED: {EventState.EXPIRED},
    EventState.EXPIRED: set(),
}


def can_transition(current: EventState, target: EventState) -> bool:
    current, target = EventState(current), EventState(target)
    return target in ALLOWED_TRANSITIONS[current] and STATE_ORDER[target] > STATE_ORDER[current]


def transition_state(db: Session, event: Event, target: EventState, **extra) -> Event:
    """Move an event forward, guarded by a conditional update on the current state"""
    current = EventState(event.state)
    if not can_transition(current, target):
        raise ServiceError(
            ErrorCode.INVALID_STATE_TRANSITION,
            f"Cannot move event from {current.value} to {EventState(target).value}",
        )

    values = {"state": EventState(target).value, **extra}
    if not EventRepo.conditional_update(db, event.id, {"state": current.value}, values):
        raise ServiceError(ErrorCode.INVALID_STATE_TRANSITION, "Event state changed concurrently")

    db.refresh(event)
    logger.info(f"Event {event.id} moved from {current.value} to {event.state}")
    return event


def storage_window_from(start: datetime) -> tuple[datetime, datetime]:
    expires_at = add_years(as_utc(start), STORAGE_RETENTION_YEARS)
    return expires_at, expires_at + STORAGE_GRACE


def mark_event_paid(
    db: Session,
    event_id: int,
    session_id: str,
    now: datetime,
    tier: Optional[int] = None,
) -> Event:
    """Apply a confirmed checkout: Draft -> Paid, idempotent on the session id"""
    session_id = (session_id or "").strip()
    if not session_id:
        raise ServiceError(ErrorCode.INVALID_PAYLOAD, "Checkout session id is required")

    event = EventRepo.get_by_id(db, event_id)
    if not event:
        raise ServiceError(ErrorCode.EVENT_NOT_FOUND)

    if event.stripe_session_id == session_id:
        logger.info(f"Checkout session {session_id} already applied to event {event_id}")
        return event

    if event.state != EventState.DRAFT.value:
        raise ServiceError(ErrorCode.INVALID_STATE_TRANSITION, "Event state must be draft")

    if tier is not None and tier not in (1, 2, 3):
        raise ServiceError(ErrorCode.INVALID_TIER, f"Invalid tier {tier}")
    paid_tier = tier or event.tier

    values = {
        "state": EventState.PAID.value,
        "tier": paid_tier,
        "paid_at": as_utc(now),
        "stripe_session_id": session_id,
        "storage_expires_at": None,
        "storage_grace_until": None,
    }
    if paid_tier >= 3:
        if event.event_date is None:
            raise ServiceError(ErrorCode.INVALID_EVENT_DATE, "Event date is required")
        values["storage_expires_at"], values["storage_grace_until"] = storage_window_from(event.event_date)

    if not EventRepo.conditional_update(db, event.id, {"state": EventState.DRAFT.value}, values):
        # Lost a race against a concurrent delivery of the same or another session
        db.refresh(event)
        if event.stripe_session_id == session_id:
            return event
        raise ServiceError(ErrorCode.INVALID_STATE_TRANSITION, "Event state must be draft")

    db.refresh(event)
    logger.info(f"Event {event.id} marked paid (tier {paid_tier}) from session {session_id}")
    return event


def activate_event(db: Session, event: Event) -> Event:
    return transition_state(db, event, EventState.ACTIVE)


def archive_event(db: Session, event: Event) -> Event:
    return transition_state(db, event, EventState.ARCHIVED)


def pass_event_if_due(db: Session, event: Event, now: datetime) -> bool:
    """Move an active event to event_passed once the post-event window opens"""
    if event.state not in (EventState.ACTIVE.value, EventState.LOCKED.value):
        return False
    if as_utc(now) < as_utc(event.event_date) + POST_EVENT_OFFSET:
        return False
    transition_state(db, event, EventState.EVENT_PASSED)
    return True


def expire_if_due(db: Session, event: Event, now: datetime) -> bool:
    """Move a tier-3 event to expired once its storage grace window has elapsed"""
    if event.tier < 3 or event.state == EventState.EXPIRED.value:
        return False
    grace_until = as_utc(event.storage_grace_until)
    if grace_until is None or as_utc(now) < grace_until:
        return False
    if not can_transition(EventState(event.state), EventState.EXPIRED):
        return False
    transition_state(db, event, EventState.EXPIRED)
    return True
