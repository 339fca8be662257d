"""
Host-side event management
"""

import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.clock import as_utc
from app.core.errors import ErrorCode, ServiceError
from app.models import Event, EventState, RSVPStatus
from app.services.lifecycle_service import can_host_edit_menu, is_rsvp_locked
from app.services.repositories import EventRepo, GuestRepo
from app.services.verification_service import build_verification_phrase

logger = logging.getLogger(__name__)

MAX_SLUG_SUFFIX = 1000

DIACRITICS = {
    "ą": "a", "č": "c", "ę": "e", "ė": "e", "į": "i",
    "š": "s", "ų": "u", "ū": "u", "ž": "z",
}

# Changing any of these notifies guests on their next visit
CRITICAL_FIELDS = ("title", "event_date", "menu_enabled", "rsvp_deadline")


def slugify_event_title(title: str) -> str:
    slug = (title or "").lower().strip()
    for letter, plain in DIACRITICS.items():
        slug = slug.replace(letter, plain)
    slug = re.sub(r"[^a-z0-9]+", "-", slug)
    return slug.strip("-")


class EventService:
    """Service for host event operations"""

    @staticmethod
    def build_unique_slug(db: Session, title: str) -> str:
        base = slugify_event_title(title) or "event"
        candidate = base
        suffix = 1
        while EventRepo.slug_exists(db, candidate):
            suffix += 1
            if suffix >= MAX_SLUG_SUFFIX:
                raise ServiceError(ErrorCode.DATASTORE_ERROR, "Failed to generate unique slug")
            candidate = f"{base}-{suffix}"
        return candidate

    @staticmethod
    def create_event(db: Session, title: str, event_date: datetime, tier: int = 1) -> Event:
        title = (title or "").strip()
        if not title:
            raise ServiceError(ErrorCode.INVALID_PAYLOAD, "Title is required")
        if event_date is None:
            raise ServiceError(ErrorCode.INVALID_EVENT_DATE, "Event date is required")
        if tier not in (1, 2, 3):
            raise ServiceError(ErrorCode.INVALID_TIER, f"Invalid tier {tier}")

        event = EventRepo.create(
            db,
            title=title,
            slug=EventService.build_unique_slug(db, title),
            event_date=as_utc(event_date),
            tier=tier,
            state=EventState.DRAFT.value,
            menu_options=[],
        )
        logger.info(f"Created event {event.id} ({event.slug})")
        return event

    @staticmethod
    def get_event(db: Session, event_id: int) -> Event:
        event = EventRepo.get_by_id(db, event_id)
        if not event:
            raise ServiceError(ErrorCode.EVENT_NOT_FOUND)
        return event

    @staticmethod
    def update_event_settings(db: Session, event: Event, changes: Dict[str, Any], now: datetime) -> Event:
        """Apply host edits; critical changes stamp last_critical_update_at"""
        critical_changed = False
        for field, value in changes.items():
            if field in ("event_date", "rsvp_deadline"):
                value = as_utc(value)
                current = as_utc(getattr(event, field))
            else:
                current = getattr(event, field)
            if field == "title":
                value = (value or "").strip()
                if not value:
                    raise ServiceError(ErrorCode.INVALID_PAYLOAD, "Title is required")
            if field == "event_date" and value is None:
                raise ServiceError(ErrorCode.INVALID_EVENT_DATE, "Event date is required")
            if value != current:
                setattr(event, field, value)
                if field in CRITICAL_FIELDS:
                    critical_changed = True

        if critical_changed:
            event.last_critical_update_at = as_utc(now)

        db.commit()
        db.refresh(event)
        return event

    @staticmethod
    def update_post_event_settings(
        db: Session,
        event: Event,
        post_event_enabled: bool,
        guest_photo_upload_enabled: bool,
    ) -> Event:
        if (post_event_enabled or guest_photo_upload_enabled) and event.tier < 3:
            raise ServiceError(ErrorCode.TIER_3_REQUIRED)

        event.post_event_enabled = post_event_enabled
        event.guest_photo_upload_enabled = guest_photo_upload_enabled
        db.commit()
        db.refresh(event)
        return event

    @staticmethod
    def set_menu_options(db: Session, event: Event, options: List[str], now: datetime) -> Event:
        if not can_host_edit_menu(event, now):
            raise ServiceError(ErrorCode.MENU_EDIT_CLOSED)

        cleaned = [option.strip() for option in options]
        if any(not option for option in cleaned):
            raise ServiceError(ErrorCode.INVALID_MENU_OPTIONS, "Menu options must not be empty")
        if len(set(cleaned)) != len(cleaned):
            raise ServiceError(ErrorCode.INVALID_MENU_OPTIONS, "Menu options must be unique")

        event.menu_options = cleaned
        db.commit()
        db.refresh(event)
        return event

    @staticmethod
    def event_summary(db: Session, event: Event, now: datetime) -> Dict[str, Any]:
        counts = GuestRepo.count_by_status(db, event.id)
        return {
            "id": event.id,
            "slug": event.slug,
            "title": event.title,
            "event_date": as_utc(event.event_date).isoformat(),
            "state": event.state,
            "tier": event.tier,
            "verification_phrase": build_verification_phrase(event.slug),
            "guest_access_enabled": event.guest_access_enabled,
            "menu_enabled": event.menu_enabled,
            "menu_options": list(event.menu_options or []),
            "rsvp_deadline": _iso(event.rsvp_deadline),
            "rsvp_locked": is_rsvp_locked(event, now),
            "post_event_enabled": event.post_event_enabled,
            "guest_photo_upload_enabled": event.guest_photo_upload_enabled,
            "storage_expires_at": _iso(event.storage_expires_at),
            "storage_grace_until": _iso(event.storage_grace_until),
            "total_guests": sum(counts.values()),
            "rsvp_yes": counts.get(RSVPStatus.YES.value, 0),
            "rsvp_no": counts.get(RSVPStatus.NO.value, 0),
            "rsvp_pending": counts.get(RSVPStatus.PENDING.value, 0),
        }


def _iso(value: Optional[datetime]) -> Optional[str]:
    value = as_utc(value)
    return value.isoformat() if value else None
