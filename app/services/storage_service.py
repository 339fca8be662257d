"""
Tier-3 photo gallery: storage lifecycle windows, photo upload/list/delete, renewal
"""

import base64
import binascii
import logging
import re
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.clock import as_utc
from app.core.config import settings
from app.core.errors import ErrorCode, ServiceError, StorageError
from app.models import Event
from app.services.blob_store import BlobStore
from app.services.lifecycle_service import POST_EVENT_OFFSET, can_guest_view, storage_window_from
from app.services.repositories import EventRepo, PhotoRepo

logger = logging.getLogger(__name__)

MAX_PHOTO_BYTES = 10 * 1024 * 1024
PHOTO_CONTENT_TYPE = "image/jpeg"

BASE64_PATTERN = re.compile(r"^[A-Za-z0-9+/]+={0,2}$")
DATA_URL_MARKER = "base64,"


class GalleryState(str, Enum):
    PRE_EVENT = "pre_event"
    OPEN = "open"
    EXPIRED = "expired"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class SignedPhoto:
    id: str
    signed_url: str
    created_at: datetime


def post_event_starts_at(event: Event) -> datetime:
    return as_utc(event.event_date) + POST_EVENT_OFFSET


def storage_is_open(event: Event, now: datetime) -> bool:
    grace_until = as_utc(event.storage_grace_until)
    return grace_until is not None and as_utc(now) < grace_until


def gallery_state(event: Event, now: datetime) -> GalleryState:
    if event.tier < 3:
        return GalleryState.UNAVAILABLE
    if as_utc(now) < post_event_starts_at(event):
        return GalleryState.PRE_EVENT
    if not event.post_event_enabled:
        return GalleryState.UNAVAILABLE
    if storage_is_open(event, now):
        return GalleryState.OPEN
    return GalleryState.EXPIRED


def check_gallery_access(event: Event, now: datetime, upload: bool = False) -> GalleryState:
    """Raise StorageError unless guests may list (or upload to) the gallery now"""
    state = gallery_state(event, now)

    if state == GalleryState.UNAVAILABLE:
        raise StorageError(ErrorCode.POST_EVENT_NOT_ALLOWED)
    if state == GalleryState.EXPIRED:
        raise StorageError(ErrorCode.STORAGE_EXPIRED)
    if state == GalleryState.PRE_EVENT:
        if not can_guest_view(event):
            raise StorageError(ErrorCode.EVENT_NOT_VISIBLE)
        # uploads always need provisioned, unexpired storage
        if upload and not storage_is_open(event, now):
            raise StorageError(ErrorCode.STORAGE_EXPIRED)

    if upload and not event.guest_photo_upload_enabled:
        raise StorageError(ErrorCode.GUEST_PHOTO_UPLOAD_DISABLED)

    return state


def decode_photo_payload(raw: Optional[str], max_bytes: int = MAX_PHOTO_BYTES) -> bytes:
    """Decode a base64 (or data URL) photo payload; no I/O happens before this passes"""
    if not raw:
        raise StorageError(ErrorCode.MISSING_IMAGE_BASE64)

    marker_index = raw.find(DATA_URL_MARKER)
    if marker_index != -1:
        raw = raw[marker_index + len(DATA_URL_MARKER):]

    normalized = re.sub(r"\s+", "", raw)
    if not normalized or not BASE64_PATTERN.match(normalized):
        raise StorageError(ErrorCode.INVALID_IMAGE_BASE64)

    # 4 base64 chars encode 3 bytes; reject oversized payloads before decoding
    if (len(normalized) // 4) * 3 - normalized.count("=") > max_bytes:
        raise StorageError(ErrorCode.INVALID_FILE_SIZE)

    try:
        data = base64.b64decode(normalized, validate=True)
    except (binascii.Error, ValueError):
        raise StorageError(ErrorCode.INVALID_IMAGE_BASE64)

    if not data:
        raise StorageError(ErrorCode.INVALID_IMAGE_BASE64)
    if len(data) > max_bytes:
        raise StorageError(ErrorCode.INVALID_FILE_SIZE)

    return data


class PhotoService:
    """Service for the post-event photo gallery"""

    def __init__(self, blob_store: BlobStore):
        self.blob_store = blob_store

    @staticmethod
    def _load_event(db: Session, event_id: int) -> Event:
        event = EventRepo.get_by_id(db, event_id)
        if not event:
            raise StorageError(ErrorCode.EVENT_NOT_FOUND)
        return event

    def list_photos(
        self,
        db: Session,
        event_id: int,
        now: datetime,
        ttl_seconds: Optional[int] = None,
    ) -> List[SignedPhoto]:
        event = self._load_event(db, event_id)
        check_gallery_access(event, now)

        ttl = ttl_seconds or settings.PHOTO_URL_TTL_SECONDS
        return [
            SignedPhoto(
                id=photo.id,
                signed_url=self.blob_store.signed_url(photo.storage_path, ttl),
                created_at=as_utc(photo.created_at),
            )
            for photo in PhotoRepo.list_visible(db, event_id)
        ]

    def upload_photo(self, db: Session, event_id: int, payload: Optional[str], now: datetime) -> str:
        data = decode_photo_payload(payload, settings.MAX_PHOTO_SIZE)

        event = self._load_event(db, event_id)
        check_gallery_access(event, now, upload=True)

        photo_id = str(uuid.uuid4())
        storage_path = f"{event_id}/{photo_id}.jpg"

        self.blob_store.put(storage_path, data, PHOTO_CONTENT_TYPE)

        try:
            PhotoRepo.insert(db, photo_id, event_id, storage_path, as_utc(now))
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Photo row insert failed for event {event_id}, removing blob {storage_path}: {e}")
            try:
                self.blob_store.remove(storage_path)
            except ServiceError:
                logger.error(f"Orphaned blob left behind at {storage_path}")
            raise StorageError(ErrorCode.DATASTORE_ERROR, "Photo insert failed", details=str(e))

        logger.info(f"Stored photo {photo_id} for event {event_id} ({len(data)} bytes)")
        return photo_id

    def delete_photo(self, db: Session, event_id: int, photo_id: str, now: datetime) -> None:
        """Host removal: soft-delete the row, then drop the blob"""
        self._load_event(db, event_id)

        photo = PhotoRepo.get(db, event_id, photo_id)
        if not photo or photo.deleted_at is not None:
            raise StorageError(ErrorCode.PHOTO_NOT_FOUND)

        storage_path = photo.storage_path
        if not PhotoRepo.soft_delete(db, event_id, photo_id, as_utc(now)):
            raise StorageError(ErrorCode.PHOTO_NOT_FOUND)

        self.blob_store.remove(storage_path)
        logger.info(f"Deleted photo {photo_id} from event {event_id}")


def renew_storage(db: Session, event_id: int, session_id: str, now: datetime) -> Event:
    """Extend retention by a year from now; a replayed session id is a no-op"""
    session_id = (session_id or "").strip()
    if not session_id:
        raise ServiceError(ErrorCode.INVALID_PAYLOAD, "Checkout session id is required")

    event = EventRepo.get_by_id(db, event_id)
    if not event:
        raise ServiceError(ErrorCode.EVENT_NOT_FOUND)

    if event.tier < 3:
        raise ServiceError(ErrorCode.TIER_3_REQUIRED)

    previous_session = event.storage_renewal_session_id
    if previous_session == session_id:
        logger.info(f"Storage renewal {session_id} already applied to event {event_id}")
        return event

    expires_at, grace_until = storage_window_from(now)
    values = {
        "storage_expires_at": expires_at,
        "storage_grace_until": grace_until,
        "storage_renewal_session_id": session_id,
    }

    if not EventRepo.conditional_update(db, event_id, {"storage_renewal_session_id": previous_session}, values):
        # A concurrent delivery got there first
        db.refresh(event)
        if event.storage_renewal_session_id == session_id:
            return event
        raise ServiceError(ErrorCode.DATASTORE_ERROR, "Concurrent storage renewal")

    db.refresh(event)
    logger.info(f"Renewed storage for event {event_id} until {expires_at.isoformat()}")
    return event
