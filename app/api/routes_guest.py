"""
Guest-facing API routes
"""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.core.clock import Clock, as_utc, get_clock
from app.core.db import get_db
from app.core.errors import ErrorCode, ServiceError
from app.models import Event
from app.schemas.event import PublicEvent
from app.schemas.guest import VerifyRequest, RSVPRequest, MenuChoiceRequest, AcknowledgeUpdateRequest
from app.schemas.photo import PhotoUploadRequest
from app.services.blob_store import BlobStore, get_blob_store
from app.services.guest_service import GuestService, normalize_guest_name
from app.services.lifecycle_service import RSVPDecision, can_guest_rsvp, can_guest_view
from app.services.repositories import EventRepo, GuestRepo
from app.services.rsvp_service import RSVPService
from app.services.storage_service import GalleryState, PhotoService, gallery_state
from app.services.verification_service import GuestVerificationSession, build_verification_phrase, session_registry
from app.utils.security import (
    GUEST_SESSION_HEADER,
    rate_limit_check,
    get_client_ip,
    get_guest_session_id,
    guest_verification_session,
    new_guest_session_id,
)
from app.utils.responses import success_response, error_response, rate_limit_error

logger = logging.getLogger(__name__)

router = APIRouter()


def _load_event_by_slug(db: Session, slug: str) -> Event:
    event = EventRepo.get_by_slug(db, slug)
    if not event:
        raise ServiceError(ErrorCode.EVENT_NOT_FOUND)
    return event


def _guest_can_enter(event: Event, now) -> bool:
    # after the event, tier-3 guests still reach the open gallery
    return can_guest_view(event) or gallery_state(event, now) == GalleryState.OPEN


def _verified_as(request: Request, db: Session, event_id: int, guest_id: int, now) -> bool:
    """True when this client verified for the event under the guest's own name"""
    session = guest_verification_session(request, event_id)
    if session is None:
        return False
    record = session.current_record(now)
    if record is None:
        return False
    guest = GuestRepo.get(db, event_id, guest_id)
    # unknown guest ids fall through to GUEST_NOT_FOUND
    return guest is None or guest.normalized_name == normalize_guest_name(record.name)


@router.get("/events/{slug}")
async def get_public_event(
    slug: str,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock)
):
    """Public event details for the guest page"""
    event = _load_event_by_slug(db, slug)
    now = clock.now()

    if not _guest_can_enter(event, now):
        raise ServiceError(ErrorCode.EVENT_NOT_VISIBLE)

    public_event = PublicEvent(
        id=event.id,
        slug=event.slug,
        title=event.title,
        event_date=as_utc(event.event_date),
        menu_enabled=event.menu_enabled,
        menu_options=list(event.menu_options or []) if event.menu_enabled else [],
        rsvp_deadline=as_utc(event.rsvp_deadline),
        rsvp_open=can_guest_rsvp(event, now) == RSVPDecision.ALLOWED,
        gallery_state=gallery_state(event, now).value,
    )

    return success_response(
        message="Event found",
        data=public_event.model_dump(mode="json")
    )


@router.post("/events/{slug}/verify")
async def verify_guest(
    slug: str,
    request: Request,
    verify_data: VerifyRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock)
):
    """Verify a guest by name and shared phrase, then resolve their guest id"""
    # Rate limiting
    client_ip = get_client_ip(request)
    if not rate_limit_check(client_ip):
        return rate_limit_error()

    event = _load_event_by_slug(db, slug)
    now = clock.now()

    if not _guest_can_enter(event, now):
        raise ServiceError(ErrorCode.EVENT_NOT_VISIBLE)

    # clients without a session id get a fresh one to send back on later calls
    session_id = get_guest_session_id(request) or new_guest_session_id()
    session = GuestVerificationSession(session_registry.store_for(session_id), event.id)
    if session.is_locked_out():
        raise ServiceError(ErrorCode.VERIFICATION_LOCKED)

    result = session.verify(
        verify_data.name,
        verify_data.phrase,
        build_verification_phrase(event.slug),
        now
    )

    if not result.ok:
        logger.info(f"Failed verification for event {event.id} from {client_ip}")
        response = error_response(
            message="Verification failed",
            error_code=ErrorCode.VERIFICATION_FAILED.value,
            details={"attempts_remaining": session.attempts_remaining(), "session_id": session_id},
            status_code=401
        )
        response.headers[GUEST_SESSION_HEADER] = session_id
        return response

    guest_id = GuestService.resolve_guest(db, event.id, result.name)
    guest = GuestRepo.get(db, event.id, guest_id)

    response = success_response(
        message="Verified",
        data={
            "session_id": session_id,
            "event_id": event.id,
            "guest_id": guest_id,
            "name": guest.name,
            "rsvp_status": guest.rsvp_status,
            "menu_choice": guest.menu_choice,
            "has_unseen_update": GuestService.has_unseen_update(guest, event)
        }
    )
    response.headers[GUEST_SESSION_HEADER] = session_id
    return response


@router.post("/events/{slug}/logout")
async def logout_guest(
    slug: str,
    request: Request,
    db: Session = Depends(get_db)
):
    """Forget this client's verification for the event"""
    event = _load_event_by_slug(db, slug)
    session = guest_verification_session(request, event.id)
    if session is not None:
        session.logout()
    return success_response(message="Logged out")


@router.post("/rsvp")
async def submit_rsvp(
    request: Request,
    rsvp_data: RSVPRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock)
):
    """Submit an RSVP for a verified guest"""
    now = clock.now()
    verified = _verified_as(request, db, rsvp_data.event_id, rsvp_data.guest_id, now)

    RSVPService.submit_rsvp(
        db,
        event_id=rsvp_data.event_id,
        guest_id=rsvp_data.guest_id,
        rsvp_status=rsvp_data.rsvp_status,
        menu_choice=rsvp_data.menu_choice,
        verified=verified,
        now=now
    )

    return success_response(message="RSVP saved")


@router.post("/menu-choice")
async def change_menu_choice(
    request: Request,
    menu_data: MenuChoiceRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock)
):
    """Change a verified guest's menu choice"""
    now = clock.now()
    verified = _verified_as(request, db, menu_data.event_id, menu_data.guest_id, now)

    GuestService.update_menu_choice(
        db,
        event_id=menu_data.event_id,
        guest_id=menu_data.guest_id,
        menu_choice=menu_data.menu_choice,
        verified=verified,
        now=now
    )

    return success_response(message="Menu choice saved")


@router.post("/events/{event_id}/acknowledge-update")
async def acknowledge_update(
    event_id: int,
    request: Request,
    ack_data: AcknowledgeUpdateRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock)
):
    """Mark the latest host changes as seen"""
    now = clock.now()
    if not _verified_as(request, db, event_id, ack_data.guest_id, now):
        raise ServiceError(ErrorCode.NOT_VERIFIED)

    GuestService.acknowledge_update(db, event_id, ack_data.guest_id, now)
    return success_response(message="Update acknowledged")


@router.get("/events/{event_id}/photos")
async def list_photos(
    event_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    blob_store: BlobStore = Depends(get_blob_store)
):
    """List gallery photos with short-lived signed URLs"""
    photos = PhotoService(blob_store).list_photos(db, event_id, clock.now())

    return success_response(
        message="Photos retrieved",
        data=[
            {
                "id": photo.id,
                "signed_url": photo.signed_url,
                "created_at": photo.created_at.isoformat()
            }
            for photo in photos
        ]
    )


@router.post("/events/{event_id}/photos")
async def upload_photo(
    event_id: int,
    request: Request,
    upload_data: PhotoUploadRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    blob_store: BlobStore = Depends(get_blob_store)
):
    """Upload a base64-encoded guest photo"""
    client_ip = get_client_ip(request)
    if not rate_limit_check(client_ip):
        return rate_limit_error()

    photo_id = PhotoService(blob_store).upload_photo(db, event_id, upload_data.payload(), clock.now())

    return success_response(
        message="Photo uploaded",
        data={"id": photo_id},
        status_code=201
    )
