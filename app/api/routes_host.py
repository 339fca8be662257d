"""
Host API routes - requires authentication
"""

from typing import Literal

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.core.clock import Clock, get_clock
from app.core.config import settings
from app.core.db import get_db
from app.core.errors import ErrorCode, ServiceError
from app.schemas.event import (
    EventCreate,
    EventUpdate,
    PostEventSettings,
    MenuOptionsUpdate,
    CheckoutRequest,
    RenewalCheckoutRequest,
)
from app.schemas.guest import GuestResponse
from app.services.blob_store import BlobStore, get_blob_store
from app.services.event_service import EventService
from app.services.export_service import ExportService
from app.services.lifecycle_service import activate_event, archive_event, expire_if_due, pass_event_if_due
from app.services.payment_service import PaymentService
from app.services.qr_service import QRService
from app.services.repositories import GuestRepo
from app.services.storage_service import PhotoService
from app.utils.security import verify_host_token
from app.utils.responses import success_response

router = APIRouter(dependencies=[Depends(verify_host_token)])


def get_payment_service() -> PaymentService:
    return PaymentService(settings)


@router.post("/events")
async def create_event(
    event_data: EventCreate,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock)
):
    """Create a new draft event"""
    event = EventService.create_event(db, event_data.title, event_data.event_date, event_data.tier)

    return success_response(
        message="Event created successfully",
        data=EventService.event_summary(db, event, clock.now()),
        status_code=201
    )


@router.get("/events/{event_id}")
async def get_event_details(
    event_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock)
):
    """Get event settings, verification phrase and RSVP counts"""
    event = EventService.get_event(db, event_id)

    return success_response(
        message="Event details retrieved",
        data=EventService.event_summary(db, event, clock.now())
    )


@router.patch("/events/{event_id}")
async def update_event(
    event_id: int,
    event_update: EventUpdate,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock)
):
    """Update event settings"""
    event = EventService.get_event(db, event_id)

    changes = event_update.model_dump(exclude_unset=True, exclude={"clear_rsvp_deadline"})
    if event_update.clear_rsvp_deadline:
        changes["rsvp_deadline"] = None

    event = EventService.update_event_settings(db, event, changes, clock.now())

    return success_response(
        message="Event updated successfully",
        data=EventService.event_summary(db, event, clock.now())
    )


@router.put("/events/{event_id}/post-event")
async def update_post_event(
    event_id: int,
    post_event: PostEventSettings,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock)
):
    """Configure the tier-3 post-event gallery"""
    event = EventService.get_event(db, event_id)
    event = EventService.update_post_event_settings(
        db,
        event,
        post_event.post_event_enabled,
        post_event.guest_photo_upload_enabled
    )

    return success_response(
        message="Post-event settings updated",
        data=EventService.event_summary(db, event, clock.now())
    )


@router.put("/events/{event_id}/menu")
async def update_menu(
    event_id: int,
    menu_update: MenuOptionsUpdate,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock)
):
    """Replace the event's menu options"""
    event = EventService.get_event(db, event_id)
    event = EventService.set_menu_options(db, event, menu_update.options, clock.now())

    return success_response(
        message="Menu updated",
        data={"menu_options": event.menu_options}
    )


@router.post("/events/{event_id}/activate")
async def activate(
    event_id: int,
    db: Session = Depends(get_db)
):
    """Open a paid event to guests"""
    event = activate_event(db, EventService.get_event(db, event_id))
    return success_response(message="Event activated", data={"state": event.state})


@router.post("/events/{event_id}/archive")
async def archive(
    event_id: int,
    db: Session = Depends(get_db)
):
    """Archive an event"""
    event = archive_event(db, EventService.get_event(db, event_id))
    return success_response(message="Event archived", data={"state": event.state})


@router.post("/events/{event_id}/lifecycle-check")
async def lifecycle_check(
    event_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock)
):
    """Apply time-driven transitions: event passed, then storage expiry"""
    event = EventService.get_event(db, event_id)
    now = clock.now()
    passed = pass_event_if_due(db, event, now)
    expired = expire_if_due(db, event, now)
    return success_response(
        message="Lifecycle checked",
        data={"state": event.state, "passed": passed, "expired": expired}
    )


@router.post("/events/{event_id}/checkout")
async def create_checkout(
    event_id: int,
    checkout: CheckoutRequest,
    db: Session = Depends(get_db),
    payments: PaymentService = Depends(get_payment_service)
):
    """Start a Stripe checkout for a tier purchase"""
    event = EventService.get_event(db, event_id)
    url = payments.create_tier_checkout(
        event,
        checkout.tier,
        checkout.success_url or f"{settings.BASE_URL}/host/events/{event_id}?payment=success",
        checkout.cancel_url or f"{settings.BASE_URL}/host/events/{event_id}?payment=cancel"
    )
    return success_response(message="Checkout created", data={"url": url})


@router.post("/events/{event_id}/storage/renew")
async def create_storage_renewal(
    event_id: int,
    renewal: RenewalCheckoutRequest,
    db: Session = Depends(get_db),
    payments: PaymentService = Depends(get_payment_service)
):
    """Start a Stripe checkout for another year of photo storage"""
    event = EventService.get_event(db, event_id)
    url = payments.create_storage_renewal_checkout(
        event,
        renewal.success_url or f"{settings.BASE_URL}/host/events/{event_id}?renewal=success",
        renewal.cancel_url or f"{settings.BASE_URL}/host/events/{event_id}?renewal=cancel"
    )
    return success_response(message="Checkout created", data={"url": url})


@router.get("/events/{event_id}/guests")
async def list_guests(
    event_id: int,
    db: Session = Depends(get_db)
):
    """List guests and their answers"""
    EventService.get_event(db, event_id)
    guests = GuestRepo.list_for_event(db, event_id)

    return success_response(
        message="Guests retrieved successfully",
        data=[GuestResponse.model_validate(guest).model_dump() for guest in guests]
    )


@router.delete("/events/{event_id}/guests/{guest_id}")
async def delete_guest(
    event_id: int,
    guest_id: int,
    db: Session = Depends(get_db)
):
    """Remove a guest from the event"""
    EventService.get_event(db, event_id)
    if not GuestRepo.delete(db, event_id, guest_id):
        raise ServiceError(ErrorCode.GUEST_NOT_FOUND)

    return success_response(message="Guest deleted", data={"deleted_guest_id": guest_id})


@router.get("/events/{event_id}/export")
async def export_guests(
    event_id: int,
    fmt: Literal["csv", "xlsx"] = "csv",
    db: Session = Depends(get_db)
):
    """Download guest responses as CSV or Excel"""
    event = EventService.get_event(db, event_id)
    content = ExportService.export_guests(db, event, fmt)

    return Response(
        content=content,
        media_type=ExportService.media_type(fmt),
        headers={"Content-Disposition": f'attachment; filename="{ExportService.filename(event, fmt)}"'}
    )


@router.delete("/events/{event_id}/photos/{photo_id}")
async def delete_photo(
    event_id: int,
    photo_id: str,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    blob_store: BlobStore = Depends(get_blob_store)
):
    """Remove a photo from the gallery"""
    PhotoService(blob_store).delete_photo(db, event_id, photo_id, clock.now())
    return success_response(message="Photo deleted", data={"deleted_photo_id": photo_id})


@router.get("/events/{event_id}/qr.png")
async def get_qr_code(
    event_id: int,
    db: Session = Depends(get_db)
):
    """QR code pointing guests at the event page"""
    event = EventService.get_event(db, event_id)

    return Response(
        content=QRService.generate_event_qr(event.slug),
        media_type="image/png",
        headers={"Content-Disposition": f"inline; filename=qr_{event.slug}.png"}
    )
