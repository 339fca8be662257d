"""
Stripe webhook endpoint
"""

import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.api.routes_host import get_payment_service
from app.core.clock import Clock, get_clock
from app.core.db import get_db
from app.services.payment_service import PaymentService, handle_checkout_completed

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    payments: PaymentService = Depends(get_payment_service),
    stripe_signature: str = Header(None, alias="stripe-signature")
):
    """
    Handle Stripe webhook events.

    Events handled:
    - checkout.session.completed: tier purchase (Draft -> Paid) or storage renewal

    Deliveries are at-least-once; applying the same session twice is a no-op.
    """
    if not stripe_signature:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing stripe-signature header"
        )

    payload = await request.body()
    event = payments.construct_webhook_event(payload, stripe_signature)

    event_type = event["type"]
    logger.info(f"Received Stripe webhook: {event_type}")

    if event_type == "checkout.session.completed":
        handle_checkout_completed(db, event["data"]["object"], clock.now())

    return {"received": True}
