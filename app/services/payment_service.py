"""
Stripe checkout sessions and webhook handling
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

import stripe
from sqlalchemy.orm import Session

from app.core.config import Settings, settings
from app.core.errors import ErrorCode, ServiceError
from app.models import Event
from app.services.lifecycle_service import mark_event_paid
from app.services.storage_service import renew_storage

logger = logging.getLogger(__name__)

PURCHASE_TIER = "tier_purchase"
PURCHASE_STORAGE_RENEWAL = "storage_renewal"
PAID_STATUSES = ("paid", "no_payment_required")

# Checkout sessions that can never apply, however often Stripe redelivers them
UNRETRYABLE_WEBHOOK_ERRORS = (
    ErrorCode.EVENT_NOT_FOUND,
    ErrorCode.TIER_3_REQUIRED,
    ErrorCode.INVALID_TIER,
    ErrorCode.INVALID_STATE_TRANSITION,
)


class PaymentService:
    """Creates checkout sessions and applies confirmed payments"""

    def __init__(self, config: Settings = settings):
        self.config = config

    def _require_secret_key(self) -> str:
        if not self.config.STRIPE_SECRET_KEY:
            logger.error("STRIPE_SECRET_KEY is not configured")
            raise ServiceError(ErrorCode.PAYMENT_NOT_CONFIGURED, "STRIPE_SECRET_KEY missing")
        return self.config.STRIPE_SECRET_KEY

    def _create_session(self, price_id: str, success_url: str, cancel_url: str, metadata: Dict[str, str]) -> str:
        api_key = self._require_secret_key()
        try:
            session = stripe.checkout.Session.create(
                api_key=api_key,
                mode="payment",
                line_items=[{"price": price_id, "quantity": 1}],
                success_url=success_url,
                cancel_url=cancel_url,
                metadata=metadata,
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe checkout creation failed for event {metadata.get('event_id')}: {e}")
            raise ServiceError(ErrorCode.PAYMENT_PROVIDER_ERROR, "Stripe error", details=str(e))

        if not session.get("url"):
            raise ServiceError(ErrorCode.PAYMENT_PROVIDER_ERROR, "Checkout url missing")

        return session["url"]

    def create_tier_checkout(self, event: Event, tier: int, success_url: str, cancel_url: str) -> str:
        if tier not in (1, 2, 3):
            raise ServiceError(ErrorCode.INVALID_TIER, f"Invalid tier {tier}")
        price_id = self.config.stripe_price_for_tier(tier)
        if not price_id:
            raise ServiceError(ErrorCode.PAYMENT_NOT_CONFIGURED, f"No price configured for tier {tier}")

        return self._create_session(
            price_id,
            success_url,
            cancel_url,
            {"event_id": str(event.id), "tier": str(tier), "type": PURCHASE_TIER},
        )

    def create_storage_renewal_checkout(self, event: Event, success_url: str, cancel_url: str) -> str:
        if event.tier < 3:
            raise ServiceError(ErrorCode.TIER_3_REQUIRED)
        if not self.config.STRIPE_STORAGE_RENEWAL_PRICE_ID:
            raise ServiceError(ErrorCode.PAYMENT_NOT_CONFIGURED, "STRIPE_STORAGE_RENEWAL_PRICE_ID missing")

        return self._create_session(
            self.config.STRIPE_STORAGE_RENEWAL_PRICE_ID,
            success_url,
            cancel_url,
            {"event_id": str(event.id), "type": PURCHASE_STORAGE_RENEWAL},
        )

    def construct_webhook_event(self, payload: bytes, signature: str):
        if not self.config.STRIPE_WEBHOOK_SECRET:
            raise ServiceError(ErrorCode.PAYMENT_NOT_CONFIGURED, "STRIPE_WEBHOOK_SECRET missing")
        try:
            return stripe.Webhook.construct_event(payload, signature, self.config.STRIPE_WEBHOOK_SECRET)
        except ValueError as e:
            logger.error("Invalid webhook payload")
            raise ServiceError(ErrorCode.INVALID_PAYLOAD, "Invalid payload", details=str(e))
        except stripe.SignatureVerificationError as e:
            logger.error("Invalid webhook signature")
            raise ServiceError(ErrorCode.INVALID_PAYLOAD, "Invalid signature", details=str(e))


def _field(obj: Any, key: str) -> Any:
    """Subscript lookup that works on dicts and StripeObjects alike"""
    if obj is None:
        return None
    try:
        return obj[key]
    except KeyError:
        return None


def handle_checkout_completed(db: Session, session: Any, now: datetime) -> Optional[Event]:
    """Apply a completed checkout session. Safe to call again for the same session."""
    session_id = _field(session, "id")
    metadata = _field(session, "metadata")
    event_id = _field(metadata, "event_id")

    if not session_id or not event_id:
        logger.error(f"Missing metadata in checkout session {session_id}")
        return None

    payment_status = _field(session, "payment_status")
    if payment_status and payment_status not in PAID_STATUSES:
        logger.info(f"Checkout session {session_id} not paid yet ({payment_status})")
        return None

    try:
        event_id = int(event_id)
    except (TypeError, ValueError):
        logger.error(f"Invalid event id {event_id!r} in checkout session {session_id}")
        return None

    try:
        if _field(metadata, "type") == PURCHASE_STORAGE_RENEWAL:
            return renew_storage(db, event_id, session_id, now)

        tier = _field(metadata, "tier")
        if tier is not None and not str(tier).isdigit():
            logger.error(f"Invalid tier {tier!r} in checkout session {session_id}")
            return None

        return mark_event_paid(db, event_id, session_id, now, tier=int(tier) if tier else None)
    except ServiceError as e:
        # retrying cannot fix these, so acknowledge the delivery
        if e.code not in UNRETRYABLE_WEBHOOK_ERRORS:
            raise
        logger.error(f"Ignoring checkout session {session_id} for event {event_id}: {e.code.value}")
        return None
