"""
API tests for the guest, host and webhook routes
"""

import json
import pytest
from datetime import datetime, timedelta, timezone
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.api.routes_host import get_payment_service
from app.core.clock import FixedClock, get_clock
from app.core.config import settings
from app.core.db import Base, get_db
from app.services.blob_store import get_blob_store
from app.services.verification_service import build_verification_phrase, session_registry
from app.utils.security import rate_limiter
from main import app

# Test database setup
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_routes.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
HOST_HEADERS = {"Authorization": f"Bearer {settings.HOST_TOKEN}"}
GUEST_HEADERS = {"X-Guest-Session": "guest-session-1"}


class FakeBlobStore:
    def __init__(self):
        self.objects = {}

    def put(self, path, data, content_type):
        self.objects[path] = data

    def remove(self, path):
        self.objects.pop(path, None)

    def signed_url(self, path, ttl_seconds):
        return f"https://signed.example/{path}"


class FakePaymentService:
    """Accepts any signature and returns the posted event"""

    def construct_webhook_event(self, payload, signature):
        return json.loads(payload)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

@pytest.fixture
def clock():
    return FixedClock(NOW)

@pytest.fixture
def client(clock):
    """Test client wired to the test database and a fixed clock"""
    Base.metadata.create_all(bind=engine)
    session_registry.reset()
    rate_limiter.clear()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_blob_store] = FakeBlobStore
    app.dependency_overrides[get_payment_service] = FakePaymentService
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        Base.metadata.drop_all(bind=engine)

def create_active_event(client, tier=1):
    """Create, pay for and activate an event with a menu"""
    response = client.post(
        "/host/events",
        json={"title": "Jonas ir Ona", "event_date": "2025-08-16T15:00:00Z", "tier": tier},
        headers=HOST_HEADERS,
    )
    assert response.status_code == 201
    event = response.json()["data"]

    webhook = {
        "type": "checkout.session.completed",
        "data": {"object": {
            "id": "cs_test_1",
            "payment_status": "paid",
            "metadata": {"event_id": str(event["id"]), "tier": str(tier), "type": "tier_purchase"},
        }},
    }
    response = client.post("/stripe/webhook", content=json.dumps(webhook), headers={"stripe-signature": "t=1,v1=x"})
    assert response.status_code == 200

    response = client.post(f"/host/events/{event['id']}/activate", headers=HOST_HEADERS)
    assert response.json()["data"]["state"] == "active"

    client.patch(
        f"/host/events/{event['id']}",
        json={"guest_access_enabled": True, "menu_enabled": True},
        headers=HOST_HEADERS,
    )
    client.put(f"/host/events/{event['id']}/menu", json={"options": ["Fish", "Beef"]}, headers=HOST_HEADERS)
    return event

def verify(client, event, name="Ona", phrase=None, headers=GUEST_HEADERS):
    return client.post(
        f"/guest/events/{event['slug']}/verify",
        json={"name": name, "phrase": phrase or build_verification_phrase(event["slug"])},
        headers=headers,
    )

def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}

def test_host_routes_require_token(client):
    response = client.post(
        "/host/events",
        json={"title": "Jonas ir Ona", "event_date": "2025-08-16T15:00:00Z"},
        headers={"Authorization": "Bearer wrong"},
    )
    assert response.status_code == 401

def test_draft_event_hidden_from_guests(client):
    response = client.post(
        "/host/events",
        json={"title": "Jonas ir Ona", "event_date": "2025-08-16T15:00:00Z"},
        headers=HOST_HEADERS,
    )
    slug = response.json()["data"]["slug"]

    response = client.get(f"/guest/events/{slug}")
    assert response.status_code == 403
    assert response.json()["error_code"] == "EVENT_NOT_VISIBLE"

def test_verify_then_rsvp(client):
    """Verified guest is asked for a menu, then the yes is saved"""
    event = create_active_event(client)

    response = client.get(f"/guest/events/{event['slug']}")
    assert response.status_code == 200
    assert response.json()["data"]["menu_options"] == ["Fish", "Beef"]
    assert response.json()["data"]["rsvp_open"] is True

    response = verify(client, event)
    assert response.status_code == 200
    guest = response.json()["data"]
    assert guest["rsvp_status"] == "pending"

    rsvp = {"event_id": event["id"], "guest_id": guest["guest_id"], "rsvp_status": "yes"}
    response = client.post("/guest/rsvp", json=rsvp, headers=GUEST_HEADERS)
    assert response.status_code == 400
    assert response.json()["error_code"] == "MENU_REQUIRED"
    assert response.json()["message"] == "Please choose a menu"

    response = client.post("/guest/rsvp", json={**rsvp, "menu_choice": "Fish"}, headers=GUEST_HEADERS)
    assert response.status_code == 200

    response = client.get(f"/host/events/{event['id']}/guests", headers=HOST_HEADERS)
    assert response.json()["data"] == [
        {"id": guest["guest_id"], "name": "Ona", "rsvp_status": "yes", "menu_choice": "Fish"}
    ]

def test_rsvp_needs_verified_session(client):
    event = create_active_event(client)
    guest_id = verify(client, event).json()["data"]["guest_id"]

    response = client.post(
        "/guest/rsvp",
        json={"event_id": event["id"], "guest_id": guest_id, "rsvp_status": "no"},
        headers={"X-Guest-Session": "someone-else"},
    )
    assert response.status_code == 401
    assert response.json()["error_code"] == "NOT_VERIFIED"

def test_rsvp_for_another_guest_refused(client):
    event = create_active_event(client)
    other_id = verify(client, event, name="Jonas", headers={"X-Guest-Session": "other"}).json()["data"]["guest_id"]
    verify(client, event)

    response = client.post(
        "/guest/rsvp",
        json={"event_id": event["id"], "guest_id": other_id, "rsvp_status": "no"},
        headers=GUEST_HEADERS,
    )
    assert response.json()["error_code"] == "NOT_VERIFIED"

def test_verification_expires_after_a_day(client, clock):
    event = create_active_event(client)
    guest_id = verify(client, event).json()["data"]["guest_id"]

    clock.advance(timedelta(hours=24))
    response = client.post(
        "/guest/rsvp",
        json={"event_id": event["id"], "guest_id": guest_id, "rsvp_status": "no"},
        headers=GUEST_HEADERS,
    )
    assert response.json()["error_code"] == "NOT_VERIFIED"

def test_verification_lockout(client):
    """Five failures report remaining attempts; the sixth is locked"""
    event = create_active_event(client)

    for remaining in (4, 3, 2, 1, 0):
        response = verify(client, event, phrase="wrong")
        assert response.status_code == 401
        assert response.json()["error_code"] == "VERIFICATION_FAILED"
        assert response.json()["details"]["attempts_remaining"] == remaining

    response = verify(client, event)
    assert response.status_code == 429
    assert response.json()["error_code"] == "VERIFICATION_LOCKED"

def test_critical_update_flag_and_acknowledge(client, clock):
    event = create_active_event(client)
    guest = verify(client, event).json()["data"]
    assert guest["has_unseen_update"] is True

    response = client.post(
        f"/guest/events/{event['id']}/acknowledge-update",
        json={"guest_id": guest["guest_id"]},
        headers=GUEST_HEADERS,
    )
    assert response.status_code == 200

    clock.advance(timedelta(minutes=1))
    assert verify(client, event).json()["data"]["has_unseen_update"] is False

def test_export_csv(client):
    event = create_active_event(client)
    verify(client, event)

    response = client.get(f"/host/events/{event['id']}/export?fmt=csv", headers=HOST_HEADERS)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    lines = response.text.strip().splitlines()
    assert lines[0] == "guest_name,rsvp_status,rsvp_at,menu_choice"
    assert lines[1].startswith("Ona,pending")

def test_event_summary_counts(client):
    event = create_active_event(client)
    verify(client, event)

    response = client.get(f"/host/events/{event['id']}", headers=HOST_HEADERS)
    data = response.json()["data"]
    assert data["state"] == "active"
    assert data["verification_phrase"] == build_verification_phrase(event["slug"])
    assert data["total_guests"] == 1
    assert data["rsvp_pending"] == 1

def test_photo_gallery_after_event(client, clock):
    event = create_active_event(client, tier=3)
    client.put(
        f"/host/events/{event['id']}/post-event",
        json={"post_event_enabled": True, "guest_photo_upload_enabled": True},
        headers=HOST_HEADERS,
    )

    clock.advance(datetime(2025, 8, 17, 4, 0, tzinfo=timezone.utc) - NOW)

    response = client.post(f"/guest/events/{event['id']}/photos", json={"imageBase64": "aGVsbG8="})
    assert response.status_code == 201

    response = client.get(f"/guest/events/{event['id']}/photos")
    assert response.status_code == 200
    assert len(response.json()["data"]) == 1

def test_post_event_settings_need_tier_three(client):
    event = create_active_event(client)
    response = client.put(
        f"/host/events/{event['id']}/post-event",
        json={"post_event_enabled": True, "guest_photo_upload_enabled": False},
        headers=HOST_HEADERS,
    )
    assert response.status_code == 403
    assert response.json()["error_code"] == "TIER_3_REQUIRED"

def test_webhook_requires_signature(client):
    response = client.post("/stripe/webhook", content=b"{}")
    assert response.status_code == 400

def test_qr_code_png(client):
    event = create_active_event(client)
    response = client.get(f"/host/events/{event['id']}/qr.png", headers=HOST_HEADERS)
    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    assert response.content.startswith(b"\x89PNG")

def test_verify_issues_session_id(client):
    """Clients without a session id get one back and can use it"""
    event = create_active_event(client)

    response = verify(client, event, headers={})
    assert response.status_code == 200
    session_id = response.json()["data"]["session_id"]
    assert response.headers["X-Guest-Session"] == session_id

    response = client.post(
        "/guest/rsvp",
        json={"event_id": event["id"], "guest_id": response.json()["data"]["guest_id"], "rsvp_status": "no"},
        headers={"X-Guest-Session": session_id},
    )
    assert response.status_code == 200

def test_clients_without_session_id_share_nothing(client):
    """Two clients on one IP never see each other's verification"""
    event = create_active_event(client)
    ona = verify(client, event, headers={}).json()["data"]

    rsvp = {"event_id": event["id"], "guest_id": ona["guest_id"], "rsvp_status": "no"}
    response = client.post("/guest/rsvp", json=rsvp)
    assert response.status_code == 401
    assert response.json()["error_code"] == "NOT_VERIFIED"

    verify(client, event, name="Jonas", headers={})

    response = client.post("/guest/rsvp", json=rsvp, headers={"X-Guest-Session": ona["session_id"]})
    assert response.status_code == 200

def test_failed_verification_returns_session_id(client):
    event = create_active_event(client)

    response = verify(client, event, phrase="wrong", headers={})
    session_id = response.json()["details"]["session_id"]

    response = verify(client, event, phrase="wrong", headers={"X-Guest-Session": session_id})
    assert response.json()["details"]["attempts_remaining"] == 3

def test_lifecycle_check_passes_event(client, clock):
    event = create_active_event(client, tier=3)

    clock.advance(datetime(2025, 8, 17, 4, 0, tzinfo=timezone.utc) - NOW)
    response = client.post(f"/host/events/{event['id']}/lifecycle-check", headers=HOST_HEADERS)

    data = response.json()["data"]
    assert data == {"state": "event_passed", "passed": True, "expired": False}

def test_webhook_acknowledges_renewal_for_low_tier(client):
    """Stripe is not asked to redeliver sessions that can never apply"""
    event = create_active_event(client)
    webhook = {
        "type": "checkout.session.completed",
        "data": {"object": {
            "id": "cs_renew_1",
            "payment_status": "paid",
            "metadata": {"event_id": str(event["id"]), "type": "storage_renewal"},
        }},
    }
    response = client.post("/stripe/webhook", content=json.dumps(webhook), headers={"stripe-signature": "t=1,v1=x"})
    assert response.status_code == 200
