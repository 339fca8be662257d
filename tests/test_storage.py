"""
Tests for the post-event photo gallery and storage lifecycle
"""

import base64
import pytest
from datetime import datetime, timedelta, timezone
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from app.core.clock import as_utc
from app.core.db import Base
from app.core.errors import ErrorCode, ServiceError, StorageError
from app.models import Event, EventState, Photo
from app.services.blob_store import LocalBlobStore
from app.services.repositories import PhotoRepo
from app.services.storage_service import (
    GalleryState,
    PhotoService,
    decode_photo_payload,
    gallery_state,
    renew_storage,
)

# Test database setup
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_storage.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

EVENT_DATE = datetime(2025, 8, 16, 15, 0, tzinfo=timezone.utc)
JPEG_BYTES = b"\xff\xd8\xff\xe0fake-jpeg-body\xff\xd9"
JPEG_B64 = base64.b64encode(JPEG_BYTES).decode("ascii")


class FakeBlobStore:
    """Records blob operations in memory"""

    def __init__(self):
        self.objects = {}
        self.removed = []

    def put(self, path, data, content_type):
        self.objects[path] = data

    def remove(self, path):
        self.removed.append(path)
        self.objects.pop(path, None)

    def signed_url(self, path, ttl_seconds):
        return f"https://signed.example/{path}?ttl={ttl_seconds}"


@pytest.fixture
def db_session():
    """Create test database session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)

@pytest.fixture
def blob_store():
    return FakeBlobStore()

@pytest.fixture
def gallery_event(db_session):
    """Tier-3 event, gallery on, storage until a year after the event plus grace"""
    event = Event(
        slug="jonas-ir-ona",
        title="Jonas ir Ona",
        event_date=EVENT_DATE,
        state=EventState.ACTIVE.value,
        tier=3,
        guest_access_enabled=True,
        menu_options=[],
        post_event_enabled=True,
        guest_photo_upload_enabled=True,
        storage_expires_at=datetime(2026, 8, 16, 15, 0, tzinfo=timezone.utc),
        storage_grace_until=datetime(2026, 9, 15, 15, 0, tzinfo=timezone.utc),
    )
    db_session.add(event)
    db_session.commit()
    db_session.refresh(event)
    return event

def test_gallery_opens_twelve_hours_after_event(gallery_event):
    assert gallery_state(gallery_event, EVENT_DATE + timedelta(hours=11)) == GalleryState.PRE_EVENT
    assert gallery_state(gallery_event, EVENT_DATE + timedelta(hours=12)) == GalleryState.OPEN

def test_gallery_unavailable_below_tier_three(gallery_event):
    gallery_event.tier = 2
    assert gallery_state(gallery_event, EVENT_DATE + timedelta(hours=13)) == GalleryState.UNAVAILABLE

def test_gallery_expires_at_grace_end(gallery_event):
    grace_until = as_utc(gallery_event.storage_grace_until)
    assert gallery_state(gallery_event, grace_until - timedelta(seconds=1)) == GalleryState.OPEN
    assert gallery_state(gallery_event, grace_until) == GalleryState.EXPIRED

def test_upload_and_list_after_event(db_session, gallery_event, blob_store):
    """At T+13h a guest upload lands in the gallery with a signed URL"""
    now = EVENT_DATE + timedelta(hours=13)
    service = PhotoService(blob_store)

    photo_id = service.upload_photo(db_session, gallery_event.id, JPEG_B64, now)

    path = f"{gallery_event.id}/{photo_id}.jpg"
    assert blob_store.objects[path] == JPEG_BYTES

    photos = service.list_photos(db_session, gallery_event.id, now, ttl_seconds=60)
    assert [photo.id for photo in photos] == [photo_id]
    assert photos[0].signed_url == f"https://signed.example/{path}?ttl=60"
    assert photos[0].created_at == now

def test_data_url_payload_accepted(db_session, gallery_event, blob_store):
    now = EVENT_DATE + timedelta(hours=13)
    payload = f"data:image/jpeg;base64,{JPEG_B64}"
    photo_id = PhotoService(blob_store).upload_photo(db_session, gallery_event.id, payload, now)
    assert PhotoRepo.get(db_session, gallery_event.id, photo_id) is not None

def test_upload_after_grace_is_expired(db_session, gallery_event, blob_store):
    now = as_utc(gallery_event.storage_grace_until) + timedelta(days=1)

    with pytest.raises(StorageError) as exc_info:
        PhotoService(blob_store).upload_photo(db_session, gallery_event.id, JPEG_B64, now)
    assert exc_info.value.code == ErrorCode.STORAGE_EXPIRED
    assert blob_store.objects == {}

def test_upload_disabled(db_session, gallery_event, blob_store):
    gallery_event.guest_photo_upload_enabled = False
    db_session.commit()

    with pytest.raises(StorageError) as exc_info:
        PhotoService(blob_store).upload_photo(
            db_session, gallery_event.id, JPEG_B64, EVENT_DATE + timedelta(hours=13)
        )
    assert exc_info.value.code == ErrorCode.GUEST_PHOTO_UPLOAD_DISABLED

def test_post_event_disabled(db_session, gallery_event, blob_store):
    gallery_event.post_event_enabled = False
    db_session.commit()

    with pytest.raises(StorageError) as exc_info:
        PhotoService(blob_store).list_photos(db_session, gallery_event.id, EVENT_DATE + timedelta(hours=13))
    assert exc_info.value.code == ErrorCode.POST_EVENT_NOT_ALLOWED

def test_oversized_upload_rejected_before_io(db_session, gallery_event, blob_store):
    """10 MiB + 1 byte never reaches the blob store or the database"""
    payload = base64.b64encode(b"\x00" * (10 * 1024 * 1024 + 1)).decode("ascii")

    with pytest.raises(StorageError) as exc_info:
        PhotoService(blob_store).upload_photo(
            db_session, gallery_event.id, payload, EVENT_DATE + timedelta(hours=13)
        )
    assert exc_info.value.code == ErrorCode.INVALID_FILE_SIZE
    assert blob_store.objects == {}
    assert db_session.query(Photo).count() == 0

def test_decode_payload_errors():
    with pytest.raises(StorageError) as exc_info:
        decode_photo_payload(None)
    assert exc_info.value.code == ErrorCode.MISSING_IMAGE_BASE64

    with pytest.raises(StorageError) as exc_info:
        decode_photo_payload("not base64 at all!")
    assert exc_info.value.code == ErrorCode.INVALID_IMAGE_BASE64

    assert decode_photo_payload(JPEG_B64[:10] + "\n" + JPEG_B64[10:]) == JPEG_BYTES

def test_failed_insert_removes_blob(db_session, gallery_event, blob_store, monkeypatch):
    """A photo row that cannot be written leaves no blob behind"""
    def failing_insert(db, photo_id, event_id, storage_path, created_at):
        raise SQLAlchemyError("disk full")

    monkeypatch.setattr(PhotoRepo, "insert", staticmethod(failing_insert))

    with pytest.raises(StorageError) as exc_info:
        PhotoService(blob_store).upload_photo(
            db_session, gallery_event.id, JPEG_B64, EVENT_DATE + timedelta(hours=13)
        )
    assert exc_info.value.code == ErrorCode.DATASTORE_ERROR
    assert blob_store.objects == {}
    assert len(blob_store.removed) == 1

def test_delete_photo(db_session, gallery_event, blob_store):
    now = EVENT_DATE + timedelta(hours=13)
    service = PhotoService(blob_store)
    photo_id = service.upload_photo(db_session, gallery_event.id, JPEG_B64, now)

    service.delete_photo(db_session, gallery_event.id, photo_id, now)

    assert service.list_photos(db_session, gallery_event.id, now) == []
    assert blob_store.removed == [f"{gallery_event.id}/{photo_id}.jpg"]

    with pytest.raises(StorageError) as exc_info:
        service.delete_photo(db_session, gallery_event.id, photo_id, now)
    assert exc_info.value.code == ErrorCode.PHOTO_NOT_FOUND

def test_renew_storage_is_idempotent(db_session, gallery_event):
    now = datetime(2026, 9, 1, 10, 0, tzinfo=timezone.utc)

    event = renew_storage(db_session, gallery_event.id, "cs_renew_1", now)
    assert as_utc(event.storage_expires_at) == datetime(2027, 9, 1, 10, 0, tzinfo=timezone.utc)
    assert as_utc(event.storage_grace_until) == datetime(2027, 10, 1, 10, 0, tzinfo=timezone.utc)

    replay = renew_storage(db_session, gallery_event.id, "cs_renew_1", now + timedelta(days=3))
    assert as_utc(replay.storage_expires_at) == datetime(2027, 9, 1, 10, 0, tzinfo=timezone.utc)

def test_renew_storage_requires_tier_three(db_session, gallery_event):
    gallery_event.tier = 2
    db_session.commit()

    with pytest.raises(ServiceError) as exc_info:
        renew_storage(db_session, gallery_event.id, "cs_renew_1", EVENT_DATE)
    assert exc_info.value.code == ErrorCode.TIER_3_REQUIRED

def test_local_blob_store_signed_urls(tmp_path):
    store = LocalBlobStore(str(tmp_path), "http://localhost:8000/", "secret")
    store.put("1/photo.jpg", JPEG_BYTES, "image/jpeg")

    expires = 2_000_000_000
    signature = store.sign("1/photo.jpg", expires)

    assert store.open_signed("1/photo.jpg", expires, signature, now=1_000) == str(tmp_path / "1" / "photo.jpg")
    assert store.open_signed("1/photo.jpg", expires, "bad", now=1_000) is None
    assert store.open_signed("1/photo.jpg", expires, signature, now=expires + 1) is None

    with pytest.raises(ServiceError):
        store.put("../escape.jpg", JPEG_BYTES, "image/jpeg")
