"""
Repository layer over the relational datastore.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models import Event, Guest, Photo


# -------- Event repository --------

class EventRepo:
    @staticmethod
    def get_by_id(db: Session, event_id: int) -> Optional[Event]:
        return db.query(Event).filter(Event.id == event_id).first()

    @staticmethod
    def get_by_slug(db: Session, slug: str) -> Optional[Event]:
        return db.query(Event).filter(Event.slug == slug).first()

    @staticmethod
    def slug_exists(db: Session, slug: str) -> bool:
        return db.query(Event.id).filter(Event.slug == slug).first() is not None

    @staticmethod
    def create(db: Session, **fields: Any) -> Event:
        event = Event(**fields)
        db.add(event)
        db.commit()
        db.refresh(event)
        return event

    @staticmethod
    def conditional_update(db: Session, event_id: int, expected: Dict[str, Any], values: Dict[str, Any]) -> bool:
        """UPDATE events SET values WHERE id = event_id AND <expected>; True when a row matched."""
        query = db.query(Event).filter(Event.id == event_id)
        for column, value in expected.items():
            query = query.filter(getattr(Event, column) == value)
        matched = query.update(values, synchronize_session=False)
        db.commit()
        return matched > 0


# -------- Guest repository --------

class GuestRepo:
    @staticmethod
    def get(db: Session, event_id: int, guest_id: int) -> Optional[Guest]:
        return db.query(Guest).filter(Guest.id == guest_id, Guest.event_id == event_id).first()

    @staticmethod
    def find_by_normalized_name(db: Session, event_id: int, normalized_name: str) -> Optional[Guest]:
        return db.query(Guest).filter(
            Guest.event_id == event_id,
            Guest.normalized_name == normalized_name
        ).first()

    @staticmethod
    def insert(db: Session, event_id: int, name: str, normalized_name: str) -> Guest:
        guest = Guest(event_id=event_id, name=name, normalized_name=normalized_name)
        db.add(guest)
        db.commit()
        db.refresh(guest)
        return guest

    @staticmethod
    def update_fields(db: Session, event_id: int, guest_id: int, values: Dict[str, Any]) -> bool:
        matched = db.query(Guest).filter(
            Guest.id == guest_id,
            Guest.event_id == event_id
        ).update(values, synchronize_session=False)
        db.commit()
        return matched > 0

    @staticmethod
    def list_for_event(db: Session, event_id: int) -> List[Guest]:
        return db.query(Guest).filter(Guest.event_id == event_id).order_by(Guest.name).all()

    @staticmethod
    def count_by_status(db: Session, event_id: int) -> Dict[str, int]:
        rows = db.query(Guest.rsvp_status, func.count(Guest.id)).filter(
            Guest.event_id == event_id
        ).group_by(Guest.rsvp_status).all()
        return {status: count for status, count in rows}

    @staticmethod
    def delete(db: Session, event_id: int, guest_id: int) -> bool:
        deleted = db.query(Guest).filter(
            Guest.id == guest_id,
            Guest.event_id == event_id
        ).delete(synchronize_session=False)
        db.commit()
        return deleted > 0


# -------- Photo repository --------

class PhotoRepo:
    @staticmethod
    def list_visible(db: Session, event_id: int) -> List[Photo]:
        return db.query(Photo).filter(
            Photo.event_id == event_id,
            Photo.deleted_at.is_(None)
        ).order_by(Photo.created_at.desc()).all()

    @staticmethod
    def get(db: Session, event_id: int, photo_id: str) -> Optional[Photo]:
        return db.query(Photo).filter(Photo.id == photo_id, Photo.event_id == event_id).first()

    @staticmethod
    def insert(db: Session, photo_id: str, event_id: int, storage_path: str, created_at: datetime) -> Photo:
        photo = Photo(id=photo_id, event_id=event_id, storage_path=storage_path, created_at=created_at)
        db.add(photo)
        db.commit()
        return photo

    @staticmethod
    def soft_delete(db: Session, event_id: int, photo_id: str, deleted_at: datetime) -> bool:
        matched = db.query(Photo).filter(
            Photo.id == photo_id,
            Photo.event_id == event_id,
            Photo.deleted_at.is_(None)
        ).update({"deleted_at": deleted_at}, synchronize_session=False)
        db.commit()
        return matched > 0
