"""
Guest list export for hosts
"""

import io
from typing import Dict, List

import pandas as pd
from sqlalchemy.orm import Session

from app.core.clock import as_utc
from app.models import Event
from app.services.repositories import GuestRepo

CSV_MEDIA_TYPE = "text/csv; charset=utf-8"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

EXPORT_COLUMNS = ["guest_name", "rsvp_status", "rsvp_at", "menu_choice"]


class ExportService:
    """Service for exporting guest responses"""

    @staticmethod
    def guest_rows(db: Session, event: Event) -> List[Dict]:
        rows = []
        for guest in GuestRepo.list_for_event(db, event.id):
            rsvp_at = as_utc(guest.rsvp_at)
            rows.append({
                "guest_name": guest.name,
                "rsvp_status": guest.rsvp_status,
                "rsvp_at": rsvp_at.isoformat() if rsvp_at else "",
                "menu_choice": guest.menu_choice or "",
            })
        return rows

    @staticmethod
    def export_guests(db: Session, event: Event, fmt: str = "csv") -> bytes:
        """Export guests to CSV or XLSX"""
        df = pd.DataFrame(ExportService.guest_rows(db, event), columns=EXPORT_COLUMNS)

        if fmt == "xlsx":
            buffer = io.BytesIO()
            with pd.ExcelWriter(buffer, engine='openpyxl') as writer:
                df.to_excel(writer, index=False, sheet_name='Guests')
            return buffer.getvalue()

        return df.to_csv(index=False).encode("utf-8")

    @staticmethod
    def filename(event: Event, fmt: str = "csv") -> str:
        return f"{event.slug}-guests.{fmt}"

    @staticmethod
    def media_type(fmt: str = "csv") -> str:
        return XLSX_MEDIA_TYPE if fmt == "xlsx" else CSV_MEDIA_TYPE
