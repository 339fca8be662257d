"""
QR code generation service
"""

import io
import qrcode

from app.core.config import settings

class QRService:
    """Service for generating guest invitation QR codes"""

    @staticmethod
    def get_guest_url(slug: str) -> str:
        """Get the guest page URL the QR code points at"""
        return f"{settings.BASE_URL}/e/{slug}"

    @staticmethod
    def generate_event_qr(slug: str, format: str = 'PNG') -> bytes:
        """Generate QR code for the event's guest page"""
        qr = qrcode.QRCode(
            version=1,
            error_correction=qrcode.constants.ERROR_CORRECT_L,
            box_size=10,
            border=4,
        )
        qr.add_data(QRService.get_guest_url(slug))
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")

        buffer = io.BytesIO()
        img.save(buffer, format=format)

        return buffer.getvalue()
