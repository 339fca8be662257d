"""
Typed service errors and their HTTP mapping
"""

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_VERIFIED = "not_verified"
    STATE_CONFLICT = "state_conflict"
    NOT_FOUND = "not_found"
    UPSTREAM = "upstream"
    FORBIDDEN = "forbidden"


class ErrorCode(str, Enum):
    # validation
    INVALID_PAYLOAD = "INVALID_PAYLOAD"
    INVALID_RSVP_STATUS = "INVALID_RSVP_STATUS"
    INVALID_MENU_CHOICE = "INVALID_MENU_CHOICE"
    INVALID_MENU_OPTIONS = "INVALID_MENU_OPTIONS"
    INVALID_TIER = "INVALID_TIER"
    INVALID_EVENT_DATE = "INVALID_EVENT_DATE"
    MENU_REQUIRED = "MENU_REQUIRED"
    MISSING_IMAGE_BASE64 = "MISSING_IMAGE_BASE64"
    INVALID_IMAGE_BASE64 = "INVALID_IMAGE_BASE64"
    INVALID_FILE_SIZE = "INVALID_FILE_SIZE"

    # verification
    NOT_VERIFIED = "NOT_VERIFIED"
    VERIFICATION_FAILED = "VERIFICATION_FAILED"
    VERIFICATION_LOCKED = "VERIFICATION_LOCKED"

    # state conflicts
    EVENT_NOT_ACTIVE = "EVENT_NOT_ACTIVE"
    EVENT_NOT_VISIBLE = "EVENT_NOT_VISIBLE"
    GUEST_ACCESS_DISABLED = "GUEST_ACCESS_DISABLED"
    RSVP_DEADLINE_PASSED = "RSVP_DEADLINE_PASSED"
    MENU_EDIT_CLOSED = "MENU_EDIT_CLOSED"
    POST_EVENT_NOT_ALLOWED = "POST_EVENT_NOT_ALLOWED"
    GUEST_PHOTO_UPLOAD_DISABLED = "GUEST_PHOTO_UPLOAD_DISABLED"
    STORAGE_EXPIRED = "STORAGE_EXPIRED"
    TIER_3_REQUIRED = "TIER_3_REQUIRED"
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"

    # not found
    EVENT_NOT_FOUND = "EVENT_NOT_FOUND"
    GUEST_NOT_FOUND = "GUEST_NOT_FOUND"
    PHOTO_NOT_FOUND = "PHOTO_NOT_FOUND"

    # upstream
    UNKNOWN = "UNKNOWN"
    DATASTORE_ERROR = "DATASTORE_ERROR"
    STORAGE_UPSTREAM_ERROR = "STORAGE_UPSTREAM_ERROR"
    PAYMENT_PROVIDER_ERROR = "PAYMENT_PROVIDER_ERROR"
    PAYMENT_NOT_CONFIGURED = "PAYMENT_NOT_CONFIGURED"


# code -> (kind, http status, guest-facing message)
ERROR_TABLE = {
    ErrorCode.INVALID_PAYLOAD: (ErrorKind.VALIDATION, 400, "Invalid request"),
    ErrorCode.INVALID_RSVP_STATUS: (ErrorKind.VALIDATION, 400, "RSVP must be yes or no"),
    ErrorCode.INVALID_MENU_CHOICE: (ErrorKind.VALIDATION, 400, "Unknown menu choice"),
    ErrorCode.INVALID_MENU_OPTIONS: (ErrorKind.VALIDATION, 400, "Invalid menu options"),
    ErrorCode.INVALID_TIER: (ErrorKind.VALIDATION, 400, "Invalid tier"),
    ErrorCode.INVALID_EVENT_DATE: (ErrorKind.VALIDATION, 400, "Invalid event date"),
    ErrorCode.MENU_REQUIRED: (ErrorKind.VALIDATION, 400, "Please choose a menu"),
    ErrorCode.MISSING_IMAGE_BASE64: (ErrorKind.VALIDATION, 400, "No image provided"),
    ErrorCode.INVALID_IMAGE_BASE64: (ErrorKind.VALIDATION, 400, "Invalid image"),
    ErrorCode.INVALID_FILE_SIZE: (ErrorKind.VALIDATION, 400, "Image is too large"),
    ErrorCode.NOT_VERIFIED: (ErrorKind.NOT_VERIFIED, 401, "Please verify again"),
    ErrorCode.VERIFICATION_FAILED: (ErrorKind.NOT_VERIFIED, 401, "Verification failed"),
    ErrorCode.VERIFICATION_LOCKED: (ErrorKind.NOT_VERIFIED, 429, "Too many attempts"),
    ErrorCode.EVENT_NOT_ACTIVE: (ErrorKind.STATE_CONFLICT, 403, "This event is not active"),
    ErrorCode.EVENT_NOT_VISIBLE: (ErrorKind.STATE_CONFLICT, 403, "This event is not available"),
    ErrorCode.GUEST_ACCESS_DISABLED: (ErrorKind.STATE_CONFLICT, 403, "Guest access is disabled"),
    ErrorCode.RSVP_DEADLINE_PASSED: (ErrorKind.STATE_CONFLICT, 403, "RSVP is closed for this event"),
    ErrorCode.MENU_EDIT_CLOSED: (ErrorKind.STATE_CONFLICT, 403, "Menu selection is closed"),
    ErrorCode.POST_EVENT_NOT_ALLOWED: (ErrorKind.STATE_CONFLICT, 403, "The photo gallery is not available"),
    ErrorCode.GUEST_PHOTO_UPLOAD_DISABLED: (ErrorKind.STATE_CONFLICT, 403, "Photo uploads are disabled"),
    ErrorCode.STORAGE_EXPIRED: (ErrorKind.STATE_CONFLICT, 403, "The photo gallery has expired"),
    ErrorCode.TIER_3_REQUIRED: (ErrorKind.FORBIDDEN, 403, "This feature requires tier 3"),
    ErrorCode.INVALID_STATE_TRANSITION: (ErrorKind.STATE_CONFLICT, 409, "Invalid event state"),
    ErrorCode.EVENT_NOT_FOUND: (ErrorKind.NOT_FOUND, 404, "Event not found"),
    ErrorCode.GUEST_NOT_FOUND: (ErrorKind.NOT_FOUND, 404, "Guest not found"),
    ErrorCode.PHOTO_NOT_FOUND: (ErrorKind.NOT_FOUND, 404, "Photo not found"),
    ErrorCode.UNKNOWN: (ErrorKind.UPSTREAM, 500, "Something went wrong"),
    ErrorCode.DATASTORE_ERROR: (ErrorKind.UPSTREAM, 500, "Something went wrong"),
    ErrorCode.STORAGE_UPSTREAM_ERROR: (ErrorKind.UPSTREAM, 500, "Something went wrong"),
    ErrorCode.PAYMENT_PROVIDER_ERROR: (ErrorKind.UPSTREAM, 502, "Payment provider error"),
    ErrorCode.PAYMENT_NOT_CONFIGURED: (ErrorKind.UPSTREAM, 500, "Payments are not configured"),
}


class ServiceError(Exception):
    """Error carrying a machine-readable code plus optional operator-only detail."""

    def __init__(self, code: ErrorCode, message: Optional[str] = None, details: Any = None):
        self.code = ErrorCode(code)
        self.kind, self.status_code, self.public_message = ERROR_TABLE[self.code]
        self.message = message or self.public_message
        self.details = details
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.code.value!r})"


class RSVPError(ServiceError):
    """Rejection raised by the RSVP and menu-choice write paths"""


class StorageError(ServiceError):
    """Rejection raised by the photo gallery and storage lifecycle"""
