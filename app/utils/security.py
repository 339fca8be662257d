"""
Security utilities and authentication
"""

from fastapi import HTTPException, Depends, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import secrets
import time
from typing import Optional
from collections import defaultdict

from app.core.config import settings
from app.services.verification_service import GuestVerificationSession, session_registry

# Simple in-memory rate limiter
rate_limiter = defaultdict(list)

security = HTTPBearer()

GUEST_SESSION_HEADER = "X-Guest-Session"
MAX_SESSION_ID_LENGTH = 128

def verify_host_token(credentials: HTTPAuthorizationCredentials = Depends(security)):
    """Verify host authentication token"""
    if credentials.credentials != settings.HOST_TOKEN:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid host token"
        )
    return credentials.credentials

def rate_limit_check(client_ip: str, limit: int = None) -> bool:
    """Simple rate limiting by IP address"""
    if limit is None:
        limit = settings.RATE_LIMIT_PER_MINUTE

    current_time = time.time()
    minute_ago = current_time - 60

    # Clean old requests
    rate_limiter[client_ip] = [
        req_time for req_time in rate_limiter[client_ip]
        if req_time > minute_ago
    ]

    # Check limit
    if len(rate_limiter[client_ip]) >= limit:
        return False

    # Add current request
    rate_limiter[client_ip].append(current_time)
    return True

def get_client_ip(request) -> str:
    """Extract client IP from request"""
    # Check for forwarded IP first (for reverse proxy setups)
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    # Check for real IP header
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    # Fall back to direct client IP
    return request.client.host

def get_guest_session_id(request: Request) -> Optional[str]:
    """Client session id from the X-Guest-Session header"""
    session_id = (request.headers.get(GUEST_SESSION_HEADER) or "").strip()
    if not session_id or len(session_id) > MAX_SESSION_ID_LENGTH:
        return None
    return session_id

def new_guest_session_id() -> str:
    return secrets.token_urlsafe(32)

def guest_verification_session(request: Request, event_id) -> Optional[GuestVerificationSession]:
    """Verification state for the calling client; None without a session id"""
    session_id = get_guest_session_id(request)
    if session_id is None:
        return None
    return GuestVerificationSession(session_registry.store_for(session_id), event_id)
