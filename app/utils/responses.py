"""
Standardized response utilities
"""

import logging
from typing import Any, Optional
from fastapi import HTTPException, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from app.core.errors import ErrorKind, ServiceError
from app.schemas.common import StandardResponse, ErrorResponse

logger = logging.getLogger(__name__)

def success_response(
    message: str,
    data: Any = None,
    status_code: int = 200
) -> JSONResponse:
    """Create standardized success response"""
    response = StandardResponse(
        success=True,
        message=message,
        data=data
    )
    return JSONResponse(
        content=jsonable_encoder(response),
        status_code=status_code
    )

def error_response(
    message: str,
    error_code: Optional[str] = None,
    details: Any = None,
    status_code: int = 400
) -> JSONResponse:
    """Create standardized error response"""
    response = ErrorResponse(
        message=message,
        error_code=error_code,
        details=details
    )
    return JSONResponse(
        content=jsonable_encoder(response),
        status_code=status_code
    )

def service_error_response(error: ServiceError, expose_details: bool = False) -> JSONResponse:
    """Render a ServiceError; upstream text and details only reach operators"""
    if error.kind == ErrorKind.UPSTREAM:
        logger.error(f"Upstream failure {error.code.value}: {error.message} {error.details or ''}")

    if expose_details:
        return error_response(
            message=error.message,
            error_code=error.code.value,
            details=error.details,
            status_code=error.status_code
        )

    return error_response(
        message=error.public_message,
        error_code=error.code.value,
        status_code=error.status_code
    )

def rate_limit_error():
    """Create rate limit error"""
    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail="Rate limit exceeded. Please try again later."
    )
